from sqlalchemy import create_engine, Column, Integer, String, Text, Boolean, DECIMAL, DateTime, ForeignKey, JSON
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from datetime import datetime
from uuid import uuid4

from ..config import settings


def _new_id() -> str:
    return str(uuid4())


def _engine_options() -> dict:
    if settings.DATABASE_URL.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }


# Create engine
engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options()
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all models
Base = declarative_base()


class Store(Base):
    """Connected Shopify stores"""
    __tablename__ = "stores"

    id = Column(String(36), primary_key=True, default=_new_id)
    shopify_store_id = Column(String(255), nullable=False, unique=True, index=True)
    store_name = Column(String(255), nullable=False)
    access_token = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    products = relationship("Product", back_populates="store", cascade="all, delete-orphan")
    milestones = relationship("Milestone", back_populates="store", cascade="all, delete-orphan")
    cart_sessions = relationship("CartSession", back_populates="store", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Store(id={self.id}, shopify_store_id='{self.shopify_store_id}')>"


class Product(Base):
    """Products table"""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_new_id)
    shopify_product_id = Column(String(100), nullable=False)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    handle = Column(String(255), nullable=False)
    price = Column(DECIMAL(10, 2), nullable=False)
    image_url = Column(String(500))
    is_bundle = Column(Boolean, default=False)
    is_eligible_for_rewards = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    store = relationship("Store", back_populates="products")

    def __repr__(self):
        return f"<Product(id={self.id}, title='{self.title}', price={self.price})>"


class Milestone(Base):
    """Cart value thresholds that unlock rewards"""
    __tablename__ = "milestones"

    id = Column(String(36), primary_key=True, default=_new_id)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    name = Column(String(255), default="Milestone")
    description = Column(Text)
    threshold_amount = Column(DECIMAL(10, 2), nullable=False, index=True)
    currency = Column(String(10), default="PKR")
    reward_type = Column(String(50), nullable=False)
    free_product_count = Column(Integer, default=0)
    discount_value = Column(DECIMAL(10, 2), default=0)
    discount_type = Column(String(50), default="percentage")
    status = Column(String(50), default="active")
    is_active = Column(Boolean, default=True)
    priority = Column(Integer, default=1)
    display_order = Column(Integer, default=1)
    icon = Column(String(20), default="🎁")
    color = Column(String(20), default="#e91e63")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    store = relationship("Store", back_populates="milestones")

    def __repr__(self):
        return f"<Milestone(id={self.id}, threshold={self.threshold_amount}, reward_type='{self.reward_type}')>"


class CartSession(Base):
    """Cart drawer sessions keyed by Shopify cart token"""
    __tablename__ = "cart_sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    customer_id = Column(String(100))
    cart_token = Column(String(255), nullable=False, unique=True, index=True)
    current_value = Column(DECIMAL(10, 2), default=0)
    unlocked_milestones = Column(JSON, default=list)
    selected_free_products = Column(JSON, default=list)
    timer_expires_at = Column(DateTime)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    store = relationship("Store", back_populates="cart_sessions")
    rewards = relationship("RewardHistory", back_populates="cart_session", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<CartSession(id={self.id}, cart_token='{self.cart_token}', value={self.current_value})>"


class RewardHistory(Base):
    """Rewards unlocked by cart sessions"""
    __tablename__ = "reward_history"

    id = Column(String(36), primary_key=True, default=_new_id)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    cart_session_id = Column(String(36), ForeignKey("cart_sessions.id"))
    milestone_id = Column(String(36), ForeignKey("milestones.id"))
    reward_type = Column(String(50), nullable=False)
    reward_value = Column(DECIMAL(10, 2))
    is_redeemed = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    cart_session = relationship("CartSession", back_populates="rewards")

    def __repr__(self):
        return f"<RewardHistory(id={self.id}, milestone_id={self.milestone_id}, reward_type='{self.reward_type}')>"


# Database utility functions
def create_tables():
    """Create all database tables"""
    Base.metadata.create_all(bind=engine)


def drop_tables():
    """Drop all database tables (use with caution)"""
    Base.metadata.drop_all(bind=engine)
