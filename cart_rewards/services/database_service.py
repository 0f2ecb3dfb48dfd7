import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from cart_rewards.config import settings
from cart_rewards.models.database import (
    SessionLocal, Store, Product, Milestone, CartSession, RewardHistory, create_tables
)
from cart_rewards.models.schemas import (
    StoreCreate, StoreRecord, ProductCreate, ProductModel, MilestoneCreate, MilestoneModel,
    CartSessionCreate, CartSessionModel, RewardHistoryModel, RewardType
)
from cart_rewards.services.rewards import max_free_products, tiers_from_milestones
from cart_rewards.utils.helpers import retry_on_failure

logger = logging.getLogger(__name__)

db_retry = retry_on_failure(retries=settings.DB_RETRY_ATTEMPTS, delay=settings.DB_RETRY_DELAY)

# Seeded by initialize_milestones: threshold, reward type, free product count, name
DEFAULT_MILESTONES = [
    (2500, RewardType.FREE_DELIVERY, 0, "Free Delivery"),
    (3000, RewardType.FREE_PRODUCTS, 1, "1 Free Product"),
    (4000, RewardType.FREE_PRODUCTS, 2, "2 Free Products"),
    (5000, RewardType.FREE_PRODUCTS, 3, "3 Free Products"),
]


class DatabaseService:
    def __init__(self):
        # Ensure tables exist
        create_tables()

    def get_session(self) -> Session:
        """Get database session"""
        return SessionLocal()

    # Stores

    @db_retry
    def create_store(self, store: StoreCreate) -> StoreRecord:
        """
        Create a store record

        Args:
            store: Store data; shopify_store_id must not exist yet

        Returns:
            StoreRecord: The stored record with its generated id

        Raises:
            sqlalchemy.exc.IntegrityError: If the Shopify store id is already registered
        """
        db = self.get_session()
        try:
            db_store = Store(
                shopify_store_id=store.shopify_store_id,
                store_name=store.store_name,
                access_token=store.access_token,
                is_active=store.is_active
            )
            db.add(db_store)
            db.commit()
            db.refresh(db_store)
            logger.info(f"Created store {db_store.shopify_store_id} with ID: {db_store.id}")
            return StoreRecord.model_validate(db_store)

        except Exception as e:
            db.rollback()
            logger.error(f"Error creating store {store.shopify_store_id}: {e}")
            raise
        finally:
            db.close()

    @db_retry
    def get_store_by_shopify_id(self, shopify_store_id: str) -> Optional[StoreRecord]:
        db = self.get_session()
        try:
            db_store = db.scalars(
                select(Store).where(Store.shopify_store_id == shopify_store_id)
            ).first()
            return StoreRecord.model_validate(db_store) if db_store else None
        finally:
            db.close()

    def store_exists(self, store_id: str) -> bool:
        db = self.get_session()
        try:
            return db.get(Store, store_id) is not None
        finally:
            db.close()

    # Products

    @db_retry
    def create_product(self, product: ProductCreate) -> ProductModel:
        db = self.get_session()
        try:
            db_product = Product(**product.model_dump())
            db.add(db_product)
            db.commit()
            db.refresh(db_product)
            logger.info(f"Created product '{db_product.title}' for store {db_product.store_id}")
            return ProductModel.model_validate(db_product)
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating product: {e}")
            raise
        finally:
            db.close()

    @db_retry
    def get_products_by_store(self, store_id: str) -> List[ProductModel]:
        db = self.get_session()
        try:
            products = db.scalars(
                select(Product).where(Product.store_id == store_id).order_by(Product.created_at)
            ).all()
            return [ProductModel.model_validate(p) for p in products]
        finally:
            db.close()

    @db_retry
    def get_eligible_free_products(self, store_id: str) -> List[ProductModel]:
        """Products a shopper may pick as free rewards: eligible and not a bundle"""
        db = self.get_session()
        try:
            products = db.scalars(
                select(Product).where(
                    Product.store_id == store_id,
                    Product.is_eligible_for_rewards.is_(True),
                    Product.is_bundle.is_(False)
                ).order_by(Product.created_at)
            ).all()
            return [ProductModel.model_validate(p) for p in products]
        finally:
            db.close()

    # Milestones

    @db_retry
    def create_milestone(self, milestone: MilestoneCreate) -> MilestoneModel:
        db = self.get_session()
        try:
            data = milestone.model_dump()
            data["reward_type"] = milestone.reward_type.value
            db_milestone = Milestone(**data)
            db.add(db_milestone)
            db.commit()
            db.refresh(db_milestone)
            logger.info(f"Created milestone {db_milestone.threshold_amount} ({db_milestone.reward_type}) "
                        f"for store {db_milestone.store_id}")
            return MilestoneModel.model_validate(db_milestone)
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating milestone: {e}")
            raise
        finally:
            db.close()

    @db_retry
    def get_milestones_by_store(self, store_id: str) -> List[MilestoneModel]:
        """Active milestones of a store, lowest threshold first"""
        db = self.get_session()
        try:
            milestones = db.scalars(
                select(Milestone).where(
                    Milestone.store_id == store_id,
                    Milestone.is_active.is_(True)
                ).order_by(Milestone.threshold_amount)
            ).all()
            return [MilestoneModel.model_validate(m) for m in milestones]
        finally:
            db.close()

    def initialize_milestones(self, store_id: str) -> List[MilestoneModel]:
        """Seed the default free delivery and free product milestones for a store"""
        created = []
        for threshold, reward_type, count, name in DEFAULT_MILESTONES:
            created.append(self.create_milestone(MilestoneCreate(
                store_id=store_id,
                name=name,
                threshold_amount=threshold,
                currency=settings.DEFAULT_CURRENCY,
                reward_type=reward_type,
                free_product_count=count
            )))
        logger.info(f"Initialized {len(created)} default milestones for store {store_id}")
        return created

    # Cart sessions

    @db_retry
    def create_cart_session(self, cart_session: CartSessionCreate) -> CartSessionModel:
        db = self.get_session()
        try:
            db_session = CartSession(
                store_id=cart_session.store_id,
                customer_id=cart_session.customer_id,
                cart_token=cart_session.cart_token,
                current_value=cart_session.current_value,
                unlocked_milestones=[],
                selected_free_products=[],
                timer_expires_at=datetime.utcnow() + timedelta(minutes=settings.CART_TIMER_MINUTES)
            )
            db.add(db_session)
            db.commit()
            db.refresh(db_session)
            logger.info(f"Created cart session {db_session.cart_token} for store {db_session.store_id}")
            return CartSessionModel.model_validate(db_session)
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating cart session: {e}")
            raise
        finally:
            db.close()

    @db_retry
    def get_cart_session(self, cart_token: str) -> Optional[CartSessionModel]:
        db = self.get_session()
        try:
            db_session = self._find_cart_session(db, cart_token)
            return CartSessionModel.model_validate(db_session) if db_session else None
        finally:
            db.close()

    @db_retry
    def update_cart_value(self, cart_token: str,
                          current_value: float) -> Optional[Tuple[CartSessionModel, List[MilestoneModel], bool]]:
        """
        Store a new cart value and record rewards for milestones it newly unlocks

        A milestone is rewarded at most once per session, even if the cart drops
        below it and climbs back. Free product selections beyond the new
        allowance are dropped, most recent first.

        Args:
            cart_token: Shopify cart token of the session
            current_value: New cart total

        Returns:
            tuple: (updated session, unlocked milestones, whether any were newly unlocked),
            or None if the session does not exist
        """
        db = self.get_session()
        try:
            db_session = self._find_cart_session(db, cart_token)
            if not db_session:
                return None

            milestones = self.get_milestones_by_store(db_session.store_id)
            unlocked = [m for m in milestones if m.threshold_amount <= current_value]
            rewarded = set(db.scalars(
                select(RewardHistory.milestone_id).where(RewardHistory.cart_session_id == db_session.id)
            ).all())
            new_milestones = [m for m in unlocked if m.id not in rewarded]

            allowed = max_free_products(current_value, tiers_from_milestones(milestones) or settings.FREE_PRODUCT_TIERS)
            selected = list(db_session.selected_free_products or [])
            if len(selected) > allowed:
                logger.info(f"Cart {cart_token} dropped free products {selected[allowed:]} at {current_value}")
                selected = selected[:allowed]

            db_session.current_value = current_value
            db_session.unlocked_milestones = [m.id for m in unlocked]
            db_session.selected_free_products = selected

            for milestone in new_milestones:
                reward_value = settings.FREE_DELIVERY_REWARD_VALUE \
                    if milestone.reward_type == RewardType.FREE_DELIVERY else 0
                db.add(RewardHistory(
                    store_id=db_session.store_id,
                    cart_session_id=db_session.id,
                    milestone_id=milestone.id,
                    reward_type=milestone.reward_type.value,
                    reward_value=reward_value
                ))

            db.commit()
            db.refresh(db_session)
            if new_milestones:
                logger.info(f"Cart {cart_token} unlocked {len(new_milestones)} new milestone(s) at {current_value}")

            return CartSessionModel.model_validate(db_session), unlocked, bool(new_milestones)

        except Exception as e:
            db.rollback()
            logger.error(f"Error updating cart value for {cart_token}: {e}")
            raise
        finally:
            db.close()

    @db_retry
    def update_selected_free_products(self, cart_token: str, product_ids: List[str]) -> Optional[CartSessionModel]:
        db = self.get_session()
        try:
            db_session = self._find_cart_session(db, cart_token)
            if not db_session:
                return None
            db_session.selected_free_products = list(product_ids)
            db.commit()
            db.refresh(db_session)
            return CartSessionModel.model_validate(db_session)
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating free products for {cart_token}: {e}")
            raise
        finally:
            db.close()

    @db_retry
    def get_reward_history_by_store(self, store_id: str) -> List[RewardHistoryModel]:
        db = self.get_session()
        try:
            rewards = db.scalars(
                select(RewardHistory).where(RewardHistory.store_id == store_id)
                .order_by(RewardHistory.created_at.desc())
            ).all()
            return [RewardHistoryModel.model_validate(r) for r in rewards]
        finally:
            db.close()

    @staticmethod
    def _find_cart_session(db: Session, cart_token: str) -> Optional[CartSession]:
        return db.scalars(select(CartSession).where(CartSession.cart_token == cart_token)).first()
