from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime
from enum import Enum


class DeploymentMode(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class RewardType(str, Enum):
    FREE_DELIVERY = "free_delivery"
    FREE_PRODUCTS = "free_products"
    DISCOUNT = "discount"


class ErrorKind(str, Enum):
    FETCH_ERROR = "fetch_error"
    CREATE_ERROR = "create_error"
    CONFIGURATION_ERROR = "configuration_error"


class ResolutionPhase(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    FOUND = "found"
    CREATING = "creating"
    CREATED = "created"
    FAILED = "failed"


class CamelModel(BaseModel):
    """Base for models exchanged with the cart drawer, which speaks camelCase"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class StoreConfig(BaseModel):
    """Storefront configuration, fixed for the lifetime of the process"""
    model_config = ConfigDict(frozen=True)

    shopify_store_id: Optional[str] = None
    shopify_store_name: Optional[str] = None
    shopify_access_token: Optional[str] = None
    deployment_mode: DeploymentMode = DeploymentMode.DEVELOPMENT

    @property
    def can_create_store(self) -> bool:
        return bool(self.shopify_store_id and self.shopify_store_name and self.shopify_access_token)

    @property
    def is_production(self) -> bool:
        return self.deployment_mode == DeploymentMode.PRODUCTION

    @property
    def missing_variables(self) -> List[str]:
        missing = []
        if not self.shopify_store_id:
            missing.append("SHOPIFY_STORE_ID")
        if not self.shopify_store_name:
            missing.append("SHOPIFY_STORE_NAME")
        if not self.shopify_access_token:
            missing.append("SHOPIFY_ADMIN_API_KEY")
        return missing


class StoreCreate(CamelModel):
    shopify_store_id: str = Field(min_length=1)
    store_name: str = Field(min_length=1)
    access_token: str = Field(min_length=1)
    is_active: bool = True


class StoreRecord(CamelModel):
    id: str
    shopify_store_id: str
    store_name: str
    access_token: str
    is_active: bool = True
    created_at: Optional[datetime] = None


class ProductCreate(CamelModel):
    shopify_product_id: str = Field(min_length=1)
    store_id: str
    title: str = Field(min_length=1)
    handle: str
    price: float = Field(ge=0)
    image_url: Optional[str] = None
    is_bundle: bool = False
    is_eligible_for_rewards: bool = True


class ProductModel(ProductCreate):
    id: str
    created_at: Optional[datetime] = None


class MilestoneCreate(CamelModel):
    store_id: str
    name: str = "Milestone"
    description: Optional[str] = None
    threshold_amount: float = Field(ge=0)
    currency: str = "PKR"
    reward_type: RewardType
    free_product_count: int = Field(default=0, ge=0)
    discount_value: float = 0
    discount_type: str = "percentage"
    status: str = "active"
    is_active: bool = True
    priority: int = 1
    display_order: int = 1
    icon: str = "🎁"
    color: str = "#e91e63"


class MilestoneModel(MilestoneCreate):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CartSessionCreate(CamelModel):
    store_id: str
    cart_token: str = Field(min_length=1)
    customer_id: Optional[str] = None
    current_value: float = Field(default=0, ge=0)


class CartSessionModel(CamelModel):
    id: str
    store_id: str
    cart_token: str
    customer_id: Optional[str] = None
    current_value: float = 0
    unlocked_milestones: List[str] = []
    selected_free_products: List[str] = []
    timer_expires_at: Optional[datetime] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("unlocked_milestones", "selected_free_products", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return v or []


class CartValueUpdate(CamelModel):
    current_value: float = Field(ge=0)


class FreeProductsUpdate(CamelModel):
    product_ids: List[str]


class CartValueResponse(CamelModel):
    session: CartSessionModel
    new_milestones: bool
    unlocked_milestones: List[MilestoneModel] = []


class RewardHistoryModel(CamelModel):
    id: str
    store_id: str
    cart_session_id: Optional[str] = None
    milestone_id: Optional[str] = None
    reward_type: RewardType
    reward_value: Optional[float] = None
    is_redeemed: bool = False
    created_at: Optional[datetime] = None


class RewardSummary(CamelModel):
    cart_value: float
    max_free_products: int
    has_free_delivery: bool
    unlocked_milestones: List[MilestoneModel] = []
    next_milestone: Optional[MilestoneModel] = None
    amount_to_next: Optional[float] = None
    progress_percentage: float = 0
    message: Optional[str] = None


class StoreAnalytics(CamelModel):
    total_rewards_unlocked: int
    milestones_hit: int


class ResolutionResult(CamelModel):
    """What the cart drawer and admin UI read to decide what to render"""
    store_id: Optional[str] = None
    store: Optional[StoreRecord] = None
    is_loading: bool = False
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    phase: ResolutionPhase = ResolutionPhase.IDLE


class ErrorResponse(BaseModel):
    error: str
    message: str
    status_code: int
    timestamp: datetime = Field(default_factory=datetime.now)
