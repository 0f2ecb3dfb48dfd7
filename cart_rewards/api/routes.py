import logging
from typing import List

from fastapi import APIRouter, HTTPException, status, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from cart_rewards.config import settings
from cart_rewards.models.schemas import (
    StoreCreate, StoreRecord, ProductCreate, ProductModel, MilestoneCreate, MilestoneModel,
    CartSessionCreate, CartSessionModel, CartValueUpdate, CartValueResponse, FreeProductsUpdate,
    RewardSummary, StoreAnalytics
)
from cart_rewards.services.database_service import DatabaseService
from cart_rewards.services.rewards import max_free_products, summarize_rewards, tiers_from_milestones

logger = logging.getLogger(__name__)
router = APIRouter()


# Dependency injection for services
def get_database_service() -> DatabaseService:
    return DatabaseService()


def _require_store(db_service: DatabaseService, store_id: str) -> None:
    if not db_service.store_exists(store_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Store with ID {store_id} not found"
        )


@router.post("/stores", response_model=StoreRecord)
async def create_store(
        request: StoreCreate,
        db_service: DatabaseService = Depends(get_database_service)
):
    """
    Register a Shopify store

    **Body:** shopifyStoreId, storeName, accessToken

    **Error Codes:**
    - 409: A store with this shopifyStoreId already exists
    - 400: Invalid store data
    """
    try:
        return db_service.create_store(request)

    except IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Store {request.shopify_store_id} already exists"
        )
    except Exception as e:
        logger.error(f"Error creating store {request.shopify_store_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while creating the store"
        )


@router.get("/stores/{shopify_store_id}", response_model=StoreRecord)
async def get_store(
        shopify_store_id: str,
        db_service: DatabaseService = Depends(get_database_service)
):
    """
    Fetch a store by its Shopify store id

    Returns 404 with {"message": "Store not found"} when the store is not registered.
    """
    try:
        store = db_service.get_store_by_shopify_id(shopify_store_id)
    except Exception as e:
        logger.error(f"Error fetching store {shopify_store_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching store"
        )

    if not store:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"message": "Store not found"})
    return store


@router.post("/products", response_model=ProductModel)
async def create_product(
        request: ProductCreate,
        db_service: DatabaseService = Depends(get_database_service)
):
    """Add a product to a store's catalog"""
    try:
        _require_store(db_service, request.store_id)
        return db_service.create_product(request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating product: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while creating the product"
        )


@router.get("/stores/{store_id}/products", response_model=List[ProductModel])
async def get_products(
        store_id: str,
        db_service: DatabaseService = Depends(get_database_service)
):
    try:
        return db_service.get_products_by_store(store_id)
    except Exception as e:
        logger.error(f"Error fetching products for store {store_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching products"
        )


@router.get("/stores/{store_id}/products/eligible", response_model=List[ProductModel])
async def get_eligible_products(
        store_id: str,
        db_service: DatabaseService = Depends(get_database_service)
):
    """Products a shopper may choose as free rewards"""
    try:
        return db_service.get_eligible_free_products(store_id)
    except Exception as e:
        logger.error(f"Error fetching eligible products for store {store_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching eligible products"
        )


@router.post("/milestones", response_model=MilestoneModel)
async def create_milestone(
        request: MilestoneCreate,
        db_service: DatabaseService = Depends(get_database_service)
):
    try:
        _require_store(db_service, request.store_id)
        return db_service.create_milestone(request)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating milestone: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while creating the milestone"
        )


@router.get("/stores/{store_id}/milestones", response_model=List[MilestoneModel])
async def get_milestones(
        store_id: str,
        db_service: DatabaseService = Depends(get_database_service)
):
    """Active milestones of a store, lowest threshold first"""
    try:
        return db_service.get_milestones_by_store(store_id)
    except Exception as e:
        logger.error(f"Error fetching milestones for store {store_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching milestones"
        )


@router.post("/stores/{store_id}/initialize-milestones", response_model=List[MilestoneModel])
async def initialize_milestones(
        store_id: str,
        db_service: DatabaseService = Depends(get_database_service)
):
    """
    Seed the default milestones for a store

    - 2500: free delivery
    - 3000 / 4000 / 5000: 1 / 2 / 3 free products
    """
    try:
        _require_store(db_service, store_id)
        return db_service.initialize_milestones(store_id)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error initializing milestones for store {store_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error initializing milestones"
        )


@router.get("/stores/{store_id}/rewards", response_model=RewardSummary)
async def get_rewards(
        store_id: str,
        cart_value: float = 0,
        db_service: DatabaseService = Depends(get_database_service)
):
    """
    Rewards available for a cart value

    **Parameters:**
    - cart_value: Current cart total

    **Returns:**
    - Number of free products the shopper may select, free delivery flag and progress to the next milestone
    """
    if cart_value < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="cart_value must not be negative"
        )

    try:
        milestones = db_service.get_milestones_by_store(store_id)
        return summarize_rewards(milestones, cart_value, settings.FREE_PRODUCT_TIERS)
    except Exception as e:
        logger.error(f"Error computing rewards for store {store_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error computing rewards"
        )


@router.get("/stores/{store_id}/analytics", response_model=StoreAnalytics)
async def get_analytics(
        store_id: str,
        db_service: DatabaseService = Depends(get_database_service)
):
    """
    Reward counters for a store

    **Returns:**
    - totalRewardsUnlocked: Rewards written to the history
    - milestonesHit: Rewards that were redeemed
    """
    try:
        _require_store(db_service, store_id)
        rewards = db_service.get_reward_history_by_store(store_id)
        return StoreAnalytics(
            total_rewards_unlocked=len(rewards),
            milestones_hit=sum(1 for r in rewards if r.is_redeemed)
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching analytics for store {store_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching analytics"
        )


@router.post("/cart-sessions", response_model=CartSessionModel)
async def create_cart_session(
        request: CartSessionCreate,
        db_service: DatabaseService = Depends(get_database_service)
):
    """Start a cart session; its urgency timer expires after CART_TIMER_MINUTES"""
    try:
        _require_store(db_service, request.store_id)
        return db_service.create_cart_session(request)

    except HTTPException:
        raise
    except IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cart session {request.cart_token} already exists"
        )
    except Exception as e:
        logger.error(f"Error creating cart session: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while creating the cart session"
        )


@router.get("/cart-sessions/{cart_token}", response_model=CartSessionModel)
async def get_cart_session(
        cart_token: str,
        db_service: DatabaseService = Depends(get_database_service)
):
    session = db_service.get_cart_session(cart_token)
    if not session:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cart session not found"
        )
    return session


@router.put("/cart-sessions/{cart_token}/value", response_model=CartValueResponse)
async def update_cart_value(
        cart_token: str,
        request: CartValueUpdate,
        db_service: DatabaseService = Depends(get_database_service)
):
    """
    Update the cart total and unlock milestones

    Reward history is written once for every milestone the new value unlocks
    for the first time in this session. Selected free products beyond the new
    allowance are dropped, most recent first.
    """
    try:
        outcome = db_service.update_cart_value(cart_token, request.current_value)
        if outcome is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Cart session not found"
            )

        session, unlocked, new_milestones = outcome
        if new_milestones:
            logger.info(f"New milestones unlocked for cart {cart_token}")

        return CartValueResponse(
            session=session,
            new_milestones=new_milestones,
            unlocked_milestones=unlocked
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating cart value for {cart_token}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error updating cart value"
        )


@router.put("/cart-sessions/{cart_token}/free-products", response_model=CartSessionModel)
async def update_free_products(
        cart_token: str,
        request: FreeProductsUpdate,
        db_service: DatabaseService = Depends(get_database_service)
):
    """
    Store the shopper's free product selection

    **Error Codes:**
    - 400: More products selected than the cart value allows
    - 404: Cart session not found
    """
    session = db_service.get_cart_session(cart_token)
    if not session:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cart session not found"
        )

    product_ids = list(dict.fromkeys(request.product_ids))
    milestones = db_service.get_milestones_by_store(session.store_id)
    tiers = tiers_from_milestones(milestones) or settings.FREE_PRODUCT_TIERS
    allowed = max_free_products(session.current_value, tiers)
    if len(product_ids) > allowed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cart value {session.current_value:g} allows {allowed} free product(s), got {len(product_ids)}"
        )

    try:
        return db_service.update_selected_free_products(cart_token, product_ids)
    except Exception as e:
        logger.error(f"Error updating free products for {cart_token}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Error updating free products"
        )


@router.get("/health")
async def health_check():
    """Health check for the API routes"""
    return {
        "status": "healthy",
        "service": "Cart Rewards API",
        "endpoints_available": [
            "/stores",
            "/stores/{shopify_store_id}",
            "/stores/{store_id}/products",
            "/stores/{store_id}/products/eligible",
            "/milestones",
            "/stores/{store_id}/milestones",
            "/stores/{store_id}/initialize-milestones",
            "/stores/{store_id}/rewards",
            "/stores/{store_id}/analytics",
            "/cart-sessions",
            "/cart-sessions/{cart_token}",
            "/health"
        ]
    }
