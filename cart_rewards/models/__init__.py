"""
Data models and schemas for the cart rewards service
"""

from .schemas import (
    DeploymentMode,
    RewardType,
    ErrorKind,
    ResolutionPhase,
    StoreConfig,
    StoreCreate,
    StoreRecord,
    ProductCreate,
    ProductModel,
    MilestoneCreate,
    MilestoneModel,
    CartSessionCreate,
    CartSessionModel,
    RewardSummary,
    ResolutionResult,
    ErrorResponse
)

__all__ = [
    "DeploymentMode",
    "RewardType",
    "ErrorKind",
    "ResolutionPhase",
    "StoreConfig",
    "StoreCreate",
    "StoreRecord",
    "ProductCreate",
    "ProductModel",
    "MilestoneCreate",
    "MilestoneModel",
    "CartSessionCreate",
    "CartSessionModel",
    "RewardSummary",
    "ResolutionResult",
    "ErrorResponse"
]
