"""
Store bootstrap, reward eligibility and persistence services
"""

from .store_resolver import StoreResolver
from .rewards import FreeProductSelection, max_free_products

__all__ = ["StoreResolver", "FreeProductSelection", "max_free_products"]
