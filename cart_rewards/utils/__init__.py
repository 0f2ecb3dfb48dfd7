"""
Utility functions and helpers
"""

from .helpers import (
    is_transient_db_error,
    retry_on_failure,
    format_price
)

__all__ = [
    "is_transient_db_error",
    "retry_on_failure",
    "format_price"
]
