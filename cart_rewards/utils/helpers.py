import logging
import random
import time
from functools import wraps
from typing import Optional, Tuple, Type

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

# Messages that indicate the database dropped or refused the connection
TRANSIENT_DB_ERRORS = (
    "terminating connection",
    "connection reset",
    "server closed the connection",
    "too many connections",
    "database is locked",
)


def is_transient_db_error(error: Exception) -> bool:
    """
    Check if a database error is worth retrying

    Args:
        error: Exception raised by the database driver

    Returns:
        bool: True if the operation may succeed on a new attempt
    """
    if isinstance(error, OperationalError) and error.connection_invalidated:
        return True

    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_DB_ERRORS)


def retry_on_failure(retries: int = 3, delay: float = 0.1,
                     exceptions: Tuple[Type[Exception], ...] = (OperationalError,)):
    """
    Decorator to retry function calls on transient database failures

    Args:
        retries: Number of attempts in total
        delay: Base delay in seconds, doubled after every failed attempt
        exceptions: Exception types considered for a retry
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(1, retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= retries or not is_transient_db_error(e):
                        raise
                    wait = delay * (2 ** (attempt - 1)) + random.uniform(0, delay)
                    logger.warning(
                        f"Database error on attempt {attempt} for {func.__name__}, retrying in {wait:.2f}s: {e}")
                    time.sleep(wait)

        return wrapper

    return decorator


def format_price(price: Optional[float], currency: str = "PKR") -> Optional[str]:
    """
    Format price for display

    Args:
        price: Price value
        currency: Currency code shown before the amount

    Returns:
        str: Formatted price string
    """
    if price is None:
        return None

    try:
        return f"{currency} {price:,.0f}"
    except (ValueError, TypeError):
        return None
