import os
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from cart_rewards.models.schemas import DeploymentMode, StoreConfig

# Load environment variables
load_dotenv()


def parse_tiers(value: str) -> Tuple[Tuple[float, int], ...]:
    """
    Parse a threshold table like "5000:3,4000:2,3000:1"

    Returns:
        tuple: (threshold, free product count) pairs, highest threshold first
    """
    tiers = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        threshold, count = item.split(":", 1)
        tiers.append((float(threshold), int(count)))
    return tuple(sorted(tiers, key=lambda tier: tier[0], reverse=True))


class Settings:
    # API Configuration
    API_TITLE = "Cart Rewards Service"
    API_VERSION = "1.0.0"
    API_DESCRIPTION = "Store bootstrap, milestone rewards and cart sessions for Shopify cart drawers"

    # Server Configuration
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", 8000))
    DEBUG = os.getenv("DEBUG", "false").lower() == "true"

    # Database Configuration
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cart_rewards.db")
    DB_RETRY_ATTEMPTS = int(os.getenv("DB_RETRY_ATTEMPTS", 3))
    DB_RETRY_DELAY = float(os.getenv("DB_RETRY_DELAY", 0.1))

    # Store Directory API (used by the store resolver)
    DIRECTORY_API_URL = os.getenv("DIRECTORY_API_URL", "http://localhost:8000")
    DIRECTORY_REQUEST_TIMEOUT = float(os.getenv("DIRECTORY_REQUEST_TIMEOUT", 30))
    STORE_CACHE_PATH = os.getenv("STORE_CACHE_PATH", ".cart_rewards_cache.json")

    # Rewards
    CART_TIMER_MINUTES = int(os.getenv("CART_TIMER_MINUTES", 30))
    FREE_DELIVERY_REWARD_VALUE = float(os.getenv("FREE_DELIVERY_REWARD_VALUE", 300))
    FREE_PRODUCT_TIERS = parse_tiers(os.getenv("FREE_PRODUCT_TIERS", "5000:3,4000:2,3000:1"))
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "PKR")

    # Logging Configuration
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Security Configuration
    ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")


# Create settings instance
settings = Settings()


# Environment check
def get_environment():
    """Get current deployment mode"""
    return os.getenv("DEPLOYMENT_MODE", "development")


def is_production():
    """Check if running in production"""
    return get_environment().lower() == "production"


def is_development():
    """Check if running in development"""
    return get_environment().lower() == "development"


def load_store_config(environ: Optional[Mapping[str, str]] = None) -> StoreConfig:
    """
    Build the storefront's StoreConfig from environment variables

    Development deployments fall back to a placeholder store id and name so a
    local cart drawer can bootstrap; the admin API key never has a default.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        StoreConfig: Immutable store configuration
    """
    env = os.environ if environ is None else environ

    mode = (env.get("DEPLOYMENT_MODE") or "development").strip().lower()
    deployment_mode = DeploymentMode.PRODUCTION if mode == "production" else DeploymentMode.DEVELOPMENT

    store_id = env.get("SHOPIFY_STORE_ID") or None
    store_name = env.get("SHOPIFY_STORE_NAME") or None
    if deployment_mode == DeploymentMode.DEVELOPMENT:
        store_id = store_id or "development-store"
        store_name = store_name or "Development Store"

    return StoreConfig(
        shopify_store_id=store_id,
        shopify_store_name=store_name,
        shopify_access_token=env.get("SHOPIFY_ADMIN_API_KEY") or None,
        deployment_mode=deployment_mode,
    )
