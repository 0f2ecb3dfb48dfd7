import logging

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from cart_rewards.config import settings, load_store_config
from cart_rewards.models.database import engine, create_tables
from cart_rewards.models.schemas import StoreCreate

logger = logging.getLogger(__name__)


def test_database_connection():
    """Test the database connection"""
    try:
        with engine.connect() as connection:
            result = connection.execute(text("SELECT 1")).scalar()

        if result == 1:
            logger.info("Database connection test successful")
            return True
        return False

    except SQLAlchemyError as e:
        logger.error(f"Database connection test failed: {e}")
        return False


def check_database_status():
    """Log the tables present and their row counts"""
    logger.info("Checking database status...")

    try:
        tables = inspect(engine).get_table_names()
        logger.info(f"Found {len(tables)} tables in database:")
        with engine.connect() as connection:
            for table in tables:
                count = connection.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar()
                logger.info(f"  - {table}: {count} records")
        return True

    except SQLAlchemyError as e:
        logger.error(f"Error checking database status: {e}")
        return False


def provision_store(db_service=None):
    """
    Pre-provision the configured store with default milestones

    Production storefronts never create their own store record, so operators
    run this once with SHOPIFY_STORE_ID, SHOPIFY_STORE_NAME and
    SHOPIFY_ADMIN_API_KEY set.

    Returns:
        StoreRecord: The existing or newly created store, None if configuration is incomplete
    """
    from cart_rewards.services.database_service import DatabaseService

    db_service = db_service or DatabaseService()
    config = load_store_config()

    if not config.can_create_store:
        logger.error(f"Cannot provision store, missing: {', '.join(config.missing_variables)}")
        return None

    store = db_service.get_store_by_shopify_id(config.shopify_store_id)
    if store:
        logger.info(f"Store {store.shopify_store_id} already provisioned with ID: {store.id}")
        return store

    store = db_service.create_store(StoreCreate(
        shopify_store_id=config.shopify_store_id,
        store_name=config.shopify_store_name,
        access_token=config.shopify_access_token
    ))
    db_service.initialize_milestones(store.id)
    return store


def initialize_database(seed_store: bool = False):
    """Initialize the complete database setup"""
    logger.info("Starting database initialization...")

    # Step 1: Test connection
    if not test_database_connection():
        logger.error("Database connection test failed")
        return False

    # Step 2: Create tables using SQLAlchemy
    try:
        create_tables()
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Error creating tables: {e}")
        return False

    # Step 3: Optionally provision the configured store
    if seed_store and provision_store() is None:
        logger.error("Store provisioning failed")
        return False

    logger.info("Database initialization completed successfully!")
    return True


if __name__ == "__main__":
    import sys

    logging.basicConfig(level=logging.INFO)

    print("🗄️  Cart Rewards Database Initialization")
    print("=" * 50)

    seed = "--seed-store" in sys.argv
    if initialize_database(seed_store=seed):
        check_database_status()
        print("\n Database initialization completed successfully!")
        print(f" Database: {settings.DATABASE_URL}")
        print("\n You can now start the application with:")
        print("   uvicorn cart_rewards.main:app --reload --port 8000")
    else:
        print("\n Database initialization failed!")
        print("Please check DATABASE_URL and the Shopify store variables and try again.")
        exit(1)
