import os
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{ROOT_DIR / 'test_cart_rewards.db'}")
os.environ.setdefault("DEPLOYMENT_MODE", "development")
os.environ.setdefault("DB_RETRY_DELAY", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")


@pytest.fixture()
def database():
    from cart_rewards.models.database import create_tables, drop_tables

    drop_tables()
    create_tables()
    try:
        yield
    finally:
        drop_tables()


@pytest.fixture()
def db_service(database):
    from cart_rewards.services.database_service import DatabaseService

    return DatabaseService()


@pytest.fixture()
def api_client(database):
    from fastapi.testclient import TestClient

    from cart_rewards.main import app

    with TestClient(app) as client:
        yield client
