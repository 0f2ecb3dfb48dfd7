from cart_rewards.services import database_initialization


def _configure(monkeypatch, **values):
    for name in ("SHOPIFY_STORE_ID", "SHOPIFY_STORE_NAME", "SHOPIFY_ADMIN_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DEPLOYMENT_MODE", "production")
    for name, value in values.items():
        monkeypatch.setenv(name, value)


def test_provision_store_creates_store_with_default_milestones(monkeypatch, db_service):
    _configure(
        monkeypatch,
        SHOPIFY_STORE_ID="example.myshopify.com",
        SHOPIFY_STORE_NAME="Example Store",
        SHOPIFY_ADMIN_API_KEY="shpat_test",
    )

    store = database_initialization.provision_store(db_service)

    assert store.shopify_store_id == "example.myshopify.com"
    assert len(db_service.get_milestones_by_store(store.id)) == 4

    again = database_initialization.provision_store(db_service)
    assert again.id == store.id
    assert len(db_service.get_milestones_by_store(store.id)) == 4


def test_provision_store_requires_complete_configuration(monkeypatch, db_service):
    _configure(monkeypatch, SHOPIFY_STORE_ID="example.myshopify.com")

    assert database_initialization.provision_store(db_service) is None
    assert db_service.get_store_by_shopify_id("example.myshopify.com") is None


def test_initialize_database_creates_tables(database):
    assert database_initialization.initialize_database()
    assert database_initialization.check_database_status()
