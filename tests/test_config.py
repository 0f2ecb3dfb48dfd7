import pytest

from cart_rewards.config import load_store_config, parse_tiers
from cart_rewards.models.schemas import DeploymentMode


def test_parse_tiers_sorts_highest_threshold_first():
    assert parse_tiers("3000:1, 5000:3,4000:2,") == ((5000.0, 3), (4000.0, 2), (3000.0, 1))


def test_parse_tiers_rejects_malformed_entries():
    with pytest.raises(ValueError):
        parse_tiers("5000")


def test_development_config_has_placeholder_store():
    config = load_store_config({"DEPLOYMENT_MODE": "development"})

    assert config.deployment_mode == DeploymentMode.DEVELOPMENT
    assert config.shopify_store_id == "development-store"
    assert config.shopify_store_name == "Development Store"
    assert config.shopify_access_token is None
    assert not config.can_create_store
    assert config.missing_variables == ["SHOPIFY_ADMIN_API_KEY"]


def test_production_config_has_no_defaults():
    config = load_store_config({"DEPLOYMENT_MODE": "Production"})

    assert config.is_production
    assert config.shopify_store_id is None
    assert config.shopify_store_name is None
    assert config.shopify_access_token is None
    assert not config.can_create_store


def test_complete_production_config():
    config = load_store_config({
        "DEPLOYMENT_MODE": "production",
        "SHOPIFY_STORE_ID": "example.myshopify.com",
        "SHOPIFY_STORE_NAME": "Example Store",
        "SHOPIFY_ADMIN_API_KEY": "shpat_test",
    })

    assert config.can_create_store
    assert config.missing_variables == []


def test_empty_values_count_as_missing():
    config = load_store_config({
        "DEPLOYMENT_MODE": "production",
        "SHOPIFY_STORE_ID": "",
        "SHOPIFY_STORE_NAME": "Example Store",
        "SHOPIFY_ADMIN_API_KEY": "shpat_test",
    })

    assert config.shopify_store_id is None
    assert config.missing_variables == ["SHOPIFY_STORE_ID"]


def test_unset_mode_defaults_to_development():
    assert load_store_config({}).deployment_mode == DeploymentMode.DEVELOPMENT
