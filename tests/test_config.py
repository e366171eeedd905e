"""
Tests for configuration management
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from cartsync.infrastructure.configuration.config import Settings, get_config, reset_config
from fakes import REST_URL, STORE_URL


class TestSettings:
    """Test Settings loading and validation"""

    def test_environment_values(self):
        settings = Settings()
        assert settings.store_api_url == STORE_URL
        assert settings.rest_api_url == REST_URL
        assert settings.ledger_storage_backend == "memory"
        assert settings.environment == "test"

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)
        assert settings.cart_cache_ttl_seconds == 5
        assert settings.catalog_cache_ttl_seconds == 600
        assert settings.ledger_storage_key == "storefront-cart-addons"
        assert settings.ledger_storage_backend == "file"
        assert settings.currency == "USD"
        assert settings.api_host == "127.0.0.1"

    def test_trailing_slash_stripped(self):
        settings = Settings(store_api_url="http://shop.test/wp-json/wc/store/v1/")
        assert settings.store_api_url == "http://shop.test/wp-json/wc/store/v1"

    def test_currency_and_log_level_normalized(self):
        settings = Settings(currency="eur", log_level="warning")
        assert settings.currency == "EUR"
        assert settings.log_level == "WARNING"

    @pytest.mark.parametrize("field,value", [
        ("currency", "EURO"),
        ("log_level", "LOUD"),
        ("ledger_storage_backend", "s3"),
        ("cart_cache_ttl_seconds", -1),
        ("request_timeout_seconds", 0),
        ("api_port", 70000),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            Settings(**{field: value})

    def test_case_insensitive_environment(self):
        with patch.dict(os.environ, {"cart_cache_ttl_seconds": "2.5"}):
            assert Settings().cart_cache_ttl_seconds == 2.5


class TestGetConfig:
    """Test the shared settings instance"""

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_reset_config(self):
        first = get_config()
        with patch.dict(os.environ, {"CURRENCY": "ILS"}):
            reset_config()
            second = get_config()
        assert second is not first
        assert second.currency == "ILS"
