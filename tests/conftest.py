"""
Test configuration and fixtures for cartsync
"""

import os
from unittest.mock import patch

import pytest
import pytest_asyncio

from cartsync.domain.entities.addon import AddonSelection
from cartsync.domain.value_objects.money import Money
from cartsync.infrastructure.cache.cache_store import CacheManager
from cartsync.infrastructure.configuration.config import reset_config
from cartsync.infrastructure.logging.logging_config import performance_logger
from cartsync.infrastructure.persistence.storage_backends import MemoryStorage
from fakes import REST_URL, STORE_URL, FakeClock, FakeStoreBackend, build_engine


@pytest.fixture(autouse=True)
def mock_env(tmp_path):
    """Isolate every test from the developer's environment and .env file"""
    test_env = {
        "STORE_API_URL": STORE_URL,
        "REST_API_URL": REST_URL,
        "LEDGER_STORAGE_BACKEND": "memory",
        "LEDGER_STORAGE_DIR": str(tmp_path / "data"),
        "LOG_DIR": str(tmp_path / "logs"),
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, test_env, clear=True):
        reset_config()
        yield test_env
    reset_config()
    performance_logger.reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    """Fresh fake store per test"""
    return FakeStoreBackend()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def cache_manager(clock):
    return CacheManager(cart_ttl=5, catalog_ttl=600, clock=clock)


@pytest.fixture
def sample_addons():
    """Large size plus gift wrap, $35.00 per unit"""
    return (
        AddonSelection(field_id="size", label="Large", unit_price=Money(2000), value="Large"),
        AddonSelection(field_id="extras", label="Gift wrap", unit_price=Money(1500), value="Gift wrap"),
    )


@pytest_asyncio.fixture
async def engine(backend, storage, cache_manager):
    """Initialized engine against the fake store"""
    sync_engine, client, catalog = build_engine(backend, storage, cache_manager)
    sync_engine.ensure_initialized()
    yield sync_engine
    sync_engine.dispose()
    await client.aclose()
    await catalog.aclose()
