"""
Dependency Injection Container

Builds the cart subsystem from settings and manages its lifecycle.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from cartsync.application.use_cases.cart_sync_engine import CartSyncEngine
from cartsync.domain.repositories.addon_catalog import AddonCatalog
from cartsync.domain.repositories.key_value_storage import KeyValueStorage
from cartsync.infrastructure.cache.cache_store import CacheManager
from cartsync.infrastructure.catalog.rest_addon_catalog import RestAddonCatalog
from cartsync.infrastructure.configuration.config import Settings, get_config
from cartsync.infrastructure.persistence.addon_ledger import AddonLedger
from cartsync.infrastructure.persistence.persistence_adapter import PersistenceAdapter
from cartsync.infrastructure.persistence.storage_backends import SQLAlchemyStorage, create_storage
from cartsync.infrastructure.upstream.store_api_client import UpstreamCartClient

logger = logging.getLogger(__name__)


class DependencyContainer:
    """
    Dependency injection container

    Manages the instantiation and lifecycle of:
    - Storage backend, persistence adapter and add-on ledger
    - Cache manager
    - Upstream cart client and add-on catalog
    - Cart sync engine
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[KeyValueStorage] = None,
        catalog: Optional[AddonCatalog] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_config()
        self._instances: Dict[str, Any] = {}
        self._logger = logging.getLogger(self.__class__.__name__)
        self._setup_dependencies(storage, catalog, transport)

    def _setup_dependencies(self, storage, catalog, transport):
        """Setup all dependencies and their relationships"""
        self._logger.info("Setting up dependency injection container...")

        self._register_persistence(storage)
        self._register_upstream(catalog, transport)
        self._register_use_cases()

        self._logger.info("Dependency injection container setup complete")

    def _register_persistence(self, storage: Optional[KeyValueStorage]):
        """Register storage, adapter and ledger"""
        settings = self._settings
        self._instances["storage"] = storage or create_storage(settings)
        self._instances["persistence_adapter"] = PersistenceAdapter(
            self._instances["storage"],
            storage_key=settings.ledger_storage_key,
            currency=settings.currency,
        )
        self._instances["addon_ledger"] = AddonLedger.create(self._instances["persistence_adapter"])
        self._instances["cache_manager"] = CacheManager(
            cart_ttl=settings.cart_cache_ttl_seconds,
            catalog_ttl=settings.catalog_cache_ttl_seconds,
        )
        self._logger.debug("Persistence registered successfully")

    def _register_upstream(self, catalog: Optional[AddonCatalog], transport):
        """Register the upstream cart client and add-on catalog"""
        settings = self._settings
        self._instances["cart_client"] = UpstreamCartClient(
            base_url=settings.store_api_url,
            timeout=settings.request_timeout_seconds,
            currency=settings.currency,
            transport=transport,
        )
        self._instances["addon_catalog"] = catalog or RestAddonCatalog(
            base_url=settings.rest_api_url,
            cache_manager=self.get_cache_manager(),
            consumer_key=settings.consumer_key,
            consumer_secret=settings.consumer_secret,
            timeout=settings.request_timeout_seconds,
            currency=settings.currency,
            transport=transport,
        )
        self._logger.debug("Upstream clients registered successfully")

    def _register_use_cases(self):
        """Register the cart sync engine"""
        self._instances["cart_sync_engine"] = CartSyncEngine(
            client=self.get_cart_client(),
            ledger=self.get_addon_ledger(),
            catalog=self.get_addon_catalog(),
            cache_manager=self.get_cache_manager(),
        )
        self._logger.debug("Use cases registered successfully")

    @property
    def settings(self) -> Settings:
        return self._settings

    def get_storage(self) -> KeyValueStorage:
        """Get storage backend instance"""
        return self._instances["storage"]

    def get_persistence_adapter(self) -> PersistenceAdapter:
        """Get persistence adapter instance"""
        return self._instances["persistence_adapter"]

    def get_addon_ledger(self) -> AddonLedger:
        """Get add-on ledger instance"""
        return self._instances["addon_ledger"]

    def get_cache_manager(self) -> CacheManager:
        """Get cache manager instance"""
        return self._instances["cache_manager"]

    def get_cart_client(self) -> UpstreamCartClient:
        """Get upstream cart client instance"""
        return self._instances["cart_client"]

    def get_addon_catalog(self) -> AddonCatalog:
        """Get add-on catalog instance"""
        return self._instances["addon_catalog"]

    def get_cart_sync_engine(self) -> CartSyncEngine:
        """Get cart sync engine instance"""
        return self._instances["cart_sync_engine"]

    def initialize(self) -> None:
        """Hydrate the ledger before serving requests"""
        self.get_cart_sync_engine().ensure_initialized()
        self._logger.info("✅ Cart subsystem initialized")

    async def dispose(self) -> None:
        """Cleanup resources when shutting down"""
        self._logger.info("Cleaning up dependency container...")
        if not self._instances:
            return
        self.get_cart_sync_engine().dispose()
        await self.get_cart_client().aclose()
        catalog = self.get_addon_catalog()
        if isinstance(catalog, RestAddonCatalog):
            await catalog.aclose()
        storage = self.get_storage()
        if isinstance(storage, SQLAlchemyStorage):
            storage.dispose()
        self._instances.clear()
