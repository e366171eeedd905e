"""
Persistence adapter

Wraps a KeyValueStorage with the hydrate-once and best-effort-persist rules of
the add-on ledger. Storage and schema problems are logged here and never reach
the caller.
"""

import logging
from typing import Optional

from cartsync.domain.repositories.key_value_storage import KeyValueStorage
from cartsync.infrastructure.persistence.ledger_schema import (
    PersistedLedgerSnapshot,
    decode_snapshot,
    encode_snapshot,
)
from cartsync.infrastructure.utilities.constants import PersistenceSettings
from cartsync.infrastructure.utilities.exceptions import (
    PersistenceUnavailableError,
    SchemaMismatchError,
)


class PersistenceAdapter:
    """Durable storage of the ledger under a single namespaced key"""

    def __init__(
        self,
        storage: KeyValueStorage,
        storage_key: str = PersistenceSettings.STORAGE_KEY,
        currency: str = "USD",
    ):
        self._storage = storage
        self._storage_key = storage_key
        self._currency = currency
        self._loaded: Optional[PersistedLedgerSnapshot] = None
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def storage_key(self) -> str:
        return self._storage_key

    @property
    def is_loaded(self) -> bool:
        """True once a hydrate() call has succeeded"""
        return self._loaded is not None

    def hydrate(self) -> Optional[PersistedLedgerSnapshot]:
        """
        Load the stored snapshot once per process.

        Returns None when storage cannot be read; that outcome is not cached
        so a later call may retry. Unreadable data degrades to an empty snapshot.
        """
        if self._loaded is not None:
            return self._loaded

        try:
            raw = self._storage.read(self._storage_key)
        except PersistenceUnavailableError as e:
            self._logger.warning("⚠️ Ledger storage unavailable, continuing in memory: %s", e)
            return None

        if raw is None:
            snapshot = PersistedLedgerSnapshot.empty()
        else:
            try:
                snapshot = decode_snapshot(raw, self._currency)
            except SchemaMismatchError as e:
                self._logger.warning(
                    "⚠️ Discarding unreadable ledger (version=%s): %s", e.version, e
                )
                snapshot = PersistedLedgerSnapshot.empty()

        self._loaded = snapshot
        self._logger.info("💧 Hydrated ledger from storage: %d items", len(snapshot.entries))
        return snapshot

    def persist(self, snapshot: PersistedLedgerSnapshot) -> bool:
        """Write the snapshot; failures are logged and reported as False"""
        try:
            self._storage.write(self._storage_key, encode_snapshot(snapshot))
        except PersistenceUnavailableError as e:
            self._logger.error("❌ Failed to persist ledger: %s", e)
            return False

        self._loaded = snapshot
        self._logger.debug("💾 Persisted ledger: %d items", len(snapshot.entries))
        return True

    def clear(self) -> bool:
        """Remove the stored key"""
        try:
            self._storage.delete(self._storage_key)
        except PersistenceUnavailableError as e:
            self._logger.error("❌ Failed to clear stored ledger: %s", e)
            return False

        self._loaded = PersistedLedgerSnapshot.empty()
        return True
