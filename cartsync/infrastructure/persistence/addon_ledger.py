"""
Add-on ledger

Map of cart line key to the priced add-on selections of that line. The
upstream cart omits add-on prices, so this ledger is what keeps line totals
correct across reloads. Every mutation is written through to the
PersistenceAdapter.
"""

import logging
import uuid
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from cartsync.domain.entities.addon import AddonSelection
from cartsync.infrastructure.persistence.ledger_schema import PersistedLedgerSnapshot
from cartsync.infrastructure.persistence.persistence_adapter import PersistenceAdapter
from cartsync.infrastructure.utilities.constants import PersistenceSettings

logger = logging.getLogger(__name__)


class AddonLedger:
    """
    In-memory add-on ledger with an explicit lifecycle

    Lifecycle: ``create()`` -> ``hydrate()`` (or ``bypass_hydration()``) ->
    ``dispose()``. Mutations made before hydration apply to memory and queue a
    persist; hydration merges stored entries underneath them.
    """

    def __init__(self, adapter: Optional[PersistenceAdapter] = None):
        self._adapter = adapter
        self._entries: Dict[str, Tuple[AddonSelection, ...]] = {}
        self._provisional: Dict[str, Tuple[AddonSelection, ...]] = {}
        self._hydrated = False
        self._disposed = False
        self._persist_queued = False
        # keys written or removed before hydration shadow their stored values
        self._shadowed_keys: Set[str] = set()
        self._cleared_before_hydration = False

    @classmethod
    def create(cls, adapter: Optional[PersistenceAdapter] = None) -> "AddonLedger":
        """Create an empty, not yet hydrated ledger"""
        return cls(adapter)

    @property
    def is_hydrated(self) -> bool:
        return self._hydrated

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def has_queued_persist(self) -> bool:
        return self._persist_queued

    # Lifecycle

    def hydrate(self) -> None:
        """Load stored entries once; later calls are no-ops"""
        self._ensure_active()
        if self._hydrated:
            return

        snapshot = self._adapter.hydrate() if self._adapter is not None else None
        if snapshot is None and self._adapter is not None:
            logger.warning("⚠️ Ledger hydrated without stored data; storage unavailable")

        if snapshot is not None and not self._cleared_before_hydration:
            for key, addons in snapshot.entries.items():
                if key not in self._shadowed_keys:
                    self._entries[key] = tuple(addons)

        self._finish_hydration()
        logger.info("💧 Ledger hydrated: %d items", len(self._entries))

    def bypass_hydration(self) -> None:
        """Mark the ledger hydrated without reading storage"""
        self._ensure_active()
        if self._hydrated:
            return
        self._finish_hydration()
        logger.info("⏭️ Ledger hydration bypassed")

    def _finish_hydration(self) -> None:
        self._hydrated = True
        self._shadowed_keys.clear()
        self._cleared_before_hydration = False
        if self._persist_queued:
            self._persist()

    def dispose(self) -> None:
        """Flush any queued write and drop memory state"""
        if self._disposed:
            return
        if self._persist_queued:
            # merge stored entries before the flush so they are not overwritten
            self.hydrate()
        self._entries.clear()
        self._provisional.clear()
        self._disposed = True
        logger.debug("Ledger disposed")

    # Queries

    def get_item_addons(self, key: str) -> List[AddonSelection]:
        """Add-ons recorded for a line, or an empty list"""
        addons = self._entries.get(key)
        if addons is None:
            addons = self._provisional.get(key, ())
        return list(addons)

    def has_item(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> FrozenSet[str]:
        """Keys of committed entries"""
        return frozenset(self._entries)

    def snapshot(self) -> PersistedLedgerSnapshot:
        """Current committed state in persisted form"""
        return PersistedLedgerSnapshot(entries=dict(self._entries))

    @property
    def provisional_count(self) -> int:
        return len(self._provisional)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    # Mutations

    def set_item_addons(self, key: str, addons: Iterable[AddonSelection]) -> None:
        """Record the add-ons of a line"""
        self._ensure_active()
        if not key:
            raise ValueError("key must be a non-empty string")
        self._entries[key] = tuple(addons)
        self._shadow(key)
        logger.debug("💾 Storing %d add-ons for item %s", len(self._entries[key]), key)
        self._write()

    def remove_item(self, key: str) -> bool:
        """Forget a line; returns whether it was present"""
        self._ensure_active()
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug("🗑️ Removing add-ons for item %s", key)
        if not self._hydrated:
            self._shadow(key)
            self._write()
        elif removed:
            self._write()
        return removed

    def clear_all(self) -> None:
        """Forget every committed line"""
        self._ensure_active()
        self._entries.clear()
        if not self._hydrated:
            self._cleared_before_hydration = True
            self._shadowed_keys.clear()
        logger.info("🧹 Clearing all add-ons")
        self._write()

    def sync_with_server_keys(self, live_keys: Iterable[str]) -> List[str]:
        """Prune every entry whose key is not live; returns the pruned keys"""
        self._ensure_active()
        if not self._hydrated:
            raise RuntimeError("Ledger must be hydrated before pruning")

        live = set(live_keys)
        pruned = sorted(key for key in self._entries if key not in live)
        if pruned:
            for key in pruned:
                del self._entries[key]
            logger.info("🔄 Syncing: removed %d orphaned items", len(pruned))
            self._write()
        return pruned

    # Two-phase add

    def stage_provisional(self, addons: Iterable[AddonSelection]) -> str:
        """Hold add-ons for a line the upstream has not keyed yet"""
        self._ensure_active()
        provisional_key = f"{PersistenceSettings.PROVISIONAL_KEY_PREFIX}{uuid.uuid4().hex}"
        self._provisional[provisional_key] = tuple(addons)
        return provisional_key

    def commit_provisional(self, provisional_key: str, server_key: str) -> None:
        """Move staged add-ons onto the key the upstream assigned"""
        self._ensure_active()
        try:
            addons = self._provisional.pop(provisional_key)
        except KeyError:
            raise KeyError(f"Unknown provisional key: {provisional_key}") from None
        self.set_item_addons(server_key, addons)

    def discard_provisional(self, provisional_key: str) -> bool:
        """Drop staged add-ons after a failed add"""
        return self._provisional.pop(provisional_key, None) is not None

    # Internals

    def _shadow(self, key: str) -> None:
        if not self._hydrated:
            self._shadowed_keys.add(key)

    def _write(self) -> None:
        if not self._hydrated:
            self._persist_queued = True
            logger.debug("Persist queued until hydration")
            return
        self._persist()

    def _persist(self) -> None:
        self._persist_queued = False
        if self._adapter is not None:
            self._adapter.persist(self.snapshot())

    def _ensure_active(self) -> None:
        if self._disposed:
            raise RuntimeError("Ledger has been disposed")
