"""
Persisted ledger schema

Version 2 stores ``{"version": 2, "entries": {key: [selection, ...]}}`` with
integer minor-unit prices. Version 1 is the unversioned storefront format,
``{key: [{"fieldName", "label", "value", "price"}]}`` with float major-unit
prices, and is migrated on read.
"""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping, Tuple

from cartsync.domain.entities.addon import AddonSelection
from cartsync.domain.value_objects.money import Money
from cartsync.infrastructure.utilities.constants import PersistenceSettings
from cartsync.infrastructure.utilities.exceptions import SchemaMismatchError

logger = logging.getLogger(__name__)

LedgerEntries = Dict[str, Tuple[AddonSelection, ...]]


@dataclass(frozen=True)
class PersistedLedgerSnapshot:
    """Durable representation of the add-on ledger"""

    version: int = PersistenceSettings.CURRENT_SCHEMA_VERSION
    entries: Mapping[str, Tuple[AddonSelection, ...]] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "PersistedLedgerSnapshot":
        return cls(entries={})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "entries": {
                key: [addon.to_dict() for addon in addons]
                for key, addons in self.entries.items()
            },
        }


def encode_snapshot(snapshot: PersistedLedgerSnapshot) -> str:
    """Serialize a snapshot to the JSON stored on disk"""
    return json.dumps(snapshot.to_dict(), separators=(",", ":"), sort_keys=True)


def decode_snapshot(raw: str, currency: str = "USD") -> PersistedLedgerSnapshot:
    """
    Parse stored JSON into a current-version snapshot.

    Raises:
        SchemaMismatchError: If the document is unreadable or of an unknown version.
    """
    try:
        document = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise SchemaMismatchError(f"Stored ledger is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise SchemaMismatchError("Stored ledger must be a JSON object")

    if "version" not in document:
        return _migrate_v1(document, currency)

    version = document.get("version")
    if version != PersistenceSettings.CURRENT_SCHEMA_VERSION:
        raise SchemaMismatchError(f"Unsupported ledger version: {version!r}", version=version)

    entries = document.get("entries")
    if not isinstance(entries, dict):
        raise SchemaMismatchError("Ledger entries must be an object", version=version)

    try:
        parsed = {
            str(key): tuple(AddonSelection.from_dict(_require_object(item)) for item in addons)
            for key, addons in entries.items()
        }
    except (KeyError, TypeError, ValueError, AttributeError, ArithmeticError) as e:
        raise SchemaMismatchError(f"Malformed ledger entry: {e}", version=version) from e

    return PersistedLedgerSnapshot(version=version, entries=parsed)


def _migrate_v1(document: Mapping[str, Any], currency: str) -> PersistedLedgerSnapshot:
    """Upgrade the unversioned storefront map"""
    entries: LedgerEntries = {}
    try:
        for key, addons in document.items():
            if not isinstance(addons, list):
                raise TypeError(f"entry {key} is not a list")
            entries[str(key)] = tuple(
                _legacy_selection(_require_object(item), currency) for item in addons
            )
    except (KeyError, TypeError, ValueError, AttributeError, ArithmeticError) as e:
        raise SchemaMismatchError(
            f"Malformed legacy ledger: {e}", version=PersistenceSettings.LEGACY_SCHEMA_VERSION
        ) from e

    logger.info("⬆️ Migrated legacy ledger with %d entries", len(entries))
    return PersistedLedgerSnapshot(entries=entries)


def _require_object(item: Any) -> Mapping[str, Any]:
    if not isinstance(item, dict):
        raise TypeError(f"selection must be an object, got {type(item).__name__}")
    return item


def _legacy_selection(item: Mapping[str, Any], currency: str) -> AddonSelection:
    field_name = item.get("fieldName") or item.get("label")
    if not field_name:
        raise KeyError("fieldName")
    value = str(item.get("value") or "")
    price = item.get("price") or 0
    return AddonSelection(
        field_id=str(field_name),
        label=str(item.get("label") or value or field_name),
        unit_price=Money.from_major(Decimal(str(price)), currency),
        value=value,
    )
