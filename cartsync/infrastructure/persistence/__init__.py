"""
Persistence package: storage backends, ledger schema, adapter and ledger
"""

from .addon_ledger import AddonLedger
from .ledger_schema import PersistedLedgerSnapshot, decode_snapshot, encode_snapshot
from .persistence_adapter import PersistenceAdapter
from .storage_backends import JsonFileStorage, MemoryStorage, SQLAlchemyStorage, create_storage

__all__ = [
    "AddonLedger",
    "JsonFileStorage",
    "MemoryStorage",
    "PersistedLedgerSnapshot",
    "PersistenceAdapter",
    "SQLAlchemyStorage",
    "create_storage",
    "decode_snapshot",
    "encode_snapshot",
]
