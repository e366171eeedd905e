"""
Key-value storage interface

Durable, synchronous storage holding the serialized add-on ledger.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStorage(ABC):
    """Repository interface for durable string storage"""

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """Return the stored value or None"""

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one"""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key; missing keys are ignored"""
