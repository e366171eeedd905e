"""
Application use cases
"""

from .cart_sync_engine import CartSyncEngine, SyncState

__all__ = ["CartSyncEngine", "SyncState"]
