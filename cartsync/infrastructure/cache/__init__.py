"""
Cache package
"""

from .cache_store import CacheEntry, CacheManager, CacheStore

__all__ = ["CacheEntry", "CacheManager", "CacheStore"]
