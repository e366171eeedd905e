"""
TTL cache store

Reading a stale entry never removes it; callers choose between serving stale
data while refreshing and forcing a refresh.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar

from cartsync.infrastructure.utilities.constants import CacheSettings

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """Cached value with the time it was stored"""

    value: V
    cached_at: float
    ttl_seconds: float

    def is_fresh(self, now: float) -> bool:
        """True while the entry is younger than its TTL"""
        return now - self.cached_at < self.ttl_seconds

    def age(self, now: float) -> float:
        """Seconds since the entry was stored"""
        return now - self.cached_at


class CacheStore(Generic[K, V]):
    """In-memory map with per-entry TTL"""

    def __init__(self, default_ttl: float, clock: Clock = time.monotonic, name: str = "cache"):
        if default_ttl < 0:
            raise ValueError("default_ttl cannot be negative")
        self._entries: Dict[K, CacheEntry[V]] = {}
        self._default_ttl = default_ttl
        self._clock = clock
        self.name = name
        self._stats = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "invalidations": 0,
        }

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def get(self, key: K) -> Optional[V]:
        """Get a value, fresh or stale"""
        entry = self._entries.get(key)
        if entry is None:
            self._stats["misses"] += 1
            return None
        self._stats["hits"] += 1
        return entry.value

    def get_entry(self, key: K) -> Optional[CacheEntry[V]]:
        """Get the entry itself so callers can inspect its freshness"""
        return self._entries.get(key)

    def set(self, key: K, value: V, ttl: Optional[float] = None) -> None:
        """Store a value with the given TTL, or the store default"""
        if ttl is None:
            ttl = self._default_ttl
        if ttl < 0:
            raise ValueError("ttl cannot be negative")
        self._entries[key] = CacheEntry(value=value, cached_at=self._clock(), ttl_seconds=ttl)
        self._stats["sets"] += 1

    def is_fresh(self, key: K) -> bool:
        """Check whether a key holds a fresh entry"""
        entry = self._entries.get(key)
        return entry is not None and entry.is_fresh(self._clock())

    def invalidate(self, key: K) -> bool:
        """Remove a key; returns whether it was present"""
        if key in self._entries:
            del self._entries[key]
            self._stats["invalidations"] += 1
            return True
        return False

    def invalidate_all(self) -> None:
        """Remove every entry"""
        self._stats["invalidations"] += len(self._entries)
        self._entries.clear()

    def prune_expired(self) -> int:
        """Remove expired entries and return count removed"""
        now = self._clock()
        expired_keys = [
            key for key, entry in self._entries.items() if not entry.is_fresh(now)
        ]
        for key in expired_keys:
            del self._entries[key]
        if expired_keys:
            logger.debug("🧹 %s: pruned %d expired entries", self.name, len(expired_keys))
        return len(expired_keys)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Any) -> bool:
        return key in self._entries

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        total_requests = self._stats["hits"] + self._stats["misses"]
        hit_rate = (
            (self._stats["hits"] / total_requests * 100) if total_requests > 0 else 0
        )

        return {
            **self._stats,
            "total_requests": total_requests,
            "hit_rate": round(hit_rate, 2),
            "size": len(self._entries),
        }


class CacheManager:
    """Owns one store per TTL class"""

    def __init__(
        self,
        cart_ttl: float = CacheSettings.CART_CACHE_TTL_SECONDS,
        catalog_ttl: float = CacheSettings.CATALOG_CACHE_TTL_SECONDS,
        clock: Clock = time.monotonic,
    ):
        # short TTL: session-sensitive data
        self.cart_cache: CacheStore[str, Any] = CacheStore(cart_ttl, clock, name="cart")
        # long TTL: catalog data
        self.catalog_cache: CacheStore[str, Any] = CacheStore(catalog_ttl, clock, name="catalog")

        self._logger = logging.getLogger(self.__class__.__name__)

    def get_cart_view_entry(self) -> Optional[CacheEntry[Any]]:
        """Get the cached cart view entry"""
        return self.cart_cache.get_entry(CacheSettings.CART_VIEW_KEY)

    def is_cart_view_fresh(self) -> bool:
        """Check whether the cached cart view is within its TTL"""
        return self.cart_cache.is_fresh(CacheSettings.CART_VIEW_KEY)

    def set_cart_view(self, view: Any) -> None:
        """Cache the reconciled cart view"""
        self.cart_cache.set(CacheSettings.CART_VIEW_KEY, view)

    def invalidate_cart_view(self) -> None:
        """Drop the cached cart view"""
        self.cart_cache.invalidate(CacheSettings.CART_VIEW_KEY)

    def get_product_addons(self, product_id: int) -> Optional[Any]:
        """Get a product's add-on definitions if still fresh"""
        key = f"product:{product_id}"
        if not self.catalog_cache.is_fresh(key):
            return None
        return self.catalog_cache.get(key)

    def set_product_addons(self, product_id: int, product_addons: Any) -> None:
        """Cache a product's add-on definitions"""
        self.catalog_cache.set(f"product:{product_id}", product_addons)

    def invalidate_product_addons(self, product_id: Optional[int] = None) -> None:
        """Invalidate one product or the whole catalog cache"""
        if product_id is None:
            self.catalog_cache.invalidate_all()
        else:
            self.catalog_cache.invalidate(f"product:{product_id}")

    def cleanup_all_expired(self) -> Dict[str, int]:
        """Cleanup expired entries from all caches"""
        return {
            "cart": self.cart_cache.prune_expired(),
            "catalog": self.catalog_cache.prune_expired(),
        }

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        """Get statistics for all caches"""
        return {
            "cart": self.cart_cache.get_stats(),
            "catalog": self.catalog_cache.get_stats(),
        }
