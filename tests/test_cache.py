"""
Tests for the TTL cache store and cache manager
"""

import pytest

from cartsync.domain.entities.addon import ProductAddons
from cartsync.domain.value_objects.money import Money
from cartsync.infrastructure.cache.cache_store import CacheManager, CacheStore


class TestCacheStore:
    """Test TTL cache behaviour"""

    def test_fresh_then_stale(self, clock):
        cache = CacheStore(5, clock)
        cache.set("cart", "v1")
        assert cache.is_fresh("cart")
        clock.advance(5)
        assert not cache.is_fresh("cart")
        # stale reads still return the value
        assert cache.get("cart") == "v1"
        assert "cart" in cache

    def test_custom_ttl(self, clock):
        cache = CacheStore(5, clock)
        cache.set("long", 1, ttl=60)
        clock.advance(30)
        assert cache.is_fresh("long")
        assert cache.get_entry("long").age(clock()) == 30

    def test_zero_ttl_is_never_fresh(self, clock):
        cache = CacheStore(0, clock)
        cache.set("key", "value")
        assert not cache.is_fresh("key")

    def test_negative_ttl_rejected(self, clock):
        with pytest.raises(ValueError):
            CacheStore(-1, clock)
        cache = CacheStore(5, clock)
        with pytest.raises(ValueError):
            cache.set("key", "value", ttl=-1)

    def test_invalidate(self, clock):
        cache = CacheStore(5, clock)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        cache.invalidate_all()
        assert len(cache) == 0

    def test_prune_expired(self, clock):
        cache = CacheStore(5, clock)
        cache.set("old", 1)
        clock.advance(10)
        cache.set("new", 2)
        assert cache.prune_expired() == 1
        assert "old" not in cache
        assert "new" in cache

    def test_stats(self, clock):
        cache = CacheStore(5, clock)
        cache.set("a", 1)
        cache.get("a")
        cache.get("missing")
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["sets"] == 1
        assert stats["hit_rate"] == 50.0
        assert stats["size"] == 1


class TestCacheManager:
    """Test cart and catalog caches"""

    def test_cart_view_ttl(self, cache_manager, clock):
        cache_manager.set_cart_view("view")
        assert cache_manager.is_cart_view_fresh()
        clock.advance(6)
        assert not cache_manager.is_cart_view_fresh()
        assert cache_manager.get_cart_view_entry().value == "view"
        cache_manager.invalidate_cart_view()
        assert cache_manager.get_cart_view_entry() is None

    def test_product_addons_expire(self, cache_manager, clock):
        product = ProductAddons(42, Money(10000))
        cache_manager.set_product_addons(42, product)
        assert cache_manager.get_product_addons(42) is product
        clock.advance(601)
        assert cache_manager.get_product_addons(42) is None

    def test_invalidate_product_addons(self, cache_manager):
        cache_manager.set_product_addons(1, "a")
        cache_manager.set_product_addons(2, "b")
        cache_manager.invalidate_product_addons(1)
        assert cache_manager.get_product_addons(1) is None
        assert cache_manager.get_product_addons(2) == "b"
        cache_manager.invalidate_product_addons()
        assert cache_manager.get_product_addons(2) is None

    def test_cleanup_and_stats(self, clock):
        manager = CacheManager(cart_ttl=5, catalog_ttl=600, clock=clock)
        manager.set_cart_view("view")
        manager.set_product_addons(42, "product")
        clock.advance(10)
        assert manager.cleanup_all_expired() == {"cart": 1, "catalog": 0}
        stats = manager.get_all_stats()
        assert stats["cart"]["size"] == 0
        assert stats["catalog"]["size"] == 1
