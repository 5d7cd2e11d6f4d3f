"""Unit tests for the in-process TTL cache."""

import pytest

from core.cache import TTLCache


class TestTTLCache:
    """Expiry and overwrite semantics."""

    @pytest.fixture
    def cache(self, clock):
        return TTLCache("test", clock=clock)

    def test_get_after_set_returns_value(self, cache):
        cache.set("k", {"hits": [1, 2]}, ttl=60)
        assert cache.get("k") == {"hits": [1, 2]}

    def test_missing_key_is_absent(self, cache):
        assert cache.get("nope") is None

    def test_value_expires_once_ttl_elapsed(self, cache, clock):
        cache.set("k", "v", ttl=60)

        clock.advance(59)
        assert cache.get("k") == "v"

        clock.advance(1)
        assert cache.get("k") is None

    def test_stale_entry_is_evicted_when_observed(self, cache, clock):
        cache.set("k", "v", ttl=10)
        clock.advance(11)
        assert len(cache) == 1

        assert cache.get("k") is None
        assert len(cache) == 0

    def test_set_overwrites_value_and_expiry(self, cache, clock):
        cache.set("k", "old", ttl=10)
        clock.advance(5)
        cache.set("k", "new", ttl=10)

        clock.advance(8)
        assert cache.get("k") == "new"

    def test_entries_expire_independently(self, cache, clock):
        cache.set("short", 1, ttl=5)
        cache.set("long", 2, ttl=50)
        clock.advance(10)

        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_falsy_values_are_cached(self, cache):
        cache.set("empty", [], ttl=10)
        assert cache.get("empty") == []

    def test_delete_and_clear(self, cache):
        cache.set("a", 1, ttl=10)
        cache.set("b", 2, ttl=10)

        assert cache.delete("a") is True
        assert cache.delete("a") is False
        assert cache.get("a") is None

        cache.clear()
        assert len(cache) == 0

    def test_contains_respects_expiry(self, cache, clock):
        cache.set("k", "v", ttl=1)
        assert "k" in cache
        clock.advance(1)
        assert "k" not in cache

    @pytest.mark.parametrize("ttl", [0, -5])
    def test_non_positive_ttl_rejected(self, cache, ttl):
        with pytest.raises(ValueError):
            cache.set("k", "v", ttl=ttl)
