"""Unit tests for TimedCache."""

from whale_tracker.services.cache_service import TimedCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestTimedCache:
    """Test suite for TimedCache."""

    def test_get_before_expiry(self):
        # Setup
        clock = FakeClock()
        cache = TimedCache(default_ttl=10, clock=clock)
        cache.set("token", "analysis")

        # Execute
        clock.now = 9.9
        value = cache.get("token")

        # Verify
        assert value == "analysis"
        assert cache.hits == 1

    def test_expired_entries_are_dropped(self):
        # Setup
        clock = FakeClock()
        cache = TimedCache(default_ttl=10, clock=clock)
        cache.set("token", "analysis")

        # Execute
        clock.now = 10
        value = cache.get("token")

        # Verify
        assert value is None
        assert len(cache) == 0
        assert cache.get_stats() == {"size": 0, "hits": 0, "misses": 1, "expirations": 1}

    def test_per_entry_ttl(self):
        clock = FakeClock()
        cache = TimedCache(default_ttl=10, clock=clock)
        cache.set("short", 1, ttl=1)
        cache.set("long", 2)
        clock.now = 5
        assert "short" not in cache
        assert "long" in cache
        assert list(cache.items()) == [("long", 2)]

    def test_max_size_evicts_oldest(self):
        cache = TimedCache(default_ttl=10, max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        assert cache.get("a") is None
        assert cache.get("c") == 3

    def test_set_refreshes_entry(self):
        """Storing a key again restarts its lifetime."""
        clock = FakeClock()
        cache = TimedCache(default_ttl=10, clock=clock)
        cache.set("token", "old")
        clock.now = 8
        cache.set("token", "new")
        clock.now = 15
        assert cache.get("token") == "new"

    def test_delete_and_clear(self):
        cache = TimedCache()
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.delete("a") is True
        assert cache.delete("a") is False
        cache.clear()
        assert len(cache) == 0
