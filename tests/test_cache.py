"""
Test suite for the response cache
"""

from ngna_soro.cache import InMemoryCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestInMemoryCache:
    """Test TTL expiry and prefix invalidation"""

    def test_get_and_set(self):
        cache = InMemoryCache()
        assert cache.get("schedule:loan-1") is None
        cache.set("schedule:loan-1", {"installments": [1, 2]})
        assert cache.get("schedule:loan-1") == {"installments": [1, 2]}

    def test_entries_expire(self):
        clock = FakeClock()
        cache = InMemoryCache(default_ttl_seconds=300, clock=clock)
        cache.set("schedule:loan-1", "a")
        cache.set("schedule:loan-2", "b", ttl_seconds=10)

        clock.now += 10
        assert cache.get("schedule:loan-2") is None
        assert cache.get("schedule:loan-1") == "a"

        clock.now += 290
        assert cache.get("schedule:loan-1") is None

    def test_invalidate_prefix(self):
        cache = InMemoryCache()
        cache.set("schedule:loan-1", "a")
        cache.set("schedule:loan-2", "b")
        cache.set("eligibility:client-1", "c")

        assert cache.invalidate_prefix("schedule:") == 2
        assert cache.get("schedule:loan-1") is None
        assert cache.get("eligibility:client-1") == "c"
        assert cache.invalidate_prefix("schedule:") == 0
