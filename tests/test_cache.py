"""Tests for the verification result cache."""

from crossroute.routing.cache import MISSING, VerificationCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestVerificationCache:
    """Tests for VerificationCache."""

    def test_hit_within_ttl(self):
        """Test a value is returned until its TTL passes."""
        clock = FakeClock()
        cache = VerificationCache(ttl_seconds=30, clock=clock)
        cache.set("k", "v")

        clock.now += 29
        assert cache.get("k") == "v"

        clock.now += 2
        assert cache.get("k") is MISSING

    def test_cached_none_is_not_a_miss(self):
        """Test a remembered "no liquidity" answer is distinct from a miss."""
        cache = VerificationCache()
        cache.set("k", None)

        assert cache.get("k") is None
        assert cache.contains("k")
        assert not cache.contains("other")

    def test_key_ignores_address_case(self):
        """Test keys are case-insensitive on path addresses."""
        key_a = VerificationCache.make_key(56, "pancakeswap", ["0xAbC", "0xDeF"], 10)
        key_b = VerificationCache.make_key(56, "pancakeswap", ["0xabc", "0xdef"], 10)
        key_c = VerificationCache.make_key(56, "pancakeswap", ["0xabc", "0xdef"], 11)

        assert key_a == key_b
        assert key_a != key_c

    def test_evicts_expired_above_threshold(self):
        """Test expired entries are swept once the map exceeds max_entries."""
        clock = FakeClock()
        cache = VerificationCache(ttl_seconds=10, max_entries=3, clock=clock)
        for i in range(3):
            cache.set(i, i)

        clock.now += 11
        cache.set("fresh", 1)

        assert len(cache) == 1
        assert cache.get("fresh") == 1

    def test_no_eviction_below_threshold(self):
        """Test expired entries linger until the size threshold is crossed."""
        clock = FakeClock()
        cache = VerificationCache(ttl_seconds=10, max_entries=10, clock=clock)
        cache.set("a", 1)
        clock.now += 11
        cache.set("b", 2)

        assert len(cache) == 2

    def test_size_capped_by_dropping_oldest(self):
        """Test the map never outgrows max_entries while every entry is live."""
        cache = VerificationCache(ttl_seconds=30, max_entries=3, clock=FakeClock())
        for i in range(5):
            cache.set(i, i)

        assert len(cache) == 3
        assert cache.get(0) is MISSING
        assert cache.get(1) is MISSING
        assert [cache.get(i) for i in (2, 3, 4)] == [2, 3, 4]

    def test_rewrite_refreshes_position(self):
        """Test a re-set key counts as newest for expiry and capping."""
        clock = FakeClock()
        cache = VerificationCache(ttl_seconds=10, max_entries=3, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        clock.now += 5
        cache.set("a", 3)
        cache.set("c", 4)
        clock.now += 6
        cache.set("d", 5)

        # "b" expired; the refreshed "a" is still live
        assert len(cache) == 3
        assert cache.get("b") is MISSING
        assert cache.get("a") == 3
