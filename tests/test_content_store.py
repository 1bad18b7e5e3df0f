from app.services.ai_content import ContentGenerator
from app.services.content_store import ContentCache, RateLimiter


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def test_cache_hit_and_miss():
    cache = ContentCache(ttl_seconds=60, max_size=10, clock=FakeClock())
    assert cache.get("a") is None
    cache.set("a", {"narrative": "x"})
    assert cache.get("a") == {"narrative": "x"}
    assert "a" in cache


def test_cache_entry_expires_after_ttl():
    clock = FakeClock()
    cache = ContentCache(ttl_seconds=60, max_size=10, clock=clock)
    cache.set("a", 1)
    clock.advance(59)
    assert cache.get("a") == 1
    clock.advance(1)
    assert cache.get("a") is None
    assert len(cache) == 0


def test_cache_insert_drops_expired_then_evicts_least_recent():
    clock = FakeClock()
    cache = ContentCache(ttl_seconds=100, max_size=3, clock=clock)
    cache.set("stale", 0)
    clock.advance(100)
    for key in ["a", "b", "c"]:
        cache.set(key, key)
        clock.advance(1)
    assert "stale" not in cache
    assert len(cache) == 3

    cache.set("d", "d")
    assert len(cache) == 3
    assert "a" not in cache
    assert cache.get("d") == "d"


def test_cache_cleanup_reports_removed_entries():
    clock = FakeClock()
    cache = ContentCache(ttl_seconds=10, max_size=10, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    clock.advance(10)
    assert cache.cleanup() == 2
    assert len(cache) == 0


def test_rate_limiter_allows_quota_then_blocks():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=3, window_seconds=3600, clock=clock)
    results = [limiter.check("1.2.3.4") for _ in range(3)]
    assert [r.allowed for r in results] == [True, True, True]
    assert [r.remaining for r in results] == [2, 1, 0]

    clock.advance(600)
    blocked = limiter.check("1.2.3.4")
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.retry_after == 3000
    assert blocked.reset_time == results[0].reset_time


def test_rate_limiter_tracks_addresses_separately():
    limiter = RateLimiter(max_requests=1, window_seconds=3600, clock=FakeClock())
    assert limiter.check("1.1.1.1").allowed
    assert not limiter.check("1.1.1.1").allowed
    assert limiter.check("2.2.2.2").allowed


def test_rate_limiter_window_resets():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=3600, clock=clock)
    assert limiter.check("1.1.1.1").allowed
    assert not limiter.check("1.1.1.1").allowed
    clock.advance(3601)
    result = limiter.check("1.1.1.1")
    assert result.allowed
    assert result.remaining == 0


def test_rate_limiter_cleanup_drops_stale_windows():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=5, window_seconds=60, clock=clock)
    limiter.check("a")
    clock.advance(30)
    limiter.check("b")
    clock.advance(31)
    assert limiter.cleanup() == 1
    assert len(limiter) == 1


def test_cache_keeps_recently_read_entries():
    cache = ContentCache(ttl_seconds=100, max_size=3, clock=FakeClock())
    for key in ["a", "b", "c"]:
        cache.set(key, key)
    assert cache.get("a") == "a"
    cache.set("d", "d")
    assert "a" in cache
    assert "b" not in cache


def test_generator_keeps_injected_empty_stores():
    cache = ContentCache(ttl_seconds=60, max_size=5)
    limiter = RateLimiter(max_requests=2, window_seconds=60)
    generator = ContentGenerator(cache=cache, rate_limiter=limiter)
    assert generator.cache is cache
    assert generator.rate_limiter is limiter
