import pytest

from news_digest.errors import RateLimitExceeded, StoreError
from news_digest.rate_limit import RateLimiter
from news_digest.store import InMemoryStore


class Clock:
    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _limiter(store, clock, max_hits=2, window=60):
    return RateLimiter(store, prefix="rl:test:", window_seconds=window, max_hits=max_hits, clock=clock)


def test_first_hit_sets_window_and_counts_down():
    clock = Clock(1000.0)
    store = InMemoryStore(clock=clock)
    limiter = _limiter(store, clock)

    first = limiter.check("1.2.3.4")
    assert first.key == "rl:test:1.2.3.4"
    assert first.allowed and first.current == 1 and first.remaining == 1
    assert first.reset_at == 1060
    assert store.ttl("rl:test:1.2.3.4") == 60

    second = limiter.check("1.2.3.4")
    assert second.allowed and second.remaining == 0

    third = limiter.check("1.2.3.4")
    assert not third.allowed
    assert third.current == 3


def test_enforce_raises_with_retry_after():
    clock = Clock(1000.0)
    store = InMemoryStore(clock=clock)
    limiter = _limiter(store, clock, max_hits=1)
    limiter.enforce("ip")
    clock.now = 1015.0
    with pytest.raises(RateLimitExceeded) as excinfo:
        limiter.enforce("ip")
    assert excinfo.value.retry_after == 45
    assert excinfo.value.limit == 1


def test_window_rollover_resets_count():
    clock = Clock(1000.0)
    store = InMemoryStore(clock=clock)
    limiter = _limiter(store, clock, max_hits=1)
    limiter.enforce("ip")
    clock.now = 1061.0
    assert limiter.enforce("ip").current == 1


class NoTtlStore(InMemoryStore):
    def ttl(self, key):
        raise StoreError("ttl unavailable")


def test_missing_ttl_assumes_fresh_window():
    clock = Clock(500.0)
    limiter = _limiter(NoTtlStore(clock=clock), clock, window=30)
    assert limiter.check("ip").reset_at == 530


class BrokenStore:
    def incr(self, key):
        raise StoreError("down")


def test_store_failure_fails_open():
    limiter = RateLimiter(BrokenStore(), prefix="rl", window_seconds=60, max_hits=1)
    assert limiter.enforce("ip") is None


class FlakyExpireStore(InMemoryStore):
    def __init__(self, clock):
        super().__init__(clock=clock)
        self.expire_failures = 1

    def expire(self, key, ttl_seconds):
        if self.expire_failures:
            self.expire_failures -= 1
            raise StoreError("expire timed out")
        return super().expire(key, ttl_seconds)


def test_counter_left_without_expiry_restarts_window():
    clock = Clock(1000.0)
    store = FlakyExpireStore(clock)
    limiter = _limiter(store, clock, max_hits=2)

    assert limiter.enforce("ip") is None
    assert store.ttl("rl:test:ip") is None

    clock.now = 11000.0
    result = limiter.enforce("ip")
    assert result.current == 1
    assert result.reset_at == 11060
    assert store.ttl("rl:test:ip") == 60

    assert limiter.enforce("ip").current == 2
    with pytest.raises(RateLimitExceeded):
        limiter.enforce("ip")
