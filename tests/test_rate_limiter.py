from habit_engine.rate_limiter import RateLimiter
from habit_engine.storage import MemoryStore

from helpers import FakeClock


def test_limit_reached_after_max_requests():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=3, window_seconds=60, clock=clock)

    assert [limiter.hit("u1") for _ in range(3)] == [1, 2, 3]

    assert limiter.is_limited("u1") is True
    assert limiter.remaining("u1") == 0
    assert limiter.is_limited("u2") is False


def test_window_expiry_restores_capacity():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)
    limiter.hit("u1")
    limiter.hit("u1")

    clock.advance(59.9)
    assert limiter.is_limited("u1") is True

    clock.advance(0.1)
    assert limiter.is_limited("u1") is False
    assert limiter.remaining("u1") == 2
    assert limiter.hit("u1") == 1


def test_window_starts_at_first_hit():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)

    limiter.hit("u1")
    clock.advance(30)
    limiter.hit("u1")
    clock.advance(30)

    # 60s after the first hit the whole window is gone
    assert limiter.remaining("u1") == 2


def test_state_is_shared_through_store():
    clock = FakeClock()
    store = MemoryStore()
    first = RateLimiter(max_requests=2, store=store, clock=clock)
    second = RateLimiter(max_requests=2, store=store, clock=clock)

    first.hit("u1")
    second.hit("u1")

    assert first.is_limited("u1") is True
    assert store.read("rate:u1")["count"] == 2


def test_reset_one_or_all_identities():
    limiter = RateLimiter(max_requests=1, clock=FakeClock())
    limiter.hit("u1")
    limiter.hit("u2")

    limiter.reset("u1")
    assert limiter.is_limited("u1") is False
    assert limiter.is_limited("u2") is True

    limiter.reset()
    assert limiter.is_limited("u2") is False


def test_hit_sweeps_windows_of_identities_that_went_away():
    clock = FakeClock()
    store = MemoryStore()
    limiter = RateLimiter(max_requests=5, window_seconds=60, store=store, clock=clock)
    limiter.hit("gone-1")
    limiter.hit("gone-2")

    clock.advance(30)
    limiter.hit("active")
    assert store.read("rate:gone-1") is not None

    clock.advance(30)
    limiter.hit("active")

    assert store.read("rate:gone-1") is None
    assert store.read("rate:gone-2") is None
    assert limiter.remaining("active") == 3
