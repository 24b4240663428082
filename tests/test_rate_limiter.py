import pytest

from routeflow.services import ManualClock, RateLimiter, RateLimitPolicy


def make_limiter() -> tuple[RateLimiter, ManualClock]:
    clock = ManualClock()
    return RateLimiter(clock), clock


def test_allows_up_to_max_requests_per_window() -> None:
    limiter, _ = make_limiter()
    policy = RateLimitPolicy(max_requests=3, window=1)

    assert [limiter.try_acquire("limited", policy) for _ in range(4)] == [
        True,
        True,
        True,
        False,
    ]


def test_window_resets_after_it_elapses() -> None:
    limiter, clock = make_limiter()
    policy = RateLimitPolicy(max_requests=2, window=1)
    limiter.try_acquire("limited", policy)
    limiter.try_acquire("limited", policy)
    assert not limiter.try_acquire("limited", policy)

    clock.advance(1.1)

    assert limiter.try_acquire("limited", policy)
    assert limiter.remaining("limited", policy) == 1


def test_window_is_fixed_not_sliding() -> None:
    limiter, clock = make_limiter()
    policy = RateLimitPolicy(max_requests=2, window=10)
    limiter.try_acquire("r", policy)
    clock.advance(9)
    limiter.try_acquire("r", policy)
    clock.advance(1)

    # The first window closed at t=10, so both slots are free again
    assert limiter.remaining("r", policy) == 2


def test_retry_after_reports_time_left_in_window() -> None:
    limiter, clock = make_limiter()
    policy = RateLimitPolicy(max_requests=1, window=10)
    assert limiter.retry_after("r", policy) == 0.0

    limiter.try_acquire("r", policy)
    clock.advance(4)

    assert limiter.retry_after("r", policy) == pytest.approx(6.0)


def test_disabled_policy_always_allows() -> None:
    limiter, _ = make_limiter()
    policy = RateLimitPolicy(enabled=False, max_requests=1)

    assert all(limiter.try_acquire("open", policy) for _ in range(10))


def test_routes_are_counted_independently_and_reset() -> None:
    limiter, _ = make_limiter()
    policy = RateLimitPolicy(max_requests=1, window=60)
    assert limiter.try_acquire("a", policy)
    assert limiter.try_acquire("b", policy)
    assert not limiter.try_acquire("a", policy)

    limiter.reset("a")
    assert limiter.try_acquire("a", policy)
    assert not limiter.try_acquire("b", policy)

    limiter.reset()
    assert limiter.get_status() == {}
    assert limiter.try_acquire("b", policy)
