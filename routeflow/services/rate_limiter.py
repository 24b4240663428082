"""
RateLimiter - Fixed-window request counter per route.

A window opens on the first request after the previous one elapsed and
admits at most max_requests calls. Resets happen lazily on the next
try_acquire, never on a timer.
"""

from dataclasses import dataclass
from typing import Any

from loguru import logger

from routeflow.services.clock import Clock, SystemClock
from routeflow.services.registry import RateLimitPolicy


@dataclass
class RateLimitState:
    """Counter for one route's current window."""

    window_start: float
    count: int = 0


class RateLimiter:
    """
    Per-route fixed-window rate limiter.

    Usage:
        limiter = RateLimiter()

        if not limiter.try_acquire("user.get", route.rate_limit):
            raise RateLimitExceededError(...)
    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or SystemClock()
        self._states: dict[str, RateLimitState] = {}

    def try_acquire(self, route_id: str, policy: RateLimitPolicy) -> bool:
        """Take one slot in the current window. Returns False when full."""
        if not policy.enabled:
            return True

        state = self._current_state(route_id, policy)
        if state.count >= policy.max_requests:
            logger.warning(
                f"Rate limit reached for route '{route_id}' "
                f"({policy.max_requests} per {policy.window.total_seconds()}s)"
            )
            return False

        state.count += 1
        return True

    def retry_after(self, route_id: str, policy: RateLimitPolicy) -> float:
        """Seconds until the current window closes."""
        state = self._states.get(route_id)
        if state is None:
            return 0.0
        window_end = state.window_start + policy.window.total_seconds()
        return max(0.0, window_end - self._clock.now())

    def remaining(self, route_id: str, policy: RateLimitPolicy) -> int:
        """Slots left in the current window."""
        if not policy.enabled:
            return policy.max_requests
        state = self._current_state(route_id, policy)
        return policy.max_requests - state.count

    def reset(self, route_id: str | None = None) -> None:
        """Forget window state for one route or all routes."""
        if route_id is None:
            self._states.clear()
        else:
            self._states.pop(route_id, None)

    def _current_state(self, route_id: str, policy: RateLimitPolicy) -> RateLimitState:
        now = self._clock.now()
        state = self._states.get(route_id)
        if state is None or now >= state.window_start + policy.window.total_seconds():
            state = RateLimitState(window_start=now)
            self._states[route_id] = state
        return state

    def get_status(self) -> dict[str, dict[str, Any]]:
        return {
            route_id: {"window_start": state.window_start, "count": state.count}
            for route_id, state in self._states.items()
        }
