"""
CircuitBreaker - Stops calling a failing route until it has had time to recover.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Route is failing, requests are blocked
- HALF_OPEN: One probe request tests whether the route recovered

Transitions:
- CLOSED → OPEN: When failure_threshold consecutive failures are reached
- OPEN → HALF_OPEN: After reset_timeout expires
- HALF_OPEN → CLOSED: On successful probe
- HALF_OPEN → OPEN: On failed probe, restarting the timer
"""

from enum import Enum
from typing import Any

from loguru import logger

from routeflow.services.clock import Clock, SystemClock
from routeflow.services.registry import CircuitBreakerPolicy


class CircuitState(str, Enum):
    """Per-route breaker states."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Blocking requests
    HALF_OPEN = "HALF_OPEN"  # Testing recovery


class CircuitBreaker:
    """
    Circuit breaker for a single route.

    Usage:
        cb = CircuitBreaker("user.get", route.circuit_breaker)

        if not cb.can_proceed():
            raise CircuitBreakerOpenError(...)

        try:
            result = await make_request()
            cb.record_success()
            return result
        except Exception:
            cb.record_failure()
            raise
    """

    def __init__(
        self,
        route_id: str,
        policy: CircuitBreakerPolicy | None = None,
        clock: Clock | None = None,
    ):
        self.route_id = route_id
        self.policy = policy or CircuitBreakerPolicy(enabled=True)
        self._clock = clock or SystemClock()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._last_failure_time: float | None = None
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        """Current state; an OPEN circuit whose reset timeout passed becomes HALF_OPEN."""
        if self._state == CircuitState.OPEN and self.get_time_until_reset() == 0:
            self._state = CircuitState.HALF_OPEN
            self._probe_in_flight = False
            logger.info(f"Circuit breaker '{self.route_id}' transitioned to HALF_OPEN")
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def can_proceed(self) -> bool:
        """
        Check if a request is allowed.

        In HALF_OPEN exactly one probe is admitted; everyone else is refused
        until that probe is resolved.
        """
        current_state = self.state

        if current_state == CircuitState.CLOSED:
            return True

        if current_state == CircuitState.HALF_OPEN and not self._probe_in_flight:
            self._probe_in_flight = True
            logger.info(f"Circuit breaker '{self.route_id}' admitting probe request")
            return True

        return False

    @property
    def is_probing(self) -> bool:
        return self._state == CircuitState.HALF_OPEN and self._probe_in_flight

    def release_probe(self) -> None:
        """Give back a probe slot that never reached the network."""
        self._probe_in_flight = False

    def record_success(self) -> None:
        """Record a request that reached a healthy backend."""
        if self._state == CircuitState.HALF_OPEN:
            self._close()
        elif self._state == CircuitState.CLOSED:
            # Only consecutive failures count
            self._failure_count = 0

    def record_failure(self) -> None:
        """Record a failed request (any transport error or retry exhaustion)."""
        self._failure_count += 1
        self._last_failure_time = self._clock.now()

        if self._state == CircuitState.HALF_OPEN:
            # A failed probe restarts the reset timer
            self._open()
        elif (
            self._state == CircuitState.CLOSED
            and self._failure_count >= self.policy.failure_threshold
        ):
            self._open()

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock.now()
        self._probe_in_flight = False
        logger.warning(
            f"Circuit breaker '{self.route_id}' OPENED after {self._failure_count} failures"
        )

    def _close(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = None
        self._probe_in_flight = False
        logger.info(f"Circuit breaker '{self.route_id}' CLOSED (recovered)")

    def reset(self) -> None:
        """Force the circuit CLOSED and forget the failure history."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = None
        self._last_failure_time = None
        self._probe_in_flight = False
        logger.info(f"Circuit breaker '{self.route_id}' manually reset")

    def get_time_until_reset(self) -> float | None:
        """Seconds until an OPEN circuit admits a probe, None unless OPEN."""
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return None

        reset_at = self._opened_at + self.policy.reset_timeout.total_seconds()
        return max(0.0, reset_at - self._clock.now())

    def get_status(self) -> dict[str, Any]:
        """Snapshot for health reporting."""
        return {
            "route_id": self.route_id,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.policy.failure_threshold,
            "last_failure": self._last_failure_time,
            "opened_at": self._opened_at,
            "time_until_reset": self.get_time_until_reset(),
            "probe_in_flight": self._probe_in_flight,
        }


class CircuitBreakerRegistry:
    """
    Registry for managing one circuit breaker per route.

    Usage:
        registry = CircuitBreakerRegistry(clock)
        cb = registry.get("user.get", route.circuit_breaker)
    """

    def __init__(self, clock: Clock | None = None):
        self._breakers: dict[str, CircuitBreaker] = {}
        self._clock = clock or SystemClock()

    def get(
        self,
        route_id: str,
        policy: CircuitBreakerPolicy | None = None,
    ) -> CircuitBreaker:
        """Get or create a circuit breaker for a route."""
        if route_id not in self._breakers:
            self._breakers[route_id] = CircuitBreaker(route_id, policy, self._clock)
        return self._breakers[route_id]

    def find(self, route_id: str) -> CircuitBreaker | None:
        return self._breakers.get(route_id)

    def get_all_status(self) -> dict[str, dict[str, Any]]:
        """Status of every route breaker created so far."""
        return {route_id: cb.get_status() for route_id, cb in self._breakers.items()}

    def reset_all(self) -> None:
        """Force every breaker CLOSED."""
        for cb in self._breakers.values():
            cb.reset()
        logger.info(f"Reset {len(self._breakers)} circuit breakers")

    def reset(self, route_id: str) -> bool:
        """Reset one route's breaker. Returns False if it never existed."""
        if route_id in self._breakers:
            self._breakers[route_id].reset()
            return True
        return False

    def get_open_circuits(self) -> list[str]:
        """Get list of routes with open circuits."""
        return [
            route_id
            for route_id, cb in self._breakers.items()
            if cb.state == CircuitState.OPEN
        ]
