"""
RetryEngine - Bounded retries with exponential backoff.

Only transient transport failures (network errors, timeouts, 5xx) are
retried. Anything else, including 4xx responses, propagates on the first
occurrence.
"""

from typing import Awaitable, Callable, TypeVar

from loguru import logger

from routeflow.services.clock import Clock, SystemClock
from routeflow.services.errors import RetriesExhaustedError, TransportError
from routeflow.services.registry import RetryPolicy

T = TypeVar("T")


def is_retryable(error: BaseException) -> bool:
    """Whether a failed attempt is worth repeating."""
    return isinstance(error, TransportError) and error.is_transient


class RetryEngine:
    """
    Wraps one request attempt with the route's retry policy.

    Usage:
        engine = RetryEngine()
        data = await engine.execute(lambda: transport.execute(...), route.retry, "user.get")
    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or SystemClock()

    async def execute(
        self,
        attempt_fn: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        route_id: str,
    ) -> T:
        """
        Call attempt_fn up to policy.attempts + 1 times.

        Raises:
            RetriesExhaustedError: If every attempt failed transiently
            TransportError: Non-transient failure, raised as is
        """
        if not policy.enabled:
            return await attempt_fn()

        total_attempts = policy.attempts + 1
        last_error: TransportError | None = None

        for attempt in range(total_attempts):
            try:
                return await attempt_fn()
            except TransportError as e:
                if not is_retryable(e):
                    raise
                last_error = e

            if attempt < total_attempts - 1:
                delay = policy.delay_for(attempt)
                logger.warning(
                    f"Request to '{route_id}' failed "
                    f"(attempt {attempt + 1}/{total_attempts}): {last_error}; "
                    f"retrying in {delay:.2f}s"
                )
                await self._clock.sleep(delay)

        logger.error(f"Request to '{route_id}' failed after {total_attempts} attempts")
        raise RetriesExhaustedError(route_id, total_attempts, last_error) from last_error
