"""
RouteOrchestrator - Single entry point for every outbound call.

Combines, per route:
- RouteRegistry for declarative route configuration
- CircuitBreaker for failure isolation
- RateLimiter for fixed-window admission control
- CacheManager for response caching
- RetryEngine + HttpTransport for the network call itself
- AnalyticsRecorder for request statistics
- BatchCoordinator for bounded-concurrency batches
"""

from typing import Any, Iterable, Mapping

import httpx
from loguru import logger

from routeflow.services.analytics import AnalyticsRecorder, RouteAnalytics
from routeflow.services.batch import BatchCoordinator, BatchItemLike, BatchResult
from routeflow.services.cache import CacheManager, CacheResult
from routeflow.services.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from routeflow.services.clock import Clock, SystemClock
from routeflow.services.errors import (
    CircuitBreakerOpenError,
    ConfigurationError,
    RateLimitExceededError,
)
from routeflow.services.rate_limiter import RateLimiter
from routeflow.services.registry import RouteDefinition, RouteRegistry
from routeflow.services.retry import RetryEngine
from routeflow.services.transport import HttpTransport
from routeflow.settings import Settings, global_settings

# Adaptive timeout = this many times the route's average latency
ADAPTIVE_TIMEOUT_FACTOR = 3.0


class RouteOrchestrator:
    """
    Resilient request orchestrator.

    Usage:
        orchestrator = create_orchestrator(base_url="https://api.example.com")
        orchestrator.register_route("user.get", {"url": "/user/:id", "method": "GET"})

        user = await orchestrator.request("user.get", {"id": 1})

        results = await orchestrator.batch_request(
            [("user.get", {"id": 1}), ("user.get", {"id": 2})],
            concurrency=2,
        )

    Per request the stages run in a fixed order: registry lookup, circuit
    breaker, rate limiter, cache, then the retry-wrapped transport call.
    The breaker is consulted once per logical request, not per retry.
    """

    def __init__(
        self,
        base_url: str | None = None,
        clock: Clock | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        default_headers: Mapping[str, str] | None = None,
        cache_max_size: int | None = None,
        batch_max_concurrency: int | None = None,
        settings: Settings | None = None,
        debug: bool | None = None,
    ):
        settings = settings or global_settings
        self._clock = clock or SystemClock()
        self._debug = settings.debug if debug is None else debug
        self._adaptive_timeout_floor = settings.adaptive_timeout_floor

        # Initialize components
        self._registry = RouteRegistry()
        self._cache = CacheManager(
            clock=self._clock,
            max_size=cache_max_size or settings.cache_max_size,
            debug=self._debug,
        )
        self._rate_limiter = RateLimiter(self._clock)
        self._circuit_breakers = CircuitBreakerRegistry(self._clock)
        self._retry = RetryEngine(self._clock)
        self._transport = HttpTransport(
            base_url=settings.api_base_url if base_url is None else base_url,
            default_headers=default_headers,
            transport=transport,
        )
        self._analytics = AnalyticsRecorder(self._clock)
        self._batch = BatchCoordinator(
            self.request,
            max_concurrency=batch_max_concurrency or settings.batch_max_concurrency,
        )

    # Route table

    def register_route(
        self,
        route_id: str,
        config: RouteDefinition | Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> RouteDefinition:
        """
        Register a route.

        Raises:
            DuplicateRouteError: If the route id is already taken
            InvalidRouteConfigError: If the configuration does not validate
        """
        route = self._registry.register(route_id, config, **overrides)
        logger.info(f"Registered route: {route_id}")
        return route

    def get_registered_routes(self) -> Mapping[str, RouteDefinition]:
        """Read-only snapshot of the route table."""
        return self._registry.snapshot()

    # Requests

    async def request(
        self,
        route_id: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """
        Make a request through the route's resilience pipeline.

        Args:
            route_id: Registered route to call
            params: Path placeholders, then query string (GET-like) or JSON body
            headers: Additional headers for this call

        Returns:
            Response payload

        Raises:
            UnknownRouteError: If the route was never registered
            CircuitBreakerOpenError: If the route's circuit is open
            RateLimitExceededError: If the route's window is full
            HttpError: For non-retryable HTTP failures (4xx)
            RetriesExhaustedError: If every attempt failed transiently
        """
        route = self._registry.get(route_id)

        breaker: CircuitBreaker | None = None
        if route.circuit_breaker.enabled:
            breaker = self._circuit_breakers.get(route_id, route.circuit_breaker)
            if not breaker.can_proceed():
                raise CircuitBreakerOpenError(
                    route_id, breaker.get_time_until_reset() or 0.0
                )
        probing = breaker is not None and breaker.is_probing

        try:
            cached = await self._admit(route, params)
            if cached is not None:
                self._analytics.record_request(
                    route_id, 0.0, success=True, cache_hit=True, params=params
                )
                return cached.data

            return await self._dispatch(route, params, headers, breaker, probing)
        finally:
            # A probe that never resolved (denied, cached, cancelled) frees its slot
            if probing and breaker.is_probing:
                breaker.release_probe()

    async def _admit(
        self, route: RouteDefinition, params: Mapping[str, Any] | None
    ) -> CacheResult[Any] | None:
        """Rate limit gate, then cache lookup."""
        if not self._rate_limiter.try_acquire(route.route_id, route.rate_limit):
            raise RateLimitExceededError(
                route.route_id,
                self._rate_limiter.retry_after(route.route_id, route.rate_limit),
            )

        if route.cache.enabled:
            return await self._cache.get(route.route_id, params)
        return None

    async def _dispatch(
        self,
        route: RouteDefinition,
        params: Mapping[str, Any] | None,
        headers: Mapping[str, str] | None,
        breaker: CircuitBreaker | None,
        probing: bool,
    ) -> Any:
        """Retry-wrapped transport call plus bookkeeping."""
        route_id = route.route_id
        timeout = self._timeout_for(route, probing)

        # Latency of the last attempt only; backoff sleeps are not response time
        latency_ms = 0.0

        async def attempt() -> Any:
            nonlocal latency_ms
            start = self._clock.now()
            try:
                return await self._transport.execute(
                    method=route.method.value,
                    url_template=route.url,
                    params=params,
                    timeout=timeout,
                    headers=headers,
                    route_id=route_id,
                )
            finally:
                latency_ms = (self._clock.now() - start) * 1000

        try:
            data = await self._retry.execute(attempt, route.retry, route_id)
        except Exception as e:
            self._analytics.record_request(
                route_id, latency_ms, success=False, params=params
            )
            # Route table misuse says nothing about the backend
            if breaker is not None and not isinstance(e, ConfigurationError):
                breaker.record_failure()
            raise

        self._analytics.record_request(route_id, latency_ms, success=True, params=params)

        if route.cache.enabled:
            await self._cache.set(route_id, params, data, route.cache.ttl.total_seconds())

        if breaker is not None:
            breaker.record_success()

        return data

    def _timeout_for(self, route: RouteDefinition, probing: bool) -> float:
        """Per-attempt timeout in seconds."""
        probe_timeout = route.circuit_breaker.timeout
        if probing and probe_timeout is not None:
            return probe_timeout.total_seconds()

        timeout = route.timeout.total_seconds()
        ai = route.ai_optimization
        if ai.enabled and ai.adaptive_timeouts:
            average_ms = self._analytics.average_latency_ms(route.route_id)
            if average_ms is not None:
                adaptive = average_ms / 1000 * ADAPTIVE_TIMEOUT_FACTOR
                timeout = min(timeout, max(self._adaptive_timeout_floor, adaptive))
        return timeout

    async def batch_request(
        self,
        items: Iterable[BatchItemLike],
        concurrency: int | None = None,
    ) -> list[BatchResult]:
        """
        Run many requests with at most `concurrency` in flight.

        Returns one BatchResult per item, in input order. Item failures are
        reported in their result, never raised.
        """
        return await self._batch.run(items, concurrency=concurrency)

    # Introspection

    def get_route_analytics(self, route_id: str) -> RouteAnalytics:
        route = self._registry.get(route_id)
        return self._analytics.get_route_analytics(
            route_id, priority=route.priority.value
        )

    def get_global_analytics(self) -> RouteAnalytics:
        return self._analytics.get_global_analytics()

    def get_health_status(self) -> dict[str, Any]:
        """Get health status of all components."""
        return {
            "routes": len(self._registry),
            "cache": self._cache.get_stats().to_dict(),
            "circuit_breakers": self._circuit_breakers.get_all_status(),
            "open_circuits": self._circuit_breakers.get_open_circuits(),
            "rate_limits": self._rate_limiter.get_status(),
            "batch": self._batch.get_stats().to_dict(),
            "analytics": self.get_global_analytics().to_dict(),
        }

    def get_circuit_status(self, route_id: str) -> dict[str, Any] | None:
        """Get circuit breaker status for a specific route."""
        cb = self._circuit_breakers.find(route_id)
        return cb.get_status() if cb else None

    # Maintenance

    async def clear_cache(self, route_id: str | None = None) -> int:
        """Clear one route's cache entries, or all of them."""
        return await self._cache.clear(route_id)

    def reset_rate_limits(self, route_id: str | None = None) -> None:
        self._rate_limiter.reset(route_id)

    def reset_circuit(self, route_id: str) -> bool:
        """Reset circuit breaker for a route."""
        return self._circuit_breakers.reset(route_id)

    def reset_analytics(self, route_id: str | None = None) -> None:
        self._analytics.reset(route_id)

    async def close(self) -> None:
        """Close the HTTP client and cleanup resources."""
        await self._transport.close()
        logger.debug("RouteOrchestrator closed")

    async def __aenter__(self) -> "RouteOrchestrator":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()


def create_orchestrator(**kwargs: Any) -> RouteOrchestrator:
    """Build an independent orchestrator with its own state."""
    return RouteOrchestrator(**kwargs)


# Global orchestrator instance
_global_orchestrator: RouteOrchestrator | None = None


def get_orchestrator() -> RouteOrchestrator:
    """Get the process-wide orchestrator, with the default routes registered."""
    global _global_orchestrator
    if _global_orchestrator is None:
        from routeflow.routes import register_default_routes

        _global_orchestrator = create_orchestrator()
        register_default_routes(_global_orchestrator)
    return _global_orchestrator


async def close_orchestrator() -> None:
    """Close the global orchestrator."""
    global _global_orchestrator
    if _global_orchestrator:
        await _global_orchestrator.close()
        _global_orchestrator = None
