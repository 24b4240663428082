"""
Request orchestration layer - resilience patterns for outbound API calls.

Provides:
- RouteRegistry: Declarative per-route policies
- CacheManager: Response cache with TTL
- RateLimiter: Fixed-window admission control
- CircuitBreaker: Prevents cascading failures
- RetryEngine: Bounded retries with backoff
- HttpTransport: One physical request, classified outcome
- BatchCoordinator: Bounded-concurrency batches
- AnalyticsRecorder: Per-route and global statistics
- RouteOrchestrator: Unified entry point combining all of the above
"""

from routeflow.services.errors import (
    OrchestrationError,
    ConfigurationError,
    DuplicateRouteError,
    UnknownRouteError,
    InvalidRouteConfigError,
    RouteParameterError,
    AdmissionError,
    RateLimitExceededError,
    CircuitBreakerOpenError,
    TransportError,
    HttpError,
    NetworkError,
    RequestTimeoutError,
    RetriesExhaustedError,
)
from routeflow.services.clock import Clock, ManualClock, SystemClock
from routeflow.services.registry import (
    RouteRegistry,
    RouteDefinition,
    CachePolicy,
    CacheStrategy,
    RateLimitPolicy,
    RetryPolicy,
    CircuitBreakerPolicy,
    AIOptimizationPolicy,
    HttpMethod,
    RoutePriority,
)
from routeflow.services.cache import CacheManager, CacheEntry, CacheResult
from routeflow.services.rate_limiter import RateLimiter
from routeflow.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitState,
)
from routeflow.services.retry import RetryEngine
from routeflow.services.transport import HttpTransport
from routeflow.services.batch import BatchCoordinator, BatchItem, BatchResult
from routeflow.services.analytics import AnalyticsRecorder, RouteAnalytics
from routeflow.services.client import (
    RouteOrchestrator,
    create_orchestrator,
    get_orchestrator,
    close_orchestrator,
)

__all__ = [
    # Errors
    "OrchestrationError",
    "ConfigurationError",
    "DuplicateRouteError",
    "UnknownRouteError",
    "InvalidRouteConfigError",
    "RouteParameterError",
    "AdmissionError",
    "RateLimitExceededError",
    "CircuitBreakerOpenError",
    "TransportError",
    "HttpError",
    "NetworkError",
    "RequestTimeoutError",
    "RetriesExhaustedError",
    # Clock
    "Clock",
    "ManualClock",
    "SystemClock",
    # Registry
    "RouteRegistry",
    "RouteDefinition",
    "CachePolicy",
    "CacheStrategy",
    "RateLimitPolicy",
    "RetryPolicy",
    "CircuitBreakerPolicy",
    "AIOptimizationPolicy",
    "HttpMethod",
    "RoutePriority",
    # Cache
    "CacheManager",
    "CacheEntry",
    "CacheResult",
    # Rate Limiter
    "RateLimiter",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitState",
    # Retry / Transport
    "RetryEngine",
    "HttpTransport",
    # Batch
    "BatchCoordinator",
    "BatchItem",
    "BatchResult",
    # Analytics
    "AnalyticsRecorder",
    "RouteAnalytics",
    # Orchestrator
    "RouteOrchestrator",
    "create_orchestrator",
    "get_orchestrator",
    "close_orchestrator",
]
