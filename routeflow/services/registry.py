"""
RouteRegistry - Declarative table of every outbound operation.

Each route carries its own cache, rate limit, retry and circuit breaker
policy. Defaults are applied once, at registration; request handling reads
fully populated, frozen definitions.
"""

from datetime import timedelta
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, get_args

from loguru import logger
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from routeflow.services.errors import (
    DuplicateRouteError,
    InvalidRouteConfigError,
    UnknownRouteError,
)

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


class HttpMethod(str, Enum):
    """Supported HTTP methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class RoutePriority(str, Enum):
    """Advisory route priority, reported in analytics."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CacheStrategy(str, Enum):
    """Cache strategy tags and the TTL each one implies."""

    NONE = "none"
    MEMORY = "memory"  # 5 minutes
    SESSION = "session"  # 30 minutes
    PERSISTENT = "persistent"  # 24 hours
    TIME_BASED = "time-based"  # explicit ttl


DEFAULT_CACHE_TTL = timedelta(minutes=5)

STRATEGY_TTLS: dict[CacheStrategy, timedelta] = {
    CacheStrategy.MEMORY: timedelta(minutes=5),
    CacheStrategy.SESSION: timedelta(minutes=30),
    CacheStrategy.PERSISTENT: timedelta(hours=24),
}

# Bare durations this large were most likely written in milliseconds
SUSPICIOUS_SECONDS = 1000


def warn_on_millisecond_durations(model: type[BaseModel], data: Any) -> None:
    """Warn about bare numbers in duration fields that look like milliseconds."""
    if not isinstance(data, Mapping):
        return
    for name, info in model.model_fields.items():
        annotation = info.annotation
        if annotation is not timedelta and timedelta not in get_args(annotation):
            continue
        for key in {name, info.alias or name}:
            value = data.get(key)
            if (
                isinstance(value, (int, float))
                and not isinstance(value, bool)
                and value >= SUSPICIOUS_SECONDS
            ):
                logger.warning(
                    f"{model.__name__}.{name}={value} is read as {value} seconds; "
                    f"durations are seconds, not milliseconds"
                )


class Policy(BaseModel):
    """Base for immutable route policy sections."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def _check_durations(cls, data: Any) -> Any:
        warn_on_millisecond_durations(cls, data)
        return data


class CachePolicy(Policy):
    enabled: bool = True
    ttl: timedelta = DEFAULT_CACHE_TTL
    strategy: CacheStrategy = CacheStrategy.TIME_BASED

    @model_validator(mode="before")
    @classmethod
    def _apply_strategy(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        strategy = CacheStrategy(data.get("strategy") or CacheStrategy.TIME_BASED)
        data["strategy"] = strategy
        if strategy is CacheStrategy.NONE:
            data["enabled"] = False
        if data.get("ttl") is None:
            data["ttl"] = STRATEGY_TTLS.get(strategy, DEFAULT_CACHE_TTL)
        return data

    @field_validator("ttl")
    @classmethod
    def _positive_ttl(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("ttl must be positive")
        return value


class RateLimitPolicy(Policy):
    enabled: bool = True
    max_requests: int = Field(default=100, ge=1, alias="maxRequests")
    window: timedelta = timedelta(minutes=1)

    @field_validator("window")
    @classmethod
    def _positive_window(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("window must be positive")
        return value


class RetryPolicy(Policy):
    """
    Retry configuration.

    attempts counts retries, so a request makes at most attempts + 1 calls.
    The delay before retry n is delay * backoff**n, capped at max_delay.
    """

    enabled: bool = True
    attempts: int = Field(default=3, ge=0)
    delay: timedelta = timedelta(seconds=1)
    backoff: float = Field(default=2.0, ge=1.0)
    max_delay: timedelta = Field(default=timedelta(seconds=30), alias="maxDelay")

    def delay_for(self, retry_index: int) -> float:
        """Seconds to wait before the given 0-based retry."""
        seconds = self.delay.total_seconds() * self.backoff**retry_index
        return min(seconds, self.max_delay.total_seconds())


class CircuitBreakerPolicy(Policy):
    enabled: bool = False
    failure_threshold: int = Field(default=3, ge=1, alias="failureThreshold")
    reset_timeout: timedelta = Field(
        default=timedelta(seconds=30), alias="resetTimeout"
    )
    timeout: timedelta | None = None  # Half-open probe timeout


class AIOptimizationPolicy(Policy):
    """Advisory flags. Only analytics and the adaptive timeout read them."""

    enabled: bool = False
    adaptive_timeouts: bool = Field(default=False, alias="adaptiveTimeouts")
    intelligent_caching: bool = Field(default=False, alias="intelligentCaching")
    predictive_preloading: bool = Field(default=False, alias="predictivePreloading")
    response_analysis: bool = Field(default=False, alias="responseAnalysis")


class RouteDefinition(BaseModel):
    """A fully defaulted route."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    route_id: str = Field(min_length=1)
    url: str = Field(min_length=1, validation_alias=AliasChoices("url", "endpoint"))
    method: HttpMethod = HttpMethod.GET
    timeout: timedelta = timedelta(seconds=15)
    priority: RoutePriority = RoutePriority.MEDIUM
    cache: CachePolicy = Field(default_factory=CachePolicy)
    rate_limit: RateLimitPolicy = Field(
        default_factory=RateLimitPolicy, alias="rateLimit"
    )
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    circuit_breaker: CircuitBreakerPolicy = Field(
        default_factory=CircuitBreakerPolicy, alias="circuitBreaker"
    )
    ai_optimization: AIOptimizationPolicy = Field(
        default_factory=AIOptimizationPolicy, alias="aiOptimization"
    )

    @model_validator(mode="before")
    @classmethod
    def _check_durations(cls, data: Any) -> Any:
        warn_on_millisecond_durations(cls, data)
        return data

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @model_validator(mode="before")
    @classmethod
    def _default_cache_by_method(cls, data: Any) -> Any:
        # Only idempotent routes cache unless told otherwise
        if not isinstance(data, Mapping) or data.get("cache") is not None:
            return data
        data = dict(data)
        method = data.get("method", HttpMethod.GET)
        method = method.value if isinstance(method, HttpMethod) else str(method)
        data["cache"] = {"enabled": method.upper() in IDEMPOTENT_METHODS}
        return data

    @property
    def is_idempotent(self) -> bool:
        return self.method.value in IDEMPOTENT_METHODS


class RouteRegistry:
    """
    Registry of route definitions.

    Usage:
        registry = RouteRegistry()
        registry.register("user.get", {"url": "/api/user/:id", "method": "GET"})
        route = registry.get("user.get")
    """

    def __init__(self):
        self._routes: dict[str, RouteDefinition] = {}

    def register(
        self,
        route_id: str,
        config: RouteDefinition | Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> RouteDefinition:
        """
        Register a route.

        Raises:
            DuplicateRouteError: If route_id is already registered
            InvalidRouteConfigError: If the configuration does not validate
        """
        if route_id in self._routes:
            raise DuplicateRouteError(route_id)

        definition = self._build(route_id, config, overrides)
        self._routes[route_id] = definition
        logger.debug(
            f"Registered route: {route_id} -> {definition.method.value} {definition.url}"
        )
        return definition

    @staticmethod
    def _build(
        route_id: str,
        config: RouteDefinition | Mapping[str, Any] | None,
        overrides: dict[str, Any],
    ) -> RouteDefinition:
        if isinstance(config, RouteDefinition):
            if not overrides and config.route_id == route_id:
                return config
            data: dict[str, Any] = config.model_dump()
        else:
            data = dict(config or {})

        data.update(overrides)
        data["route_id"] = route_id

        try:
            return RouteDefinition.model_validate(data)
        except ValidationError as e:
            raise InvalidRouteConfigError(route_id, str(e)) from e

    def get(self, route_id: str) -> RouteDefinition:
        """Get a route, failing fast for unknown ids."""
        try:
            return self._routes[route_id]
        except KeyError:
            raise UnknownRouteError(route_id) from None

    def snapshot(self) -> Mapping[str, RouteDefinition]:
        """Read-only copy of the route table."""
        return MappingProxyType(dict(self._routes))

    def __contains__(self, route_id: object) -> bool:
        return route_id in self._routes

    def __len__(self) -> int:
        return len(self._routes)
