"""
Orchestration layer exceptions.

Every failure a caller can see maps to one stage of the request pipeline:
configuration, admission, transport or retry exhaustion.
"""

from typing import Any


class OrchestrationError(Exception):
    """Base exception for request orchestration errors."""

    def __init__(self, message: str, route_id: str | None = None):
        self.route_id = route_id
        super().__init__(message)


# Configuration errors


class ConfigurationError(OrchestrationError):
    """Route table misuse. Never retried."""

    pass


class DuplicateRouteError(ConfigurationError):
    """A route id was registered twice."""

    def __init__(self, route_id: str):
        super().__init__(f"Route {route_id} is already registered", route_id=route_id)


class UnknownRouteError(ConfigurationError):
    """A request referenced a route that was never registered."""

    def __init__(self, route_id: str):
        super().__init__(f"Route {route_id} not found", route_id=route_id)


class InvalidRouteConfigError(ConfigurationError):
    """Route configuration failed validation."""

    def __init__(self, route_id: str, detail: str):
        self.detail = detail
        super().__init__(
            f"Invalid configuration for route {route_id}: {detail}",
            route_id=route_id,
        )


class RouteParameterError(ConfigurationError):
    """A URL placeholder has no matching parameter."""

    def __init__(self, route_id: str | None, placeholder: str):
        self.placeholder = placeholder
        super().__init__(
            f"Missing value for path parameter ':{placeholder}'",
            route_id=route_id,
        )


# Admission errors


class AdmissionError(OrchestrationError):
    """Request refused before reaching the network."""

    pass


class RateLimitExceededError(AdmissionError):
    """Rate limit exceeded."""

    def __init__(self, route_id: str, retry_after: float | None = None):
        self.retry_after = retry_after
        msg = f"Rate limit exceeded for route '{route_id}'"
        if retry_after:
            msg += f", retry after {retry_after:.1f}s"
        super().__init__(msg, route_id=route_id)


class CircuitBreakerOpenError(AdmissionError):
    """Circuit breaker is open, request blocked."""

    def __init__(self, route_id: str, reset_after_seconds: float):
        self.reset_after_seconds = reset_after_seconds
        super().__init__(
            f"Circuit breaker is OPEN for route '{route_id}', "
            f"retry after {reset_after_seconds:.1f}s",
            route_id=route_id,
        )


# Transport errors


class TransportError(OrchestrationError):
    """A single physical request failed."""

    @property
    def is_transient(self) -> bool:
        """Whether a retry could plausibly succeed."""
        return True


class HttpError(TransportError):
    """The server answered with a non-2xx status."""

    TRANSIENT_STATUSES = frozenset({408, 429})

    def __init__(
        self,
        status: int,
        status_text: str = "",
        body: Any = None,
        route_id: str | None = None,
    ):
        self.status = status
        self.status_text = status_text
        self.body = body
        super().__init__(
            f"API request failed: {status} {status_text}".rstrip(),
            route_id=route_id,
        )

    @property
    def is_transient(self) -> bool:
        return self.status >= 500 or self.status in self.TRANSIENT_STATUSES


class NetworkError(TransportError):
    """No response was received at all."""

    def __init__(
        self,
        cause: BaseException | str,
        route_id: str | None = None,
        message: str | None = None,
    ):
        self.cause = cause
        super().__init__(message or f"Network error: {cause}", route_id=route_id)


class RequestTimeoutError(NetworkError):
    """Request timed out."""

    def __init__(self, route_id: str | None, timeout: float):
        self.timeout = timeout
        super().__init__(
            "timeout",
            route_id=route_id,
            message=f"Request to route '{route_id}' timed out after {timeout:.1f}s",
        )


# Exhaustion


class RetriesExhaustedError(OrchestrationError):
    """Every attempt failed with a transient error."""

    def __init__(self, route_id: str, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Request failed after {attempts - 1} retry attempts "
            f"({attempts} attempts total) for route '{route_id}': {last_error}",
            route_id=route_id,
        )

    @property
    def is_transient(self) -> bool:
        return True
