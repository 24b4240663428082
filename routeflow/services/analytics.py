"""
AnalyticsRecorder - Per-route and global request statistics.

Only raw counters are stored; rates and averages are derived when read.
Recording never raises: observability must not change request outcomes.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Mapping

from loguru import logger

from routeflow.services.clock import Clock, SystemClock

GLOBAL_KEY = "__global__"


@dataclass
class AnalyticsRecord:
    """Raw counters for one route (or the global aggregate)."""

    total_requests: int = 0
    successes: int = 0
    errors: int = 0
    cache_hits: int = 0
    network_requests: int = 0
    total_latency_ms: float = 0.0
    last_used: float | None = None
    request_patterns: Counter = field(default_factory=Counter)


@dataclass(frozen=True)
class RouteAnalytics:
    """Read-only view of an AnalyticsRecord with derived values."""

    route_id: str
    total_requests: int
    successes: int
    errors: int
    cache_hits: int
    network_requests: int
    success_rate: float
    error_rate: float
    cache_hit_rate: float
    average_response_time: float
    last_used: float | None
    request_patterns: dict[str, int]
    priority: str | None = None
    active_routes: int = 0
    performance_score: int = 0

    @classmethod
    def from_record(
        cls, route_id: str, record: AnalyticsRecord, **extra: Any
    ) -> "RouteAnalytics":
        total = record.total_requests
        return cls(
            route_id=route_id,
            total_requests=total,
            successes=record.successes,
            errors=record.errors,
            cache_hits=record.cache_hits,
            network_requests=record.network_requests,
            success_rate=_percent(record.successes, total),
            error_rate=_percent(record.errors, total),
            cache_hit_rate=_percent(record.cache_hits, total),
            average_response_time=(
                record.total_latency_ms / record.network_requests
                if record.network_requests
                else 0.0
            ),
            last_used=record.last_used,
            request_patterns=dict(record.request_patterns),
            **extra,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "route_id": self.route_id,
            "total_requests": self.total_requests,
            "successes": self.successes,
            "errors": self.errors,
            "cache_hits": self.cache_hits,
            "network_requests": self.network_requests,
            "success_rate": round(self.success_rate, 2),
            "error_rate": round(self.error_rate, 2),
            "cache_hit_rate": round(self.cache_hit_rate, 2),
            "average_response_time": round(self.average_response_time, 2),
            "last_used": self.last_used,
            "request_patterns": self.request_patterns,
            "priority": self.priority,
            "active_routes": self.active_routes,
            "performance_score": self.performance_score,
        }


def _percent(part: int, whole: int) -> float:
    return part / whole * 100 if whole else 0.0


def pattern_of(params: Mapping[str, Any] | None) -> str:
    """Signature of a request's parameter shape, e.g. 'category,id'."""
    if not params:
        return "-"
    return ",".join(sorted(str(key) for key in params))


def performance_score(success_rate: float, average_response_ms: float) -> int:
    """
    Score 0-100: up to 50 points for reliability and 50 for speed.

    Speed loses 10 points per second of average latency.
    """
    success_score = success_rate / 100 * 50
    speed_score = max(0.0, 50 - average_response_ms / 1000 * 10)
    return round(success_score + speed_score)


class AnalyticsRecorder:
    """
    Accumulates request outcomes.

    Usage:
        recorder = AnalyticsRecorder()
        recorder.record_request("user.get", latency_ms=42.0, success=True)
        recorder.get_route_analytics("user.get").success_rate
    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or SystemClock()
        self._records: dict[str, AnalyticsRecord] = {}
        self._global = AnalyticsRecord()

    def record_request(
        self,
        route_id: str,
        latency_ms: float,
        success: bool,
        cache_hit: bool = False,
        params: Mapping[str, Any] | None = None,
    ) -> None:
        """Record one logical request. Never raises."""
        try:
            latency = max(0.0, float(latency_ms))
            now = self._clock.now()
            pattern = pattern_of(params)
            record = self._records.setdefault(route_id, AnalyticsRecord())
            for target in (record, self._global):
                self._apply(target, latency, success, cache_hit, pattern, now)
        except Exception:
            logger.exception(f"Failed to record analytics for route '{route_id}'")

    @staticmethod
    def _apply(
        record: AnalyticsRecord,
        latency_ms: float,
        success: bool,
        cache_hit: bool,
        pattern: str,
        now: float,
    ) -> None:
        record.total_requests += 1
        if success:
            record.successes += 1
        else:
            record.errors += 1
        if cache_hit:
            record.cache_hits += 1
        else:
            record.network_requests += 1
            record.total_latency_ms += latency_ms
        record.request_patterns[pattern] += 1
        record.last_used = now

    def average_latency_ms(self, route_id: str) -> float | None:
        """Mean network latency of a route, None before the first sample."""
        record = self._records.get(route_id)
        if record is None or not record.network_requests:
            return None
        return record.total_latency_ms / record.network_requests

    def get_route_analytics(self, route_id: str, **extra: Any) -> RouteAnalytics:
        record = self._records.get(route_id) or AnalyticsRecord()
        return RouteAnalytics.from_record(route_id, record, **extra)

    def get_global_analytics(self) -> RouteAnalytics:
        record = self._global
        active = sum(1 for r in self._records.values() if r.total_requests)
        score = 0
        if record.total_requests:
            average = (
                record.total_latency_ms / record.network_requests
                if record.network_requests
                else 0.0
            )
            score = performance_score(
                _percent(record.successes, record.total_requests), average
            )
        return RouteAnalytics.from_record(
            GLOBAL_KEY, record, active_routes=active, performance_score=score
        )

    def get_all(self) -> dict[str, RouteAnalytics]:
        return {
            route_id: RouteAnalytics.from_record(route_id, record)
            for route_id, record in self._records.items()
        }

    def reset(self, route_id: str | None = None) -> None:
        """Reset counters. Without a route id everything is cleared."""
        if route_id is None:
            self._records.clear()
            self._global = AnalyticsRecord()
        else:
            self._records.pop(route_id, None)
