"""
CacheManager - Async-compatible response cache keyed by route and parameters.

Features:
- Entries keyed by (route_id, serialized params), order independent
- TTL per entry, expiry evaluated lazily on read
- Bounded size with oldest-entry eviction
- Per-route or full invalidation
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Generic, Mapping, TypeVar

from loguru import logger

from routeflow.services.clock import Clock, SystemClock

T = TypeVar("T")


def serialize_params(params: Mapping[str, Any] | None) -> str:
    """Stable serialization: equal parameter sets always produce equal keys."""
    if not params:
        return ""
    return json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)


@dataclass
class CacheEntry(Generic[T]):
    """Cached payload for one (route, params) pair."""

    data: T
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


@dataclass
class CacheResult(Generic[T]):
    """A fresh hit and how old it is in seconds."""

    data: T
    age: float


class CacheManager:
    """
    Response cache shared by every route of one orchestrator.

    Usage:
        cache = CacheManager(max_size=500)

        result = await cache.get("user.get", {"id": 1})
        if result:
            return result.data

        data = await fetch_data()
        await cache.set("user.get", {"id": 1}, data, ttl=300)
    """

    def __init__(
        self,
        clock: Clock | None = None,
        max_size: int = 500,
        debug: bool = False,
    ):
        self._memory: dict[str, dict[str, CacheEntry[Any]]] = {}
        self._clock = clock or SystemClock()
        self._max_size = max_size
        self._debug = debug
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    async def get(
        self, route_id: str, params: Mapping[str, Any] | None = None
    ) -> CacheResult[Any] | None:
        """
        Get value from cache.

        Returns CacheResult if found and fresh, None otherwise.
        """
        key = serialize_params(params)
        async with self._lock:
            entries = self._memory.get(route_id)
            entry = entries.get(key) if entries else None

            if entry is None:
                self._stats.misses += 1
                self._log(f"MISS: {route_id} {key[:50]}")
                return None

            now = self._clock.now()
            if entry.is_expired(now):
                del entries[key]
                self._stats.misses += 1
                self._log(f"EXPIRED: {route_id} {key[:50]}")
                return None

            self._stats.hits += 1
            self._log(f"HIT: {route_id} {key[:50]}")
            return CacheResult(data=entry.data, age=now - entry.created_at)

    async def set(
        self,
        route_id: str,
        params: Mapping[str, Any] | None,
        data: Any,
        ttl: float,
    ) -> None:
        """
        Set value in cache.

        Args:
            route_id: Route the response belongs to
            params: Request parameters the response was produced for
            data: Payload to cache
            ttl: Time to live in seconds
        """
        key = serialize_params(params)
        entry = CacheEntry(data=data, created_at=self._clock.now(), ttl=ttl)

        async with self._lock:
            entries = self._memory.setdefault(route_id, {})
            if key not in entries and self._size() >= self._max_size:
                self._evict_oldest()

            entries[key] = entry
            self._log(f"SET: {route_id} {key[:50]} (TTL: {ttl}s)")

    async def clear(self, route_id: str | None = None) -> int:
        """Clear one route's entries, or every entry. Returns count removed."""
        async with self._lock:
            if route_id is None:
                count = self._size()
                self._memory.clear()
            else:
                count = len(self._memory.pop(route_id, {}))
            self._log(f"CLEAR: {count} entries removed ({route_id or 'all routes'})")
            return count

    async def cleanup_expired(self) -> int:
        """Drop expired entries of every route. Returns how many were dropped."""
        now = self._clock.now()
        async with self._lock:
            removed = 0
            for entries in self._memory.values():
                expired_keys = [k for k, v in entries.items() if v.is_expired(now)]
                for key in expired_keys:
                    del entries[key]
                removed += len(expired_keys)

            if removed:
                self._log(f"CLEANUP: {removed} expired entries removed")

            return removed

    def _size(self) -> int:
        return sum(len(entries) for entries in self._memory.values())

    def _evict_oldest(self) -> None:
        """Evict the oldest entry across all routes."""
        oldest: tuple[str, str] | None = None
        oldest_at = float("inf")
        for route_id, entries in self._memory.items():
            for key, entry in entries.items():
                if entry.created_at < oldest_at:
                    oldest, oldest_at = (route_id, key), entry.created_at

        if oldest is None:
            return

        route_id, key = oldest
        del self._memory[route_id][key]
        self._stats.evictions += 1
        self._log(f"EVICT: {route_id} {key[:50]}")

    def get_stats(self) -> "CacheStats":
        """Counters plus the current entry count."""
        self._stats.size = self._size()
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheManager] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Hits over lookups, 0.0 before the first lookup."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
