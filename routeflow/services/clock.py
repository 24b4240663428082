"""
Time sources for windows, TTLs and backoff.

Components never read the wall clock directly; they take a Clock so tests
can drive virtual time with ManualClock instead of sleeping.
"""

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic time source measured in seconds."""

    def now(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Real time, backed by time.monotonic and asyncio.sleep."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


class ManualClock:
    """
    Virtual clock that only moves when told to.

    Usage:
        clock = ManualClock()
        clock.advance(1.1)  # one rate limit window later

    sleep() advances the virtual time by the requested amount and yields
    to the event loop once, so backoff delays complete instantly.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("Cannot move a clock backwards")
        self._now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(max(0.0, seconds))
        await asyncio.sleep(0)
