from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Union

import httpx
import pytest
import pytest_asyncio

from routeflow.services import ManualClock, RouteOrchestrator, create_orchestrator

BASE_URL = "https://api.test"

Outcome = Union[
    httpx.Response, Exception, Callable[[httpx.Request], Awaitable[httpx.Response]]
]


class FakeBackend:
    """Scripted HTTP backend for httpx.MockTransport."""

    def __init__(self, clock: ManualClock | None = None) -> None:
        self.calls: list[httpx.Request] = []
        self.payload: Any = {"data": "test response"}
        self.latency = 0.0
        self.in_flight = 0
        self.peak_in_flight = 0
        self._clock = clock
        self._queue: list[Outcome] = []
        self._by_path: dict[str, httpx.Response] = {}

    def queue(self, *outcomes: Outcome) -> None:
        self._queue.extend(outcomes)

    def respond_for_path(self, path: str, response: httpx.Response) -> None:
        self._by_path[path] = response

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            # Let other in-flight requests interleave
            await asyncio.sleep(0)
            if self._clock is not None and self.latency:
                self._clock.advance(self.latency)

            if request.url.path in self._by_path:
                return self._by_path[request.url.path]
            if self._queue:
                outcome = self._queue.pop(0)
                if isinstance(outcome, Exception):
                    raise outcome
                if callable(outcome):
                    return await outcome(request)
                return outcome
            return httpx.Response(200, json=self.payload)
        finally:
            self.in_flight -= 1


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def backend(clock: ManualClock) -> FakeBackend:
    return FakeBackend(clock)


@pytest.fixture()
def mock_transport(backend: FakeBackend) -> httpx.MockTransport:
    return httpx.MockTransport(backend.handler)


@pytest_asyncio.fixture()
async def orchestrator(clock: ManualClock, mock_transport: httpx.MockTransport):
    orch: RouteOrchestrator = create_orchestrator(
        base_url=BASE_URL, clock=clock, transport=mock_transport
    )
    yield orch
    await orch.close()
