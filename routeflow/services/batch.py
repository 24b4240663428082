"""
BatchCoordinator - Runs many route requests through a bounded worker pool.

A FIFO queue feeds at most `concurrency` workers; each worker pulls the next
pending item as soon as its current one resolves. Every item gets its own
result and no single failure aborts the batch.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Mapping, Union

from loguru import logger

RequestFn = Callable[[str, Mapping[str, Any] | None], Awaitable[Any]]


@dataclass
class BatchItem:
    """One request of a batch."""

    route_id: str
    params: Mapping[str, Any] | None = None

    @classmethod
    def coerce(cls, item: "BatchItemLike") -> "BatchItem":
        if isinstance(item, BatchItem):
            return item
        if isinstance(item, Mapping):
            route_id = item.get("route_id", item.get("routeId"))
            params = item.get("params", item.get("data"))
            if route_id is None:
                raise ValueError(f"Batch item has no route id: {item!r}")
            return cls(route_id=route_id, params=params)
        route_id, params = item
        return cls(route_id=route_id, params=params)


BatchItemLike = Union[BatchItem, Mapping[str, Any], tuple[str, Mapping[str, Any] | None]]


@dataclass
class BatchResult:
    """Outcome of one batch item."""

    route_id: str
    success: bool
    data: Any = None
    error: str | None = None
    exception: Exception | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        if self.success:
            result["data"] = self.data
        else:
            result["error"] = self.error
        return result


class BatchCoordinator:
    """
    Bounded-concurrency executor for batches of route requests.

    Usage:
        coordinator = BatchCoordinator(orchestrator.request, max_concurrency=10)
        results = await coordinator.run([("user.get", {"id": 1}), ("user.get", {"id": 2})])
    """

    def __init__(self, request_fn: RequestFn, max_concurrency: int = 10):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._request_fn = request_fn
        self._max_concurrency = max_concurrency
        self._in_flight = 0
        self._stats = BatchStats()

    async def run(
        self,
        items: Iterable[BatchItemLike],
        concurrency: int | None = None,
    ) -> list[BatchResult]:
        """
        Execute every item, returning results in input order.

        Requests already handed to the network are shielded: cancelling the
        batch leaves them running to completion.
        """
        batch = [BatchItem.coerce(item) for item in items]
        if concurrency is not None and concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if not batch:
            return []

        limit = min(concurrency or self._max_concurrency, len(batch))
        queue: asyncio.Queue[tuple[int, BatchItem]] = asyncio.Queue()
        for position, item in enumerate(batch):
            queue.put_nowait((position, item))

        results: list[BatchResult | None] = [None] * len(batch)
        self._stats.batches += 1
        self._stats.items += len(batch)
        logger.debug(f"Batch of {len(batch)} requests, {limit} workers")

        workers = [
            asyncio.create_task(self._worker(queue, results)) for _ in range(limit)
        ]
        try:
            await asyncio.gather(*workers)
        except asyncio.CancelledError:
            for worker in workers:
                worker.cancel()
            raise

        return [result for result in results if result is not None]

    async def _worker(
        self,
        queue: "asyncio.Queue[tuple[int, BatchItem]]",
        results: list[BatchResult | None],
    ) -> None:
        while True:
            try:
                position, item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            results[position] = await self._execute(item)

    async def _execute(self, item: BatchItem) -> BatchResult:
        self._in_flight += 1
        self._stats.peak_in_flight = max(self._stats.peak_in_flight, self._in_flight)
        try:
            data = await asyncio.shield(self._request_fn(item.route_id, item.params))
        except Exception as e:
            self._stats.failures += 1
            logger.debug(f"Batch item '{item.route_id}' failed: {e}")
            return BatchResult(
                route_id=item.route_id, success=False, error=str(e), exception=e
            )
        finally:
            self._in_flight -= 1

        return BatchResult(route_id=item.route_id, success=True, data=data)

    def get_stats(self) -> "BatchStats":
        self._stats.in_flight = self._in_flight
        return self._stats


@dataclass
class BatchStats:
    """Statistics for batch execution."""

    batches: int = 0
    items: int = 0
    failures: int = 0
    in_flight: int = 0
    peak_in_flight: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "batches": self.batches,
            "items": self.items,
            "failures": self.failures,
            "in_flight": self.in_flight,
            "peak_in_flight": self.peak_in_flight,
        }
