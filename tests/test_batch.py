import asyncio
from typing import Any, Mapping

import pytest

from routeflow.services import BatchCoordinator, BatchItem, BatchResult


class RecordingRequester:
    """Fake request function that tracks start order and concurrency."""

    def __init__(self, failing: set[Any] | None = None) -> None:
        self.started: list[Any] = []
        self.in_flight = 0
        self.peak = 0
        self.failing = failing or set()

    async def __call__(self, route_id: str, params: Mapping[str, Any] | None) -> Any:
        item_id = (params or {}).get("id")
        self.started.append(item_id)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            # Later items finish first
            for _ in range(10 - int(item_id or 0)):
                await asyncio.sleep(0)
            if item_id in self.failing:
                raise RuntimeError(f"API request failed: 404 Not Found ({item_id})")
            return {"route": route_id, "id": item_id}
        finally:
            self.in_flight -= 1


@pytest.mark.asyncio()
async def test_results_keep_input_order() -> None:
    requester = RecordingRequester()
    coordinator = BatchCoordinator(requester, max_concurrency=5)

    results = await coordinator.run([("batch.item", {"id": i}) for i in range(6)])

    assert [r.data["id"] for r in results] == list(range(6))
    assert all(r.success for r in results)


@pytest.mark.asyncio()
async def test_failures_are_isolated_per_item() -> None:
    requester = RecordingRequester(failing={1, 3})
    coordinator = BatchCoordinator(requester)

    results = await coordinator.run([BatchItem("batch.item", {"id": i}) for i in range(4)])

    assert [r.success for r in results] == [True, False, True, False]
    assert "404" in results[1].error
    assert isinstance(results[3].exception, RuntimeError)
    assert results[1].to_dict() == {"success": False, "error": results[1].error}
    assert results[0].to_dict() == {"success": True, "data": {"route": "batch.item", "id": 0}}
    assert coordinator.get_stats().failures == 2


@pytest.mark.asyncio()
async def test_concurrency_is_bounded_and_dispatch_is_fifo() -> None:
    requester = RecordingRequester()
    coordinator = BatchCoordinator(requester, max_concurrency=10)

    results = await coordinator.run(
        [("batch.item", {"id": i}) for i in range(10)], concurrency=3
    )

    assert len(results) == 10
    assert requester.peak == 3
    assert coordinator.get_stats().peak_in_flight == 3
    # The first three start together; the rest follow in queue order
    assert requester.started[:3] == [0, 1, 2]
    assert sorted(requester.started) == list(range(10))
    assert requester.started[3:] == sorted(requester.started[3:])


@pytest.mark.asyncio()
async def test_default_concurrency_comes_from_coordinator() -> None:
    requester = RecordingRequester()
    coordinator = BatchCoordinator(requester, max_concurrency=2)

    await coordinator.run([("r", {"id": i}) for i in range(5)])

    assert requester.peak == 2


@pytest.mark.asyncio()
async def test_items_accept_mappings_and_tuples() -> None:
    requester = RecordingRequester()
    coordinator = BatchCoordinator(requester)

    results = await coordinator.run(
        [
            {"routeId": "a", "data": {"id": 1}},
            {"route_id": "b", "params": {"id": 2}},
            ("c", None),
        ]
    )

    assert [r.route_id for r in results] == ["a", "b", "c"]
    assert all(isinstance(r, BatchResult) and r.success for r in results)


@pytest.mark.asyncio()
async def test_empty_batch_and_invalid_concurrency() -> None:
    coordinator = BatchCoordinator(RecordingRequester())

    assert await coordinator.run([]) == []
    with pytest.raises(ValueError):
        await coordinator.run([("r", None)], concurrency=0)
    with pytest.raises(ValueError):
        BatchCoordinator(RecordingRequester(), max_concurrency=0)
    with pytest.raises(ValueError):
        await coordinator.run([{"params": {}}])
