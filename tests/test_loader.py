# tests/test_loader.py

import asyncio

import pytest

from src.classroom.loader import StaggeredBatchLoader
from src.classroom.results import Result

FALLBACK = {"value": 0}


def _collector():
    published: dict = {}
    order: list = []

    def publish(key, value):
        published[key] = value
        order.append(key)

    return published, order, publish


async def test_one_failure_does_not_affect_siblings():
    published, _, publish = _collector()
    loader = StaggeredBatchLoader(priority_size=3, interval=0.001)

    async def fetch(key):
        if key == "e4":
            return Result.fail("boom")
        return Result.ok({"value": key})

    entities = [f"e{i}" for i in range(10)]
    await loader.load_all(entities, fetch, publish, fallback=FALLBACK)
    await asyncio.wait_for(loader.wait(), timeout=2)

    assert len(published) == 10
    assert published["e4"] == FALLBACK
    assert all(published[k] == {"value": k} for k in entities if k != "e4")
    assert loader.progress == (10, 10)


async def test_raised_exception_publishes_fallback():
    published, _, publish = _collector()
    loader = StaggeredBatchLoader(priority_size=2, interval=0.001)

    async def fetch(key):
        if key in ("a", "d"):
            raise RuntimeError("network down")
        return Result.ok(key.upper())

    await loader.load_all(["a", "b", "c", "d"], fetch, publish, fallback="?")
    await asyncio.wait_for(loader.wait(), timeout=2)

    assert published == {"a": "?", "b": "B", "c": "C", "d": "?"}


async def test_priority_tier_runs_concurrently():
    published, _, publish = _collector()
    loader = StaggeredBatchLoader(priority_size=3, interval=0.001)
    started: list[str] = []
    all_started = asyncio.Event()

    async def fetch(key):
        started.append(key)
        if len(started) == 3:
            all_started.set()
        # deadlocks into the fallback if the tier were sequential
        await asyncio.wait_for(all_started.wait(), timeout=0.5)
        return Result.ok(key)

    await loader.load_all(["p1", "p2", "p3"], fetch, publish, fallback=None)

    assert published == {"p1": "p1", "p2": "p2", "p3": "p3"}


async def test_load_all_returns_after_priority_tier():
    published, _, publish = _collector()
    loader = StaggeredBatchLoader(priority_size=2, interval=0.05)

    async def fetch(key):
        return Result.ok(key)

    await loader.load_all(["a", "b", "c", "d", "e"], fetch, publish)

    assert {"a", "b"} <= set(published)
    assert loader.outstanding > 0

    await asyncio.wait_for(loader.wait(), timeout=2)
    assert set(published) == {"a", "b", "c", "d", "e"}
    assert loader.outstanding == 0


async def test_trailing_items_start_in_order():
    _, _, publish = _collector()
    loader = StaggeredBatchLoader(priority_size=1, interval=0.01)
    started: list[str] = []

    async def fetch(key):
        started.append(key)
        return Result.ok(key)

    entities = ["p", "t1", "t2", "t3", "t4"]
    await loader.load_all(entities, fetch, publish)
    await asyncio.wait_for(loader.wait(), timeout=2)

    assert started == entities


async def test_trailing_items_may_resolve_out_of_order():
    published, order, publish = _collector()
    loader = StaggeredBatchLoader(priority_size=0, interval=0.005)
    latency = {"slow": 0.05, "fast": 0.0}

    async def fetch(key):
        await asyncio.sleep(latency[key])
        return Result.ok(key)

    await loader.load_all(["slow", "fast"], fetch, publish)
    await asyncio.wait_for(loader.wait(), timeout=2)

    assert order == ["fast", "slow"]
    assert len(published) == 2


async def test_advisory_signal_fires():
    _, _, publish = _collector()
    loader = StaggeredBatchLoader(priority_size=1, interval=0.001, completion_factor=0.001)
    fired = asyncio.Event()

    async def fetch(key):
        return Result.ok(key)

    await loader.load_all(["a", "b", "c"], fetch, publish, on_advisory_done=fired.set)

    await asyncio.wait_for(fired.wait(), timeout=2)


async def test_empty_entities_is_noop():
    loader = StaggeredBatchLoader()

    async def fetch(key):  # pragma: no cover
        raise AssertionError("should not be called")

    await loader.load_all([], fetch, lambda k, v: None)
    await asyncio.wait_for(loader.wait(), timeout=1)

    assert loader.progress == (0, 0)


async def test_cancel_stops_scheduled_items():
    published, _, publish = _collector()
    loader = StaggeredBatchLoader(priority_size=1, interval=10)

    async def fetch(key):
        return Result.ok(key)

    await loader.load_all(["a", "b", "c"], fetch, publish)
    loader.cancel()
    await asyncio.wait_for(loader.wait(), timeout=1)

    # "b" has no delay and may already have run; "c" was still sleeping
    assert "a" in published
    assert "c" not in published


def test_negative_priority_size_rejected():
    with pytest.raises(ValueError):
        StaggeredBatchLoader(priority_size=-1)


async def test_cancel_during_priority_tier_schedules_nothing():
    published, _, publish = _collector()
    loader = StaggeredBatchLoader(priority_size=1, interval=0.001, completion_factor=0.001)
    advised = []

    async def fetch(key):
        await asyncio.sleep(0.05)
        return Result.ok(key)

    load = asyncio.create_task(
        loader.load_all(["a", "b", "c"], fetch, publish, on_advisory_done=lambda: advised.append(1))
    )
    await asyncio.sleep(0.01)
    loader.cancel()
    await asyncio.wait_for(load, timeout=1)
    await asyncio.sleep(0.1)

    assert published == {}
    assert advised == []
    assert loader.outstanding == 0
    await asyncio.wait_for(loader.wait(), timeout=1)


async def test_publish_error_is_logged_per_item():
    published, _, publish = _collector()
    loader = StaggeredBatchLoader(priority_size=1, interval=0.001)

    def flaky_publish(key, value):
        if key == "b":
            raise RuntimeError("listener broke")
        publish(key, value)

    async def fetch(key):
        return Result.ok(key)

    await loader.load_all(["a", "b", "c"], fetch, flaky_publish)
    await asyncio.wait_for(loader.wait(), timeout=2)

    assert published == {"a": "a", "c": "c"}
    assert loader.progress == (3, 3)
