"""Tests for bounded concurrent execution."""

import asyncio

import pytest

from ob1.core.scheduler import run_bounded


def test_never_exceeds_limit():
    in_flight = 0
    peak = 0

    async def worker(item):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return item * 2

    results = asyncio.run(run_bounded(list(range(8)), 3, worker))
    assert results == [0, 2, 4, 6, 8, 10, 12, 14]
    assert peak == 3


def test_admits_in_order():
    started = []

    async def worker(item):
        started.append(item)
        await asyncio.sleep(0.01)

    asyncio.run(run_bounded(["a", "b", "c", "d"], 1, worker))
    assert started == ["a", "b", "c", "d"]


def test_failures_are_returned_not_raised():
    async def worker(item):
        if item == 1:
            raise RuntimeError("bad item")
        await asyncio.sleep(0.01)
        return item

    results = asyncio.run(run_bounded([0, 1, 2], 2, worker))
    assert results[0] == 0
    assert isinstance(results[1], RuntimeError)
    assert results[2] == 2


def test_empty():
    async def worker(item):
        return item

    assert asyncio.run(run_bounded([], 2, worker)) == []


def test_invalid_limit():
    async def worker(item):
        return item

    with pytest.raises(ValueError):
        asyncio.run(run_bounded([1], 0, worker))
