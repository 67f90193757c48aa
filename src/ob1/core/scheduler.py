"""Bounded fan-out/fan-in for agent executions."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def run_bounded(
    items: Sequence[T],
    limit: int,
    worker: Callable[[T], Awaitable[R]],
) -> list[R | BaseException]:
    """Run `worker` over `items` with at most `limit` invocations in flight.

    Items are admitted in order as slots free up. Every item is awaited to
    completion; an exception from one worker is returned in that item's slot
    and does not stop the others.
    """
    if limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit}")

    semaphore = asyncio.Semaphore(limit)

    async def admit(item: T) -> R:
        async with semaphore:
            return await worker(item)

    return await asyncio.gather(*(admit(item) for item in items), return_exceptions=True)
