"""Bounded concurrency helper for I/O fan-out."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def map_bounded(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    concurrency: int = 1,
) -> list[R]:
    """
    Run an async worker over items with at most ``concurrency`` in flight.

    Args:
        items: Input items.
        worker: Coroutine function applied to each item.
        concurrency: Maximum concurrent calls. Values below 1 mean 1.

    Returns:
        Worker results in input order.

    Raises:
        Exception: The first worker error; pending workers are cancelled.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def run_one(item: T) -> R:
        async with semaphore:
            return await worker(item)

    tasks = [asyncio.create_task(run_one(item)) for item in items]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
