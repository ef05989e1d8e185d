"""Bounded asyncio worker pool over a shared index counter."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


async def run_bounded(
    count: int,
    concurrency: int,
    handler: Callable[[int], Awaitable[T]],
    stop: asyncio.Event | None = None,
) -> list[T | None]:
    """Run ``handler(i)`` for ``i in range(count)`` with at most *concurrency* in flight.

    Each logical worker claims the next unclaimed index, awaits the handler and
    loops. Results land in the slot of their index, so completion order never
    changes output order. Setting *stop* prevents new claims; handlers already
    running finish normally. Slots never claimed stay None.
    """
    results: list[T | None] = [None] * count
    next_index = 0

    async def worker() -> None:
        nonlocal next_index
        while True:
            if stop is not None and stop.is_set():
                return
            if next_index >= count:
                return
            # Claim and increment happen without an await in between
            index = next_index
            next_index += 1
            results[index] = await handler(index)

    n_workers = max(1, min(concurrency, count))
    await asyncio.gather(*(worker() for _ in range(n_workers)))
    return results
