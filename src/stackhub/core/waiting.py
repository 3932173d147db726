"""Cancellable waits shared by provisioning and validation.

All waits suspend on asyncio primitives, so a cancelled caller stops
waiting immediately and nothing busy-loops.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


async def settle(delay: float) -> None:
    """Pause to let asynchronous container startup progress."""
    if delay > 0:
        await asyncio.sleep(delay)


async def poll_until(
    probe: Callable[[int], Awaitable[bool]],
    *,
    interval: float,
    attempts: int,
) -> bool:
    """Run probe up to attempts times, interval seconds apart.

    Args:
        probe: Async predicate receiving the 1-based attempt number
        interval: Delay between attempts (seconds)
        attempts: Maximum number of probes

    Returns:
        True as soon as a probe succeeds, False once attempts are exhausted.
    """
    for attempt in range(1, attempts + 1):
        if await probe(attempt):
            return True
        if attempt < attempts:
            await settle(interval)
    return False


async def bounded(
    awaitable: Awaitable[T],
    timeout: float,
    *,
    on_timeout: Callable[[], Awaitable[None]],
) -> T:
    """Await with a hard deadline.

    When the deadline passes, on_timeout runs (e.g. killing a process) and
    asyncio.TimeoutError is re-raised.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError:
        await on_timeout()
        raise
