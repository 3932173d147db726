"""Tests for the shared cancellable waits."""

import asyncio

import pytest

from stackhub.core.lock import InstanceLocks
from stackhub.core.waiting import bounded, poll_until


class TestPollUntil:
    async def test_stops_on_first_success(self) -> None:
        attempts: list[int] = []

        async def probe(attempt: int) -> bool:
            attempts.append(attempt)
            return attempt == 2

        assert await poll_until(probe, interval=0, attempts=5) is True
        assert attempts == [1, 2]

    async def test_gives_up_after_ceiling(self) -> None:
        async def probe(attempt: int) -> bool:
            return False

        assert await poll_until(probe, interval=0, attempts=3) is False


class TestBounded:
    async def test_returns_result(self) -> None:
        async def work() -> int:
            return 7

        async def on_timeout() -> None:
            raise AssertionError("not expected")

        assert await bounded(work(), 1, on_timeout=on_timeout) == 7

    async def test_timeout_runs_hook(self) -> None:
        fired = asyncio.Event()

        async def on_timeout() -> None:
            fired.set()

        with pytest.raises(asyncio.TimeoutError):
            await bounded(asyncio.sleep(10), 0.01, on_timeout=on_timeout)

        assert fired.is_set()


class TestInstanceLocks:
    def test_same_lock_per_instance(self) -> None:
        locks = InstanceLocks()

        assert locks.get("a") is locks.get("a")
        assert locks.get("a") is not locks.get("b")

    async def test_discard_keeps_held_lock(self) -> None:
        locks = InstanceLocks()
        lock = locks.get("a")

        async with lock:
            locks.discard("a")
            assert locks.get("a") is lock

        locks.discard("a")
        assert locks.get("a") is not lock
