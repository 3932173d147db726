"""Per-instance locks for runtime operations."""

import asyncio


class InstanceLocks:
    """Get or create a per-instance lock.

    Prevents two operations (create, start, stop, delete) from acting on
    the same instance's containers at the same time.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, instance_id: str) -> asyncio.Lock:
        if instance_id not in self._locks:
            self._locks[instance_id] = asyncio.Lock()
        return self._locks[instance_id]

    def discard(self, instance_id: str) -> None:
        """Forget the lock of a deleted instance."""
        lock = self._locks.get(instance_id)
        if lock is not None and not lock.locked():
            del self._locks[instance_id]
