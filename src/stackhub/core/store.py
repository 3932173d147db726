"""File-backed instance store.

The whole collection is one JSON document:
    {"instances": [ {...}, {...} ]}

Every mutation rewrites the whole document. Writes go to a temporary file
in the same directory and are moved into place with os.replace, so readers
see either the old or the new collection, never a partial one.

Concurrent read-modify-write cycles are serialized by transaction():

    async with store.transaction() as instances:
        instances.append(instance)
    # saved here, unless the block raised
"""

import asyncio
import logging
import os
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import pydantic
from pydantic import BaseModel, Field

from stackhub.core.models import Instance
from stackhub.errors import StoreIOError
from stackhub.logging_schema import LogEvent

logger = logging.getLogger(__name__)


class _Document(BaseModel):
    instances: list[Instance] = Field(default_factory=list)


class InstanceStore:
    """Durable, ordered collection of instance records."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def init(self) -> None:
        """Create the data directory and an empty document if missing."""
        await asyncio.to_thread(self._init_sync)

    def _init_sync(self) -> None:
        if self._path.exists():
            return
        self._write([])
        logger.info("Initialized instance store", extra={"path": str(self._path)})

    async def load(self) -> list[Instance]:
        """Load all instances in insertion order.

        Raises:
            StoreIOError: If the document cannot be read or parsed
        """
        return await asyncio.to_thread(self._read)

    async def save(self, instances: list[Instance]) -> None:
        """Atomically replace the persisted collection.

        Raises:
            StoreIOError: If the document cannot be written
        """
        await asyncio.to_thread(self._write, instances)
        logger.debug(
            "Instances saved",
            extra={"event": LogEvent.STORE_SAVED, "count": len(instances)},
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[list[Instance]]:
        """Serialized load -> mutate -> save.

        The yielded list is saved when the block exits normally. If the
        block raises, nothing is written.
        """
        async with self._lock:
            instances = await self.load()
            yield instances
            await self.save(instances)

    def _read(self) -> list[Instance]:
        if not self._path.exists():
            return []
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreIOError(f"Failed to read {self._path}: {e}") from e
        if not raw.strip():
            return []
        try:
            return _Document.model_validate_json(raw).instances
        except pydantic.ValidationError as e:
            raise StoreIOError(f"Corrupt instance store {self._path}: {e}") from e

    def _write(self, instances: list[Instance]) -> None:
        payload = _Document(instances=instances).model_dump_json(indent=2)
        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as fh:
                tmp_name = fh.name
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StoreIOError(f"Failed to write {self._path}: {e}") from e
