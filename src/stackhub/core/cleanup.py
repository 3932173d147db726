"""Best-effort teardown of an instance's containers and artifacts.

Cleanup is the failure-recovery path, so it never raises: every failed
step is logged as a warning and counted, and the next step still runs.
Running it twice is harmless.
"""

import asyncio
import logging
import shutil
from pathlib import Path

from stackhub.config import ProvisioningConfig
from stackhub.core.naming import ArtifactNaming
from stackhub.infra.compose import ComposeCLI
from stackhub.infra.docker import ContainerAPI, container_names
from stackhub.logging_schema import LogEvent
from stackhub.metrics import STACKHUB_CLEANUP_FAILURES

logger = logging.getLogger(__name__)


def _remove_path(path: Path) -> bool:
    """Remove a file or directory tree. Returns False if nothing was there."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        return True
    if path.exists() or path.is_symlink():
        path.unlink()
        return True
    return False


class Cleanup:
    """Idempotent teardown keyed by instance id."""

    def __init__(
        self,
        config: ProvisioningConfig,
        naming: ArtifactNaming,
        compose: ComposeCLI,
        containers: ContainerAPI,
    ) -> None:
        self._timeout = config.cleanup_timeout
        self._naming = naming
        self._compose = compose
        self._containers = containers

    async def run(self, instance_id: str) -> None:
        """Bring down containers and volumes, then delete generated artifacts."""
        logger.info(
            "Cleanup started",
            extra={"event": LogEvent.CLEANUP_STARTED, "instance_id": instance_id},
        )

        if not await self._compose_down(instance_id):
            await self._remove_containers(instance_id)
        await self._remove_artifacts(instance_id)

        logger.info(
            "Cleanup completed",
            extra={"event": LogEvent.CLEANUP_COMPLETED, "instance_id": instance_id},
        )

    async def _compose_down(self, instance_id: str) -> bool:
        if not self._naming.has_definition(instance_id):
            return False
        try:
            await self._compose.down(
                self._naming.compose_file(instance_id),
                self._naming.env_file(instance_id),
                timeout=self._timeout,
                volumes=True,
            )
        except Exception as e:
            self._warn("compose_down", instance_id, e)
            return False
        logger.info("Containers removed", extra={"instance_id": instance_id})
        return True

    async def _remove_containers(self, instance_id: str) -> None:
        """Remove matching containers through the runtime API.

        Used when the compose definition is gone or compose down failed.
        """
        try:
            found = await self._containers.list(
                filters={"name": [self._naming.container_pattern(instance_id)]},
                all=True,
            )
        except Exception as e:
            self._warn("remove_containers", instance_id, e)
            return

        for name in container_names(found):
            try:
                await self._containers.remove(name, force=True, volumes=True)
            except Exception as e:
                self._warn("remove_containers", instance_id, e, target=name)

    async def _remove_artifacts(self, instance_id: str) -> None:
        for path in self._naming.artifacts(instance_id):
            try:
                removed = await asyncio.to_thread(_remove_path, path)
            except OSError as e:
                self._warn("remove_artifact", instance_id, e, target=str(path))
                continue
            if removed:
                logger.debug(
                    "Artifact removed",
                    extra={"instance_id": instance_id, "file": str(path)},
                )

    @staticmethod
    def _warn(step: str, instance_id: str, error: Exception, target: str | None = None) -> None:
        STACKHUB_CLEANUP_FAILURES.labels(step=step).inc()
        logger.warning(
            "Cleanup step %s failed: %s",
            step,
            error,
            extra={
                "event": LogEvent.CLEANUP_FAILED,
                "instance_id": instance_id,
                "step": step,
                "target": target,
            },
        )
