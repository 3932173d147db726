"""Prerequisite checklist for instance creation."""

import asyncio
import logging
import os
import stat

from pydantic import BaseModel

from stackhub.core.naming import ArtifactNaming
from stackhub.infra.compose import ComposeCLI
from stackhub.infra.docker import ContainerAPI
from stackhub.infra.process import CommandError
from stackhub.logging_schema import LogEvent

logger = logging.getLogger(__name__)


class PrerequisiteReport(BaseModel):
    """Checklist reported to callers when the system is not ready."""

    docker: bool = False
    docker_compose: bool = False
    generate_script: bool = False
    templates: bool = False

    @property
    def ready(self) -> bool:
        return all((self.docker, self.docker_compose, self.generate_script, self.templates))

    @property
    def failed(self) -> list[str]:
        return [name for name, ok in self.model_dump().items() if not ok]


def _ensure_executable(path: os.PathLike[str]) -> bool:
    if os.access(path, os.X_OK):
        return True
    try:
        mode = os.stat(path).st_mode
        os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    except OSError as e:
        logger.warning("Failed to make provisioning script executable: %s", e)
        return False
    return os.access(path, os.X_OK)


class PrerequisiteChecker:
    """Checks runtime, compose, provisioning script and templates."""

    def __init__(
        self,
        naming: ArtifactNaming,
        containers: ContainerAPI,
        compose: ComposeCLI,
    ) -> None:
        self._naming = naming
        self._containers = containers
        self._compose = compose

    async def check(self) -> PrerequisiteReport:
        report = PrerequisiteReport()

        report.docker = await self._containers.ping()
        if not report.docker:
            logger.error("Docker is not available")

        try:
            version = await self._compose.version()
            report.docker_compose = True
            logger.debug("Docker Compose available: %s", version)
        except CommandError as e:
            logger.error("Docker Compose is not available: %s", e)

        script = self._naming.script_path
        if script.is_file():
            report.generate_script = await asyncio.to_thread(_ensure_executable, script)
        else:
            logger.error("Provisioning script not found", extra={"path": str(script)})

        missing = [str(p) for p in self._naming.template_paths if not p.exists()]
        report.templates = not missing
        if missing:
            logger.error("Templates not found", extra={"missing": missing})

        logger.info(
            "Prerequisites checked",
            extra={"event": LogEvent.PREREQUISITES_CHECKED, **report.model_dump()},
        )
        return report
