"""Docker Compose CLI wrapper for per-instance bring-up and bring-down."""

import logging
from pathlib import Path

from stackhub.config import DockerConfig
from stackhub.infra.process import CommandError, run_command

logger = logging.getLogger(__name__)

VERSION_TIMEOUT = 30.0


class ComposeCLI:
    """Runs docker compose against a generated definition and env file.

    The plugin form (docker compose) is preferred. When only the legacy
    binary (docker-compose) answers version(), it is used from then on.
    """

    def __init__(self, config: DockerConfig, workdir: str | Path) -> None:
        self._primary = list(config.compose_command)
        self._legacy = list(config.legacy_compose_command)
        self._command = list(self._primary)
        self._workdir = Path(workdir)

    @property
    def command(self) -> list[str]:
        return list(self._command)

    async def version(self) -> str:
        """Return the compose version string.

        Raises:
            CommandError: Neither the plugin nor the legacy binary is available
        """
        try:
            result = await run_command([*self._primary, "version"], timeout=VERSION_TIMEOUT)
            self._command = list(self._primary)
        except CommandError as primary_error:
            logger.debug("Compose plugin unavailable: %s", primary_error)
            result = await run_command([*self._legacy, "--version"], timeout=VERSION_TIMEOUT)
            self._command = list(self._legacy)
        return result.stdout.strip()

    def _base_args(self, compose_file: Path, env_file: Path) -> list[str]:
        return [*self._command, "-f", str(compose_file), "--env-file", str(env_file)]

    async def up(self, compose_file: Path, env_file: Path, *, timeout: float) -> None:
        """Start all services of the definition in the background."""
        await run_command(
            [*self._base_args(compose_file, env_file), "up", "-d"],
            cwd=self._workdir,
            timeout=timeout,
        )
        logger.info("Compose up: %s", compose_file.name)

    async def down(
        self,
        compose_file: Path,
        env_file: Path,
        *,
        timeout: float,
        volumes: bool = False,
    ) -> None:
        """Stop and remove the definition's containers.

        Args:
            volumes: Also remove named and anonymous volumes (-v)
        """
        args = [*self._base_args(compose_file, env_file), "down"]
        if volumes:
            args.append("-v")
        await run_command(args, cwd=self._workdir, timeout=timeout)
        logger.info("Compose down: %s", compose_file.name)
