"""Naming conventions for generated artifacts and containers."""

from pathlib import Path

from stackhub.config import ProvisioningConfig


class ArtifactNaming:
    """Centralized naming for per-instance artifacts and containers.

    Artifacts live under docker_path and carry the instance id as suffix:
    - .env-{id}                 environment file
    - docker-compose-{id}.yml   compose definition
    - volumes-{id}/             volume directory
    """

    def __init__(self, config: ProvisioningConfig) -> None:
        self._root = Path(config.docker_path)
        self._script_name = config.script_name
        self._templates = list(config.templates)
        self._prefix = config.container_prefix
        self._primary = config.primary_service

    @property
    def root(self) -> Path:
        return self._root

    @property
    def script_path(self) -> Path:
        return self._root / self._script_name

    @property
    def template_paths(self) -> list[Path]:
        return [self._root / name for name in self._templates]

    def env_file(self, instance_id: str) -> Path:
        return self._root / f".env-{instance_id}"

    def compose_file(self, instance_id: str) -> Path:
        return self._root / f"docker-compose-{instance_id}.yml"

    def volume_dir(self, instance_id: str) -> Path:
        return self._root / f"volumes-{instance_id}"

    def artifacts(self, instance_id: str) -> list[Path]:
        return [
            self.env_file(instance_id),
            self.compose_file(instance_id),
            self.volume_dir(instance_id),
        ]

    def has_definition(self, instance_id: str) -> bool:
        """Compose definition and environment file both present."""
        return self.compose_file(instance_id).exists() and self.env_file(instance_id).exists()

    def primary_container(self, instance_id: str) -> str:
        """Name filter for the primary UI container."""
        return f"{self._prefix}{self._primary}-{instance_id}"

    def container_pattern(self, instance_id: str) -> str:
        """Name filter (regex) matching every container of the instance."""
        return f"{self._prefix}.*-{instance_id}"
