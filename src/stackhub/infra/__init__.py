"""stackhub infrastructure layer."""

from stackhub.infra.compose import ComposeCLI
from stackhub.infra.docker import ContainerAPI, DockerClient, container_names
from stackhub.infra.process import (
    CommandError,
    CommandResult,
    CommandTimeoutError,
    kill_process,
    run_command,
)

__all__ = [
    # Docker
    "ContainerAPI",
    "DockerClient",
    "container_names",
    # Compose
    "ComposeCLI",
    # Process
    "CommandError",
    "CommandResult",
    "CommandTimeoutError",
    "kill_process",
    "run_command",
]
