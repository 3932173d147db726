"""Fixtures for stackhub unit tests."""

import os

# Must be set before stackhub.main is imported (logging is configured at import)
os.environ["STACKHUB_LOGGING_INSTANCE_LOG_FILE"] = ""
os.environ["STACKHUB_SERVER_RECONCILE_INTERVAL"] = "0"

from collections.abc import AsyncIterator, Callable
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest

from stackhub.config import (
    LoggingConfig,
    PortRange,
    PortRangesConfig,
    ProvisioningConfig,
    StackHubConfig,
    StoreConfig,
    ValidationConfig,
)
from stackhub.core.models import Instance, InstanceUrls, PortAssignment
from stackhub.core.naming import ArtifactNaming
from stackhub.core.orchestrator import ProvisioningOrchestrator
from stackhub.core.validation import InstanceValidator
from stackhub.infra.compose import ComposeCLI
from stackhub.infra.docker import ContainerAPI

# Creates the three artifacts the way the real generator does
GENERATE_OK = """\
#!/bin/bash
set -e
echo "generating ${INSTANCE_ID}"
touch ".env-${INSTANCE_ID}" "docker-compose-${INSTANCE_ID}.yml"
mkdir -p "volumes-${INSTANCE_ID}"
"""

GENERATE_FAIL = """\
#!/bin/bash
touch ".env-${INSTANCE_ID}" "docker-compose-${INSTANCE_ID}.yml"
mkdir -p "volumes-${INSTANCE_ID}"
echo "compose build failed" >&2
exit 3
"""


def running_containers(count: int = 3) -> list[dict]:
    """Container list entries as returned by the Engine API."""
    return [
        {"Names": [f"/supabase-svc{i}-x"], "Status": "Up 2 seconds"}
        for i in range(count)
    ]


def make_instance(
    instance_id: str = "inst1",
    name: str = "acme",
    status: str = "running",
    offset: int = 0,
) -> Instance:
    """Build an instance record with ports at the given offset."""
    return Instance(
        id=instance_id,
        name=name,
        status=status,
        jwt_secret="s" * 64,
        ports=PortAssignment(
            kong_http=8010 + offset,
            kong_https=8410 + offset,
            postgres_ext=5410 + offset,
            analytics=4010 + offset,
        ),
        urls=InstanceUrls.for_gateway("127.0.0.1", 8010 + offset),
    )


@pytest.fixture
def docker_dir(tmp_path: Path) -> Path:
    """Provisioning directory with templates and a working generator script."""
    root = tmp_path / "docker"
    root.mkdir()
    (root / ".env.template").write_text("JWT_SECRET=\n")
    (root / "docker-compose.yml").write_text("services: {}\n")
    script = root / "generate.bash"
    script.write_text(GENERATE_OK)
    script.chmod(0o755)
    return root


@pytest.fixture
def config(tmp_path: Path, docker_dir: Path) -> StackHubConfig:
    """Config with temp paths and no delays."""
    return StackHubConfig(
        provisioning=ProvisioningConfig(
            docker_path=docker_dir,
            settle_delay=0,
            script_timeout=10,
        ),
        validation=ValidationConfig(
            poll_interval=0,
            container_attempts=3,
            connectivity_attempts=2,
        ),
        store=StoreConfig(data_file=tmp_path / "data" / "instances.json"),
        logging=LoggingConfig(instance_log_file=str(tmp_path / "logs" / "instances.log")),
        ports=PortRangesConfig(
            kong_http=PortRange(start=8010, end=8099),
            kong_https=PortRange(start=8410, end=8499),
            postgres_ext=PortRange(start=5410, end=5499),
            analytics=PortRange(start=4010, end=4099),
        ),
    )


@pytest.fixture
def naming(config: StackHubConfig) -> ArtifactNaming:
    return ArtifactNaming(config.provisioning)


@pytest.fixture
def mock_container_api() -> AsyncMock:
    """Mock ContainerAPI reporting a healthy runtime with three running containers."""
    api = AsyncMock(spec=ContainerAPI)
    api.ping = AsyncMock(return_value=True)
    api.list = AsyncMock(return_value=running_containers())
    api.remove = AsyncMock()
    return api


@pytest.fixture
def mock_compose() -> AsyncMock:
    """Mock ComposeCLI."""
    compose = AsyncMock(spec=ComposeCLI)
    compose.version = AsyncMock(return_value="Docker Compose version v2.27.0")
    compose.up = AsyncMock()
    compose.down = AsyncMock()
    compose.command = ["docker", "compose"]
    return compose


@pytest.fixture
def gateway_handler() -> Callable[[httpx.Request], httpx.Response]:
    """Gateway answering 401 like an unauthenticated Kong."""
    return lambda request: httpx.Response(401)


@pytest.fixture
async def http_client(
    gateway_handler: Callable[[httpx.Request], httpx.Response],
) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(gateway_handler)) as client:
        yield client


@pytest.fixture
async def orchestrator(
    config: StackHubConfig,
    naming: ArtifactNaming,
    mock_container_api: AsyncMock,
    mock_compose: AsyncMock,
    http_client: httpx.AsyncClient,
) -> AsyncIterator[ProvisioningOrchestrator]:
    """Orchestrator running the real script, store and cleanup against mocked Docker."""
    validator = InstanceValidator(
        config.provisioning,
        config.validation,
        naming,
        mock_container_api,
        http_client=http_client,
    )
    orch = ProvisioningOrchestrator(
        config,
        containers=mock_container_api,
        compose=mock_compose,
        validator=validator,
    )
    await orch.init()
    yield orch
    await orch.close()
