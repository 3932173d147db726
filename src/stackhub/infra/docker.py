"""Docker Engine API client.

Provides async Docker API access for the narrow capabilities stackhub
needs: reachability, listing containers by name filter, and removing
containers. Supports both Unix socket and TCP (docker-proxy) connections.
"""

import json
import logging

import httpx

from stackhub.config import DockerConfig

logger = logging.getLogger(__name__)


class DockerClient:
    """Async Docker API client.

    Supports Unix socket and TCP connections.
    Handles event loop changes (important for tests).
    """

    def __init__(self, config: DockerConfig | None = None) -> None:
        config = config or DockerConfig()
        self._host = config.host
        self._timeout = config.api_timeout
        self._client: httpx.AsyncClient | None = None

    def _create_client(self) -> httpx.AsyncClient:
        """Create a new HTTP client."""
        if self._host.startswith("unix://"):
            socket_path = self._host.replace("unix://", "")
            transport = httpx.AsyncHTTPTransport(uds=socket_path)
            return httpx.AsyncClient(
                transport=transport,
                base_url="http://localhost",
                timeout=self._timeout,
            )
        base_url = self._host
        if base_url.startswith("tcp://"):
            base_url = base_url.replace("tcp://", "http://")
        return httpx.AsyncClient(base_url=base_url, timeout=self._timeout)

    async def get(self) -> httpx.AsyncClient:
        """Get or create the HTTP client.

        Recreates the client if the previous one was closed
        (e.g., due to event loop change in tests).
        """
        if self._client is None or self._client.is_closed:
            self._client = self._create_client()
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


class ContainerAPI:
    """Docker Container API operations."""

    def __init__(self, client: DockerClient | None = None) -> None:
        self._docker = client or DockerClient()

    async def ping(self) -> bool:
        """Check that the Docker daemon answers.

        Returns:
            True if GET /_ping succeeds
        """
        try:
            client = await self._docker.get()
            resp = await client.get("/_ping")
        except httpx.HTTPError as e:
            logger.debug("Docker ping failed: %s", e)
            return False
        return resp.status_code == 200

    async def list(self, filters: dict | None = None, all: bool = False) -> list[dict]:
        """List containers.

        Args:
            filters: Docker API filters (e.g., {"name": ["supabase-.*-abc"]})
            all: Include stopped containers (default: running only)

        Returns:
            List of container info dicts
        """
        client = await self._docker.get()
        params: dict = {"all": "true" if all else "false"}
        if filters:
            params["filters"] = json.dumps(filters)
        resp = await client.get("/containers/json", params=params)
        resp.raise_for_status()
        return resp.json()

    async def remove(self, name: str, force: bool = True, volumes: bool = False) -> None:
        """Remove a container.

        Args:
            name: Container name or ID
            force: Force removal of running container
            volumes: Also remove anonymous volumes attached to the container
        """
        client = await self._docker.get()
        resp = await client.delete(
            f"/containers/{name}",
            params={
                "force": "true" if force else "false",
                "v": "true" if volumes else "false",
            },
        )
        if resp.status_code == 404:
            logger.debug("Container not found: %s", name)
            return
        resp.raise_for_status()
        logger.info("Removed container: %s", name)


def container_names(containers: list[dict]) -> list[str]:
    """Extract primary names (without leading slash) from list results."""
    names = []
    for container in containers:
        raw = container.get("Names") or []
        if raw:
            names.append(raw[0].lstrip("/"))
    return names
