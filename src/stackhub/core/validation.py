"""Post-creation validation.

Three checks run in order, each gating the next:
1. Artifacts: env file, compose definition and volume directory exist
2. Containers: at least min_containers running, polled up to a ceiling
3. Connectivity: gateway answers 2xx or 401, polled up to a ceiling
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from pydantic import BaseModel

from stackhub.config import ProvisioningConfig, ValidationConfig
from stackhub.core.models import Instance
from stackhub.core.naming import ArtifactNaming
from stackhub.core.waiting import poll_until
from stackhub.errors import StackHubError, ValidationTimeout
from stackhub.infra.docker import ContainerAPI
from stackhub.logging_schema import LogEvent

logger = logging.getLogger(__name__)


class ValidationReport(BaseModel):
    """Outcome of each validation step."""

    files: bool = False
    containers: bool = False
    connectivity: bool = False

    def failure(self, require_connectivity: bool = False) -> StackHubError | None:
        """Error that forces rollback, or None if the instance can be committed."""
        if not self.files:
            return ValidationTimeout("Generated artifacts are missing")
        if not self.containers:
            return ValidationTimeout("Containers did not reach the running threshold")
        if require_connectivity and not self.connectivity:
            return ValidationTimeout("Gateway did not become reachable")
        return None


class InstanceValidator:
    """Runs the post-creation checks for one instance."""

    def __init__(
        self,
        provisioning: ProvisioningConfig,
        validation: ValidationConfig,
        naming: ArtifactNaming,
        containers: ContainerAPI,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._host = provisioning.host_address
        self._config = validation
        self._naming = naming
        self._containers = containers
        self._http_client = http_client

    async def validate(self, instance: Instance) -> ValidationReport:
        report = ValidationReport()

        report.files = await self.check_artifacts(instance.id)
        if not report.files:
            return report

        report.containers = await self.wait_for_containers(instance.id)
        if not report.containers:
            return report

        report.connectivity = await self.wait_for_connectivity(instance)
        logger.info(
            "Validation finished",
            extra={
                "event": LogEvent.VALIDATION_PASSED,
                "instance_id": instance.id,
                **report.model_dump(),
            },
        )
        return report

    async def check_artifacts(self, instance_id: str) -> bool:
        paths = self._naming.artifacts(instance_id)
        present = await asyncio.to_thread(lambda: {p.name: p.exists() for p in paths})
        ok = all(present.values())
        if ok:
            logger.info(
                "Configuration artifacts created",
                extra={"event": LogEvent.VALIDATION_STEP, "instance_id": instance_id},
            )
        else:
            logger.error(
                "Configuration artifacts were not created: %s",
                present,
                extra={"event": LogEvent.VALIDATION_FAILED, "instance_id": instance_id},
            )
        return ok

    async def count_containers(self, instance_id: str) -> int:
        """Running containers of the instance (0 if the runtime cannot be queried)."""
        try:
            containers = await self._containers.list(
                filters={"name": [self._naming.container_pattern(instance_id)]}
            )
        except httpx.HTTPError as e:
            logger.debug(
                "Failed to list containers: %s", e, extra={"instance_id": instance_id}
            )
            return 0
        return len(containers)

    async def wait_for_containers(self, instance_id: str) -> bool:
        threshold = self._config.min_containers

        async def probe(attempt: int) -> bool:
            count = await self.count_containers(instance_id)
            if count >= threshold:
                logger.info(
                    "%d containers running",
                    count,
                    extra={"event": LogEvent.VALIDATION_STEP, "instance_id": instance_id},
                )
                return True
            logger.debug(
                "Only %d containers running, waiting (attempt %d/%d)",
                count,
                attempt,
                self._config.container_attempts,
                extra={"instance_id": instance_id},
            )
            return False

        ok = await poll_until(
            probe,
            interval=self._config.poll_interval,
            attempts=self._config.container_attempts,
        )
        if not ok:
            logger.error(
                "Containers did not reach %d running",
                threshold,
                extra={"event": LogEvent.VALIDATION_FAILED, "instance_id": instance_id},
            )
        return ok

    async def wait_for_connectivity(self, instance: Instance) -> bool:
        url = f"http://{self._host}:{instance.ports.kong_http}"

        async with self._client() as client:

            async def probe(attempt: int) -> bool:
                try:
                    resp = await client.get(url)
                except httpx.HTTPError:
                    logger.debug(
                        "Waiting for gateway (attempt %d/%d)",
                        attempt,
                        self._config.connectivity_attempts,
                        extra={"instance_id": instance.id},
                    )
                    return False
                # 401 is expected without credentials
                if resp.is_success or resp.status_code == 401:
                    logger.info(
                        "Instance answering HTTP (status %d)",
                        resp.status_code,
                        extra={"event": LogEvent.VALIDATION_STEP, "instance_id": instance.id},
                    )
                    return True
                return False

            return await poll_until(
                probe,
                interval=self._config.poll_interval,
                attempts=self._config.connectivity_attempts,
            )

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self._config.request_timeout) as client:
            yield client
