"""Live status reconciliation from the container runtime."""

import asyncio
import logging
from collections.abc import Sequence

import httpx

from stackhub.core.domain import InstanceStatus
from stackhub.core.models import Instance
from stackhub.core.naming import ArtifactNaming
from stackhub.infra.docker import ContainerAPI
from stackhub.logging_schema import LogEvent

logger = logging.getLogger(__name__)


class StatusReconciler:
    """Classifies an instance from its running containers.

    - no matching container              -> stopped
    - at least one matching container Up -> running
    - matching containers, none Up       -> error
    """

    def __init__(self, naming: ArtifactNaming, containers: ContainerAPI) -> None:
        self._naming = naming
        self._containers = containers

    async def observe(self, instance_id: str) -> InstanceStatus:
        """Query the runtime for the instance's primary container."""
        name_filter = self._naming.primary_container(instance_id)
        try:
            containers = await self._containers.list(filters={"name": [name_filter]})
        except httpx.HTTPError as e:
            # Unreachable runtime reads as "nothing running"
            logger.warning(
                "Failed to query container status",
                extra={"instance_id": instance_id, "error": str(e)},
            )
            return InstanceStatus.STOPPED

        if not containers:
            return InstanceStatus.STOPPED
        if any(str(c.get("Status", "")).startswith("Up") for c in containers):
            return InstanceStatus.RUNNING
        return InstanceStatus.ERROR

    async def observe_many(self, instance_ids: Sequence[str]) -> dict[str, InstanceStatus]:
        """Observe several instances concurrently."""
        statuses = await asyncio.gather(*(self.observe(i) for i in instance_ids))
        return dict(zip(instance_ids, statuses))

    def apply(self, instance: Instance, observed: InstanceStatus) -> bool:
        """Overwrite the stored status with the observed one where allowed.

        An instance still being created belongs to its creation workflow.
        A failed instance is never downgraded to stopped.

        Returns:
            True if the stored status changed
        """
        if instance.status == InstanceStatus.CREATING:
            return False
        if instance.status == InstanceStatus.ERROR and observed == InstanceStatus.STOPPED:
            return False

        previous = instance.status
        if not instance.transition_to(observed):
            logger.warning(
                "Ignored illegal status transition",
                extra={
                    "event": LogEvent.TRANSITION_IGNORED,
                    "instance_id": instance.id,
                    "from_status": previous.value,
                    "to_status": observed.value,
                },
            )
            return False
        if previous == observed:
            return False

        logger.info(
            "Status reconciled: %s -> %s",
            previous.value,
            observed.value,
            extra={"event": LogEvent.STATUS_RECONCILED, "instance_id": instance.id},
        )
        return True
