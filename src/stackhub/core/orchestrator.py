"""Instance lifecycle orchestration.

Creation is split in two:
1. Synchronous acceptance: name and prerequisite checks, then one store
   transaction that checks uniqueness, allocates ports and persists a
   provisional record with status=creating. The caller gets that record.
2. Background workflow: run the provisioning script, settle, validate,
   then either commit (status=running) or roll back (status=error plus
   Cleanup).

Start, stop and delete act on the instance's containers while holding the
per-instance lock, so they never interleave with each other or with the
instance's creation workflow.
"""

import asyncio
import logging
import time
from datetime import UTC, datetime

from pydantic import BaseModel

from stackhub.config import StackHubConfig
from stackhub.core.cleanup import Cleanup
from stackhub.core.domain import InstanceStatus
from stackhub.core.lock import InstanceLocks
from stackhub.core.models import (
    Instance,
    InstanceUrls,
    generate_instance_id,
    generate_secret,
    normalize_name,
)
from stackhub.core.naming import ArtifactNaming
from stackhub.core.ports import allocate_ports, free_port_counts
from stackhub.core.prerequisites import PrerequisiteChecker, PrerequisiteReport
from stackhub.core.provisioner import ScriptRunner
from stackhub.core.reconciler import StatusReconciler
from stackhub.core.store import InstanceStore
from stackhub.core.validation import InstanceValidator, ValidationReport
from stackhub.core.waiting import settle
from stackhub.errors import (
    DockerError,
    NotFoundError,
    PrerequisiteError,
    ProvisioningFailure,
    StackHubError,
    StoreIOError,
    ValidationError,
)
from stackhub.infra.compose import ComposeCLI
from stackhub.infra.docker import ContainerAPI, DockerClient
from stackhub.infra.process import CommandError
from stackhub.logging import tail_instance_logs
from stackhub.logging_schema import LogEvent
from stackhub.metrics import (
    STACKHUB_INSTANCES,
    STACKHUB_OPERATIONS,
    STACKHUB_PROVISIONING_DURATION,
)

logger = logging.getLogger(__name__)


class Diagnostics(BaseModel):
    """Snapshot of system readiness and capacity."""

    timestamp: datetime
    prerequisites: PrerequisiteReport
    instances: dict[str, int]
    available_ports: dict[str, int]
    system: dict[str, str]


class ProvisioningOrchestrator:
    """Creates, starts, stops, deletes and lists instances."""

    def __init__(
        self,
        config: StackHubConfig,
        store: InstanceStore | None = None,
        *,
        containers: ContainerAPI | None = None,
        compose: ComposeCLI | None = None,
        runner: ScriptRunner | None = None,
        validator: InstanceValidator | None = None,
        prerequisites: PrerequisiteChecker | None = None,
        cleanup: Cleanup | None = None,
    ) -> None:
        self._config = config
        self._naming = ArtifactNaming(config.provisioning)
        self._store = store or InstanceStore(config.store.data_file)

        self._docker: DockerClient | None = None
        if containers is None:
            self._docker = DockerClient(config.docker)
            containers = ContainerAPI(self._docker)
        self._containers = containers
        self._compose = compose or ComposeCLI(config.docker, self._naming.root)

        self._runner = runner or ScriptRunner(config.provisioning, self._naming)
        self._validator = validator or InstanceValidator(
            config.provisioning, config.validation, self._naming, containers
        )
        self._prerequisites = prerequisites or PrerequisiteChecker(
            self._naming, containers, self._compose
        )
        self._cleanup = cleanup or Cleanup(
            config.provisioning, self._naming, self._compose, containers
        )
        self._reconciler = StatusReconciler(self._naming, containers)

        self._locks = InstanceLocks()
        self._creations: dict[str, asyncio.Task[None]] = {}

    @property
    def store(self) -> InstanceStore:
        return self._store

    @property
    def naming(self) -> ArtifactNaming:
        return self._naming

    async def init(self) -> None:
        await self._store.init()

    async def check_prerequisites(self) -> PrerequisiteReport:
        return await self._prerequisites.check()

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_instances(self) -> list[Instance]:
        """Reconcile every instance against the runtime and persist the result.

        Runtime queries run outside the store lock. Observations are applied
        by id inside one transaction, so records created meanwhile are kept.
        A record whose status changed since the snapshot keeps its new status.
        """
        snapshot = await self._store.load()
        seen = {i.id: i.status for i in snapshot}
        observed = await self._reconciler.observe_many(list(seen))

        async with self._store.transaction() as instances:
            for instance in instances:
                status = observed.get(instance.id)
                if status is not None and instance.status == seen[instance.id]:
                    self._reconciler.apply(instance, status)
            result = [i.model_copy(deep=True) for i in instances]

        _record_status_counts(result)
        return result

    async def get_instance(self, instance_id: str) -> Instance:
        """Stored record, without reconciliation.

        Raises:
            NotFoundError: Unknown instance id
        """
        return _find(await self._store.load(), instance_id)

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_instance(self, name: str | None) -> Instance:
        """Accept a creation request and start the background workflow.

        Returns:
            The provisional record (status=creating)

        Raises:
            ValidationError: Blank or duplicate name
            PrerequisiteError: Runtime, script or templates missing
            ExhaustedRangeError: A port category has no free port
            StoreIOError: The provisional record could not be persisted
        """
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Instance name is required")

        logger.info(
            "Creation requested",
            extra={"event": LogEvent.CREATE_REQUESTED, "instance_name": clean_name},
        )

        report = await self._prerequisites.check()
        if not report.ready:
            STACKHUB_OPERATIONS.labels(operation="create", result="failure").inc()
            raise PrerequisiteError(
                report.model_dump(),
                f"Prerequisites not met: {', '.join(report.failed)}",
            )

        instance: Instance | None = None
        try:
            async with self._store.transaction() as instances:
                key = normalize_name(clean_name)
                if any(normalize_name(i.name) == key for i in instances):
                    raise ValidationError(f"Instance name '{clean_name}' already exists")

                ports = allocate_ports(self._config.ports, instances)
                instance = Instance(
                    id=generate_instance_id(),
                    name=clean_name,
                    jwt_secret=generate_secret(),
                    ports=ports,
                    urls=InstanceUrls.for_gateway(
                        self._config.provisioning.host_address, ports.kong_http
                    ),
                )
                instances.append(instance)
        except StoreIOError:
            STACKHUB_OPERATIONS.labels(operation="create", result="failure").inc()
            if instance is not None:
                await self._cleanup.run(instance.id)
            raise

        logger.info(
            "Instance allocated: %s (gateway port %d)",
            instance.name,
            instance.ports.kong_http,
            extra={
                "event": LogEvent.INSTANCE_ALLOCATED,
                "instance_id": instance.id,
                "ports": instance.ports.model_dump(),
            },
        )

        task = asyncio.create_task(self._provision(instance), name=f"provision-{instance.id}")
        self._creations[instance.id] = task
        task.add_done_callback(lambda t, iid=instance.id: self._creation_done(iid, t))
        return instance.model_copy(deep=True)

    async def _provision(self, instance: Instance) -> None:
        started = time.monotonic()
        async with self._locks.get(instance.id):
            try:
                await self._runner.run(instance)
                await settle(self._config.provisioning.settle_delay)
                report = await self._validator.validate(instance)
                failure = report.failure(self._config.validation.require_connectivity)
                if failure is not None:
                    raise failure
            except asyncio.CancelledError:
                logger.warning(
                    "Creation workflow cancelled",
                    extra={"event": LogEvent.CREATION_CANCELLED, "instance_id": instance.id},
                )
                raise
            except StackHubError as e:
                await self._rollback(instance.id, e)
                _observe_provisioning(started, "rolled_back")
                return
            except Exception as e:
                logger.exception(
                    "Creation workflow crashed",
                    extra={"instance_id": instance.id},
                )
                await self._rollback(instance.id, ProvisioningFailure(str(e)))
                _observe_provisioning(started, "rolled_back")
                return

            await self._commit(instance.id, report)
            _observe_provisioning(started, "committed")

    async def _commit(self, instance_id: str, report: ValidationReport) -> None:
        if not report.connectivity:
            logger.warning(
                "Gateway not reachable yet, committing anyway",
                extra={"event": LogEvent.VALIDATION_FAILED, "instance_id": instance_id},
            )
        await self._update_status(instance_id, InstanceStatus.RUNNING)
        STACKHUB_OPERATIONS.labels(operation="create", result="success").inc()
        logger.info(
            "Instance created and running",
            extra={
                "event": LogEvent.INSTANCE_COMMITTED,
                "instance_id": instance_id,
                **report.model_dump(),
            },
        )

    async def _rollback(self, instance_id: str, reason: StackHubError) -> None:
        """Mark the instance failed and tear down whatever was created."""
        STACKHUB_OPERATIONS.labels(operation="create", result="failure").inc()
        logger.error(
            "Creation failed, rolling back: %s",
            reason.message,
            extra={
                "event": LogEvent.INSTANCE_ROLLED_BACK,
                "instance_id": instance_id,
                "error_code": reason.code.value,
            },
        )
        try:
            await self._update_status(instance_id, InstanceStatus.ERROR)
        finally:
            await self._cleanup.run(instance_id)

    def _creation_done(self, instance_id: str, task: asyncio.Task[None]) -> None:
        self._creations.pop(instance_id, None)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Creation workflow failed: %s",
                error,
                exc_info=error,
                extra={"instance_id": instance_id},
            )

    async def _cancel_creation(self, instance_id: str) -> None:
        task = self._creations.get(instance_id)
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start_instance(self, instance_id: str) -> Instance:
        """Bring the instance's containers up and reconcile its status.

        Raises:
            NotFoundError: Unknown instance or generated artifacts missing
            DockerError: Compose up failed
        """
        async with self._locks.get(instance_id):
            await self.get_instance(instance_id)
            if not self._naming.has_definition(instance_id):
                raise NotFoundError("Instance configuration files not found")

            try:
                await self._compose.up(
                    self._naming.compose_file(instance_id),
                    self._naming.env_file(instance_id),
                    timeout=self._config.provisioning.start_timeout,
                )
            except CommandError as e:
                STACKHUB_OPERATIONS.labels(operation="start", result="failure").inc()
                raise DockerError(f"Failed to start instance: {e}") from e

            await settle(self._config.provisioning.settle_delay)
            observed = await self._reconciler.observe(instance_id)
            instance = await self._update_status(instance_id, observed)

        if instance is None:
            raise NotFoundError()
        STACKHUB_OPERATIONS.labels(operation="start", result="success").inc()
        logger.info(
            "Instance started (status %s)",
            instance.status.value,
            extra={"event": LogEvent.INSTANCE_STARTED, "instance_id": instance_id},
        )
        return instance

    async def stop_instance(self, instance_id: str) -> Instance:
        """Bring the instance's containers down and mark it stopped.

        Stopping an already stopped instance succeeds.

        Raises:
            NotFoundError: Unknown instance id
            DockerError: Compose down failed
        """
        async with self._locks.get(instance_id):
            await self.get_instance(instance_id)
            if self._naming.has_definition(instance_id):
                try:
                    await self._compose.down(
                        self._naming.compose_file(instance_id),
                        self._naming.env_file(instance_id),
                        timeout=self._config.provisioning.stop_timeout,
                    )
                except CommandError as e:
                    STACKHUB_OPERATIONS.labels(operation="stop", result="failure").inc()
                    raise DockerError(f"Failed to stop instance: {e}") from e

            instance = await self._update_status(instance_id, InstanceStatus.STOPPED, force=True)

        if instance is None:
            raise NotFoundError()
        STACKHUB_OPERATIONS.labels(operation="stop", result="success").inc()
        logger.info(
            "Instance stopped",
            extra={"event": LogEvent.INSTANCE_STOPPED, "instance_id": instance_id},
        )
        return instance

    async def delete_instance(self, instance_id: str) -> None:
        """Tear down and forget an instance.

        An in-flight creation workflow is cancelled first.

        Raises:
            NotFoundError: Unknown instance id (nothing is touched)
        """
        await self.get_instance(instance_id)
        await self._cancel_creation(instance_id)

        async with self._locks.get(instance_id):
            await self._cleanup.run(instance_id)
            async with self._store.transaction() as instances:
                instances[:] = [i for i in instances if i.id != instance_id]
        self._locks.discard(instance_id)

        STACKHUB_OPERATIONS.labels(operation="delete", result="success").inc()
        logger.info(
            "Instance deleted",
            extra={"event": LogEvent.INSTANCE_DELETED, "instance_id": instance_id},
        )

    async def _update_status(
        self,
        instance_id: str,
        status: InstanceStatus,
        *,
        force: bool = False,
    ) -> Instance | None:
        """Persist a status change. Returns None if the record is gone."""
        async with self._store.transaction() as instances:
            for instance in instances:
                if instance.id != instance_id:
                    continue
                previous = instance.status
                if not instance.transition_to(status, force=force):
                    logger.warning(
                        "Ignored illegal status transition",
                        extra={
                            "event": LogEvent.TRANSITION_IGNORED,
                            "instance_id": instance_id,
                            "from_status": previous.value,
                            "to_status": status.value,
                        },
                    )
                return instance.model_copy(deep=True)
        logger.debug("Instance record gone", extra={"instance_id": instance_id})
        return None

    # =========================================================================
    # Supplementary operations
    # =========================================================================

    async def diagnostics(self) -> Diagnostics:
        report = await self._prerequisites.check()
        instances = await self._store.load()

        counts = {"total": len(instances)}
        for status in InstanceStatus:
            counts[status.value] = sum(1 for i in instances if i.status == status)

        return Diagnostics(
            timestamp=datetime.now(UTC),
            prerequisites=report,
            instances=counts,
            available_ports=free_port_counts(self._config.ports, instances),
            system={
                "docker_path": str(self._naming.root.resolve()),
                "data_file": str(self._store.path.resolve()),
                "host_address": self._config.provisioning.host_address,
                "compose_command": " ".join(self._compose.command),
            },
        )

    async def instance_logs(self, instance_id: str, lines: int = 100) -> list[str]:
        """Last lines of the instance log tagged with this instance.

        Raises:
            NotFoundError: Unknown instance id
        """
        await self.get_instance(instance_id)
        log_file = self._config.logging.instance_log_file
        if not log_file:
            return []
        return await asyncio.to_thread(tail_instance_logs, log_file, instance_id, lines)

    async def recover_interrupted(self) -> list[str]:
        """Roll back records left in creating by a previous process."""
        snapshot = await self._store.load()
        stale = [
            i.id
            for i in snapshot
            if i.status == InstanceStatus.CREATING and i.id not in self._creations
        ]
        for instance_id in stale:
            logger.warning(
                "Recovering interrupted creation",
                extra={"event": LogEvent.CREATION_RECOVERED, "instance_id": instance_id},
            )
            async with self._locks.get(instance_id):
                await self._rollback(
                    instance_id, ProvisioningFailure("Creation interrupted by restart")
                )
        return stale

    async def run_reconcile_loop(self, interval: float) -> None:
        """Re-run the reconciling list every interval seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            try:
                await self.list_instances()
            except StackHubError as e:
                logger.warning("Periodic reconciliation failed: %s", e.message)
            except Exception:
                logger.exception("Periodic reconciliation crashed")

    async def wait_idle(self) -> None:
        """Wait until no creation workflow is running."""
        while self._creations:
            await asyncio.gather(*list(self._creations.values()), return_exceptions=True)

    async def close(self) -> None:
        """Cancel creation workflows and release runtime connections."""
        for task in list(self._creations.values()):
            task.cancel()
        await asyncio.gather(*list(self._creations.values()), return_exceptions=True)
        if self._docker is not None:
            await self._docker.close()


def _find(instances: list[Instance], instance_id: str) -> Instance:
    for instance in instances:
        if instance.id == instance_id:
            return instance
    raise NotFoundError(f"Instance {instance_id} not found")


def _observe_provisioning(started: float, result: str) -> None:
    STACKHUB_PROVISIONING_DURATION.labels(result=result).observe(time.monotonic() - started)


def _record_status_counts(instances: list[Instance]) -> None:
    for status in InstanceStatus:
        STACKHUB_INSTANCES.labels(status=status.value).set(
            sum(1 for i in instances if i.status == status)
        )
