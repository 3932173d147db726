"""Supervised execution of the external provisioning script.

The script builds the instance's containers from templates. It receives
the instance parameters as environment variables, its output is streamed
into the instance log, and it is killed (with its whole process group)
once the hard timeout passes.
"""

import asyncio
import logging
import os

from stackhub.config import ProvisioningConfig
from stackhub.core.models import Instance
from stackhub.core.naming import ArtifactNaming
from stackhub.core.waiting import bounded
from stackhub.errors import ProvisioningFailure
from stackhub.infra.process import kill_process
from stackhub.logging_schema import LogEvent

logger = logging.getLogger(__name__)

# StreamReader line limit; build tools print long progress lines
_STREAM_LIMIT = 1024 * 1024
# Grace period for output readers after the process is gone
_DRAIN_TIMEOUT = 5.0


class ScriptRunner:
    """Runs the provisioning script for one instance."""

    def __init__(self, config: ProvisioningConfig, naming: ArtifactNaming) -> None:
        self._timeout = config.script_timeout
        self._naming = naming

    def build_environment(self, instance: Instance) -> dict[str, str]:
        """Script environment: current environment plus instance parameters."""
        env = dict(os.environ)
        env.update(
            {
                "INSTANCE_ID": instance.id,
                "JWT_SECRET": instance.jwt_secret,
                "KONG_HTTP_PORT": str(instance.ports.kong_http),
                "KONG_HTTPS_PORT": str(instance.ports.kong_https),
                "POSTGRES_PORT_EXT": str(instance.ports.postgres_ext),
                "ANALYTICS_PORT": str(instance.ports.analytics),
                "API_EXTERNAL_URL": instance.urls.api,
                "SUPABASE_PUBLIC_URL": instance.urls.studio,
                "STUDIO_DEFAULT_PROJECT": instance.name,
            }
        )
        return env

    async def run(self, instance: Instance) -> None:
        """Run the script to completion.

        Raises:
            ProvisioningFailure: Launch error, non-zero exit, or timeout
        """
        script = self._naming.script_path
        try:
            process = await asyncio.create_subprocess_exec(
                "bash",
                str(script),
                cwd=self._naming.root,
                env=self.build_environment(instance),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
                limit=_STREAM_LIMIT,
            )
        except OSError as e:
            raise ProvisioningFailure(f"Failed to launch provisioning script: {e}") from e

        logger.info(
            "Provisioning script started",
            extra={"event": LogEvent.SCRIPT_STARTED, "instance_id": instance.id, "pid": process.pid},
        )

        readers = [
            asyncio.create_task(self._pump(process.stdout, instance.id, logging.INFO, "stdout")),
            asyncio.create_task(self._pump(process.stderr, instance.id, logging.WARNING, "stderr")),
        ]
        try:
            returncode = await bounded(
                process.wait(),
                self._timeout,
                on_timeout=lambda: kill_process(process),
            )
        except asyncio.TimeoutError:
            logger.error(
                "Provisioning script timed out after %.0fs",
                self._timeout,
                extra={"event": LogEvent.SCRIPT_TIMEOUT, "instance_id": instance.id},
            )
            raise ProvisioningFailure(
                f"Provisioning script timed out after {self._timeout:.0f}s"
            ) from None
        except asyncio.CancelledError:
            await kill_process(process)
            raise
        finally:
            await self._drain(readers)

        logger.info(
            "Provisioning script exited with code %d",
            returncode,
            extra={"event": LogEvent.SCRIPT_EXITED, "instance_id": instance.id, "exit_code": returncode},
        )
        if returncode != 0:
            raise ProvisioningFailure(
                f"Provisioning script exited with code {returncode}", exit_code=returncode
            )

    @staticmethod
    async def _pump(
        stream: asyncio.StreamReader | None,
        instance_id: str,
        level: int,
        label: str,
    ) -> None:
        if stream is None:
            return
        async for raw in stream:
            line = raw.decode(errors="replace").rstrip()
            if line:
                logger.log(
                    level,
                    "[script %s] %s",
                    label,
                    line,
                    extra={"event": LogEvent.SCRIPT_OUTPUT, "instance_id": instance_id},
                )

    @staticmethod
    async def _drain(readers: list[asyncio.Task[None]]) -> None:
        _, pending = await asyncio.wait(readers, timeout=_DRAIN_TIMEOUT)
        for task in pending:
            task.cancel()
        await asyncio.gather(*readers, return_exceptions=True)
