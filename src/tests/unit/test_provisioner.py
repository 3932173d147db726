"""Tests for ScriptRunner (real bash scripts)."""

import asyncio
from pathlib import Path

import pytest

from conftest import GENERATE_FAIL, make_instance
from stackhub.config import ProvisioningConfig, StackHubConfig
from stackhub.core.naming import ArtifactNaming
from stackhub.core.provisioner import ScriptRunner
from stackhub.errors import ProvisioningFailure


def write_script(naming: ArtifactNaming, body: str) -> None:
    naming.script_path.write_text(body)


@pytest.fixture
def runner(config: StackHubConfig, naming: ArtifactNaming) -> ScriptRunner:
    return ScriptRunner(config.provisioning, naming)


class TestScriptRunner:
    """Tests for ScriptRunner.run()."""

    async def test_success_creates_artifacts(
        self, runner: ScriptRunner, naming: ArtifactNaming
    ) -> None:
        await runner.run(make_instance("abc"))

        assert all(p.exists() for p in naming.artifacts("abc"))

    async def test_environment_passed(
        self, runner: ScriptRunner, naming: ArtifactNaming
    ) -> None:
        write_script(
            naming,
            'echo "$INSTANCE_ID $KONG_HTTP_PORT $KONG_HTTPS_PORT $POSTGRES_PORT_EXT '
            '$ANALYTICS_PORT $API_EXTERNAL_URL $STUDIO_DEFAULT_PROJECT" > env.out\n',
        )

        await runner.run(make_instance("abc", name="acme", offset=1))

        out = (naming.root / "env.out").read_text().split()
        assert out == [
            "abc", "8011", "8411", "5411", "4011", "http://127.0.0.1:8011", "acme",
        ]

    async def test_nonzero_exit_raises(
        self, runner: ScriptRunner, naming: ArtifactNaming
    ) -> None:
        write_script(naming, GENERATE_FAIL)

        with pytest.raises(ProvisioningFailure) as exc_info:
            await runner.run(make_instance("abc"))

        assert exc_info.value.exit_code == 3

    async def test_launch_error_raises(self, tmp_path: Path) -> None:
        naming = ArtifactNaming(ProvisioningConfig(docker_path=tmp_path / "missing"))
        runner = ScriptRunner(ProvisioningConfig(), naming)

        with pytest.raises(ProvisioningFailure, match="launch"):
            await runner.run(make_instance("abc"))

    async def test_timeout_kills_script(self, naming: ArtifactNaming) -> None:
        write_script(naming, "sleep 30 &\nwait\n")
        runner = ScriptRunner(ProvisioningConfig(script_timeout=0.3), naming)

        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(ProvisioningFailure, match="timed out"):
            await runner.run(make_instance("abc"))

        assert loop.time() - started < 10

    async def test_output_logged_with_instance_id(
        self,
        runner: ScriptRunner,
        naming: ArtifactNaming,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        write_script(naming, "echo hello-out\necho hello-err >&2\n")

        with caplog.at_level("INFO", logger="stackhub.core.provisioner"):
            await runner.run(make_instance("abc"))

        records = [r for r in caplog.records if "hello" in r.getMessage()]
        assert {r.levelname for r in records} == {"INFO", "WARNING"}
        assert all(r.instance_id == "abc" for r in records)

    async def test_cancel_kills_script(
        self, runner: ScriptRunner, naming: ArtifactNaming
    ) -> None:
        write_script(naming, "sleep 30\n")

        task = asyncio.create_task(runner.run(make_instance("abc")))
        await asyncio.sleep(0.3)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(task, 10)
