"""Tests for Cleanup."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from stackhub.config import StackHubConfig
from stackhub.core.cleanup import Cleanup
from stackhub.core.naming import ArtifactNaming
from stackhub.infra.process import CommandError


@pytest.fixture
def cleanup(
    config: StackHubConfig,
    naming: ArtifactNaming,
    mock_compose: AsyncMock,
    mock_container_api: AsyncMock,
) -> Cleanup:
    return Cleanup(config.provisioning, naming, mock_compose, mock_container_api)


def create_artifacts(naming: ArtifactNaming, instance_id: str) -> list[Path]:
    naming.env_file(instance_id).write_text("JWT_SECRET=x\n")
    naming.compose_file(instance_id).write_text("services: {}\n")
    volume_dir = naming.volume_dir(instance_id)
    (volume_dir / "db").mkdir(parents=True)
    (volume_dir / "db" / "data").write_text("rows")
    return naming.artifacts(instance_id)


class TestCleanup:
    """Tests for Cleanup.run()."""

    async def test_compose_down_with_volumes_then_artifacts_removed(
        self,
        cleanup: Cleanup,
        naming: ArtifactNaming,
        mock_compose: AsyncMock,
        mock_container_api: AsyncMock,
    ) -> None:
        artifacts = create_artifacts(naming, "abc")

        await cleanup.run("abc")

        mock_compose.down.assert_awaited_once()
        assert mock_compose.down.await_args.kwargs["volumes"] is True
        mock_container_api.remove.assert_not_awaited()
        assert not any(p.exists() for p in artifacts)

    async def test_without_definition_removes_containers_by_pattern(
        self,
        cleanup: Cleanup,
        naming: ArtifactNaming,
        mock_compose: AsyncMock,
        mock_container_api: AsyncMock,
    ) -> None:
        mock_container_api.list.return_value = [
            {"Names": ["/supabase-db-abc"]},
            {"Names": ["/supabase-kong-abc"]},
        ]

        await cleanup.run("abc")

        mock_compose.down.assert_not_awaited()
        mock_container_api.list.assert_awaited_once_with(
            filters={"name": ["supabase-.*-abc"]}, all=True
        )
        assert mock_container_api.remove.await_count == 2
        mock_container_api.remove.assert_any_await(
            "supabase-db-abc", force=True, volumes=True
        )

    async def test_compose_failure_falls_back_and_continues(
        self,
        cleanup: Cleanup,
        naming: ArtifactNaming,
        mock_compose: AsyncMock,
        mock_container_api: AsyncMock,
    ) -> None:
        artifacts = create_artifacts(naming, "abc")
        mock_compose.down.side_effect = CommandError(["docker", "compose"], 1, "boom")

        await cleanup.run("abc")

        mock_container_api.list.assert_awaited_once()
        assert not any(p.exists() for p in artifacts)

    async def test_never_raises(
        self,
        cleanup: Cleanup,
        mock_container_api: AsyncMock,
    ) -> None:
        mock_container_api.list.side_effect = RuntimeError("daemon gone")

        await cleanup.run("abc")

    async def test_idempotent(
        self,
        cleanup: Cleanup,
        naming: ArtifactNaming,
    ) -> None:
        artifacts = create_artifacts(naming, "abc")

        await cleanup.run("abc")
        await cleanup.run("abc")

        assert not any(p.exists() for p in artifacts)

    async def test_only_own_artifacts_removed(
        self,
        cleanup: Cleanup,
        naming: ArtifactNaming,
    ) -> None:
        create_artifacts(naming, "abc")
        others = create_artifacts(naming, "abd")

        await cleanup.run("abc")

        assert all(p.exists() for p in others)
        assert naming.script_path.exists()
