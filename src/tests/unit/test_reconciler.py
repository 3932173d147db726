"""Tests for StatusReconciler."""

from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import make_instance, running_containers
from stackhub.core.domain import InstanceStatus
from stackhub.core.naming import ArtifactNaming
from stackhub.core.reconciler import StatusReconciler


@pytest.fixture
def reconciler(naming: ArtifactNaming, mock_container_api: AsyncMock) -> StatusReconciler:
    return StatusReconciler(naming, mock_container_api)


class TestObserve:
    """Tests for observe()."""

    async def test_no_containers_is_stopped(
        self, reconciler: StatusReconciler, mock_container_api: AsyncMock
    ) -> None:
        mock_container_api.list.return_value = []

        assert await reconciler.observe("abc") == InstanceStatus.STOPPED

    async def test_up_container_is_running(
        self, reconciler: StatusReconciler, mock_container_api: AsyncMock
    ) -> None:
        mock_container_api.list.return_value = running_containers(1)

        assert await reconciler.observe("abc") == InstanceStatus.RUNNING

    async def test_containers_not_up_is_error(
        self, reconciler: StatusReconciler, mock_container_api: AsyncMock
    ) -> None:
        mock_container_api.list.return_value = [
            {"Names": ["/supabase-studio-abc"], "Status": "Restarting (1) 3 seconds ago"}
        ]

        assert await reconciler.observe("abc") == InstanceStatus.ERROR

    async def test_filters_on_primary_container(
        self, reconciler: StatusReconciler, mock_container_api: AsyncMock
    ) -> None:
        await reconciler.observe("abc")

        mock_container_api.list.assert_awaited_once_with(
            filters={"name": ["supabase-studio-abc"]}
        )

    async def test_runtime_failure_reads_as_stopped(
        self, reconciler: StatusReconciler, mock_container_api: AsyncMock
    ) -> None:
        mock_container_api.list.side_effect = httpx.ConnectError("socket missing")

        assert await reconciler.observe("abc") == InstanceStatus.STOPPED

    async def test_observe_many(
        self, reconciler: StatusReconciler, mock_container_api: AsyncMock
    ) -> None:
        mock_container_api.list.return_value = []

        result = await reconciler.observe_many(["a", "b"])

        assert result == {"a": InstanceStatus.STOPPED, "b": InstanceStatus.STOPPED}


class TestApply:
    """Tests for apply()."""

    def test_overwrites_running_with_stopped(self, reconciler: StatusReconciler) -> None:
        instance = make_instance(status="running")

        assert reconciler.apply(instance, InstanceStatus.STOPPED) is True
        assert instance.status == InstanceStatus.STOPPED

    def test_unchanged_status(self, reconciler: StatusReconciler) -> None:
        instance = make_instance(status="running")

        assert reconciler.apply(instance, InstanceStatus.RUNNING) is False

    def test_creating_left_to_workflow(self, reconciler: StatusReconciler) -> None:
        instance = make_instance(status="creating")

        assert reconciler.apply(instance, InstanceStatus.STOPPED) is False
        assert instance.status == InstanceStatus.CREATING

    def test_error_not_downgraded_to_stopped(self, reconciler: StatusReconciler) -> None:
        instance = make_instance(status="error")

        assert reconciler.apply(instance, InstanceStatus.STOPPED) is False
        assert instance.status == InstanceStatus.ERROR

    def test_error_recovers_to_running(self, reconciler: StatusReconciler) -> None:
        instance = make_instance(status="error")

        assert reconciler.apply(instance, InstanceStatus.RUNNING) is True
        assert instance.status == InstanceStatus.RUNNING
