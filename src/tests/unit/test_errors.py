"""Tests for stackhub error classes."""

import pytest

from stackhub.errors import (
    DockerError,
    ErrorCode,
    ExhaustedRangeError,
    NotFoundError,
    PrerequisiteError,
    ProvisioningFailure,
    StackHubError,
    StoreIOError,
    ValidationError,
    ValidationTimeout,
)


class TestStackHubError:
    """StackHubError base class tests."""

    def test_to_response(self) -> None:
        error = StackHubError(ErrorCode.DOCKER_ERROR, "boom", 502)

        response = error.to_response()

        assert response.error.code == "DOCKER_ERROR"
        assert response.error.message == "boom"
        assert response.error.details is None

    def test_is_exception(self) -> None:
        with pytest.raises(StackHubError, match="boom"):
            raise StackHubError(ErrorCode.DOCKER_ERROR, "boom", 502)


class TestErrorSubclasses:
    """Status codes and defaults of concrete errors."""

    @pytest.mark.parametrize(
        ("error", "code", "status_code"),
        [
            (ValidationError(), ErrorCode.VALIDATION_FAILED, 400),
            (NotFoundError(), ErrorCode.INSTANCE_NOT_FOUND, 404),
            (ExhaustedRangeError("analytics", 4010, 4099), ErrorCode.PORT_RANGE_EXHAUSTED, 503),
            (ProvisioningFailure(), ErrorCode.PROVISIONING_FAILED, 500),
            (ValidationTimeout(), ErrorCode.VALIDATION_TIMEOUT, 504),
            (StoreIOError(), ErrorCode.STORE_IO_ERROR, 500),
            (DockerError(), ErrorCode.DOCKER_ERROR, 502),
        ],
    )
    def test_codes(self, error: StackHubError, code: ErrorCode, status_code: int) -> None:
        assert error.code == code
        assert error.status_code == status_code

    def test_not_found_default_message(self) -> None:
        assert NotFoundError().message == "Instance not found"

    def test_prerequisite_details(self) -> None:
        error = PrerequisiteError({"docker": False, "templates": True})

        response = error.to_response()

        assert error.status_code == 503
        assert response.error.details == {"docker": False, "templates": True}

    def test_provisioning_exit_code(self) -> None:
        error = ProvisioningFailure("exited with code 2", exit_code=2)

        assert error.exit_code == 2
        assert str(error) == "exited with code 2"
