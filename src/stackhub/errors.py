"""Error handling module for stackhub.

This module defines error codes, exception classes, and response models.

Error Response Format:
{
    "error": {
        "code": "INSTANCE_NOT_FOUND",
        "message": "Instance not found"
    }
}

Prerequisite failures also carry the checklist under "details".

Usage:
    from stackhub.errors import NotFoundError, ValidationError

    # Raise with default message
    raise NotFoundError()

    # Raise with custom message
    raise ValidationError("Instance name already exists")
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    PREREQUISITES_MISSING = "PREREQUISITES_MISSING"
    INSTANCE_NOT_FOUND = "INSTANCE_NOT_FOUND"
    PORT_RANGE_EXHAUSTED = "PORT_RANGE_EXHAUSTED"
    PROVISIONING_FAILED = "PROVISIONING_FAILED"
    VALIDATION_TIMEOUT = "VALIDATION_TIMEOUT"
    STORE_IO_ERROR = "STORE_IO_ERROR"
    DOCKER_ERROR = "DOCKER_ERROR"


class ErrorDetail(BaseModel):
    """Error detail containing code and message."""

    code: str
    message: str
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Error response format."""

    error: ErrorDetail


class StackHubError(Exception):
    """Base exception for stackhub.

    All stackhub specific exceptions should inherit from this class.
    This enables centralized exception handling in FastAPI.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
        status_code: HTTP status code to return
        details: Optional structured payload (e.g. prerequisite checklist)
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse model."""
        return ErrorResponse(
            error=ErrorDetail(
                code=self.code.value, message=self.message, details=self.details
            )
        )


class ValidationError(StackHubError):
    """400 Bad Request - Blank, missing or duplicate instance name."""

    def __init__(self, message: str = "Invalid instance request") -> None:
        super().__init__(ErrorCode.VALIDATION_FAILED, message, 400)


class PrerequisiteError(StackHubError):
    """503 Service Unavailable - Runtime, script or templates missing."""

    def __init__(
        self,
        checks: dict[str, bool],
        message: str = "System is not ready to create instances",
    ) -> None:
        self.checks = checks
        super().__init__(ErrorCode.PREREQUISITES_MISSING, message, 503, details=checks)


class NotFoundError(StackHubError):
    """404 Not Found - Instance or its generated artifacts not found."""

    def __init__(self, message: str = "Instance not found") -> None:
        super().__init__(ErrorCode.INSTANCE_NOT_FOUND, message, 404)


class ExhaustedRangeError(StackHubError):
    """503 Service Unavailable - No free port left in a category range."""

    def __init__(self, category: str, start: int, end: int) -> None:
        self.category = category
        self.start = start
        self.end = end
        super().__init__(
            ErrorCode.PORT_RANGE_EXHAUSTED,
            f"No free port in {category} range {start}-{end}",
            503,
        )


class ProvisioningFailure(StackHubError):
    """500 Internal Server Error - Script failed, could not launch, or timed out."""

    def __init__(
        self, message: str = "Provisioning failed", exit_code: int | None = None
    ) -> None:
        self.exit_code = exit_code
        super().__init__(ErrorCode.PROVISIONING_FAILED, message, 500)


class ValidationTimeout(StackHubError):
    """504 Gateway Timeout - Post-creation checks did not converge."""

    def __init__(self, message: str = "Instance validation timed out") -> None:
        super().__init__(ErrorCode.VALIDATION_TIMEOUT, message, 504)


class StoreIOError(StackHubError):
    """500 Internal Server Error - Instance store could not be read or written."""

    def __init__(self, message: str = "Instance store I/O failed") -> None:
        super().__init__(ErrorCode.STORE_IO_ERROR, message, 500)


class DockerError(StackHubError):
    """502 Bad Gateway - Container runtime command failed."""

    def __init__(self, message: str = "Docker operation failed") -> None:
        super().__init__(ErrorCode.DOCKER_ERROR, message, 502)
