"""API v1 schemas.

Consolidated request/response models for all API endpoints.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from stackhub.core.domain import InstanceStatus
from stackhub.core.models import Instance, InstanceUrls, PortAssignment


# =============================================================================
# Common
# =============================================================================


class OperationResponse(BaseModel):
    """Common operation response."""

    status: Literal["deleted"]
    instance_id: str


# =============================================================================
# Health
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


# =============================================================================
# Instances
# =============================================================================


class CreateInstanceRequest(BaseModel):
    """Create instance request.

    name is optional at the schema level so a missing name is reported
    as a VALIDATION_FAILED error like a blank one.
    """

    name: str | None = None


class InstanceResponse(BaseModel):
    """Instance as exposed to clients (secret omitted)."""

    id: str
    name: str
    status: InstanceStatus
    created_at: datetime
    ports: PortAssignment
    urls: InstanceUrls

    @classmethod
    def from_instance(cls, instance: Instance) -> "InstanceResponse":
        return cls.model_validate(instance.model_dump(exclude={"jwt_secret"}))


class InstanceListResponse(BaseModel):
    """Instance list response."""

    instances: list[InstanceResponse]


class InstanceLogsResponse(BaseModel):
    """Instance log lines, oldest first."""

    instance_id: str
    lines: list[str]
