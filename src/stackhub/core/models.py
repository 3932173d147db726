"""Instance record as persisted in the instance store."""

import secrets
from datetime import UTC, datetime

from pydantic import BaseModel, Field
from ulid import ULID

from stackhub.core.domain import InstanceStatus, PortCategory


def generate_instance_id() -> str:
    """Generate a new instance ID.

    Lowercase ULID: time ordered, never reused, and valid as a suffix of
    compose project, container and file names.
    """
    return str(ULID()).lower()


def generate_secret() -> str:
    """Generate the per-instance JWT secret (32 random bytes, hex)."""
    return secrets.token_hex(32)


class PortAssignment(BaseModel):
    """One port per port category."""

    kong_http: int
    kong_https: int
    postgres_ext: int
    analytics: int

    def get(self, category: PortCategory) -> int:
        return getattr(self, category.value)


class InstanceUrls(BaseModel):
    """Human-facing addresses derived from host address and gateway port."""

    studio: str
    api: str

    @classmethod
    def for_gateway(cls, host_address: str, gateway_port: int) -> "InstanceUrls":
        base = f"http://{host_address}:{gateway_port}"
        return cls(studio=base, api=base)


class Instance(BaseModel):
    """Instance record."""

    id: str
    name: str
    status: InstanceStatus = InstanceStatus.CREATING
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    jwt_secret: str
    ports: PortAssignment
    urls: InstanceUrls

    def transition_to(self, target: InstanceStatus, *, force: bool = False) -> bool:
        """Move to target status if the transition is legal.

        Args:
            target: Desired status
            force: Skip the transition table (explicit stop)

        Returns:
            True if the status now equals target, False if the move was ignored.
        """
        if not force and not self.status.can_transition_to(target):
            return False
        self.status = target
        return True


def normalize_name(name: str) -> str:
    """Key used for case-insensitive name uniqueness."""
    return name.strip().casefold()
