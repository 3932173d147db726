"""Instance domain enums.

InstanceStatus carries the lifecycle state machine:

    creating -> running | error
    running  -> stopped | error
    stopped  -> running | error
    error    -> running | stopped

Deletion is legal from every state and removes the record, so it is not
part of the table.
"""

from enum import StrEnum


class InstanceStatus(StrEnum):
    """Instance lifecycle status."""

    CREATING = "creating"
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"

    def can_transition_to(self, target: "InstanceStatus") -> bool:
        """Check whether moving from this status to target is legal.

        Same-state moves are always legal (no-op).
        """
        if self == target:
            return True
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[InstanceStatus, frozenset[InstanceStatus]] = {
    InstanceStatus.CREATING: frozenset({InstanceStatus.RUNNING, InstanceStatus.ERROR}),
    InstanceStatus.RUNNING: frozenset({InstanceStatus.STOPPED, InstanceStatus.ERROR}),
    InstanceStatus.STOPPED: frozenset({InstanceStatus.RUNNING, InstanceStatus.ERROR}),
    InstanceStatus.ERROR: frozenset({InstanceStatus.RUNNING, InstanceStatus.STOPPED}),
}


class PortCategory(StrEnum):
    """Named port categories. Each instance draws one port per category."""

    KONG_HTTP = "kong_http"
    KONG_HTTPS = "kong_https"
    POSTGRES_EXT = "postgres_ext"
    ANALYTICS = "analytics"
