"""Prometheus metrics definitions for stackhub.

Tracks the instance lifecycle:
- Operations (create, start, stop, delete) by result
- Provisioning script duration
- Cleanup step failures
- Instance count by status (snapshot, refreshed on every reconciling list)
"""

from prometheus_client import Counter, Gauge, Histogram

from stackhub.core.domain import InstanceStatus

# =============================================================================
# Histogram Buckets
# =============================================================================
# Provisioning builds whole service bundles (seconds to 10 minutes)
_BUCKETS_PROVISIONING = (
    5, 10, 20, 40, 60,
    90, 120, 180, 300, 450,
    600,
)  # 11 buckets

# =============================================================================
# Operation Metrics
# =============================================================================

STACKHUB_OPERATIONS = Counter(
    "stackhub_instance_operations_total",
    "Total instance lifecycle operations",
    ["operation", "result"],  # operation: create, start, stop, delete; result: success, failure
)

STACKHUB_PROVISIONING_DURATION = Histogram(
    "stackhub_provisioning_duration_seconds",
    "Duration of the creation workflow (script + validation)",
    ["result"],  # committed, rolled_back
    buckets=_BUCKETS_PROVISIONING,
)

STACKHUB_CLEANUP_FAILURES = Counter(
    "stackhub_cleanup_failures_total",
    "Cleanup steps that failed (downgraded to warnings)",
    ["step"],  # compose_down, remove_containers, remove_artifact
)

# =============================================================================
# Resource Count Metrics (Snapshot)
# =============================================================================

STACKHUB_INSTANCES = Gauge(
    "stackhub_instances",
    "Known instances by status",
    ["status"],
)


def _init_metrics() -> None:
    """Initialize labeled metrics with zero values."""
    for op in ["create", "start", "stop", "delete"]:
        for result in ["success", "failure"]:
            STACKHUB_OPERATIONS.labels(operation=op, result=result)

    for result in ["committed", "rolled_back"]:
        STACKHUB_PROVISIONING_DURATION.labels(result=result)

    for step in ["compose_down", "remove_containers", "remove_artifact"]:
        STACKHUB_CLEANUP_FAILURES.labels(step=step)

    for status in InstanceStatus:
        STACKHUB_INSTANCES.labels(status=status.value).set(0)


_init_metrics()
