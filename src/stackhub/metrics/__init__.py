"""Prometheus metrics."""

from stackhub.metrics.collector import (
    STACKHUB_CLEANUP_FAILURES,
    STACKHUB_INSTANCES,
    STACKHUB_OPERATIONS,
    STACKHUB_PROVISIONING_DURATION,
)

__all__ = [
    "STACKHUB_CLEANUP_FAILURES",
    "STACKHUB_INSTANCES",
    "STACKHUB_OPERATIONS",
    "STACKHUB_PROVISIONING_DURATION",
]
