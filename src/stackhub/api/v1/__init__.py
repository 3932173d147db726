"""API v1 module."""

from stackhub.api.v1.diagnostics import router as diagnostics_router
from stackhub.api.v1.health import router as health_router
from stackhub.api.v1.instances import router as instances_router

__all__ = [
    "diagnostics_router",
    "health_router",
    "instances_router",
]
