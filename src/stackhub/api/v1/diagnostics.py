"""Diagnostics endpoint."""

from fastapi import APIRouter, Depends

from stackhub.api.dependencies import get_orchestrator
from stackhub.core.orchestrator import Diagnostics, ProvisioningOrchestrator

router = APIRouter(tags=["diagnostics"])


@router.get("/diagnostics", response_model=Diagnostics)
async def diagnostics(
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> Diagnostics:
    """Prerequisites, instance counts and remaining port capacity."""
    return await orchestrator.diagnostics()
