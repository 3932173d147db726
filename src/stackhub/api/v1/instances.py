"""Instance API endpoints.

Creation is fire-and-forget: POST returns 202 with the provisional
record, and the outcome is observed by polling the instance.
"""

from fastapi import APIRouter, Depends, Query

from stackhub.api.dependencies import get_orchestrator
from stackhub.api.v1.schemas import (
    CreateInstanceRequest,
    InstanceListResponse,
    InstanceLogsResponse,
    InstanceResponse,
    OperationResponse,
)
from stackhub.core.orchestrator import ProvisioningOrchestrator

router = APIRouter(prefix="/instances", tags=["instances"])


@router.get("", response_model=InstanceListResponse)
async def list_instances(
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> InstanceListResponse:
    """List all instances with live status."""
    instances = await orchestrator.list_instances()
    return InstanceListResponse(
        instances=[InstanceResponse.from_instance(i) for i in instances]
    )


@router.post("", status_code=202, response_model=InstanceResponse)
async def create_instance(
    request: CreateInstanceRequest,
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> InstanceResponse:
    """Accept an instance for creation."""
    instance = await orchestrator.create_instance(request.name)
    return InstanceResponse.from_instance(instance)


@router.get("/{instance_id}", response_model=InstanceResponse)
async def get_instance(
    instance_id: str,
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> InstanceResponse:
    instance = await orchestrator.get_instance(instance_id)
    return InstanceResponse.from_instance(instance)


@router.post("/{instance_id}/start", response_model=InstanceResponse)
async def start_instance(
    instance_id: str,
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> InstanceResponse:
    """Start instance containers."""
    instance = await orchestrator.start_instance(instance_id)
    return InstanceResponse.from_instance(instance)


@router.post("/{instance_id}/stop", response_model=InstanceResponse)
async def stop_instance(
    instance_id: str,
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> InstanceResponse:
    """Stop instance containers."""
    instance = await orchestrator.stop_instance(instance_id)
    return InstanceResponse.from_instance(instance)


@router.delete("/{instance_id}", response_model=OperationResponse)
async def delete_instance(
    instance_id: str,
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> OperationResponse:
    """Delete instance, its containers and generated files."""
    await orchestrator.delete_instance(instance_id)
    return OperationResponse(status="deleted", instance_id=instance_id)


@router.get("/{instance_id}/logs", response_model=InstanceLogsResponse)
async def get_instance_logs(
    instance_id: str,
    lines: int = Query(default=100, ge=1, le=5000),
    orchestrator: ProvisioningOrchestrator = Depends(get_orchestrator),
) -> InstanceLogsResponse:
    """Tail the instance log."""
    log_lines = await orchestrator.instance_logs(instance_id, lines)
    return InstanceLogsResponse(instance_id=instance_id, lines=log_lines)
