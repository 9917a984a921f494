"""
SubGate REST API

FastAPI routes for worker registration, discovery, delegation and
task tracking.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from subgate import __version__
from subgate.auth import verify_api_key
from subgate.config import get_settings
from subgate.delegation import TaskDelegator, get_delegator
from subgate.models import (
    BestWorkerRequest,
    BestWorkerResponse,
    CapabilityProfile,
    DelegationRequest,
    DelegationResponse,
    DiscoveryFilter,
    ExecutionMetadata,
    RegistryStatistics,
    SystemStatus,
    WorkerAvailabilityResponse,
    WorkerDefinition,
    WorkerRegisterResponse,
    WorkerRegistration,
    WorkerStatusUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _not_found(kind: str, identifier: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "not_found", "message": f"{kind} {identifier} not found"},
    )


# =============================================================================
# Health Endpoints
# =============================================================================

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "version": __version__}


@router.get("/")
async def service_info(delegator: TaskDelegator = Depends(get_delegator)):
    """Service information and capabilities"""
    settings = get_settings()
    return {
        "service": "subgate",
        "version": __version__,
        "description": "Subagent registry and task delegation",
        "instance_id": settings.instance_id,
        "capabilities": [
            "worker_registry",
            "worker_discovery",
            "task_delegation",
            "health_monitoring",
        ],
        "system_status": delegator.get_system_status(),
    }


# =============================================================================
# Worker Registry Endpoints
# =============================================================================

@router.post(
    "/v1/workers/register",
    response_model=WorkerRegisterResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_api_key)]
)
async def register_worker(
    definition: WorkerDefinition,
    delegator: TaskDelegator = Depends(get_delegator),
):
    """Register a worker; re-registering an ID replaces the old registration"""
    registration = await delegator.register_worker(definition)
    return WorkerRegisterResponse(
        worker_id=registration.worker_id,
        status="registered",
        registered_at=registration.registered_at,
    )


@router.get("/v1/workers", response_model=list[WorkerRegistration], dependencies=[Depends(verify_api_key)])
async def list_workers(delegator: TaskDelegator = Depends(get_delegator)):
    return await delegator.list_workers()


@router.post("/v1/workers/search", response_model=list[WorkerRegistration], dependencies=[Depends(verify_api_key)])
async def search_workers(
    criteria: DiscoveryFilter,
    delegator: TaskDelegator = Depends(get_delegator),
):
    """Find workers matching every predicate in the filter"""
    return await delegator.list_workers(criteria)


@router.post("/v1/workers/best", response_model=BestWorkerResponse, dependencies=[Depends(verify_api_key)])
async def best_worker(
    request: BestWorkerRequest,
    delegator: TaskDelegator = Depends(get_delegator),
):
    worker_id = await delegator.find_best_worker(
        request.task, request.required_tools, request.task_tags
    )
    return BestWorkerResponse(worker_id=worker_id)


@router.get("/v1/workers/{worker_id}", response_model=WorkerRegistration, dependencies=[Depends(verify_api_key)])
async def get_worker(worker_id: str, delegator: TaskDelegator = Depends(get_delegator)):
    registration = await delegator.get_worker(worker_id)
    if registration is None:
        raise _not_found("Worker", worker_id)
    return registration


@router.delete("/v1/workers/{worker_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(verify_api_key)])
async def unregister_worker(worker_id: str, delegator: TaskDelegator = Depends(get_delegator)):
    if not await delegator.unregister_worker(worker_id):
        raise _not_found("Worker", worker_id)


@router.get(
    "/v1/workers/{worker_id}/capabilities",
    response_model=CapabilityProfile,
    dependencies=[Depends(verify_api_key)]
)
async def get_capabilities(worker_id: str, delegator: TaskDelegator = Depends(get_delegator)):
    profile = await delegator.get_capabilities(worker_id)
    if profile is None:
        raise _not_found("Worker", worker_id)
    return profile


@router.get(
    "/v1/workers/{worker_id}/availability",
    response_model=WorkerAvailabilityResponse,
    dependencies=[Depends(verify_api_key)]
)
async def get_availability(worker_id: str, delegator: TaskDelegator = Depends(get_delegator)):
    if await delegator.get_worker(worker_id) is None:
        raise _not_found("Worker", worker_id)
    return WorkerAvailabilityResponse(
        worker_id=worker_id,
        available=await delegator.is_available(worker_id),
        running_tasks=delegator.running_tasks_for(worker_id),
    )


@router.put("/v1/workers/{worker_id}/status", response_model=WorkerRegistration, dependencies=[Depends(verify_api_key)])
async def update_worker_status(
    worker_id: str,
    update: WorkerStatusUpdate,
    delegator: TaskDelegator = Depends(get_delegator),
):
    """Operator status change (active, inactive or maintenance)"""
    try:
        updated = await delegator.set_worker_status(worker_id, update.status)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_status", "message": str(e)},
        )
    if not updated:
        raise _not_found("Worker", worker_id)
    return await delegator.get_worker(worker_id)


@router.post("/v1/workers/{worker_id}/recover", dependencies=[Depends(verify_api_key)])
async def recover_worker(worker_id: str, delegator: TaskDelegator = Depends(get_delegator)):
    if await delegator.get_worker(worker_id) is None:
        raise _not_found("Worker", worker_id)
    return {"worker_id": worker_id, "recovered": await delegator.recover_worker(worker_id)}


# =============================================================================
# Delegation Endpoints
# =============================================================================

@router.post("/v1/delegate", response_model=DelegationResponse, dependencies=[Depends(verify_api_key)])
async def delegate_task(
    request: DelegationRequest,
    delegator: TaskDelegator = Depends(get_delegator),
):
    """
    Delegate a task to a worker.

    Expected failures (unknown worker, unavailable worker, missing tools,
    empty task) come back as success=false with an error_code, not as
    HTTP errors.
    """
    return await delegator.delegate(request)


@router.get("/v1/tasks/{task_id}", response_model=ExecutionMetadata, dependencies=[Depends(verify_api_key)])
async def get_task_status(task_id: str, delegator: TaskDelegator = Depends(get_delegator)):
    metadata = delegator.get_task_status(task_id)
    if metadata is None:
        raise _not_found("Task", task_id)
    return metadata


@router.delete("/v1/tasks/{task_id}", dependencies=[Depends(verify_api_key)])
async def cancel_task(task_id: str, delegator: TaskDelegator = Depends(get_delegator)):
    """Cancel a running task. Dispatched work is signalled, not pre-empted."""
    if not await delegator.cancel_task(task_id):
        raise _not_found("Task", task_id)
    return {"task_id": task_id, "cancelled": True}


# =============================================================================
# Status Endpoints
# =============================================================================

@router.get("/v1/status", response_model=SystemStatus, dependencies=[Depends(verify_api_key)])
async def system_status(delegator: TaskDelegator = Depends(get_delegator)):
    return delegator.get_system_status()


@router.get("/v1/stats", response_model=RegistryStatistics, dependencies=[Depends(verify_api_key)])
async def registry_stats(delegator: TaskDelegator = Depends(get_delegator)):
    return delegator.get_statistics()
