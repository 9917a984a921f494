"""
SubGate MCP Server

MCP (Model Context Protocol) interface for SubGate.
Provides tools for worker registration, discovery and task delegation.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from subgate.delegation import get_delegator, init_delegator
from subgate.models import (
    DelegationRequest,
    DiscoveryFilter,
    WorkerDefinition,
    WorkerRole,
    WorkerStatus,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(server: FastMCP):
    delegator = await init_delegator()
    delegator.start()
    logger.info("SubGate MCP server started")
    try:
        yield
    finally:
        await delegator.stop()


# Initialize MCP server
mcp = FastMCP("subgate", lifespan=lifespan)


# =============================================================================
# MCP Tools
# =============================================================================

@mcp.tool()
async def register_worker(
    worker_id: str,
    name: str,
    role: str = "Custom",
    skills: Optional[list[str]] = None,
    allowed_tools: Optional[list[str]] = None,
    max_concurrent_tasks: int = 1,
    collaboration_enabled: bool = False,
    description: str = "",
) -> dict[str, Any]:
    """
    Register a worker with SubGate.

    Args:
        worker_id: Unique worker identifier
        name: Human-readable name
        role: One of FrontendDev, BackendDev, QA, Architect, CLI Dev, UX Expert, SM, Custom
        skills: Declared skill tags
        allowed_tools: Tool names the worker may invoke
        max_concurrent_tasks: Concurrency limit
        collaboration_enabled: Whether the worker can collaborate
        description: Free text description

    Returns:
        Registration record
    """
    definition = WorkerDefinition(
        worker_id=worker_id,
        name=name,
        role=WorkerRole(role),
        description=description,
        skills=skills or [],
        allowed_tools=allowed_tools or [],
        max_concurrent_tasks=max_concurrent_tasks,
        collaboration_enabled=collaboration_enabled,
    )
    registration = await get_delegator().register_worker(definition)
    return registration.model_dump(mode="json")


@mcp.tool()
async def list_workers(
    role: Optional[str] = None,
    status: Optional[str] = None,
    required_tools: Optional[list[str]] = None,
) -> dict[str, Any]:
    """
    List registered workers, optionally filtered.

    Args:
        role: Only workers with this role
        status: Only workers with this status (active, inactive, busy, error, maintenance)
        required_tools: Only workers allowed to use all of these tools
    """
    criteria = DiscoveryFilter(
        role=WorkerRole(role) if role else None,
        status=WorkerStatus(status) if status else None,
        required_tools=required_tools or [],
    )
    workers = await get_delegator().list_workers(criteria)
    return {
        "count": len(workers),
        "workers": [w.model_dump(mode="json") for w in workers],
    }


@mcp.tool()
async def find_best_worker(
    task: str,
    required_tools: Optional[list[str]] = None,
    task_tags: Optional[list[str]] = None,
) -> dict[str, Any]:
    """
    Find the best worker for a task.

    Args:
        task: Task description
        required_tools: Tools the worker must be allowed to use
        task_tags: Structured capability tags describing the task
    """
    worker_id = await get_delegator().find_best_worker(task, required_tools, task_tags)
    return {"worker_id": worker_id, "found": worker_id is not None}


@mcp.tool()
async def delegate_task(
    task: str,
    worker_id: Optional[str] = None,
    required_tools: Optional[list[str]] = None,
    priority: int = 5,
    timeout_seconds: Optional[float] = None,
    collaborative: bool = False,
    task_tags: Optional[list[str]] = None,
) -> dict[str, Any]:
    """
    Delegate a task to a worker and wait for the result.

    Args:
        task: Task description
        worker_id: Target worker (the best worker is chosen when omitted)
        required_tools: Tools the worker must be allowed to use
        priority: 1 (lowest) to 10 (highest)
        timeout_seconds: Expected completion time
        collaborative: Allow the worker to collaborate
        task_tags: Structured capability tags describing the task
    """
    request = DelegationRequest(
        worker_id=worker_id,
        task=task,
        required_tools=required_tools or [],
        priority=priority,
        timeout_seconds=timeout_seconds,
        collaborative=collaborative,
        task_tags=task_tags or [],
    )
    response = await get_delegator().delegate(request)
    return response.model_dump(mode="json")


@mcp.tool()
async def get_task_status(task_id: str) -> dict[str, Any]:
    """Get the metadata of a running task"""
    metadata = get_delegator().get_task_status(task_id)
    if metadata is None:
        return {"error": "not_found", "task_id": task_id}
    return metadata.model_dump(mode="json")


@mcp.tool()
async def cancel_task(task_id: str) -> dict[str, Any]:
    """Cancel a running task. The worker is signalled but not pre-empted."""
    return {"task_id": task_id, "cancelled": await get_delegator().cancel_task(task_id)}


@mcp.tool()
async def get_system_status() -> dict[str, Any]:
    """Worker and task counts plus overall health"""
    return get_delegator().get_system_status().model_dump(mode="json")


@mcp.tool()
async def get_statistics() -> dict[str, Any]:
    """Registry statistics by status and role"""
    return get_delegator().get_statistics().model_dump(mode="json")


def main():
    """Run the MCP server over stdio"""
    logging.basicConfig(level=logging.INFO)
    mcp.run()


if __name__ == "__main__":
    main()
