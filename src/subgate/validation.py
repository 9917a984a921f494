"""
SubGate Delegation Validator

Pre-flight checks, run in order and stopping at the first failure:
worker exists, worker is available, task is non-empty, required tools
are allowed. Validation has no side effects.
"""
import logging
from typing import Callable, Optional

from subgate.models import (
    DelegationErrorCode,
    DelegationRequest,
    ValidationResult,
    WorkerRegistration,
    WorkerStatus,
)
from subgate.registry import WorkerRegistry

logger = logging.getLogger(__name__)

# Statuses in which a worker accepts no work regardless of capacity
UNAVAILABLE_STATUSES = {WorkerStatus.INACTIVE, WorkerStatus.MAINTENANCE}


def availability_problem(
    registration: WorkerRegistration, running_tasks: int
) -> Optional[str]:
    """Why the worker cannot take another task, or None if it can"""
    worker_id = registration.worker_id
    if registration.status in UNAVAILABLE_STATUSES:
        return f"Worker {worker_id} is {registration.status.value}"
    limit = registration.definition.max_concurrent_tasks
    if running_tasks >= limit:
        return (
            f"Worker {worker_id} is not available "
            f"({running_tasks}/{limit} concurrent tasks running)"
        )
    return None


def missing_tools(registration: WorkerRegistration, required_tools: list[str]) -> list[str]:
    allowed = set(registration.definition.allowed_tools)
    return [tool for tool in required_tools if tool not in allowed]


class DelegationValidator:
    """
    Validates delegation requests against the registry.

    running_tasks_for is a callable returning how many tasks a worker
    currently has in flight.
    """

    def __init__(
        self,
        registry: WorkerRegistry,
        running_tasks_for: Callable[[str], int],
    ):
        self._registry = registry
        self._running_tasks_for = running_tasks_for

    async def validate(self, request: DelegationRequest) -> ValidationResult:
        # 1. Worker exists
        if not request.worker_id:
            return self._fail(DelegationErrorCode.VALIDATION_FAILURE, "Worker ID is required")

        registration = await self._registry.get(request.worker_id)
        if registration is None:
            return self._fail(
                DelegationErrorCode.NOT_FOUND,
                f"Worker with ID {request.worker_id} not found",
            )

        # 2. Worker available
        problem = availability_problem(
            registration, self._running_tasks_for(request.worker_id)
        )
        if problem:
            return self._fail(DelegationErrorCode.UNAVAILABLE, problem)

        # 3. Task present
        if not request.task_text().strip():
            return self._fail(
                DelegationErrorCode.VALIDATION_FAILURE, "Task description is required"
            )

        # 4. Tools allowed
        missing = missing_tools(registration, request.required_tools)
        if missing:
            return self._fail(
                DelegationErrorCode.MISSING_CAPABILITY,
                f"Missing required tools: {', '.join(missing)}",
            )

        return ValidationResult(valid=True)

    def _fail(self, code: DelegationErrorCode, message: str) -> ValidationResult:
        logger.info("Delegation rejected", extra={"error_code": code.value, "reason": message})
        return ValidationResult(valid=False, error_code=code, errors=[message])
