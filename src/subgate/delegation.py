"""
SubGate Task Delegator

Execution coordinator and programmatic surface of the engine. Each call to
delegate() walks one task through admitted -> dispatched -> completed/failed:

- admission: validation and insertion into the running-tasks store happen
  under one lock, so a worker's concurrency limit is a reservation rather
  than an advisory snapshot
- dispatch: the executor is awaited outside the lock; this is the only
  suspension point and may take arbitrarily long
- completion: the running entry is removed and the outcome is fed back into
  the registry (success rate, response time, load)

Cancellation removes the task's bookkeeping and signals the executor's
cancel event. Whether the dispatched work actually stops is up to the
executor. The outcome of a cancelled task is not recorded against the worker.
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional

from subgate.catalog import load_catalog, register_catalog
from subgate.config import Settings, get_settings
from subgate.executor import SimulatedTaskExecutor, TaskExecutor
from subgate.health import HealthMonitor
from subgate.models import (
    CapabilityProfile,
    DelegationErrorCode,
    DelegationRequest,
    DelegationResponse,
    DiscoveryFilter,
    ExecutionMetadata,
    RegistryStatistics,
    SystemStatus,
    TaskPhase,
    WorkerDefinition,
    WorkerRegistration,
    WorkerStatus,
    generate_task_id,
    utcnow,
)
from subgate.registry import WorkerRegistry
from subgate.scoring import select_best_worker
from subgate.validation import DelegationValidator, availability_problem

logger = logging.getLogger(__name__)

# Statuses an operator may set directly
OPERATOR_STATUSES = {WorkerStatus.ACTIVE, WorkerStatus.INACTIVE, WorkerStatus.MAINTENANCE}


def _duration_ms(start: datetime, end: datetime) -> float:
    return max(0.0, (end - start).total_seconds() * 1000.0)


class TaskDelegator:
    """Routes work to registered workers and tracks it while in flight"""

    def __init__(
        self,
        registry: Optional[WorkerRegistry] = None,
        executor: Optional[TaskExecutor] = None,
        settings: Optional[Settings] = None,
        health_monitor: Optional[HealthMonitor] = None,
    ):
        self._settings = settings or get_settings()
        self._registry = registry if registry is not None else WorkerRegistry(self._settings)
        self._executor = executor if executor is not None else SimulatedTaskExecutor(self._settings)
        self._health = (
            health_monitor if health_monitor is not None
            else HealthMonitor(self._registry, self._settings)
        )
        self._validator = DelegationValidator(self._registry, self.running_tasks_for)

        self._running: dict[str, ExecutionMetadata] = {}
        self._cancel_events: dict[str, asyncio.Event] = {}
        self._admission_lock = asyncio.Lock()

    @property
    def registry(self) -> WorkerRegistry:
        return self._registry

    @property
    def health_monitor(self) -> HealthMonitor:
        return self._health

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self):
        """Start background health sweeps"""
        self._health.start()

    async def stop(self):
        await self._health.stop()

    # =========================================================================
    # Worker management
    # =========================================================================

    async def register_worker(self, definition: WorkerDefinition) -> WorkerRegistration:
        return await self._registry.register(definition)

    async def unregister_worker(self, worker_id: str) -> bool:
        return await self._registry.unregister(worker_id)

    async def list_workers(
        self, criteria: Optional[DiscoveryFilter] = None
    ) -> list[WorkerRegistration]:
        return await self._registry.find(criteria)

    async def get_worker(self, worker_id: str) -> Optional[WorkerRegistration]:
        return await self._registry.get(worker_id)

    async def get_capabilities(self, worker_id: str) -> Optional[CapabilityProfile]:
        registration = await self._registry.get(worker_id)
        return registration.capabilities if registration else None

    async def set_worker_status(self, worker_id: str, status: WorkerStatus) -> bool:
        """
        Operator status change. Only active, inactive and maintenance may be
        set by hand; busy and error belong to the health monitor.
        """
        if status not in OPERATOR_STATUSES:
            raise ValueError(f"Status {status.value} cannot be set by an operator")
        return await self._registry.update_status(worker_id, status)

    async def recover_worker(self, worker_id: str) -> bool:
        return await self._health.recover_worker(worker_id)

    def get_statistics(self) -> RegistryStatistics:
        return self._registry.get_stats()

    # =========================================================================
    # Discovery
    # =========================================================================

    def running_tasks_for(self, worker_id: str) -> int:
        return sum(1 for m in self._running.values() if m.worker_id == worker_id)

    async def is_available(self, worker_id: str) -> bool:
        registration = await self._registry.get(worker_id)
        if registration is None:
            return False
        return availability_problem(registration, self.running_tasks_for(worker_id)) is None

    async def find_best_worker(
        self,
        task: str,
        required_tools: Optional[list[str]] = None,
        task_tags: Optional[list[str]] = None,
    ) -> Optional[str]:
        """ID of the best worker for the task, or None"""
        workers = await self._registry.list_all()
        best = select_best_worker(workers, task, required_tools, task_tags, self._settings)
        return best.worker_id if best else None

    async def _select_for_request(
        self, request: DelegationRequest
    ) -> Optional[WorkerRegistration]:
        # Prefer workers that can take the task right now
        workers = await self._registry.list_all()
        ready = [
            w for w in workers
            if availability_problem(w, self.running_tasks_for(w.worker_id)) is None
        ]
        args = (request.task_text(), request.required_tools, request.task_tags, self._settings)
        # A capable worker that is merely full is still the answer; the
        # validator then reports it as unavailable
        return select_best_worker(ready, *args) or select_best_worker(workers, *args)

    # =========================================================================
    # Task tracking
    # =========================================================================

    def get_task_status(self, task_id: str) -> Optional[ExecutionMetadata]:
        metadata = self._running.get(task_id)
        return metadata.model_copy() if metadata else None

    async def cancel_task(self, task_id: str) -> bool:
        """
        Drop a running task's bookkeeping and signal its cancel event.
        Does not guarantee the dispatched work stops.
        """
        metadata = self._running.pop(task_id, None)
        if metadata is None:
            return False

        event = self._cancel_events.pop(task_id, None)
        if event is not None:
            event.set()

        await self._refresh_load(metadata.worker_id)
        logger.warning(
            "Task cancelled",
            extra={"task_id": task_id, "worker_id": metadata.worker_id}
        )
        return True

    def get_system_status(self) -> SystemStatus:
        workers = self._registry.snapshot()
        total = len(workers)
        errored = sum(1 for w in workers if w.status == WorkerStatus.ERROR)
        available = sum(
            1 for w in workers
            if availability_problem(w, self.running_tasks_for(w.worker_id)) is None
        )
        running = len(self._running)
        # Admitted tasks are dispatched immediately; there is no queue
        queued = 0

        if total == 0:
            health = "no_workers"
        elif available == 0:
            health = "at_capacity"
        elif errored * 2 > total:
            health = "degraded"
        else:
            health = "healthy"

        return SystemStatus(
            total_workers=total,
            available_workers=available,
            running_tasks=running,
            queued_tasks=queued,
            system_health=health,
        )

    async def _refresh_load(self, worker_id: str):
        registration = await self._registry.get(worker_id)
        if registration is None:
            return
        limit = registration.definition.max_concurrent_tasks
        load = self.running_tasks_for(worker_id) / limit * 100.0
        await self._registry.update_load(worker_id, load)

    # =========================================================================
    # Delegation
    # =========================================================================

    async def delegate(self, request: DelegationRequest) -> DelegationResponse:
        """
        Route one task to a worker and wait for the outcome.
        Never raises for expected failures; see DelegationResponse.error_code.
        """
        start = utcnow()
        warnings: list[str] = []

        if not request.worker_id:
            best = await self._select_for_request(request)
            if best is None:
                return self._error_response(
                    None, start, DelegationErrorCode.NOT_FOUND,
                    ["No suitable worker found for task"],
                )
            request = request.model_copy(update={"worker_id": best.worker_id})
            logger.info(
                "Worker selected for task",
                extra={"worker_id": best.worker_id, "priority": request.priority}
            )

        async with self._admission_lock:
            validation = await self._validator.validate(request)
            if not validation.valid:
                registration = await self._registry.get(request.worker_id)
                return self._error_response(
                    registration, start, validation.error_code, validation.errors,
                    worker_id=request.worker_id,
                )

            registration = await self._registry.get(request.worker_id)
            if registration is None:
                return self._error_response(
                    None, start, DelegationErrorCode.NOT_FOUND,
                    [f"Worker with ID {request.worker_id} not found"],
                    worker_id=request.worker_id,
                )

            task_id = generate_task_id()
            cancel_event = asyncio.Event()
            self._running[task_id] = ExecutionMetadata(
                task_id=task_id,
                worker_id=registration.worker_id,
                worker_role=registration.definition.role.value,
                phase=TaskPhase.ADMITTED,
                start_time=start,
            )
            self._cancel_events[task_id] = cancel_event
            await self._refresh_load(registration.worker_id)

        definition = registration.definition
        worker_id = definition.worker_id
        logger.info(
            "Task admitted",
            extra={"task_id": task_id, "worker_id": worker_id, "priority": request.priority}
        )

        if registration.status == WorkerStatus.ERROR:
            warnings.append(f"Worker {worker_id} was selected while in error status")
        if request.collaborative and not definition.collaboration_enabled:
            warnings.append(f"Worker {worker_id} does not support collaboration")

        timeout = request.timeout_seconds or self._settings.default_task_timeout_seconds

        try:
            running = self._running.get(task_id)
            if running is not None:
                running.phase = TaskPhase.DISPATCHED
            result = await self._executor(definition, request, cancel_event)
        except Exception as e:
            end = utcnow()
            duration = _duration_ms(start, end)
            self._finish(task_id)
            logger.error(
                "Task execution failed",
                extra={"task_id": task_id, "worker_id": worker_id, "error": str(e)},
                exc_info=True,
            )
            if not cancel_event.is_set():
                await self._registry.record_completion(worker_id, False, duration)
            await self._refresh_load(worker_id)
            return self._error_response(
                registration, start, DelegationErrorCode.EXECUTION_FAILURE,
                [f"Task execution failed: {e}"],
                task_id=task_id, end=end, warnings=warnings,
            )

        end = utcnow()
        duration = _duration_ms(start, end)
        cancelled = cancel_event.is_set()
        self._finish(task_id)

        metadata = ExecutionMetadata(
            task_id=task_id,
            worker_id=worker_id,
            worker_role=definition.role.value,
            phase=TaskPhase.COMPLETED if result.success else TaskPhase.FAILED,
            start_time=start,
            end_time=end,
            duration_ms=duration,
            completed_on_time=duration <= timeout * 1000.0,
            tools_used=result.tools_used,
            tool_invocations=result.tool_invocations,
            collaboration_used=result.collaboration_used,
            confidence=result.confidence,
        )

        # Cancelled outcomes are not recorded against the worker
        if cancelled:
            warnings.append("Task was cancelled while running")
        else:
            await self._registry.record_completion(worker_id, result.success, duration)
        await self._refresh_load(worker_id)

        if result.success or cancelled:
            error_code = None
        else:
            error_code = DelegationErrorCode.EXECUTION_FAILURE

        logger.info(
            "Task completed",
            extra={
                "task_id": task_id,
                "worker_id": worker_id,
                "success": result.success,
                "duration_ms": duration,
                "confidence": result.confidence,
            }
        )

        return DelegationResponse(
            success=result.success,
            task_id=task_id,
            result=result.output,
            data=result.data,
            metadata=metadata,
            error_code=error_code,
            errors=list(result.errors),
            warnings=warnings + list(result.warnings),
        )

    def _finish(self, task_id: str):
        self._running.pop(task_id, None)
        self._cancel_events.pop(task_id, None)

    def _error_response(
        self,
        registration: Optional[WorkerRegistration],
        start: datetime,
        code: Optional[DelegationErrorCode],
        errors: list[str],
        worker_id: Optional[str] = None,
        task_id: Optional[str] = None,
        end: Optional[datetime] = None,
        warnings: Optional[list[str]] = None,
    ) -> DelegationResponse:
        end = end or utcnow()
        if registration is not None:
            worker_id = registration.worker_id
            role = registration.definition.role.value
        else:
            role = "Unknown"

        return DelegationResponse(
            success=False,
            task_id=task_id,
            metadata=ExecutionMetadata(
                task_id=task_id or "",
                worker_id=worker_id or "",
                worker_role=role,
                phase=TaskPhase.FAILED,
                start_time=start,
                end_time=end,
                duration_ms=_duration_ms(start, end),
                completed_on_time=False,
                confidence=0.0,
            ),
            error_code=code,
            errors=errors,
            warnings=warnings or [],
        )


# Global delegator instance
_delegator: Optional[TaskDelegator] = None


def get_delegator() -> TaskDelegator:
    """Get the global task delegator"""
    global _delegator
    if _delegator is None:
        _delegator = TaskDelegator()
    return _delegator


async def init_delegator() -> TaskDelegator:
    """Initialize the global delegator, registering the configured catalog"""
    delegator = get_delegator()
    path = get_settings().worker_catalog_path
    if path:
        await register_catalog(delegator, load_catalog(path))
    return delegator
