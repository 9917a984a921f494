"""
SubGate Worker Registry

Authoritative store of worker registrations and their runtime state.
Every mutation runs under one asyncio lock; readers receive copies so that
runtime state is only ever changed through the methods below.
"""
import asyncio
import logging
from typing import Optional

from subgate.capabilities import build_capability_profile
from subgate.config import Settings, get_settings
from subgate.filters import apply_filters
from subgate.models import (
    DiscoveryFilter,
    RegistryStatistics,
    WorkerDefinition,
    WorkerRegistration,
    WorkerStatus,
    utcnow,
)
from subgate.statistics import calculate_statistics

logger = logging.getLogger(__name__)

SUCCESS_VALUE = 100.0
FAILURE_VALUE = 0.0


class WorkerRegistry:
    """
    In-memory registry keyed by worker_id.

    At most one registration exists per worker_id; registering an existing
    id replaces the previous registration outright.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()
        self._workers: dict[str, WorkerRegistration] = {}
        self._lock = asyncio.Lock()

    async def register(self, definition: WorkerDefinition) -> WorkerRegistration:
        """Register a worker; starts active with zero load"""
        async with self._lock:
            now = utcnow()
            baseline_rate = (
                definition.metrics.success_rate
                if definition.metrics is not None
                else SUCCESS_VALUE
            )
            registration = WorkerRegistration(
                definition=definition.model_copy(deep=True),
                status=WorkerStatus.ACTIVE,
                registered_at=now,
                last_activity=now,
                health_check_interval_seconds=self._settings.health_check_interval_seconds,
                success_rate=baseline_rate,
                current_load=0.0,
                capabilities=build_capability_profile(definition, self._settings),
            )

            replaced = definition.worker_id in self._workers
            self._workers[definition.worker_id] = registration

            logger.info(
                "Worker registered",
                extra={
                    "worker_id": definition.worker_id,
                    "worker_name": definition.name,
                    "role": definition.role.value,
                    "tools": len(definition.allowed_tools),
                    "replaced": replaced,
                }
            )

            return registration.model_copy(deep=True)

    async def unregister(self, worker_id: str) -> bool:
        """Remove a registration; returns whether one existed"""
        async with self._lock:
            if worker_id not in self._workers:
                return False
            del self._workers[worker_id]
            logger.info("Worker unregistered", extra={"worker_id": worker_id})
            return True

    async def get(self, worker_id: str) -> Optional[WorkerRegistration]:
        """Get a copy of a registration by ID"""
        registration = self._workers.get(worker_id)
        return registration.model_copy(deep=True) if registration else None

    async def list_all(self) -> list[WorkerRegistration]:
        """Copies of all registrations, in registration order"""
        return self.snapshot()

    def snapshot(self) -> list[WorkerRegistration]:
        return [r.model_copy(deep=True) for r in self._workers.values()]

    async def find(
        self, criteria: Optional[DiscoveryFilter] = None
    ) -> list[WorkerRegistration]:
        """Registrations matching the filter (all of them when None)"""
        return apply_filters(await self.list_all(), criteria)

    async def update_status(
        self,
        worker_id: str,
        status: WorkerStatus,
        expected: Optional[set[WorkerStatus]] = None,
    ) -> bool:
        """
        Set status and record activity. Idempotent.

        When expected is given the change only applies if the current status
        is one of them, so a transition computed from an earlier snapshot
        cannot overwrite a concurrent change.
        """
        async with self._lock:
            registration = self._workers.get(worker_id)
            if registration is None:
                return False

            previous = registration.status
            if expected is not None and previous not in expected:
                return False
            registration.status = status
            registration.last_activity = utcnow()

            if previous != status:
                logger.info(
                    "Worker status changed",
                    extra={
                        "worker_id": worker_id,
                        "from_status": previous.value,
                        "to_status": status.value,
                    }
                )
            return True

    async def touch(self, worker_id: str) -> bool:
        """Record activity without changing anything else"""
        async with self._lock:
            registration = self._workers.get(worker_id)
            if registration is None:
                return False
            registration.last_activity = utcnow()
            return True

    async def update_load(self, worker_id: str, load: float) -> bool:
        """Set current load, clamped to [0, 100]"""
        async with self._lock:
            registration = self._workers.get(worker_id)
            if registration is None:
                return False
            registration.current_load = min(100.0, max(0.0, load))
            registration.last_activity = utcnow()
            return True

    async def record_completion(
        self,
        worker_id: str,
        success: bool,
        response_time_ms: float,
    ) -> bool:
        """
        Fold one task outcome into the worker's statistics.

        Success rate and average response time are exponential moving
        averages with the configured smoothing weight.
        """
        async with self._lock:
            registration = self._workers.get(worker_id)
            if registration is None:
                return False

            w = self._settings.success_rate_smoothing_weight
            outcome = SUCCESS_VALUE if success else FAILURE_VALUE
            rate = registration.success_rate * (1 - w) + outcome * w
            registration.success_rate = min(100.0, max(0.0, rate))

            performance = registration.capabilities.performance
            avg_time = performance.avg_response_time_ms * (1 - w) + max(0.0, response_time_ms) * w
            registration.capabilities = registration.capabilities.model_copy(
                update={
                    "performance": performance.model_copy(
                        update={"avg_response_time_ms": avg_time}
                    )
                }
            )

            registration.tasks_completed += 1
            registration.last_activity = utcnow()

            logger.info(
                "Task completion recorded",
                extra={
                    "worker_id": worker_id,
                    "success": success,
                    "response_time_ms": response_time_ms,
                    "success_rate": registration.success_rate,
                    "tasks_completed": registration.tasks_completed,
                }
            )
            return True

    def __len__(self) -> int:
        return len(self._workers)

    def __contains__(self, worker_id: object) -> bool:
        return worker_id in self._workers

    def get_stats(self) -> RegistryStatistics:
        """Registry statistics"""
        return calculate_statistics(list(self._workers.values()))
