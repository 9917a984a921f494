"""
SubGate Health Monitor

Periodic sweep that probes idle workers and drives their status:

    {active, busy} -> error            probe failed
    error -> {active, busy}            probe and recovery flip succeeded
    {active, busy} -> {active, busy}   relabel by current load

inactive and maintenance are operator-only and never touched by a sweep.
"""
import asyncio
import logging
import random
from datetime import datetime
from typing import Optional

from subgate.config import Settings, get_settings
from subgate.models import WorkerRegistration, WorkerStatus, utcnow
from subgate.registry import WorkerRegistry

logger = logging.getLogger(__name__)

HEALTHY_STATUSES = {WorkerStatus.ACTIVE, WorkerStatus.BUSY}
PROBED_STATUSES = HEALTHY_STATUSES | {WorkerStatus.ERROR}


class HealthMonitor:
    """
    Health sweeps over a WorkerRegistry.

    rng is any object with a random() method returning a float in [0, 1);
    it decides both liveness probes and recovery attempts.
    """

    def __init__(
        self,
        registry: WorkerRegistry,
        settings: Optional[Settings] = None,
        rng=None,
    ):
        self._registry = registry
        self._settings = settings or get_settings()
        self._rng = rng or random.SystemRandom()
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    def status_for_load(self, load: float) -> WorkerStatus:
        """busy above the busy threshold, active otherwise"""
        if load > self._settings.busy_load_threshold:
            return WorkerStatus.BUSY
        return WorkerStatus.ACTIVE

    async def probe(self, registration: WorkerRegistration) -> bool:
        """Liveness probe, a weighted coin flip independent of worker state"""
        return self._rng.random() < self._settings.health_probe_success_probability

    def _attempt_recovery(self, registration: WorkerRegistration) -> bool:
        return self._rng.random() < registration.success_rate / 100.0

    def is_due(self, registration: WorkerRegistration, now: datetime) -> bool:
        idle = (now - registration.last_activity).total_seconds()
        return idle >= registration.health_check_interval_seconds

    async def sweep(self, now: Optional[datetime] = None) -> dict[str, WorkerStatus]:
        """
        Probe every due worker once.

        Returns the workers whose status changed, mapped to their new status.
        """
        now = now or utcnow()
        transitions: dict[str, WorkerStatus] = {}

        for registration in await self._registry.list_all():
            if registration.status not in PROBED_STATUSES:
                continue
            if not self.is_due(registration, now):
                continue

            new_status = await self.check_worker(registration)
            if new_status is not None and new_status != registration.status:
                transitions[registration.worker_id] = new_status

        if transitions:
            logger.info(
                "Health sweep complete",
                extra={"transitions": {k: v.value for k, v in transitions.items()}}
            )
        return transitions

    async def check_worker(
        self, registration: WorkerRegistration
    ) -> Optional[WorkerStatus]:
        """
        Probe one worker and apply the resulting transition.
        Returns the status after the check, or None if it could not be applied.
        """
        worker_id = registration.worker_id
        prior = registration.status

        try:
            healthy = await self.probe(registration)

            if healthy and prior == WorkerStatus.ERROR:
                if not self._attempt_recovery(registration):
                    await self._registry.touch(worker_id)
                    return prior
                target = self.status_for_load(registration.current_load)
                if await self._registry.update_status(worker_id, target, {WorkerStatus.ERROR}):
                    logger.info(
                        "Worker recovered",
                        extra={"worker_id": worker_id, "status": target.value}
                    )
                    return target
                return None

            if healthy:
                target = self.status_for_load(registration.current_load)
                if await self._registry.update_status(worker_id, target, HEALTHY_STATUSES):
                    return target
                return None

            if prior == WorkerStatus.ERROR:
                await self._registry.touch(worker_id)
                return prior

            logger.warning(
                "Worker failed health check",
                extra={"worker_id": worker_id, "previous_status": prior.value}
            )
            if await self._registry.update_status(worker_id, WorkerStatus.ERROR, HEALTHY_STATUSES):
                return WorkerStatus.ERROR
            return None

        except Exception as e:
            logger.error(
                "Health check raised, marking worker as error",
                extra={"worker_id": worker_id, "error": str(e)},
                exc_info=True,
            )
            if await self._registry.update_status(worker_id, WorkerStatus.ERROR, PROBED_STATUSES):
                return WorkerStatus.ERROR
            return None

    async def recover_worker(self, worker_id: str) -> bool:
        """
        Operator-triggered recovery. Only valid from error; the worker
        becomes busy or active according to its load.
        """
        registration = await self._registry.get(worker_id)
        if registration is None:
            logger.warning("Cannot recover unknown worker", extra={"worker_id": worker_id})
            return False

        if registration.status != WorkerStatus.ERROR:
            logger.warning(
                "Worker is not in error state, recovery refused",
                extra={"worker_id": worker_id, "status": registration.status.value}
            )
            return False

        target = self.status_for_load(registration.current_load)
        recovered = await self._registry.update_status(worker_id, target, {WorkerStatus.ERROR})
        if recovered:
            logger.info(
                "Worker manually recovered",
                extra={"worker_id": worker_id, "status": target.value}
            )
        return recovered

    async def recover_all_error_workers(self) -> int:
        """Recover every worker in error; returns how many were recovered"""
        recovered = 0
        for registration in await self._registry.list_all():
            if registration.status == WorkerStatus.ERROR:
                if await self.recover_worker(registration.worker_id):
                    recovered += 1
        return recovered

    # =========================================================================
    # Background loop
    # =========================================================================

    async def run(self):
        """Sweep on a fixed cadence until stop() is called"""
        self._running = True
        interval = self._settings.health_sweep_interval_seconds
        logger.info("Health monitor started", extra={"interval_seconds": interval})

        while self._running:
            try:
                await asyncio.sleep(interval)
                await self.sweep()
            except Exception as e:
                logger.error(f"Error in health sweep: {e}", exc_info=True)

    def start(self) -> asyncio.Task:
        """Start the background sweep on the running event loop"""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        """Stop the background sweep gracefully"""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Health monitor stopped")
