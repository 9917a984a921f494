"""
SubGate Statistics

Read-only rollups over a snapshot of worker registrations.
"""
from subgate.models import (
    RegistryMetrics,
    RegistryStatistics,
    WorkerRegistration,
    WorkerRole,
    WorkerStatus,
)


def count_by_status(workers: list[WorkerRegistration]) -> dict[str, int]:
    """Every status appears, including those with no workers"""
    counts = {s.value: 0 for s in WorkerStatus}
    for w in workers:
        counts[w.status.value] += 1
    return counts


def count_by_role(workers: list[WorkerRegistration]) -> dict[str, int]:
    """Every role appears, including those with no workers"""
    counts = {r.value: 0 for r in WorkerRole}
    for w in workers:
        counts[w.definition.role.value] += 1
    return counts


def calculate_metrics(workers: list[WorkerRegistration]) -> RegistryMetrics:
    if not workers:
        return RegistryMetrics()

    n = len(workers)
    return RegistryMetrics(
        avg_success_rate=sum(w.success_rate for w in workers) / n,
        avg_response_time_ms=sum(
            w.capabilities.performance.avg_response_time_ms for w in workers
        ) / n,
        total_tasks_completed=sum(w.tasks_completed for w in workers),
        system_load=sum(w.current_load for w in workers) / n,
    )


def calculate_statistics(workers: list[WorkerRegistration]) -> RegistryStatistics:
    return RegistryStatistics(
        total_workers=len(workers),
        by_status=count_by_status(workers),
        by_role=count_by_role(workers),
        system_metrics=calculate_metrics(workers),
    )
