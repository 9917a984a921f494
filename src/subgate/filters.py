"""
SubGate Discovery Filters

Composable predicates over worker registrations. Each filter only ever
narrows the candidate list and preserves its order.
"""
from typing import Iterable, Optional, Union

from subgate.models import (
    DiscoveryFilter,
    WorkerRegistration,
    WorkerRole,
    WorkerStatus,
)


def filter_by_role(
    workers: list[WorkerRegistration], role: WorkerRole
) -> list[WorkerRegistration]:
    return [w for w in workers if w.definition.role == role]


def filter_by_status(
    workers: list[WorkerRegistration],
    status: Union[WorkerStatus, Iterable[WorkerStatus]],
) -> list[WorkerRegistration]:
    """Accepts a single status or a collection of statuses"""
    if isinstance(status, WorkerStatus):
        allowed = {status}
    else:
        allowed = set(status)
    return [w for w in workers if w.status in allowed]


def filter_by_capabilities(
    workers: list[WorkerRegistration], capabilities: list[str]
) -> list[WorkerRegistration]:
    """Keep workers declaring any of the given specializations"""
    wanted = {c.lower() for c in capabilities}
    return [
        w for w in workers
        if any(s.lower() in wanted for s in w.capabilities.specializations)
    ]


def filter_by_min_success_rate(
    workers: list[WorkerRegistration], min_rate: float
) -> list[WorkerRegistration]:
    return [w for w in workers if w.success_rate >= min_rate]


def filter_by_max_load(
    workers: list[WorkerRegistration], max_load: float
) -> list[WorkerRegistration]:
    return [w for w in workers if w.current_load <= max_load]


def filter_by_required_tools(
    workers: list[WorkerRegistration], required_tools: list[str]
) -> list[WorkerRegistration]:
    """Keep workers whose tool list contains every required tool"""
    return [
        w for w in workers
        if all(tool in w.capabilities.tools for tool in required_tools)
    ]


def apply_filters(
    workers: list[WorkerRegistration],
    criteria: Optional[DiscoveryFilter] = None,
) -> list[WorkerRegistration]:
    """
    Apply every predicate set on the filter, in a fixed order:
    role, status, capabilities, min success rate, max load, required tools.
    Returns the input unchanged when no filter is given.
    """
    result = list(workers)
    if criteria is None:
        return result

    if criteria.role is not None:
        result = filter_by_role(result, criteria.role)

    if criteria.status is not None:
        result = filter_by_status(result, criteria.status)

    if criteria.capabilities:
        result = filter_by_capabilities(result, criteria.capabilities)

    if criteria.min_success_rate is not None:
        result = filter_by_min_success_rate(result, criteria.min_success_rate)

    if criteria.max_load is not None:
        result = filter_by_max_load(result, criteria.max_load)

    if criteria.required_tools:
        result = filter_by_required_tools(result, criteria.required_tools)

    return result
