"""
SubGate - Subagent Registry and Task Delegation

Tracks a pool of specialized workers, picks the best worker for each unit
of work, supervises worker health over time and records the outcome of
delegated work.
"""

__version__ = "0.1.0"

from subgate.models import (
    CapabilityProfile,
    DelegationRequest,
    DelegationResponse,
    DiscoveryFilter,
    ExecutionMetadata,
    WorkerDefinition,
    WorkerRegistration,
    WorkerRole,
    WorkerStatus,
)
from subgate.registry import WorkerRegistry
from subgate.health import HealthMonitor
from subgate.delegation import TaskDelegator

__all__ = [
    "CapabilityProfile",
    "DelegationRequest",
    "DelegationResponse",
    "DiscoveryFilter",
    "ExecutionMetadata",
    "WorkerDefinition",
    "WorkerRegistration",
    "WorkerRole",
    "WorkerStatus",
    "WorkerRegistry",
    "HealthMonitor",
    "TaskDelegator",
]
