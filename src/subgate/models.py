"""
SubGate Models

Worker definitions, registrations, capability profiles and delegation
request/response models.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
import ulid


# =============================================================================
# ID Generation and Clock
# =============================================================================

def generate_task_id() -> str:
    """Generate a new task ID using ULID"""
    return f"task-{ulid.new()}"


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================

class WorkerRole(str, Enum):
    """Closed set of worker roles; CUSTOM is the escape value"""
    FRONTEND_DEV = "FrontendDev"
    BACKEND_DEV = "BackendDev"
    QA = "QA"
    ARCHITECT = "Architect"
    CLI_DEV = "CLI Dev"
    UX_EXPERT = "UX Expert"
    SM = "SM"
    CUSTOM = "Custom"


class WorkerStatus(str, Enum):
    """Worker lifecycle status"""
    ACTIVE = "active"
    INACTIVE = "inactive"          # Operator-only
    BUSY = "busy"
    ERROR = "error"
    MAINTENANCE = "maintenance"    # Operator-only


class TaskPhase(str, Enum):
    """Phases of one delegated unit of work"""
    ADMITTED = "admitted"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    FAILED = "failed"


class DelegationErrorCode(str, Enum):
    """Why a delegation did not succeed"""
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    MISSING_CAPABILITY = "missing_capability"
    VALIDATION_FAILURE = "validation_failure"
    EXECUTION_FAILURE = "execution_failure"


# =============================================================================
# Worker Catalog Models
# =============================================================================

class WorkerMetrics(BaseModel):
    """Historical performance figures carried by a catalog entry"""
    success_rate: float = Field(default=100.0, ge=0.0, le=100.0)
    avg_completion_time_ms: float = Field(default=30000.0, ge=0.0)


class WorkerDefinition(BaseModel):
    """
    Static description of a worker, as supplied by the worker catalog.
    Never modified after registration.
    """
    model_config = ConfigDict(frozen=True)

    worker_id: str = Field(..., description="Unique worker identifier")
    name: str = Field(..., description="Human-readable worker name")
    role: WorkerRole = Field(default=WorkerRole.CUSTOM)
    description: str = Field(default="")
    skills: list[str] = Field(
        default_factory=list,
        description="Declared skill tags"
    )
    allowed_tools: list[str] = Field(
        default_factory=list,
        description="Tool names this worker may invoke"
    )
    max_concurrent_tasks: int = Field(
        default=1,
        ge=1,
        description="Concurrency limit"
    )
    collaboration_enabled: bool = Field(default=False)
    metrics: Optional[WorkerMetrics] = Field(
        default=None,
        description="Optional historical metrics"
    )

    @field_validator("worker_id", "name")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


# =============================================================================
# Registry Models
# =============================================================================

class PerformanceBaseline(BaseModel):
    """Baseline performance figures of a capability profile"""
    model_config = ConfigDict(frozen=True)

    avg_response_time_ms: float = Field(ge=0.0)
    max_concurrent_tasks: int = Field(ge=1)
    reliability: float = Field(ge=0.0, le=100.0)


class CapabilityProfile(BaseModel):
    """Searchable summary derived from a worker definition"""
    model_config = ConfigDict(frozen=True)

    specializations: list[str] = Field(default_factory=list)
    task_categories: list[str] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    integrations: list[str] = Field(default_factory=list)
    performance: PerformanceBaseline


class WorkerRegistration(BaseModel):
    """Live registry record: definition plus runtime state"""
    definition: WorkerDefinition
    status: WorkerStatus = Field(default=WorkerStatus.ACTIVE)
    registered_at: datetime = Field(default_factory=utcnow)
    last_activity: datetime = Field(default_factory=utcnow)
    health_check_interval_seconds: float = Field(default=30.0, ge=0.0)
    tasks_completed: int = Field(default=0, ge=0)
    success_rate: float = Field(default=100.0, ge=0.0, le=100.0)
    current_load: float = Field(default=0.0, ge=0.0, le=100.0)
    capabilities: CapabilityProfile

    @property
    def worker_id(self) -> str:
        return self.definition.worker_id


class DiscoveryFilter(BaseModel):
    """
    Optional predicates for worker discovery.
    Every predicate set narrows the candidate list; unset predicates are ignored.
    """
    role: Optional[WorkerRole] = None
    status: Optional[Union[WorkerStatus, list[WorkerStatus]]] = None
    capabilities: list[str] = Field(
        default_factory=list,
        description="Match workers declaring any of these specializations"
    )
    min_success_rate: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    max_load: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    required_tools: list[str] = Field(default_factory=list)


class RegistryMetrics(BaseModel):
    """System-wide averages across registered workers"""
    avg_success_rate: float = 0.0
    avg_response_time_ms: float = 0.0
    total_tasks_completed: int = 0
    system_load: float = 0.0


class RegistryStatistics(BaseModel):
    """Read-only rollup of the registry"""
    total_workers: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_role: dict[str, int] = Field(default_factory=dict)
    system_metrics: RegistryMetrics = Field(default_factory=RegistryMetrics)


# =============================================================================
# Delegation Models
# =============================================================================

class DelegationRequest(BaseModel):
    """A unit of work to route to a worker"""
    worker_id: Optional[str] = Field(
        default=None,
        description="Target worker; selected automatically when absent"
    )
    task: Union[str, dict[str, Any]] = Field(
        ...,
        description="Free text description or structured payload"
    )
    priority: int = Field(default=5, ge=1, le=10)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)
    required_tools: list[str] = Field(default_factory=list)
    collaborative: bool = Field(default=False)
    task_tags: list[str] = Field(
        default_factory=list,
        description="Structured capability tags for matching"
    )
    context: dict[str, Any] = Field(default_factory=dict)

    def task_text(self) -> str:
        """Text form of the task, used for matching"""
        return describe_task(self.task)


def describe_task(task: Union[str, dict[str, Any]]) -> str:
    """
    Flatten a task into text. Structured payloads contribute their
    "description" entry when present, otherwise all of their string values.
    """
    if isinstance(task, str):
        return task
    description = task.get("description")
    if isinstance(description, str):
        return description
    return " ".join(str(v) for v in task.values() if isinstance(v, (str, int, float)))


class ExecutionMetadata(BaseModel):
    """Bookkeeping for one delegated unit of work"""
    task_id: str
    worker_id: str
    worker_role: str = "Unknown"
    phase: TaskPhase = TaskPhase.ADMITTED
    start_time: datetime = Field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    duration_ms: float = Field(default=0.0, ge=0.0)
    completed_on_time: bool = True
    tools_used: list[str] = Field(default_factory=list)
    tool_invocations: int = Field(default=0, ge=0)
    collaboration_used: bool = False
    confidence: float = Field(default=100.0, ge=0.0, le=100.0)


class TaskExecutionResult(BaseModel):
    """What the dispatch capability reports back"""
    success: bool
    output: Optional[str] = None
    data: Any = None
    tools_used: list[str] = Field(default_factory=list)
    tool_invocations: int = Field(default=0, ge=0)
    collaboration_used: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class DelegationResponse(BaseModel):
    """Outcome of a delegate() call; failures never raise"""
    success: bool
    task_id: Optional[str] = None
    result: Optional[str] = None
    data: Any = None
    metadata: ExecutionMetadata
    error_code: Optional[DelegationErrorCode] = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    """Result of the pre-flight checks"""
    valid: bool
    error_code: Optional[DelegationErrorCode] = None
    errors: list[str] = Field(default_factory=list)


class SystemStatus(BaseModel):
    """Coordinator-level status summary"""
    total_workers: int
    available_workers: int
    running_tasks: int
    queued_tasks: int
    system_health: str


# =============================================================================
# API Models
# =============================================================================

class WorkerRegisterResponse(BaseModel):
    """Response to a worker registration"""
    worker_id: str
    status: str
    registered_at: datetime


class WorkerStatusUpdate(BaseModel):
    """Operator status change"""
    status: WorkerStatus


class BestWorkerRequest(BaseModel):
    """Ask which worker should take a task"""
    task: str = Field(..., min_length=1)
    required_tools: list[str] = Field(default_factory=list)
    task_tags: list[str] = Field(default_factory=list)


class BestWorkerResponse(BaseModel):
    worker_id: Optional[str] = None


class WorkerAvailabilityResponse(BaseModel):
    worker_id: str
    available: bool
    running_tasks: int
