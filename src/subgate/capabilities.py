"""
SubGate Capability Profiler

Derives a searchable capability profile from a worker definition.
Pure functions, no side effects.
"""
from typing import Optional

from subgate.config import Settings, get_settings
from subgate.models import (
    CapabilityProfile,
    PerformanceBaseline,
    WorkerDefinition,
    WorkerRole,
)


ROLE_TASK_CATEGORIES: dict[WorkerRole, list[str]] = {
    WorkerRole.FRONTEND_DEV: [
        "ui-development", "component-creation", "styling", "frontend-testing",
    ],
    WorkerRole.BACKEND_DEV: [
        "api-development", "database-design", "server-logic", "integration",
    ],
    WorkerRole.QA: [
        "testing", "quality-assurance", "automation", "validation",
    ],
    WorkerRole.ARCHITECT: [
        "system-design", "architecture-review", "planning", "standards",
    ],
    WorkerRole.CLI_DEV: [
        "tool-development", "scripting", "automation", "cli",
    ],
    WorkerRole.UX_EXPERT: [
        "user-research", "design-review", "usability", "accessibility",
    ],
    WorkerRole.SM: [
        "facilitation", "planning", "team-coordination", "process-improvement",
    ],
    WorkerRole.CUSTOM: ["general"],
}

INTEGRATIONS = ["task-delegation"]


def task_categories_for_role(role: WorkerRole) -> list[str]:
    """Fixed role -> task category mapping"""
    return list(ROLE_TASK_CATEGORIES.get(role, ROLE_TASK_CATEGORIES[WorkerRole.CUSTOM]))


def build_capability_profile(
    definition: WorkerDefinition,
    settings: Optional[Settings] = None,
) -> CapabilityProfile:
    """
    Build the capability profile for a worker definition.

    Skills become specializations verbatim, the role decides the task
    categories, and the performance baseline is seeded from historical
    metrics when the definition carries them.
    """
    settings = settings or get_settings()

    if definition.metrics is not None:
        avg_response_time = definition.metrics.avg_completion_time_ms
        reliability = definition.metrics.success_rate
    else:
        avg_response_time = settings.default_avg_response_time_ms
        reliability = settings.default_reliability

    return CapabilityProfile(
        specializations=list(definition.skills),
        task_categories=task_categories_for_role(definition.role),
        tools=list(definition.allowed_tools),
        integrations=list(INTEGRATIONS),
        performance=PerformanceBaseline(
            avg_response_time_ms=avg_response_time,
            max_concurrent_tasks=definition.max_concurrent_tasks,
            reliability=reliability,
        ),
    )
