"""
SubGate Task Executors

The dispatch capability is any async callable

    executor(definition, request, cancel_event) -> TaskExecutionResult

How work is actually performed is up to the executor. cancel_event is set
when the task is cancelled; honouring it is cooperative.

SimulatedTaskExecutor models a worker for development and tests: it picks
tools from the task text, estimates confidence from the worker's record
and role alignment, and waits a simulated processing time.
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

from subgate.config import Settings, get_settings
from subgate.models import (
    DelegationRequest,
    TaskExecutionResult,
    WorkerDefinition,
    utcnow,
)
from subgate.scoring import ROLE_KEYWORDS, count_role_keyword_matches, keyword_in_text

logger = logging.getLogger(__name__)

TaskExecutor = Callable[
    [WorkerDefinition, DelegationRequest, asyncio.Event],
    Awaitable[TaskExecutionResult],
]

TOOL_KEYWORDS: dict[str, list[str]] = {
    "file": ["Read", "Write", "Edit", "Glob", "Grep"],
    "code": ["Read", "Write", "Edit", "Grep"],
    "test": ["Bash", "Read", "Write"],
    "search": ["WebSearch", "Grep", "Glob"],
    "web": ["WebFetch", "WebSearch"],
    "api": ["WebFetch", "WebSearch"],
    "fetch": ["WebFetch"],
    "data": ["WebFetch", "Read"],
    "image": ["analyze_image"],
    "create": ["Write", "Edit"],
    "build": ["Bash", "Read"],
    "deploy": ["Bash", "WebFetch"],
}

BASE_CONFIDENCE = 75.0
BASE_SUCCESS_RATE = 90.0
SUCCESS_RATE_FACTOR = 0.5
TOOLS_CONFIDENCE = 10.0
ROLE_ALIGNMENT_CONFIDENCE = 15.0
MAX_TOOL_INVOCATIONS = 5
COLLABORATION_THRESHOLD = 0.7
MAX_SKILLS_IN_OUTPUT = 3


def select_tools(definition: WorkerDefinition, task: str) -> list[str]:
    """
    Tools the task text calls for, restricted to the worker's allowed tools.
    Falls back to Read and Write, whichever are allowed, when nothing matches.
    """
    allowed = definition.allowed_tools
    selected: list[str] = []
    for keyword, tools in TOOL_KEYWORDS.items():
        if keyword_in_text(keyword, task):
            for tool in tools:
                if tool in allowed and tool not in selected:
                    selected.append(tool)

    if not selected:
        selected = [tool for tool in ("Read", "Write") if tool in allowed]
    return selected


def estimate_confidence(
    definition: WorkerDefinition, task: str, tools_used: list[str]
) -> float:
    """Confidence on a 0-100 scale"""
    confidence = BASE_CONFIDENCE

    if definition.metrics is not None:
        confidence += (definition.metrics.success_rate - BASE_SUCCESS_RATE) * SUCCESS_RATE_FACTOR

    if definition.allowed_tools:
        confidence += (len(tools_used) / len(definition.allowed_tools)) * TOOLS_CONFIDENCE

    keywords = ROLE_KEYWORDS.get(definition.role, [])
    if keywords:
        matches = count_role_keyword_matches(definition.role, task)
        confidence += (matches / len(keywords)) * ROLE_ALIGNMENT_CONFIDENCE

    return min(100.0, max(0.0, confidence))


class SimulatedTaskExecutor:
    """Simulated dispatch capability"""

    def __init__(self, settings: Optional[Settings] = None, rng=None):
        self._settings = settings or get_settings()
        self._rng = rng or random.Random()

    def processing_time_seconds(self) -> float:
        extra = self._rng.random() * self._settings.simulated_max_extra_processing_ms
        return (self._settings.simulated_min_processing_ms + extra) / 1000.0

    async def __call__(
        self,
        definition: WorkerDefinition,
        request: DelegationRequest,
        cancel_event: asyncio.Event,
    ) -> TaskExecutionResult:
        task = request.task_text()
        logger.info(
            "Starting simulated execution",
            extra={
                "worker_id": definition.worker_id,
                "role": definition.role.value,
                "priority": request.priority,
            }
        )

        tools_used = select_tools(definition, task)
        invocations = int(self._rng.random() * MAX_TOOL_INVOCATIONS) + 1
        collaboration_used = (
            definition.collaboration_enabled
            and request.collaborative
            and self._rng.random() > COLLABORATION_THRESHOLD
        )
        confidence = estimate_confidence(definition, task, tools_used)

        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=self.processing_time_seconds())
        except asyncio.TimeoutError:
            pass
        else:
            logger.info("Simulated execution cancelled", extra={"worker_id": definition.worker_id})
            return TaskExecutionResult(
                success=False,
                tools_used=tools_used,
                collaboration_used=False,
                confidence=0.0,
                errors=["Task was cancelled"],
            )

        success = confidence > self._settings.simulated_success_confidence_threshold
        return TaskExecutionResult(
            success=success,
            output=self.render_output(definition, task),
            tools_used=tools_used,
            tool_invocations=invocations,
            collaboration_used=collaboration_used,
            confidence=confidence,
        )

    def render_output(self, definition: WorkerDefinition, task: str) -> str:
        skills = ", ".join(definition.skills[:MAX_SKILLS_IN_OUTPUT]) or "general practice"
        return (
            "# Task Execution Results\n\n"
            f"**Worker:** {definition.name} ({definition.role.value})\n"
            f"**Task:** {task}\n"
            f"**Completed:** {utcnow().isoformat()}\n\n"
            "## Summary\n\n"
            f"Completed the requested task drawing on {skills}.\n"
        )
