"""
SubGate Scoring Engine

Ranks candidate workers against a task with five weighted components:
success rate, load, tool availability, specialization alignment and
role alignment. Higher scores are better.
"""
import logging
import re
from functools import lru_cache
from typing import Optional

from subgate.config import Settings, get_settings
from subgate.filters import apply_filters
from subgate.models import (
    DiscoveryFilter,
    WorkerRegistration,
    WorkerRole,
    WorkerStatus,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Keyword Tables
# =============================================================================

ROLE_KEYWORDS: dict[WorkerRole, list[str]] = {
    WorkerRole.FRONTEND_DEV: [
        "frontend", "ui", "component", "react", "vue", "angular", "css",
        "html", "javascript", "typescript", "interface", "user interface",
    ],
    WorkerRole.BACKEND_DEV: [
        "backend", "api", "server", "database", "node", "express", "python",
        "java", "rest", "graphql", "microservice",
    ],
    WorkerRole.QA: [
        "test", "testing", "quality", "automation", "jest", "cypress", "spec",
        "verification", "validation",
    ],
    WorkerRole.ARCHITECT: [
        "architecture", "design", "system", "structure", "pattern",
        "scalability", "planning", "blueprint",
    ],
    WorkerRole.CLI_DEV: [
        "cli", "command line", "terminal", "console", "script", "automation",
        "tool", "utility",
    ],
    WorkerRole.UX_EXPERT: [
        "ux", "user experience", "design", "usability", "wireframe",
        "prototype", "user research", "interface design",
    ],
    WorkerRole.SM: [
        "scrum", "agile", "planning", "sprint", "workflow", "process",
        "management", "coordination",
    ],
    WorkerRole.CUSTOM: [
        "custom", "specialized", "domain-specific", "tailored", "bespoke",
    ],
}

# Specialization alignment (raw points, capped)
SPECIALIZATION_DIRECT_MATCH = 4.0
SPECIALIZATION_PARTIAL_MATCH = 2.0
SPECIALIZATION_MAX_RAW = 20.0
PARTIAL_MATCH_MIN_WORD_LENGTH = 4

# Role alignment (raw points, capped)
ROLE_KEYWORD_MATCH = 2.0
ROLE_MAX_RAW = 10.0


@lru_cache(maxsize=512)
def _keyword_pattern(keyword: str) -> "re.Pattern[str]":
    return re.compile(r"(?<![a-z0-9])" + re.escape(keyword.lower()))


def keyword_in_text(keyword: str, text: str) -> bool:
    """
    True when keyword occurs in text starting at a word boundary.
    "test" matches "tests" but "ui" does not match "build".
    """
    if not keyword:
        return False
    return _keyword_pattern(keyword).search(text.lower()) is not None


def count_role_keyword_matches(role: WorkerRole, text: str) -> int:
    return sum(1 for kw in ROLE_KEYWORDS.get(role, []) if keyword_in_text(kw, text))


# =============================================================================
# Components
# =============================================================================

def success_rate_component(registration: WorkerRegistration, weight: float) -> float:
    return (registration.success_rate / 100.0) * weight


def load_component(registration: WorkerRegistration, weight: float) -> float:
    return ((100.0 - registration.current_load) / 100.0) * weight


def tools_component(
    registration: WorkerRegistration,
    required_tools: Optional[list[str]],
    weight: float,
) -> float:
    if not required_tools:
        return weight
    available = set(registration.capabilities.tools)
    matched = sum(1 for tool in required_tools if tool in available)
    return (matched / len(required_tools)) * weight


def specialization_component(
    registration: WorkerRegistration, text: str, weight: float
) -> float:
    """
    Direct matches of a specialization score full points; otherwise any
    longer word of a multi-word specialization found in the text scores
    half points.
    """
    raw = 0.0
    for specialization in registration.capabilities.specializations:
        if keyword_in_text(specialization, text):
            raw += SPECIALIZATION_DIRECT_MATCH
            continue
        words = re.split(r"[\s_\-/]+", specialization.lower())
        if any(
            len(word) >= PARTIAL_MATCH_MIN_WORD_LENGTH and keyword_in_text(word, text)
            for word in words
        ):
            raw += SPECIALIZATION_PARTIAL_MATCH
    return (min(raw, SPECIALIZATION_MAX_RAW) / SPECIALIZATION_MAX_RAW) * weight


def role_component(
    registration: WorkerRegistration,
    text: str,
    weight: float,
    task_tags: Optional[list[str]] = None,
) -> float:
    """
    Structured tags, when supplied, are matched against the worker's task
    categories and specializations. Free text falls back to the role
    keyword table.
    """
    if task_tags:
        profile = registration.capabilities
        known = {t.lower() for t in profile.task_categories}
        known.update(s.lower() for s in profile.specializations)
        matched = sum(1 for tag in task_tags if tag.lower() in known)
        return (matched / len(task_tags)) * weight

    matches = count_role_keyword_matches(registration.definition.role, text)
    raw = min(ROLE_MAX_RAW, matches * ROLE_KEYWORD_MATCH)
    return (raw / ROLE_MAX_RAW) * weight


def score_worker_for_task(
    registration: WorkerRegistration,
    task: str,
    required_tools: Optional[list[str]] = None,
    task_tags: Optional[list[str]] = None,
    settings: Optional[Settings] = None,
) -> float:
    """Combine the five components into one score on a 0-100 scale"""
    settings = settings or get_settings()
    return (
        success_rate_component(registration, settings.weight_success_rate)
        + load_component(registration, settings.weight_load)
        + tools_component(registration, required_tools, settings.weight_tools)
        + specialization_component(registration, task, settings.weight_specialization)
        + role_component(registration, task, settings.weight_role, task_tags)
    )


# =============================================================================
# Selection
# =============================================================================

def rank_workers(
    candidates: list[WorkerRegistration],
    task: str,
    required_tools: Optional[list[str]] = None,
    task_tags: Optional[list[str]] = None,
    settings: Optional[Settings] = None,
) -> list[tuple[WorkerRegistration, float]]:
    """Score candidates, best first. Equal scores keep candidate order."""
    scored = [
        (c, score_worker_for_task(c, task, required_tools, task_tags, settings))
        for c in candidates
    ]
    return sorted(scored, key=lambda pair: pair[1], reverse=True)


def selection_candidates(
    workers: list[WorkerRegistration],
    required_tools: Optional[list[str]] = None,
    settings: Optional[Settings] = None,
) -> list[WorkerRegistration]:
    """
    Widen the candidate pool in three tiers until something qualifies:
    active workers under the comfortable load ceiling, then active or busy
    workers at any load, then every worker regardless of status.
    Required tools are enforced in every tier.
    """
    settings = settings or get_settings()
    tools = list(required_tools or [])

    tiers = [
        DiscoveryFilter(
            status=WorkerStatus.ACTIVE,
            max_load=settings.comfortable_load_ceiling,
            required_tools=tools,
        ),
        DiscoveryFilter(
            status=[WorkerStatus.ACTIVE, WorkerStatus.BUSY],
            max_load=100.0,
            required_tools=tools,
        ),
        DiscoveryFilter(required_tools=tools),
    ]

    for tier, criteria in enumerate(tiers, start=1):
        candidates = apply_filters(workers, criteria)
        if candidates:
            if tier > 1:
                logger.debug(
                    "Widened worker selection",
                    extra={"tier": tier, "candidates": len(candidates)}
                )
            return candidates
    return []


def select_best_worker(
    workers: list[WorkerRegistration],
    task: str,
    required_tools: Optional[list[str]] = None,
    task_tags: Optional[list[str]] = None,
    settings: Optional[Settings] = None,
) -> Optional[WorkerRegistration]:
    """Highest scoring worker from the widest tier needed, or None"""
    candidates = selection_candidates(workers, required_tools, settings)
    if not candidates:
        return None
    ranked = rank_workers(candidates, task, required_tools, task_tags, settings)
    return ranked[0][0]
