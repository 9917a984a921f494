"""
Pytest configuration and fixtures for SubGate tests.
"""
import pytest

from subgate.config import Settings
from subgate.models import WorkerDefinition, WorkerMetrics, WorkerRole

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


class ScriptedRandom:
    """Random source returning a fixed sequence of values"""

    def __init__(self, *values: float):
        self._values = list(values)
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        return self._values.pop(0)


@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest.fixture
def settings():
    """Settings with every worker always due for a probe and no simulated delay"""
    return Settings(
        health_check_interval_seconds=0,
        simulated_min_processing_ms=0,
        simulated_max_extra_processing_ms=0,
        api_key="",
    )


@pytest.fixture
def scripted_random():
    return ScriptedRandom


@pytest.fixture
def make_definition():
    """Factory for worker definitions with sensible defaults"""

    def _make(
        worker_id: str = "worker-1",
        role: WorkerRole = WorkerRole.CUSTOM,
        tools=None,
        skills=None,
        max_concurrent_tasks: int = 1,
        success_rate=None,
        collaboration_enabled: bool = False,
    ) -> WorkerDefinition:
        return WorkerDefinition(
            worker_id=worker_id,
            name=f"Worker {worker_id}",
            role=role,
            skills=skills or [],
            allowed_tools=tools if tools is not None else ["Read", "Write"],
            max_concurrent_tasks=max_concurrent_tasks,
            collaboration_enabled=collaboration_enabled,
            metrics=(
                WorkerMetrics(success_rate=success_rate, avg_completion_time_ms=1000.0)
                if success_rate is not None
                else None
            ),
        )

    return _make
