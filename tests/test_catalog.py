"""
Tests for the worker catalog loader and statistics rollups.
"""
import json

import pytest
from pydantic import ValidationError

from subgate.catalog import load_catalog, parse_catalog, register_catalog
from subgate.delegation import TaskDelegator
from subgate.models import WorkerRole
from subgate.statistics import calculate_statistics

CATALOG = [
    {
        "worker_id": "qa-1",
        "name": "Quinn",
        "role": "QA",
        "skills": ["test automation", "jest"],
        "allowed_tools": ["Bash", "Read", "Write"],
        "max_concurrent_tasks": 2,
        "metrics": {"success_rate": 92, "avg_completion_time_ms": 4000},
    },
    {
        "worker_id": "sm-1",
        "name": "Sam",
        "role": "SM",
        "allowed_tools": ["Read"],
    },
]


class TestCatalog:

    def test_parse_catalog(self):
        definitions = parse_catalog(json.dumps(CATALOG))

        assert [d.worker_id for d in definitions] == ["qa-1", "sm-1"]
        assert definitions[0].role == WorkerRole.QA
        assert definitions[0].metrics.success_rate == 92

    def test_invalid_catalog(self):
        with pytest.raises(ValidationError):
            parse_catalog(json.dumps([{"worker_id": "x"}]))

    @pytest.mark.asyncio
    async def test_load_and_register(self, tmp_path, settings):
        path = tmp_path / "workers.json"
        path.write_text(json.dumps(CATALOG))
        delegator = TaskDelegator(settings=settings)

        count = await register_catalog(delegator, load_catalog(path))

        assert count == 2
        qa = await delegator.get_worker("qa-1")
        assert qa.success_rate == 92
        assert qa.capabilities.performance.avg_response_time_ms == 4000


class TestStatistics:

    def test_empty_registry(self):
        """An empty registry reports zeros everywhere"""
        stats = calculate_statistics([])

        assert stats.total_workers == 0
        assert set(stats.by_status) == {"active", "inactive", "busy", "error", "maintenance"}
        assert all(v == 0 for v in stats.by_status.values())
        assert len(stats.by_role) == len(WorkerRole)
        assert stats.system_metrics.avg_success_rate == 0
        assert stats.system_metrics.system_load == 0

    @pytest.mark.asyncio
    async def test_averages(self, settings):
        delegator = TaskDelegator(settings=settings)
        await register_catalog(delegator, parse_catalog(json.dumps(CATALOG)))
        await delegator.registry.update_load("qa-1", 50)
        await delegator.registry.record_completion("sm-1", True, 100)

        metrics = delegator.get_statistics().system_metrics

        assert metrics.avg_success_rate == pytest.approx((92 + 100) / 2)
        assert metrics.system_load == pytest.approx(25.0)
        assert metrics.total_tasks_completed == 1
        # sm-1 baseline 30000 smoothed towards 100
        assert metrics.avg_response_time_ms == pytest.approx((4000 + 27010) / 2)
