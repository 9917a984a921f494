"""
Tests for SubGate worker registry.
"""
import asyncio
import random

import pytest

from subgate.models import DiscoveryFilter, WorkerRole, WorkerStatus
from subgate.registry import WorkerRegistry


class TestWorkerRegistration:
    """Test worker registration"""

    @pytest.fixture
    def registry(self, settings):
        return WorkerRegistry(settings)

    @pytest.mark.asyncio
    async def test_register_worker(self, registry, make_definition):
        """New registrations start active with zero load"""
        registered = await registry.register(make_definition("w1"))

        assert registered.worker_id == "w1"
        assert registered.status == WorkerStatus.ACTIVE
        assert registered.current_load == 0.0
        assert registered.tasks_completed == 0
        assert registered.success_rate == 100.0
        assert registered.registered_at is not None
        assert registered.capabilities.tools == ["Read", "Write"]

    @pytest.mark.asyncio
    async def test_baseline_success_rate_from_metrics(self, registry, make_definition):
        """Historical success rate seeds the registration"""
        registered = await registry.register(make_definition("w1", success_rate=95))
        assert registered.success_rate == 95.0

    @pytest.mark.asyncio
    async def test_reregister_replaces(self, registry, make_definition):
        """Re-registering an ID replaces the registration without merging"""
        await registry.register(make_definition("w1", tools=["Bash"]))
        await registry.update_status("w1", WorkerStatus.MAINTENANCE)
        await registry.record_completion("w1", True, 100)

        await registry.register(make_definition("w1", tools=["Read"]))

        worker = await registry.get("w1")
        assert len(registry) == 1
        assert worker.definition.allowed_tools == ["Read"]
        assert worker.status == WorkerStatus.ACTIVE
        assert worker.tasks_completed == 0

    @pytest.mark.asyncio
    async def test_unregister_worker(self, registry, make_definition):
        """Unregistered workers are no longer found"""
        await registry.register(make_definition("w1"))

        assert await registry.unregister("w1") is True
        assert await registry.get("w1") is None
        assert "w1" not in registry

    @pytest.mark.asyncio
    async def test_unregister_unknown(self, registry):
        """Unregistering an unknown worker returns False"""
        assert await registry.unregister("nope") is False

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, registry, make_definition):
        """Mutating a returned record does not touch the registry"""
        await registry.register(make_definition("w1"))

        copy = await registry.get("w1")
        copy.status = WorkerStatus.ERROR
        copy.current_load = 99

        stored = await registry.get("w1")
        assert stored.status == WorkerStatus.ACTIVE
        assert stored.current_load == 0.0

    @pytest.mark.asyncio
    async def test_concurrent_registration(self, registry, make_definition):
        """Concurrent registrations all land"""
        await asyncio.gather(*(
            registry.register(make_definition(f"w{i}")) for i in range(20)
        ))
        assert len(registry) == 20


class TestStatusUpdates:
    """Test status changes"""

    @pytest.fixture
    def registry(self, settings):
        return WorkerRegistry(settings)

    @pytest.mark.asyncio
    async def test_update_status(self, registry, make_definition):
        """Status can be updated and activity is recorded"""
        registered = await registry.register(make_definition("w1"))

        assert await registry.update_status("w1", WorkerStatus.BUSY) is True

        worker = await registry.get("w1")
        assert worker.status == WorkerStatus.BUSY
        assert worker.last_activity >= registered.last_activity

    @pytest.mark.asyncio
    async def test_update_status_idempotent(self, registry, make_definition):
        """Setting the same status twice succeeds both times"""
        await registry.register(make_definition("w1"))

        assert await registry.update_status("w1", WorkerStatus.ERROR) is True
        assert await registry.update_status("w1", WorkerStatus.ERROR) is True
        assert (await registry.get("w1")).status == WorkerStatus.ERROR

    @pytest.mark.asyncio
    async def test_update_status_unknown(self, registry):
        """Updating an unknown worker fails"""
        assert await registry.update_status("nope", WorkerStatus.ACTIVE) is False

    @pytest.mark.asyncio
    async def test_update_status_expected_guard(self, registry, make_definition):
        """A guarded update is skipped if the status moved on"""
        await registry.register(make_definition("w1"))
        await registry.update_status("w1", WorkerStatus.MAINTENANCE)

        applied = await registry.update_status(
            "w1", WorkerStatus.ERROR, {WorkerStatus.ACTIVE, WorkerStatus.BUSY}
        )

        assert applied is False
        assert (await registry.get("w1")).status == WorkerStatus.MAINTENANCE

    @pytest.mark.asyncio
    async def test_update_load_clamped(self, registry, make_definition):
        """Load stays within 0..100"""
        await registry.register(make_definition("w1"))

        await registry.update_load("w1", 250)
        assert (await registry.get("w1")).current_load == 100.0

        await registry.update_load("w1", -5)
        assert (await registry.get("w1")).current_load == 0.0


class TestRecordCompletion:
    """Test completion statistics"""

    @pytest.fixture
    def registry(self, settings):
        return WorkerRegistry(settings)

    @pytest.mark.asyncio
    async def test_failure_lowers_success_rate(self, registry, make_definition):
        """One failure moves the rate by the smoothing weight"""
        await registry.register(make_definition("w1"))

        await registry.record_completion("w1", False, 1000)

        worker = await registry.get("w1")
        assert worker.success_rate == pytest.approx(90.0)
        assert worker.tasks_completed == 1

    @pytest.mark.asyncio
    async def test_success_raises_success_rate(self, registry, make_definition):
        """A success moves the rate towards 100"""
        await registry.register(make_definition("w1", success_rate=50))

        await registry.record_completion("w1", True, 1000)

        assert (await registry.get("w1")).success_rate == pytest.approx(55.0)

    @pytest.mark.asyncio
    async def test_response_time_smoothed(self, registry, make_definition):
        """Average response time uses the same smoothing weight"""
        await registry.register(make_definition("w1", success_rate=90))

        await registry.record_completion("w1", True, 2000)

        worker = await registry.get("w1")
        # baseline 1000ms from metrics
        assert worker.capabilities.performance.avg_response_time_ms == pytest.approx(1100.0)

    @pytest.mark.asyncio
    async def test_success_rate_stays_in_range(self, registry, make_definition):
        """Any sequence of outcomes keeps the rate within 0..100"""
        await registry.register(make_definition("w1"))
        rng = random.Random(7)

        for _ in range(500):
            await registry.record_completion("w1", rng.random() < 0.5, rng.random() * 5000)
            worker = await registry.get("w1")
            assert 0.0 <= worker.success_rate <= 100.0

        assert worker.tasks_completed == 500

    @pytest.mark.asyncio
    async def test_record_unknown(self, registry):
        """Recording for an unknown worker fails"""
        assert await registry.record_completion("nope", True, 10) is False


class TestRegistryQueries:
    """Test finding workers and statistics"""

    @pytest.fixture
    async def registry(self, settings, make_definition):
        registry = WorkerRegistry(settings)
        await registry.register(make_definition("qa", role=WorkerRole.QA, tools=["Bash"]))
        await registry.register(make_definition("fe", role=WorkerRole.FRONTEND_DEV))
        await registry.register(make_definition("be", role=WorkerRole.BACKEND_DEV))
        await registry.update_status("be", WorkerStatus.ERROR)
        return registry

    @pytest.mark.asyncio
    async def test_find_without_filter(self, registry):
        """No filter returns every worker in registration order"""
        workers = await registry.find()
        assert [w.worker_id for w in workers] == ["qa", "fe", "be"]

    @pytest.mark.asyncio
    async def test_find_with_filter(self, registry):
        """Filters narrow the result"""
        workers = await registry.find(DiscoveryFilter(status=WorkerStatus.ACTIVE, required_tools=["Read"]))
        assert [w.worker_id for w in workers] == ["fe"]

    @pytest.mark.asyncio
    async def test_get_stats(self, registry):
        """Statistics cover every status and role"""
        stats = registry.get_stats()

        assert stats.total_workers == 3
        assert stats.by_status["active"] == 2
        assert stats.by_status["error"] == 1
        assert stats.by_status["maintenance"] == 0
        assert stats.by_role["QA"] == 1
        assert stats.by_role["UX Expert"] == 0
