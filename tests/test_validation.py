"""
Tests for the SubGate delegation validator.
"""
import pytest

from subgate.models import DelegationErrorCode, DelegationRequest, WorkerStatus
from subgate.registry import WorkerRegistry
from subgate.validation import DelegationValidator


class TestDelegationValidator:
    """Checks run in order and stop at the first failure"""

    @pytest.fixture
    async def registry(self, settings, make_definition):
        registry = WorkerRegistry(settings)
        await registry.register(make_definition("W", tools=["Read", "Write"], max_concurrent_tasks=2))
        return registry

    @pytest.fixture
    def running(self):
        return {}

    @pytest.fixture
    def validator(self, registry, running):
        return DelegationValidator(registry, lambda worker_id: running.get(worker_id, 0))

    @pytest.mark.asyncio
    async def test_valid_request(self, validator):
        result = await validator.validate(
            DelegationRequest(worker_id="W", task="edit file", required_tools=["Read"])
        )
        assert result.valid is True
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_missing_worker_id(self, validator):
        result = await validator.validate(DelegationRequest(task="t"))
        assert result.error_code == DelegationErrorCode.VALIDATION_FAILURE
        assert result.errors == ["Worker ID is required"]

    @pytest.mark.asyncio
    async def test_existence_checked_first(self, validator):
        """An unknown worker is reported even when everything else is wrong"""
        result = await validator.validate(
            DelegationRequest(worker_id="nope", task="", required_tools=["Nuke"])
        )
        assert result.error_code == DelegationErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_at_concurrency_limit(self, validator, running):
        running["W"] = 2
        result = await validator.validate(DelegationRequest(worker_id="W", task="t"))

        assert result.error_code == DelegationErrorCode.UNAVAILABLE
        assert "2/2" in result.errors[0]

    @pytest.mark.asyncio
    async def test_busy_under_limit_is_available(self, validator, registry):
        """busy alone does not make a worker unavailable"""
        await registry.update_status("W", WorkerStatus.BUSY)
        result = await validator.validate(DelegationRequest(worker_id="W", task="t"))
        assert result.valid is True

    @pytest.mark.asyncio
    async def test_maintenance_unavailable(self, validator, registry):
        await registry.update_status("W", WorkerStatus.MAINTENANCE)
        result = await validator.validate(DelegationRequest(worker_id="W", task=""))

        assert result.error_code == DelegationErrorCode.UNAVAILABLE
        assert result.errors == ["Worker W is maintenance"]

    @pytest.mark.asyncio
    async def test_empty_task_before_tools(self, validator):
        result = await validator.validate(
            DelegationRequest(worker_id="W", task={}, required_tools=["Nuke"])
        )
        assert result.error_code == DelegationErrorCode.VALIDATION_FAILURE

    @pytest.mark.asyncio
    async def test_missing_tools_listed(self, validator):
        result = await validator.validate(
            DelegationRequest(worker_id="W", task="t", required_tools=["Read", "Bash", "Edit"])
        )
        assert result.error_code == DelegationErrorCode.MISSING_CAPABILITY
        assert result.errors == ["Missing required tools: Bash, Edit"]
