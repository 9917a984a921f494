"""
Tests for the simulated task executor.
"""
import asyncio

import pytest

from subgate.config import Settings
from subgate.executor import SimulatedTaskExecutor, estimate_confidence, select_tools
from subgate.models import DelegationRequest, WorkerRole


class TestToolSelection:
    """Test keyword driven tool selection"""

    def test_keywords_pick_allowed_tools(self, make_definition):
        definition = make_definition(tools=["Read", "Write", "Bash"])
        assert select_tools(definition, "build and test the project") == ["Bash", "Read", "Write"]

    def test_only_allowed_tools(self, make_definition):
        definition = make_definition(tools=["WebFetch"])
        assert select_tools(definition, "fetch the web page") == ["WebFetch"]

    def test_default_tools(self, make_definition):
        """Nothing matching falls back to whichever of Read and Write are allowed"""
        assert select_tools(make_definition(tools=["Read", "Write"]), "ponder") == ["Read", "Write"]
        assert select_tools(make_definition(tools=["Write"]), "ponder") == ["Write"]
        assert select_tools(make_definition(tools=["Bash"]), "ponder") == []


class TestConfidence:
    """Test confidence estimation"""

    def test_base_confidence(self, make_definition):
        definition = make_definition(tools=["Read", "Write"])
        # 75 base + 2/2 tools * 10
        assert estimate_confidence(definition, "ponder", ["Read", "Write"]) == pytest.approx(85.0)

    def test_success_rate_adjusts(self, make_definition):
        definition = make_definition(tools=["Read", "Write"], success_rate=70)
        # 75 + (70 - 90) * 0.5 + 5
        assert estimate_confidence(definition, "ponder", ["Read"]) == pytest.approx(70.0)

    def test_role_alignment_and_clamp(self, make_definition):
        definition = make_definition(role=WorkerRole.QA, tools=["Read"], success_rate=100)
        text = "test testing quality automation jest cypress spec verification validation"
        assert estimate_confidence(definition, text, ["Read"]) == 100.0


class TestSimulatedExecutor:
    """Test simulated execution"""

    @pytest.mark.asyncio
    async def test_execution_result(self, settings, make_definition, scripted_random):
        definition = make_definition(tools=["Read", "Write"], collaboration_enabled=True)
        # invocations, collaboration, processing delay
        executor = SimulatedTaskExecutor(settings, rng=scripted_random(0.5, 0.9, 0.0))

        result = await executor(
            definition,
            DelegationRequest(worker_id=definition.worker_id, task="create a file", collaborative=True),
            asyncio.Event(),
        )

        assert result.success is True
        assert result.tools_used == ["Read", "Write"]
        assert result.tool_invocations == 3
        assert result.collaboration_used is True
        assert result.confidence == pytest.approx(85.0)
        assert "create a file" in result.output

    @pytest.mark.asyncio
    async def test_low_confidence_fails(self, settings, make_definition, scripted_random):
        definition = make_definition(tools=["Read", "Write", "Bash", "Edit"], success_rate=40)
        executor = SimulatedTaskExecutor(settings, rng=scripted_random(0.1, 0.0))

        result = await executor(definition, DelegationRequest(task="ponder"), asyncio.Event())

        assert result.success is False

    @pytest.mark.asyncio
    async def test_cancelled_execution(self, make_definition, scripted_random):
        """A set cancel event ends the simulated work early"""
        settings = Settings(simulated_min_processing_ms=10000)
        executor = SimulatedTaskExecutor(settings, rng=scripted_random(0.1, 0.0))
        cancel = asyncio.Event()
        cancel.set()

        result = await asyncio.wait_for(
            executor(make_definition(), DelegationRequest(task="t"), cancel), timeout=5
        )

        assert result.success is False
        assert result.errors == ["Task was cancelled"]
