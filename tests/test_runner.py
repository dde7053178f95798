# tests/test_runner.py
import asyncio

import pytest

from core.exceptions import RunInProgressError
from models.run_metrics import RunMetrics, RunPhase
from services.pipeline.runner import PipelineRunner


class GatedOrchestrator:
    """Orchestrator double whose run blocks until the test releases it."""

    def __init__(self, gate: asyncio.Event, fail: bool = False):
        self.gate = gate
        self.fail = fail
        self.last_metrics = RunMetrics()

    async def run(self) -> RunMetrics:
        await self.gate.wait()
        if self.fail:
            raise RuntimeError("glue broke")
        self.last_metrics.phase = RunPhase.DONE
        return self.last_metrics


def test_second_run_is_refused_while_first_is_active():
    async def go():
        gate = asyncio.Event()
        runner = PipelineRunner(lambda: GatedOrchestrator(gate))

        first = runner.trigger()
        await asyncio.sleep(0)
        assert runner.running
        with pytest.raises(RunInProgressError):
            runner.trigger()
        with pytest.raises(RunInProgressError):
            await runner.run_once()

        gate.set()
        await first
        return runner

    runner = asyncio.run(go())
    assert not runner.running
    assert runner.last_metrics.phase is RunPhase.DONE
    assert runner.last_error is None


def test_failed_run_is_recorded():
    async def go():
        gate = asyncio.Event()
        gate.set()
        runner = PipelineRunner(lambda: GatedOrchestrator(gate, fail=True))
        with pytest.raises(RuntimeError):
            await runner.run_once()
        return runner

    runner = asyncio.run(go())
    assert runner.last_error == "glue broke"
    assert not runner.running


def test_schedule_disabled_without_interval():
    async def go():
        runner = PipelineRunner(lambda: None, interval_minutes=None)
        runner.start_schedule()
        assert runner._schedule is None
        await runner.shutdown()

    asyncio.run(go())
