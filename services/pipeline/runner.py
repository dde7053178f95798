# services/pipeline/runner.py
"""
Process-level run control for the service: at most one run at a time, an
optional periodic schedule and the summary of the last run.
"""

import asyncio
from typing import Callable, Optional

from loguru import logger

from core.exceptions import RunInProgressError
from models.run_metrics import RunMetrics

from .orchestrator import PipelineOrchestrator

OrchestratorFactory = Callable[[], PipelineOrchestrator]


class PipelineRunner:
    def __init__(self, factory: OrchestratorFactory, interval_minutes: Optional[int] = None):
        self.factory = factory
        self.interval_minutes = interval_minutes
        self.last_metrics: Optional[RunMetrics] = None
        self.last_error: Optional[str] = None
        self._lock = asyncio.Lock()
        self._current: Optional[asyncio.Task] = None
        self._schedule: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def run_once(self) -> RunMetrics:
        if self._lock.locked():
            raise RunInProgressError()
        async with self._lock:
            orchestrator = self.factory()
            try:
                self.last_metrics = await orchestrator.run()
                self.last_error = None
            except Exception as exc:
                self.last_metrics = orchestrator.last_metrics
                self.last_error = str(exc) or type(exc).__name__
                raise
            return self.last_metrics

    async def _run_logged(self) -> None:
        try:
            await self.run_once()
        except RunInProgressError:
            logger.info("Skipping run: previous run still in progress")
        except Exception as exc:
            logger.error(f"Pipeline run failed: {exc}")

    def trigger(self) -> asyncio.Task:
        """Start a run in the background; raises ``RunInProgressError`` if one is active."""
        if self.running or (self._current is not None and not self._current.done()):
            raise RunInProgressError()
        self._current = asyncio.create_task(self._run_logged(), name="pipeline-run")
        return self._current

    # ------------------------------------------------------------------
    async def _schedule_loop(self) -> None:
        while True:
            await self._run_logged()
            await asyncio.sleep(self.interval_minutes * 60)

    def start_schedule(self) -> None:
        if not self.interval_minutes:
            return
        if self._schedule is None or self._schedule.done():
            logger.info(f"Scheduling pipeline runs every {self.interval_minutes} minutes")
            self._schedule = asyncio.create_task(self._schedule_loop(), name="pipeline-schedule")

    async def shutdown(self) -> None:
        for task in (self._schedule, self._current):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._schedule = None
        self._current = None
