"""
Fixed-interval driver of the update cycle.

The loop ticks on the event loop's monotonic clock. Every tick starts a cycle
unless a cycle is still running, in which case the tick is skipped and counted
as an overrun (skip, don't queue). Ticked and manually triggered cycles run as
one tracked task, so shutdown reaches either kind. Each cycle is bounded by a
timeout; an abandoned cycle frees the slot for the next tick.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from modfeed.datatypes.notification_datatypes import CycleOutcome, CycleReport
from modfeed.scheduler.update_cycle import UpdateCycle
from modfeed.util.logger import get_logger

logger = get_logger("update_scheduler")


@dataclass(slots=True)
class SchedulerStats:
    """Counters over the scheduler's lifetime."""
    completed: int = 0
    initialized: int = 0
    failed: int = 0
    timed_out: int = 0
    interrupted: int = 0
    overruns: int = 0

    def record(self, outcome: CycleOutcome) -> None:
        if outcome is CycleOutcome.COMPLETED:
            self.completed += 1
        elif outcome is CycleOutcome.INITIALIZED:
            self.initialized += 1
        elif outcome is CycleOutcome.INTERRUPTED:
            self.interrupted += 1
        elif outcome is CycleOutcome.TIMED_OUT:
            self.timed_out += 1
        else:
            self.failed += 1


class UpdateScheduler:
    """
    Runs ``UpdateCycle.run`` every ``interval`` seconds, one cycle at a time.

    Args:
        cycle: The cycle to run.
        interval: Seconds between ticks.
        cycle_timeout: Maximum duration of one cycle in seconds.
        shutdown_grace: Seconds ``shutdown()`` waits for an in-flight cycle.
    """

    def __init__(
        self,
        cycle: UpdateCycle,
        *,
        interval: float,
        cycle_timeout: float,
        shutdown_grace: float = 10.0,
    ) -> None:
        self.cycle = cycle
        self.interval = interval
        self.cycle_timeout = cycle_timeout
        self.shutdown_grace = shutdown_grace
        self.stats = SchedulerStats()
        self.last_report: CycleReport | None = None
        self._loop_task: asyncio.Task | None = None
        self._cycle_task: asyncio.Task | None = None
        self._stopping = False

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def cycle_in_progress(self) -> bool:
        return self._cycle_task is not None and not self._cycle_task.done()

    # ------------------------------------------------------------------
    # Cycle execution
    # ------------------------------------------------------------------

    async def _guarded_cycle(self) -> CycleReport:
        try:
            report = await asyncio.wait_for(self.cycle.run(), timeout=self.cycle_timeout)
        except asyncio.TimeoutError:
            logger.error("[UPDATE SCHEDULER] Cycle exceeded %.1fs and was abandoned", self.cycle_timeout)
            report = CycleReport(
                outcome=CycleOutcome.TIMED_OUT,
                duration_seconds=self.cycle_timeout,
                error=f"Cycle exceeded {self.cycle_timeout}s",
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("[UPDATE SCHEDULER] Cycle failed with an unexpected error")
            report = CycleReport(outcome=CycleOutcome.FAILED, error=f"{type(exc).__name__}: {exc}")

        self.stats.record(report.outcome)
        self.last_report = report
        return report

    def _launch(self) -> asyncio.Task:
        self._cycle_task = asyncio.create_task(self._guarded_cycle())
        return self._cycle_task

    async def run_once(self) -> CycleReport | None:
        """
        Run a cycle now, outside the regular ticks.

        Returns:
            The cycle report, or None if a cycle is already running or the
            scheduler is shutting down.
        """
        if self._stopping:
            logger.info("[UPDATE SCHEDULER] Shutting down, manual trigger ignored")
            return None
        if self.cycle_in_progress:
            logger.info("[UPDATE SCHEDULER] Cycle already running, manual trigger ignored")
            return None
        return await self._launch()

    def _on_tick(self) -> None:
        if self.cycle_in_progress:
            self.stats.overruns += 1
            logger.warning(
                "[UPDATE SCHEDULER] Previous cycle still running at tick, skipping (overruns=%d)",
                self.stats.overruns,
            )
            return
        self._launch()

    async def _run_loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        logger.info("[UPDATE SCHEDULER] Starting update loop (interval=%.1fs)", self.interval)
        try:
            while not self._stopping:
                delay = next_tick - loop.time()
                if delay > 0:
                    await asyncio.sleep(delay)
                if self._stopping:
                    break

                self._on_tick()

                next_tick += self.interval
                # Ticks missed while the loop was starved are dropped, not replayed
                now = loop.time()
                if next_tick <= now:
                    missed = int((now - next_tick) // self.interval) + 1
                    next_tick += missed * self.interval
        except asyncio.CancelledError:
            logger.info("[UPDATE SCHEDULER] Update loop cancelled")
            raise

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background loop if not already running."""
        if self.is_running:
            logger.warning("[UPDATE SCHEDULER] Update loop already running")
            return
        self._stopping = False
        self._loop_task = asyncio.create_task(self._run_loop())

    async def shutdown(self) -> None:
        """
        Stop ticking, let the in-flight cycle finish its sends within the
        grace period (without persisting), then cancel whatever remains.
        """
        self._stopping = True

        if self._loop_task and not self._loop_task.done():
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass

        task = self._cycle_task
        if task and not task.done():
            self.cycle.request_stop()
            done, _ = await asyncio.wait({task}, timeout=self.shutdown_grace)
            if not done:
                logger.warning(
                    "[UPDATE SCHEDULER] Cycle still running after %.1fs grace, cancelling",
                    self.shutdown_grace,
                )
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        logger.info("[UPDATE SCHEDULER] Scheduler shutdown complete (%s)", self.stats)
