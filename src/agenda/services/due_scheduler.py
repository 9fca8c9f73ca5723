"""Periodic driver for the auto-sweep and due-notification scan."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..calendar.config import CalendarConfigService
from ..tasks.store import TaskState, TaskStore
from ..utils.datetime_utils import now_utc_ms
from .auto_sweep import AutoSweepController, SweepResult
from .notifications import DueNotificationService, NotificationScanResult

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 30.0


@dataclass(slots=True)
class SchedulerPass:
    sweep: Optional[SweepResult]
    notifications: NotificationScanResult


class DueScheduler:
    """Run sweep and scan passes on a fixed interval using an asyncio task."""

    def __init__(
        self,
        store: TaskStore,
        state: TaskState,
        sweeper: AutoSweepController,
        notifications: DueNotificationService,
        calendar_config: CalendarConfigService,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        refresh_from_store: bool = True,
    ):
        self._store = store
        self._state = state
        self._sweeper = sweeper
        self._notifications = notifications
        self._calendar_config = calendar_config
        self._interval = max(1.0, float(interval_seconds))
        self._refresh = refresh_from_store
        self._loop_task: asyncio.Task[None] | None = None
        self._sweep_tasks: set[asyncio.Task[SweepResult]] = set()
        self._shutdown = False

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def start(self) -> None:
        if self.running:
            return
        self._shutdown = False
        self._loop_task = asyncio.create_task(self._run())
        logger.info("scheduler.start interval=%.0fs", self._interval)

    async def shutdown(self) -> None:
        """Stop the loop; sweeps already in flight run to completion."""
        self._shutdown = True
        if self._loop_task is not None and not self._loop_task.done():
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
        self._loop_task = None

        if self._sweep_tasks:
            await asyncio.gather(*self._sweep_tasks, return_exceptions=True)
        logger.info("scheduler.stop")

    async def trigger(self, now_ms: int | None = None) -> SchedulerPass:
        """Run one pass now and wait for its sweep to finish."""
        return await self._pass(now_ms, wait_for_sweep=True)

    async def _run(self) -> None:
        try:
            while not self._shutdown:
                try:
                    await self._pass(None, wait_for_sweep=False)
                except Exception:
                    logger.exception("scheduler.pass.error")
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            logger.debug("scheduler loop cancelled")
            raise

    async def _pass(self, now_ms: int | None, *, wait_for_sweep: bool) -> SchedulerPass:
        now = now_utc_ms() if now_ms is None else now_ms
        if self._refresh:
            await self._state.refresh(self._store)

        sweep_task = self._spawn_sweep(now)
        timezone = self._calendar_config.get_effective().timezone
        scan = await self._notifications.scan(self._state.tasks, timezone, now)

        sweep: Optional[SweepResult] = None
        if wait_for_sweep:
            sweep = await sweep_task
        return SchedulerPass(sweep=sweep, notifications=scan)

    def _spawn_sweep(self, now_ms: int) -> asyncio.Task[SweepResult]:
        task = asyncio.create_task(self._sweeper.tick(self._state.tasks, now_ms))
        self._sweep_tasks.add(task)
        task.add_done_callback(self._sweep_done)
        return task

    def _sweep_done(self, task: asyncio.Task[SweepResult]) -> None:
        self._sweep_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("calendar.auto_sweep.failed %s", exc)
            return
        result = task.result()
        if result.message:
            logger.warning("calendar.auto_sweep.summary %s", result.message)


__all__ = ["DEFAULT_INTERVAL_SECONDS", "DueScheduler", "SchedulerPass"]
