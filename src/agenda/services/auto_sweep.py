"""Reconcile calendar-sourced task status with the wall clock."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..calendar.entries import can_manually_complete_task, is_calendar_event_task
from ..tasks.models import Task, TaskStatus
from ..tasks.store import TaskState, TaskStore
from ..utils.datetime_utils import now_utc_ms

logger = logging.getLogger(__name__)


class SweepLock:
    """Single-flight flag for the sweep.

    Acquisition happens before the first await of a tick, so on one event loop
    the check-and-set cannot interleave with another tick.
    """

    def __init__(self) -> None:
        self._held = False

    @property
    def locked(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False


@dataclass(slots=True)
class SweepResult:
    skipped: bool = False
    updated: list[str] = field(default_factory=list)
    complete_failed: int = 0
    reopen_failed: int = 0
    message: Optional[str] = None

    @property
    def idle(self) -> bool:
        return not self.skipped and not self.updated and not self.failed

    @property
    def failed(self) -> int:
        return self.complete_failed + self.reopen_failed


def partition_sweep_candidates(
    tasks: Iterable[Task], now_ms: int
) -> tuple[list[Task], list[Task]]:
    """Split calendar tasks into ``(overdue_open, completed_too_early)``."""

    overdue: list[Task] = []
    premature: list[Task] = []
    for task in tasks:
        if not is_calendar_event_task(task):
            continue
        due_passed = can_manually_complete_task(task, now_ms)
        if task.status.is_open and due_passed:
            overdue.append(task)
        elif task.status == TaskStatus.COMPLETED and not due_passed:
            premature.append(task)
    return overdue, premature


def _failure_message(complete_failed: int, reopen_failed: int) -> Optional[str]:
    parts = []
    if complete_failed:
        parts.append(f"Failed to auto-complete {complete_failed} calendar task(s).")
    if reopen_failed:
        parts.append(f"Failed to reopen {reopen_failed} calendar task(s).")
    return " ".join(parts) or None


class AutoSweepController:
    """Complete overdue calendar tasks and reopen ones completed too early."""

    def __init__(
        self,
        store: TaskStore,
        state: TaskState,
        lock: SweepLock | None = None,
    ):
        self._store = store
        self._state = state
        self._lock = lock or SweepLock()

    @property
    def lock(self) -> SweepLock:
        return self._lock

    @property
    def in_flight(self) -> bool:
        return self._lock.locked

    async def tick(
        self,
        tasks: Iterable[Task] | None = None,
        now_ms: int | None = None,
    ) -> SweepResult:
        """Run one sweep pass; a tick during an active sweep is a no-op.

        Store failures are counted per task and never abort the batch.
        """
        if self._lock.locked:
            return SweepResult(skipped=True)

        now = now_utc_ms() if now_ms is None else now_ms
        snapshot = self._state.tasks if tasks is None else list(tasks)
        overdue, premature = partition_sweep_candidates(snapshot, now)
        if not overdue and not premature:
            return SweepResult()

        if not self._lock.try_acquire():
            return SweepResult(skipped=True)

        logger.info(
            "calendar.auto_sweep.start complete=%d reopen=%d",
            len(overdue),
            len(premature),
        )
        result = SweepResult()
        try:
            updated_by_id: dict[str, Task] = {}

            for task in premature:
                try:
                    updated_by_id[task.uuid] = await self._store.uncomplete_task(task.uuid)
                except Exception as exc:
                    result.reopen_failed += 1
                    logger.warning("calendar.auto_reopen.error %s: %s", task.uuid, exc)

            for task in overdue:
                try:
                    updated_by_id[task.uuid] = await self._store.complete_task(task.uuid)
                except Exception as exc:
                    result.complete_failed += 1
                    logger.warning("calendar.auto_complete.error %s: %s", task.uuid, exc)

            self._state.merge(updated_by_id)
            result.updated = list(updated_by_id)
            result.message = _failure_message(result.complete_failed, result.reopen_failed)
            logger.info(
                "calendar.auto_sweep.done updated=%d complete_failed=%d reopen_failed=%d",
                len(updated_by_id),
                result.complete_failed,
                result.reopen_failed,
            )
        finally:
            self._lock.release()
        return result


__all__ = [
    "AutoSweepController",
    "SweepLock",
    "SweepResult",
    "partition_sweep_candidates",
]
