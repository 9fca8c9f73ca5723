"""Manual and bulk task status changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from ..calendar.entries import can_manually_complete_task
from ..tasks.models import Task, TaskStatus
from ..tasks.store import ManualCompletionBlocked, TaskNotFoundError, TaskState, TaskStore
from ..utils.datetime_utils import now_utc_ms

logger = logging.getLogger(__name__)

MANUAL_COMPLETION_BLOCKED_MESSAGE = (
    "Calendar events can only be completed after their due time has passed."
)


@dataclass(slots=True)
class BulkActionResult:
    updated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    blocked: list[str] = field(default_factory=list)
    message: Optional[str] = None


def _unique(uuids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(uuids))


class TaskActionsService:
    """Apply status changes through the store and merge the results locally."""

    def __init__(self, store: TaskStore, state: TaskState):
        self._store = store
        self._state = state

    @property
    def state(self) -> TaskState:
        return self._state

    def _require(self, uuid: str) -> Task:
        task = self._state.get(uuid)
        if task is None:
            raise TaskNotFoundError(f"Task {uuid} not found")
        return task

    async def mark_done(self, uuid: str, now_ms: int | None = None) -> Task:
        task = self._require(uuid)
        now = now_utc_ms() if now_ms is None else now_ms
        if not can_manually_complete_task(task, now):
            logger.warning("task.done.blocked %s", uuid)
            raise ManualCompletionBlocked(MANUAL_COMPLETION_BLOCKED_MESSAGE)
        updated = await self._store.complete_task(uuid)
        self._state.merge({uuid: updated})
        logger.info("task.done %s", uuid)
        return updated

    async def mark_undone(self, uuid: str) -> Task:
        self._require(uuid)
        updated = await self._store.uncomplete_task(uuid)
        self._state.merge({uuid: updated})
        logger.info("task.uncomplete %s", uuid)
        return updated

    async def update_tags(self, uuid: str, tags: Sequence[str]) -> Task:
        self._require(uuid)
        updated = await self._store.update_task_tags(uuid, list(tags))
        self._state.merge({uuid: updated})
        logger.info("task.tags.update %s count=%d", uuid, len(updated.tags))
        return updated

    async def mark_done_bulk(
        self, uuids: Iterable[str], now_ms: int | None = None
    ) -> BulkActionResult:
        """Complete open tasks; unknown or closed ids are ignored.

        Calendar tasks that are not yet due are reported as blocked.
        """
        now = now_utc_ms() if now_ms is None else now_ms
        result = BulkActionResult()
        eligible: list[str] = []
        for uuid in _unique(uuids):
            task = self._state.get(uuid)
            if task is None or not task.status.is_open:
                continue
            if not can_manually_complete_task(task, now):
                result.blocked.append(uuid)
                continue
            eligible.append(uuid)

        if not eligible:
            if result.blocked:
                result.message = (
                    f"Blocked {len(result.blocked)} calendar task(s): "
                    "due time has not passed yet."
                )
            return result

        logger.info("task.done.bulk.start count=%d", len(eligible))
        updated_by_id: dict[str, Task] = {}
        for uuid in eligible:
            try:
                updated_by_id[uuid] = await self._store.complete_task(uuid)
            except Exception as exc:
                result.failed.append(uuid)
                logger.warning("task.done.bulk.item_error %s: %s", uuid, exc)

        self._state.merge(updated_by_id)
        result.updated = list(updated_by_id)
        messages = []
        if result.failed:
            messages.append(f"Failed to complete {len(result.failed)} task(s).")
        if result.blocked:
            messages.append(f"Blocked {len(result.blocked)} calendar task(s) before due time.")
        result.message = " ".join(messages) or None
        logger.info(
            "task.done.bulk.done completed=%d failed=%d blocked=%d",
            len(result.updated),
            len(result.failed),
            len(result.blocked),
        )
        return result

    async def mark_undone_bulk(self, uuids: Iterable[str]) -> BulkActionResult:
        result = BulkActionResult()
        eligible = [
            uuid
            for uuid in _unique(uuids)
            if (task := self._state.get(uuid)) is not None
            and task.status == TaskStatus.COMPLETED
        ]
        if not eligible:
            return result

        logger.info("task.uncomplete.bulk.start count=%d", len(eligible))
        updated_by_id: dict[str, Task] = {}
        for uuid in eligible:
            try:
                updated_by_id[uuid] = await self._store.uncomplete_task(uuid)
            except Exception as exc:
                result.failed.append(uuid)
                logger.warning("task.uncomplete.bulk.item_error %s: %s", uuid, exc)

        self._state.merge(updated_by_id)
        result.updated = list(updated_by_id)
        if result.failed:
            result.message = f"Failed to uncomplete {len(result.failed)} task(s)."
        logger.info(
            "task.uncomplete.bulk.done reopened=%d failed=%d",
            len(result.updated),
            len(result.failed),
        )
        return result


__all__ = [
    "BulkActionResult",
    "MANUAL_COMPLETION_BLOCKED_MESSAGE",
    "TaskActionsService",
]
