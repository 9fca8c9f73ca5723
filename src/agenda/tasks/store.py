"""Contract for the external task store plus an in-process implementation."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional, Protocol, Sequence, runtime_checkable

from .models import Task, TaskStatus

logger = logging.getLogger(__name__)


class TaskStoreError(RuntimeError):
    """Raised when the task store rejects or fails an operation."""


class TaskNotFoundError(TaskStoreError):
    """Raised when a task identifier is unknown to the store."""


class ManualCompletionBlocked(TaskStoreError):
    """Raised when a calendar task is completed before its due time."""


@runtime_checkable
class TaskStore(Protocol):
    """Operations consumed from the external task store.

    Every mutating call returns the authoritative updated record.
    """

    async def list_tasks(self) -> list[Task]: ...

    async def complete_task(self, uuid: str) -> Task: ...

    async def uncomplete_task(self, uuid: str) -> Task: ...

    async def update_task_tags(self, uuid: str, tags: Sequence[str]) -> Task: ...


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


class InMemoryTaskStore:
    """Dictionary-backed :class:`TaskStore` used by the app and the tests."""

    def __init__(self, tasks: Optional[Iterable[Task]] = None):
        self._tasks: dict[str, Task] = {}
        for task in tasks or ():
            self._tasks[task.uuid] = task

    def _get_or_raise(self, uuid: str) -> Task:
        task = self._tasks.get(uuid)
        if task is None:
            raise TaskNotFoundError(f"Task {uuid} not found")
        return task

    def add(self, task: Task) -> Task:
        self._tasks[task.uuid] = task
        return task

    async def list_tasks(self) -> list[Task]:
        return list(self._tasks.values())

    async def complete_task(self, uuid: str) -> Task:
        task = self._get_or_raise(uuid)
        if not task.status.is_open:
            raise TaskStoreError(f"Task {uuid} is {task.status.value}, cannot complete")
        updated = task.with_status(TaskStatus.COMPLETED)
        updated.modified = _timestamp()
        self._tasks[uuid] = updated
        logger.debug("task.store.complete %s", uuid)
        return updated

    async def uncomplete_task(self, uuid: str) -> Task:
        task = self._get_or_raise(uuid)
        if task.status != TaskStatus.COMPLETED:
            raise TaskStoreError(f"Task {uuid} is {task.status.value}, cannot reopen")
        updated = task.with_status(TaskStatus.PENDING)
        updated.modified = _timestamp()
        self._tasks[uuid] = updated
        logger.debug("task.store.uncomplete %s", uuid)
        return updated

    async def update_task_tags(self, uuid: str, tags: Sequence[str]) -> Task:
        task = self._get_or_raise(uuid)
        updated = task.with_tags(list(tags))
        updated.modified = _timestamp()
        self._tasks[uuid] = updated
        return updated


class TaskState:
    """Local, ordered copy of the store's tasks that updates are merged into."""

    def __init__(self, tasks: Optional[Iterable[Task]] = None):
        self._tasks: list[Task] = list(tasks or ())

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    def replace_all(self, tasks: Iterable[Task]) -> None:
        self._tasks = list(tasks)

    def get(self, uuid: str) -> Optional[Task]:
        for task in self._tasks:
            if task.uuid == uuid:
                return task
        return None

    def merge(self, updated_by_id: Mapping[str, Task]) -> None:
        """Swap in authoritative records, keeping the existing order."""

        if not updated_by_id:
            return
        self._tasks = [updated_by_id.get(task.uuid, task) for task in self._tasks]

    async def refresh(self, store: TaskStore) -> list[Task]:
        self._tasks = await store.list_tasks()
        return self.tasks


__all__ = [
    "InMemoryTaskStore",
    "ManualCompletionBlocked",
    "TaskNotFoundError",
    "TaskState",
    "TaskStore",
    "TaskStoreError",
]
