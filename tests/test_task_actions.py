"""Tests for manual and bulk task status changes."""

from __future__ import annotations

import pytest

from agenda.services.task_actions import MANUAL_COMPLETION_BLOCKED_MESSAGE, TaskActionsService
from agenda.tasks.models import Task, TaskStatus
from agenda.tasks.store import (
    InMemoryTaskStore,
    ManualCompletionBlocked,
    TaskNotFoundError,
    TaskState,
    TaskStoreError,
)
from agenda.utils.datetime_utils import parse_task_due_utc_ms

NOW = parse_task_due_utc_ms("2026-05-15T12:00:00Z")
PAST = "2026-05-15T11:00:00Z"
FUTURE = "2026-05-15T13:00:00Z"


class RefusingStore(InMemoryTaskStore):
    def __init__(self, tasks, refuse: set[str]):
        super().__init__(tasks)
        self.refuse = refuse

    async def complete_task(self, uuid: str) -> Task:
        if uuid in self.refuse:
            raise TaskStoreError("nope")
        return await super().complete_task(uuid)

    async def uncomplete_task(self, uuid: str) -> Task:
        if uuid in self.refuse:
            raise TaskStoreError("nope")
        return await super().uncomplete_task(uuid)


async def _service(store: InMemoryTaskStore) -> TaskActionsService:
    state = TaskState()
    await state.refresh(store)
    return TaskActionsService(store, state)


@pytest.mark.anyio
async def test_mark_done_blocks_calendar_task_before_due(make_task) -> None:
    service = await _service(
        InMemoryTaskStore([make_task("e", due=FUTURE, tags=["cal_source:work"])])
    )
    with pytest.raises(ManualCompletionBlocked, match="only be completed after"):
        await service.mark_done("e", now_ms=NOW)
    assert service.state.get("e").status is TaskStatus.PENDING
    assert MANUAL_COMPLETION_BLOCKED_MESSAGE.startswith("Calendar events")


@pytest.mark.anyio
async def test_mark_done_and_undone(make_task) -> None:
    service = await _service(
        InMemoryTaskStore([make_task("e", due=PAST, tags=["cal_source:work"])])
    )
    done = await service.mark_done("e", now_ms=NOW)
    assert done.status is TaskStatus.COMPLETED
    assert done.modified is not None
    reopened = await service.mark_undone("e")
    assert reopened.status is TaskStatus.PENDING
    assert service.state.get("e").status is TaskStatus.PENDING


@pytest.mark.anyio
async def test_unknown_task_raises(make_task) -> None:
    service = await _service(InMemoryTaskStore())
    with pytest.raises(TaskNotFoundError):
        await service.mark_done("missing")


@pytest.mark.anyio
async def test_update_tags_merges_result(make_task) -> None:
    service = await _service(InMemoryTaskStore([make_task("a", tags=["x"])]))
    updated = await service.update_tags("a", ["x", "kanban:done"])
    assert updated.tags == ["x", "kanban:done"]
    assert service.state.get("a").tags == ["x", "kanban:done"]


@pytest.mark.anyio
async def test_bulk_done_reports_failures_and_blocked(make_task) -> None:
    store = RefusingStore(
        [
            make_task("ok", due=PAST),
            make_task("refused", due=PAST),
            make_task("early", due=FUTURE, tags=["cal_source:work"]),
            make_task("closed", status="Completed"),
        ],
        refuse={"refused"},
    )
    service = await _service(store)

    result = await service.mark_done_bulk(
        ["ok", "refused", "early", "closed", "ok", "missing"], now_ms=NOW
    )

    assert result.updated == ["ok"]
    assert result.failed == ["refused"]
    assert result.blocked == ["early"]
    assert result.message == (
        "Failed to complete 1 task(s). Blocked 1 calendar task(s) before due time."
    )
    assert [t.uuid for t in service.state.tasks] == ["ok", "refused", "early", "closed"]
    assert service.state.get("ok").status is TaskStatus.COMPLETED


@pytest.mark.anyio
async def test_bulk_done_all_blocked(make_task) -> None:
    service = await _service(
        InMemoryTaskStore([make_task("early", due=FUTURE, tags=["cal_source:work"])])
    )
    result = await service.mark_done_bulk(["early"], now_ms=NOW)
    assert result.updated == []
    assert result.message == "Blocked 1 calendar task(s): due time has not passed yet."


@pytest.mark.anyio
async def test_bulk_undone_only_touches_completed(make_task) -> None:
    store = RefusingStore(
        [
            make_task("a", status="Completed"),
            make_task("b", status="Completed"),
            make_task("c"),
        ],
        refuse={"b"},
    )
    service = await _service(store)

    result = await service.mark_undone_bulk(["a", "b", "c"])

    assert result.updated == ["a"]
    assert result.failed == ["b"]
    assert result.message == "Failed to uncomplete 1 task(s)."

    assert (await service.mark_undone_bulk(["c"])).message is None
