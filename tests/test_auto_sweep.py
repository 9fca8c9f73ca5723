"""Tests for the calendar auto-sweep."""

from __future__ import annotations

import asyncio
from typing import Sequence

import pytest

from agenda.services.auto_sweep import AutoSweepController, SweepLock, partition_sweep_candidates
from agenda.tasks.models import Task, TaskStatus
from agenda.tasks.store import InMemoryTaskStore, TaskState, TaskStoreError
from agenda.utils.datetime_utils import parse_task_due_utc_ms

NOW = parse_task_due_utc_ms("2026-05-15T12:00:00Z")
PAST = "2026-05-15T11:00:00Z"
FUTURE = "2026-05-15T13:00:00Z"


class GatedStore(InMemoryTaskStore):
    """Store whose mutations block until ``gate`` is set."""

    def __init__(self, tasks: Sequence[Task]):
        super().__init__(tasks)
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()
        self.complete_calls: list[str] = []

    async def complete_task(self, uuid: str) -> Task:
        self.complete_calls.append(uuid)
        self.entered.set()
        await self.gate.wait()
        return await super().complete_task(uuid)


class FlakyStore(InMemoryTaskStore):
    def __init__(self, tasks: Sequence[Task], failing: set[str]):
        super().__init__(tasks)
        self.failing = failing

    async def complete_task(self, uuid: str) -> Task:
        if uuid in self.failing:
            raise TaskStoreError(f"refused {uuid}")
        return await super().complete_task(uuid)

    async def uncomplete_task(self, uuid: str) -> Task:
        if uuid in self.failing:
            raise TaskStoreError(f"refused {uuid}")
        return await super().uncomplete_task(uuid)


async def _controller(store: InMemoryTaskStore) -> tuple[AutoSweepController, TaskState]:
    state = TaskState()
    await state.refresh(store)
    return AutoSweepController(store, state), state


def test_partition_only_considers_calendar_tasks(make_task) -> None:
    tasks = [
        make_task("overdue", due=PAST, tags=["cal_source:work"]),
        make_task("waiting", due=PAST, tags=["cal_source:work"], status="Waiting"),
        make_task("early", due=FUTURE, tags=["cal_source:work"], status="Completed"),
        make_task("future", due=FUTURE, tags=["cal_source:work"]),
        make_task("plain", due=PAST),
        make_task("plain_done", due=FUTURE, status="Completed"),
        make_task("deleted", due=PAST, tags=["cal_source:work"], status="Deleted"),
    ]
    overdue, premature = partition_sweep_candidates(tasks, NOW)
    assert [t.uuid for t in overdue] == ["overdue", "waiting"]
    assert [t.uuid for t in premature] == ["early"]


@pytest.mark.anyio
async def test_overdue_calendar_task_is_completed(make_task) -> None:
    store = InMemoryTaskStore(
        [make_task("e", due=PAST, tags=["cal_source:work"]), make_task("plain", due=PAST)]
    )
    controller, state = await _controller(store)

    result = await controller.tick(now_ms=NOW)

    assert result.updated == ["e"]
    assert result.message is None
    assert state.get("e").status is TaskStatus.COMPLETED
    assert state.get("plain").status is TaskStatus.PENDING
    assert not controller.in_flight


@pytest.mark.anyio
async def test_prematurely_completed_task_is_reopened(make_task) -> None:
    store = InMemoryTaskStore(
        [make_task("e", due=FUTURE, tags=["cal_source:work"], status="Completed")]
    )
    controller, state = await _controller(store)

    result = await controller.tick(now_ms=NOW)

    assert result.updated == ["e"]
    assert state.get("e").status is TaskStatus.PENDING


@pytest.mark.anyio
async def test_idle_when_nothing_eligible(make_task) -> None:
    store = InMemoryTaskStore([make_task("e", due=FUTURE, tags=["cal_source:work"])])
    controller, _ = await _controller(store)

    result = await controller.tick(now_ms=NOW)

    assert result.idle
    assert not controller.lock.locked


@pytest.mark.anyio
async def test_concurrent_ticks_run_one_batch(make_task) -> None:
    store = GatedStore([make_task("e", due=PAST, tags=["cal_source:work"])])
    controller, state = await _controller(store)

    first = asyncio.create_task(controller.tick(now_ms=NOW))
    await store.entered.wait()

    second = await controller.tick(now_ms=NOW)
    assert second.skipped
    assert controller.in_flight

    store.gate.set()
    result = await first

    assert result.updated == ["e"]
    assert store.complete_calls == ["e"]
    assert not controller.in_flight
    assert state.get("e").status is TaskStatus.COMPLETED


@pytest.mark.anyio
async def test_failures_are_counted_and_lock_released(make_task) -> None:
    store = FlakyStore(
        [
            make_task("bad_complete", due=PAST, tags=["cal_source:a"]),
            make_task("good_complete", due=PAST, tags=["cal_source:a"]),
            make_task("bad_reopen", due=FUTURE, tags=["cal_source:a"], status="Completed"),
        ],
        failing={"bad_complete", "bad_reopen"},
    )
    controller, state = await _controller(store)

    result = await controller.tick(now_ms=NOW)

    assert result.updated == ["good_complete"]
    assert (result.complete_failed, result.reopen_failed) == (1, 1)
    assert result.message == (
        "Failed to auto-complete 1 calendar task(s). Failed to reopen 1 calendar task(s)."
    )
    assert state.get("bad_complete").status is TaskStatus.PENDING
    assert not controller.in_flight


@pytest.mark.anyio
async def test_lock_released_after_unexpected_error(make_task) -> None:
    class ExplodingState(TaskState):
        def merge(self, updated_by_id) -> None:
            raise RuntimeError("boom")

    store = InMemoryTaskStore([make_task("e", due=PAST, tags=["cal_source:work"])])
    state = ExplodingState(await store.list_tasks())
    controller = AutoSweepController(store, state, SweepLock())

    with pytest.raises(RuntimeError):
        await controller.tick(now_ms=NOW)
    assert not controller.lock.locked
