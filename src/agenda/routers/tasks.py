"""API routes for task listing and status changes."""

from __future__ import annotations

from typing import Any, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..schemas.tasks import BulkTaskPayload, TaskCreatePayload, TaskTagsPayload
from ..services.due_scheduler import DueScheduler
from ..services.task_actions import BulkActionResult, TaskActionsService
from ..tasks.models import Task, TaskStatus
from ..tasks.store import (
    InMemoryTaskStore,
    ManualCompletionBlocked,
    TaskNotFoundError,
    TaskState,
    TaskStoreError,
)
from ..tasks.tags import classify_task_tags
from .calendar import get_task_state

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def get_task_actions(request: Request) -> TaskActionsService:
    service = getattr(request.app.state, "task_actions", None)
    if service is None:  # pragma: no cover - defensive
        raise RuntimeError("Task actions service is not configured")
    return service


def get_task_store(request: Request) -> InMemoryTaskStore:
    store = getattr(request.app.state, "task_store", None)
    if not isinstance(store, InMemoryTaskStore):
        raise HTTPException(
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            detail="The configured task store does not accept new tasks",
        )
    return store


def get_due_scheduler(request: Request) -> DueScheduler:
    scheduler = getattr(request.app.state, "due_scheduler", None)
    if scheduler is None:  # pragma: no cover - defensive
        raise RuntimeError("Due scheduler is not configured")
    return scheduler


def _raise_for_store_error(exc: TaskStoreError) -> NoReturn:
    if isinstance(exc, TaskNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ManualCompletionBlocked):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def _bulk_payload(result: BulkActionResult) -> dict[str, Any]:
    return {
        "updated": result.updated,
        "failed": result.failed,
        "blocked": result.blocked,
        "error": result.message,
    }


@router.get("")
async def list_tasks(
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    state: TaskState = Depends(get_task_state),
) -> dict[str, list[dict[str, Any]]]:
    tasks = state.tasks
    if status_filter is not None:
        tasks = [task for task in tasks if task.status == status_filter]
    return {"tasks": [task.to_dict() for task in tasks]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskCreatePayload,
    store: InMemoryTaskStore = Depends(get_task_store),
    state: TaskState = Depends(get_task_state),
) -> dict[str, Any]:
    task = store.add(Task.from_dict(payload.model_dump(mode="json")))
    await state.refresh(store)
    return task.to_dict()


@router.get("/{uuid}/classification")
async def read_classification(
    uuid: str,
    state: TaskState = Depends(get_task_state),
) -> dict[str, Any]:
    task = state.get(uuid)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Task {uuid} not found")
    classification = classify_task_tags(task.tags)
    recurrence = classification.recurrence
    return {
        "kanban_lane": classification.kanban_lane,
        "board_id": classification.board_id,
        "calendar_source_id": classification.calendar_source_id,
        "calendar_color": classification.calendar_color,
        "is_calendar_event": classification.is_calendar_event,
        "recurrence": {
            "pattern": recurrence.pattern,
            "time": recurrence.time,
            "days": list(recurrence.days),
            "months": list(recurrence.months),
            "month_day": recurrence.month_day,
        },
    }


@router.post("/bulk/done")
async def mark_done_bulk(
    payload: BulkTaskPayload,
    actions: TaskActionsService = Depends(get_task_actions),
) -> dict[str, Any]:
    return _bulk_payload(await actions.mark_done_bulk(payload.uuids))


@router.post("/bulk/undone")
async def mark_undone_bulk(
    payload: BulkTaskPayload,
    actions: TaskActionsService = Depends(get_task_actions),
) -> dict[str, Any]:
    return _bulk_payload(await actions.mark_undone_bulk(payload.uuids))


@router.post("/sweep")
async def run_sweep(
    scheduler: DueScheduler = Depends(get_due_scheduler),
) -> dict[str, Any]:
    """Run one sweep and notification scan immediately."""
    result = await scheduler.trigger()
    sweep = result.sweep
    return {
        "sweep": None
        if sweep is None
        else {
            "skipped": sweep.skipped,
            "updated": sweep.updated,
            "complete_failed": sweep.complete_failed,
            "reopen_failed": sweep.reopen_failed,
            "error": sweep.message,
        },
        "notifications": {
            "permission": result.notifications.permission.value,
            "delivered": result.notifications.delivered,
            "failed": result.notifications.failed,
        },
    }


@router.post("/{uuid}/done")
async def mark_done(
    uuid: str,
    actions: TaskActionsService = Depends(get_task_actions),
) -> dict[str, Any]:
    try:
        task = await actions.mark_done(uuid)
    except TaskStoreError as exc:
        _raise_for_store_error(exc)
    return task.to_dict()


@router.post("/{uuid}/undone")
async def mark_undone(
    uuid: str,
    actions: TaskActionsService = Depends(get_task_actions),
) -> dict[str, Any]:
    try:
        task = await actions.mark_undone(uuid)
    except TaskStoreError as exc:
        _raise_for_store_error(exc)
    return task.to_dict()


@router.put("/{uuid}/tags")
async def update_tags(
    uuid: str,
    payload: TaskTagsPayload,
    actions: TaskActionsService = Depends(get_task_actions),
) -> dict[str, Any]:
    try:
        task = await actions.update_tags(uuid, payload.tags)
    except TaskStoreError as exc:
        _raise_for_store_error(exc)
    return task.to_dict()


__all__ = ["router"]
