"""API routes for calendar configuration, period windows and due entries."""

from __future__ import annotations

import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..calendar.config import CalendarConfigService
from ..calendar.entries import (
    CALENDAR_FILTER_ALL,
    CalendarDueTaskEntry,
    CalendarMarker,
    collect_calendar_due_tasks,
    marker_entries,
    period_stats,
    period_tasks,
    visible_period_entries,
)
from ..calendar.periods import (
    CalendarView,
    calendar_title_for_view,
    calendar_window,
    day_view_hours,
    is_past_period,
    month_grid,
    shift_calendar_focus,
    weekday_labels,
)
from ..schemas.calendar_config import EffectiveCalendarConfig
from ..schemas.tasks import CalendarViewStatePayload
from ..services.preferences_repository import PreferencesRepository
from ..tasks.store import TaskState
from ..utils.datetime_utils import (
    calendar_date_from_iso,
    calendar_date_to_iso,
    now_utc_ms,
    today_in_timezone,
    zoned_date_time_parts,
)

router = APIRouter(prefix="/api/calendar", tags=["calendar"])


def get_calendar_config_service(request: Request) -> CalendarConfigService:
    service = getattr(request.app.state, "calendar_config_service", None)
    if service is None:  # pragma: no cover - defensive
        raise RuntimeError("Calendar config service is not configured")
    return service


def get_task_state(request: Request) -> TaskState:
    state = getattr(request.app.state, "task_state", None)
    if state is None:  # pragma: no cover - defensive
        raise RuntimeError("Task state is not configured")
    return state


def get_preferences_repository(request: Request) -> PreferencesRepository:
    repository = getattr(request.app.state, "preferences_repository", None)
    if repository is None:  # pragma: no cover - defensive
        raise RuntimeError("Preferences repository is not configured")
    return repository


def _parse_view(raw: str) -> CalendarView:
    try:
        return CalendarView(raw.strip().lower())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown calendar view '{raw}'",
        ) from exc


def _focus(raw: Optional[str], config: EffectiveCalendarConfig) -> datetime.date:
    return calendar_date_from_iso(raw, fallback=today_in_timezone(config.timezone))


def _marker_payload(marker: CalendarMarker) -> dict[str, str]:
    return {"shape": marker.shape.value, "color": marker.color}


def _entry_payload(entry: CalendarDueTaskEntry) -> dict[str, Any]:
    local = entry.due_local
    return {
        "task": entry.task.to_dict(),
        "due_utc_ms": entry.due_utc_ms,
        "due_local": {
            "date": calendar_date_to_iso(local.date),
            "hour": local.hour,
            "minute": local.minute,
            "weekday": local.weekday,
        },
        "marker": _marker_payload(entry.marker),
    }


@router.get("/config", response_model=EffectiveCalendarConfig)
async def read_calendar_config(
    service: CalendarConfigService = Depends(get_calendar_config_service),
) -> EffectiveCalendarConfig:
    return service.get_effective()


@router.put("/config", response_model=EffectiveCalendarConfig)
async def replace_calendar_config(
    payload: dict[str, Any],
    service: CalendarConfigService = Depends(get_calendar_config_service),
) -> EffectiveCalendarConfig:
    """Replace the runtime snapshot; malformed or out-of-range fields fall back to defaults."""
    return service.set_runtime(payload)


@router.get("/window")
async def read_window(
    view: str = Query("month"),
    focus: Optional[str] = Query(None),
    service: CalendarConfigService = Depends(get_calendar_config_service),
) -> dict[str, Any]:
    config = service.get_effective()
    calendar_view = _parse_view(view)
    focus_date = _focus(focus, config)
    week_start = config.policies.week_start
    window = calendar_window(calendar_view, focus_date, week_start)
    today = today_in_timezone(config.timezone)
    return {
        "view": calendar_view.value,
        "focus": calendar_date_to_iso(focus_date),
        "start": calendar_date_to_iso(window.start),
        "end": calendar_date_to_iso(window.end),
        "days": [calendar_date_to_iso(day) for day in window.days()],
        "title": calendar_title_for_view(calendar_view, focus_date, week_start),
        "weekday_labels": weekday_labels(week_start),
        "past": config.toggles.de_emphasize_past_periods
        and is_past_period(calendar_view, window.start, today),
    }


@router.get("/shift")
async def shift_focus(
    view: str = Query("month"),
    focus: Optional[str] = Query(None),
    step: int = Query(1),
    service: CalendarConfigService = Depends(get_calendar_config_service),
) -> dict[str, str]:
    config = service.get_effective()
    calendar_view = _parse_view(view)
    shifted = shift_calendar_focus(
        _focus(focus, config), calendar_view, step, config.policies.week_start
    )
    return {"view": calendar_view.value, "focus": calendar_date_to_iso(shifted)}


@router.get("/month-grid")
async def read_month_grid(
    focus: Optional[str] = Query(None),
    service: CalendarConfigService = Depends(get_calendar_config_service),
    state: TaskState = Depends(get_task_state),
) -> dict[str, Any]:
    config = service.get_effective()
    focus_date = _focus(focus, config)
    now_ms = now_utc_ms()
    entries = marker_entries(
        collect_calendar_due_tasks(state.tasks, config), config, now_ms
    )
    weeks = month_grid(
        focus_date,
        config.policies.week_start,
        entries,
        today=today_in_timezone(config.timezone, now_ms),
        marker_limit=config.policies.red_dot_limit,
    )
    return {
        "focus": calendar_date_to_iso(focus_date),
        "weekday_labels": weekday_labels(config.policies.week_start),
        "weeks": [
            [
                {
                    "date": calendar_date_to_iso(cell.date),
                    "outside": cell.outside,
                    "is_today": cell.is_today,
                    "is_past": cell.is_past,
                    "markers": [_marker_payload(marker) for marker in cell.markers],
                    "overflow": cell.overflow,
                }
                for cell in week
            ]
            for week in weeks
        ],
    }


@router.get("/entries")
async def read_period_entries(
    view: str = Query("month"),
    focus: Optional[str] = Query(None),
    calendar: str = Query(CALENDAR_FILTER_ALL),
    service: CalendarConfigService = Depends(get_calendar_config_service),
    state: TaskState = Depends(get_task_state),
) -> dict[str, Any]:
    """Due entries inside the focused period plus status counts for it."""
    config = service.get_effective()
    calendar_view = _parse_view(view)
    focus_date = _focus(focus, config)
    now_ms = now_utc_ms()

    in_period = period_tasks(
        collect_calendar_due_tasks(state.tasks, config),
        calendar_view,
        focus_date,
        config.policies.week_start,
    )
    visible = visible_period_entries(in_period, config, now_ms, calendar)
    limit = config.policies.task_list_limit
    stats = period_stats(in_period)
    return {
        "view": calendar_view.value,
        "focus": calendar_date_to_iso(focus_date),
        "entries": [_entry_payload(entry) for entry in visible[:limit]],
        "truncated": max(0, len(visible) - limit),
        "stats": {
            "total": stats.total,
            "pending": stats.pending,
            "waiting": stats.waiting,
            "completed": stats.completed,
            "deleted": stats.deleted,
        },
    }


@router.get("/day")
async def read_day_view(
    date: Optional[str] = Query(None),
    service: CalendarConfigService = Depends(get_calendar_config_service),
    state: TaskState = Depends(get_task_state),
) -> dict[str, Any]:
    config = service.get_effective()
    day = _focus(date, config)
    now_ms = now_utc_ms()
    now_local = zoned_date_time_parts(now_ms, config.timezone)
    entries = marker_entries(
        collect_calendar_due_tasks(state.tasks, config), config, now_ms
    )
    slots = day_view_hours(
        entries,
        day,
        config,
        today=now_local.date,
        now_hour=now_local.hour,
    )
    return {
        "date": calendar_date_to_iso(day),
        "hours": [
            {
                "hour": slot.hour,
                "label": slot.label,
                "past": slot.past,
                "markers": [_marker_payload(marker) for marker in slot.markers],
                "overflow": slot.overflow,
            }
            for slot in slots
        ],
    }


@router.get("/view-state")
async def read_view_state(
    repository: PreferencesRepository = Depends(get_preferences_repository),
    service: CalendarConfigService = Depends(get_calendar_config_service),
) -> dict[str, str]:
    stored = await repository.get_calendar_view_state()
    config = service.get_effective()
    try:
        view = CalendarView(str(stored.get("view") or CalendarView.MONTH.value))
    except ValueError:
        view = CalendarView.MONTH
    stored_focus = stored.get("focus")
    focus = _focus(stored_focus if isinstance(stored_focus, str) else None, config)
    return {"view": view.value, "focus": calendar_date_to_iso(focus)}


@router.put("/view-state")
async def update_view_state(
    payload: CalendarViewStatePayload,
    repository: PreferencesRepository = Depends(get_preferences_repository),
    service: CalendarConfigService = Depends(get_calendar_config_service),
) -> dict[str, str]:
    view = _parse_view(payload.view)
    focus = _focus(payload.focus, service.get_effective())
    await repository.set_calendar_view_state(view.value, calendar_date_to_iso(focus))
    return {"view": view.value, "focus": calendar_date_to_iso(focus)}


__all__ = ["router"]
