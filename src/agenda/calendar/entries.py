"""Join tasks to due instants and classify them into calendar markers."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence

from ..schemas.calendar_config import EffectiveCalendarConfig
from ..tasks.models import Task, TaskStatus
from ..tasks.tags import (
    BOARD_TAG_KEY,
    CAL_COLOR_TAG_KEY,
    CAL_SOURCE_TAG_KEY,
    CALENDAR_UNAFFILIATED_COLOR,
    first_tag_value,
    normalize_marker_color,
)
from ..utils.datetime_utils import (
    ZonedDateTimeParts,
    parse_task_due_utc_ms,
    zoned_date_time_parts,
)
from .periods import CalendarView, WeekStart, calendar_window

CALENDAR_EVENT_DEFAULT_COLOR = "#d64545"
BOARD_DEFAULT_COLOR = "hsl(212 74% 54%)"

CALENDAR_FILTER_ALL = "__all__"
CALENDAR_FILTER_NONE = "__none__"


class MarkerShape(str, Enum):
    TRIANGLE = "triangle"
    CIRCLE = "circle"
    SQUARE = "square"


@dataclass(frozen=True, slots=True)
class CalendarMarker:
    shape: MarkerShape
    color: str


@dataclass(frozen=True, slots=True)
class CalendarDueTaskEntry:
    task: Task
    due_utc_ms: int
    due_local: ZonedDateTimeParts
    marker: CalendarMarker


@dataclass(slots=True)
class CalendarStats:
    total: int = 0
    pending: int = 0
    waiting: int = 0
    completed: int = 0
    deleted: int = 0


def _status_visible(status: TaskStatus, config: EffectiveCalendarConfig) -> bool:
    visibility = config.visibility
    return {
        TaskStatus.PENDING: visibility.pending,
        TaskStatus.WAITING: visibility.waiting,
        TaskStatus.COMPLETED: visibility.completed,
        TaskStatus.DELETED: visibility.deleted,
    }.get(status, True)


def task_due_utc_ms(task: Task) -> Optional[int]:
    if not task.due:
        return None
    return parse_task_due_utc_ms(task.due)


def is_calendar_event_task(task: Task) -> bool:
    """True when the task carries a calendar-source tag."""

    return first_tag_value(task.tags, CAL_SOURCE_TAG_KEY) is not None


def can_manually_complete_task(task: Task, now_ms: int) -> bool:
    """Calendar events may only be completed once their due time has passed.

    Tasks without a calendar source can always be completed.
    """
    if not is_calendar_event_task(task):
        return True
    due_ms = task_due_utc_ms(task)
    if due_ms is None:
        return False
    return due_ms <= now_ms


def marker_for_task(
    task: Task,
    board_colors: Mapping[str, str],
    calendar_colors: Mapping[str, str],
) -> CalendarMarker:
    calendar_id = first_tag_value(task.tags, CAL_SOURCE_TAG_KEY)
    if calendar_id:
        color = (
            calendar_colors.get(calendar_id)
            or calendar_colors.get(calendar_id.lower())
            or normalize_marker_color(
                first_tag_value(task.tags, CAL_COLOR_TAG_KEY) or CALENDAR_EVENT_DEFAULT_COLOR
            )
        )
        return CalendarMarker(MarkerShape.CIRCLE, color)

    board_id = first_tag_value(task.tags, BOARD_TAG_KEY)
    if board_id:
        return CalendarMarker(
            MarkerShape.TRIANGLE, board_colors.get(board_id) or BOARD_DEFAULT_COLOR
        )

    return CalendarMarker(MarkerShape.SQUARE, CALENDAR_UNAFFILIATED_COLOR)


def collect_calendar_due_tasks(
    tasks: Iterable[Task],
    config: EffectiveCalendarConfig,
    board_colors: Optional[Mapping[str, str]] = None,
    calendar_colors: Optional[Mapping[str, str]] = None,
) -> list[CalendarDueTaskEntry]:
    """Build due entries for visible tasks with a parseable due, oldest first."""

    board_colors = board_colors or {}
    calendar_colors = calendar_colors or {}
    entries: list[CalendarDueTaskEntry] = []
    for task in tasks:
        if not _status_visible(task.status, config):
            continue
        due_ms = task_due_utc_ms(task)
        if due_ms is None:
            continue
        entries.append(
            CalendarDueTaskEntry(
                task=task,
                due_utc_ms=due_ms,
                due_local=zoned_date_time_parts(due_ms, config.timezone),
                marker=marker_for_task(task, board_colors, calendar_colors),
            )
        )
    entries.sort(key=lambda entry: entry.due_utc_ms)
    return entries


def period_tasks(
    entries: Iterable[CalendarDueTaskEntry],
    view: CalendarView | str,
    focus: datetime.date,
    week_start: WeekStart | str,
) -> list[CalendarDueTaskEntry]:
    window = calendar_window(view, focus, week_start)
    return [entry for entry in entries if window.contains(entry.due_local.date)]


def entries_for_date(
    entries: Iterable[CalendarDueTaskEntry], day: datetime.date
) -> list[CalendarDueTaskEntry]:
    return [entry for entry in entries if entry.due_local.date == day]


def markers_for_date(
    entries: Iterable[CalendarDueTaskEntry], day: datetime.date
) -> list[CalendarMarker]:
    return [entry.marker for entry in entries_for_date(entries, day)]


def period_stats(entries: Iterable[CalendarDueTaskEntry]) -> CalendarStats:
    stats = CalendarStats()
    for entry in entries:
        stats.total += 1
        status = entry.task.status
        if status == TaskStatus.PENDING:
            stats.pending += 1
        elif status == TaskStatus.WAITING:
            stats.waiting += 1
        elif status == TaskStatus.COMPLETED:
            stats.completed += 1
        elif status == TaskStatus.DELETED:
            stats.deleted += 1
    return stats


def marker_entries(
    entries: Sequence[CalendarDueTaskEntry],
    config: EffectiveCalendarConfig,
    now_ms: int,
) -> list[CalendarDueTaskEntry]:
    """Entries whose markers are drawn; past ones drop out with ``hide_past_markers``."""

    if not config.toggles.hide_past_markers:
        return list(entries)
    return [entry for entry in entries if entry.due_utc_ms >= now_ms]


def visible_period_entries(
    entries: Sequence[CalendarDueTaskEntry],
    config: EffectiveCalendarConfig,
    now_ms: int,
    calendar_filter: str = CALENDAR_FILTER_ALL,
) -> list[CalendarDueTaskEntry]:
    """Filter a period's entries for the side task list."""

    def _matches(entry: CalendarDueTaskEntry) -> bool:
        if calendar_filter == CALENDAR_FILTER_ALL:
            return True
        source = first_tag_value(entry.task.tags, CAL_SOURCE_TAG_KEY)
        if calendar_filter == CALENDAR_FILTER_NONE:
            return source is None
        return source == calendar_filter

    selected = [entry for entry in entries if _matches(entry)]
    if config.toggles.filter_tasks_before_now:
        selected = [entry for entry in selected if entry.due_utc_ms >= now_ms]
    return selected


__all__ = [
    "BOARD_DEFAULT_COLOR",
    "CALENDAR_EVENT_DEFAULT_COLOR",
    "CALENDAR_FILTER_ALL",
    "CALENDAR_FILTER_NONE",
    "CalendarDueTaskEntry",
    "CalendarMarker",
    "CalendarStats",
    "MarkerShape",
    "can_manually_complete_task",
    "collect_calendar_due_tasks",
    "entries_for_date",
    "is_calendar_event_task",
    "marker_entries",
    "marker_for_task",
    "markers_for_date",
    "period_stats",
    "period_tasks",
    "task_due_utc_ms",
    "visible_period_entries",
]
