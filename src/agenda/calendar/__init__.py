"""Calendar time engine: configuration, period windows and due entries."""

from .config import CalendarConfigService, resolve_calendar_config
from .entries import (
    CalendarDueTaskEntry,
    CalendarMarker,
    CalendarStats,
    MarkerShape,
    can_manually_complete_task,
    collect_calendar_due_tasks,
    entries_for_date,
    is_calendar_event_task,
    markers_for_date,
    period_stats,
    period_tasks,
)
from .periods import (
    CalendarView,
    CalendarWindow,
    MonthGridCell,
    WeekStart,
    calendar_month_grid_start,
    calendar_window,
    month_grid,
    month_week_starts,
    shift_calendar_focus,
)

__all__ = [
    "CalendarConfigService",
    "CalendarDueTaskEntry",
    "CalendarMarker",
    "CalendarStats",
    "CalendarView",
    "CalendarWindow",
    "MarkerShape",
    "MonthGridCell",
    "WeekStart",
    "calendar_month_grid_start",
    "calendar_window",
    "can_manually_complete_task",
    "collect_calendar_due_tasks",
    "entries_for_date",
    "is_calendar_event_task",
    "markers_for_date",
    "month_grid",
    "month_week_starts",
    "period_stats",
    "period_tasks",
    "resolve_calendar_config",
    "shift_calendar_focus",
]
