"""Period windows and display grids for the calendar views.

Every function here works on :class:`datetime.date` values.  Instants only
enter through the due entries, which already carry zoned wall-clock parts.
"""

from __future__ import annotations

import calendar as _stdlib_calendar
import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

if TYPE_CHECKING:
    from ..schemas.calendar_config import EffectiveCalendarConfig
    from .entries import CalendarDueTaskEntry, CalendarMarker

GRID_ROWS = 6
GRID_COLUMNS = 7
WEEKDAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
_MONTH_SHORT = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


class CalendarView(str, Enum):
    YEAR = "year"
    QUARTER = "quarter"
    MONTH = "month"
    WEEK = "week"
    DAY = "day"


class WeekStart(str, Enum):
    MONDAY = "monday"
    SUNDAY = "sunday"


@dataclass(frozen=True, slots=True)
class CalendarWindow:
    """Inclusive date range covered by a view."""

    start: datetime.date
    end: datetime.date

    def contains(self, value: datetime.date) -> bool:
        return self.start <= value <= self.end

    def days(self) -> list[datetime.date]:
        span = (self.end - self.start).days
        return [self.start + datetime.timedelta(days=offset) for offset in range(span + 1)]


@dataclass(slots=True)
class MonthGridCell:
    date: datetime.date
    outside: bool
    markers: list["CalendarMarker"] = field(default_factory=list)
    overflow: int = 0
    is_today: bool = False
    is_past: bool = False


@dataclass(slots=True)
class DayHourSlot:
    hour: int
    markers: list["CalendarMarker"] = field(default_factory=list)
    overflow: int = 0
    past: bool = False

    @property
    def label(self) -> str:
        return f"{self.hour:02d}:00"


# -----------------------------------------------------------------------------
# Date primitives
# -----------------------------------------------------------------------------


def first_day_of_month(year: int, month: int) -> datetime.date:
    return datetime.date(year, month, 1)


def last_day_of_month(year: int, month: int) -> datetime.date:
    return datetime.date(year, month, _stdlib_calendar.monthrange(year, month)[1])


def shift_months(value: datetime.date, months: int) -> datetime.date:
    """Move by whole months, clamping the day to the target month's length."""

    index = value.year * 12 + (value.month - 1) + months
    year, month_index = divmod(index, 12)
    month = month_index + 1
    day = min(value.day, last_day_of_month(year, month).day)
    return datetime.date(year, month, day)


def shift_years(value: datetime.date, years: int) -> datetime.date:
    year = value.year + years
    day = min(value.day, last_day_of_month(year, value.month).day)
    return datetime.date(year, value.month, day)


def week_start_day(week_start: "WeekStart | str") -> int:
    """Return the weekday index (0=Sunday) a week begins on."""

    return 0 if str(_week_start_value(week_start)).lower() == "sunday" else 1


def _week_start_value(week_start: "WeekStart | str") -> str:
    return week_start.value if isinstance(week_start, WeekStart) else str(week_start)


def start_of_week(value: datetime.date, week_start: "WeekStart | str") -> datetime.date:
    weekday = value.isoweekday() % 7
    diff = (7 + weekday - week_start_day(week_start)) % 7
    return value - datetime.timedelta(days=diff)


def weekday_labels(week_start: "WeekStart | str") -> list[str]:
    start = week_start_day(week_start)
    return [*WEEKDAY_LABELS[start:], *WEEKDAY_LABELS[:start]]


def quarter_start_month(value: datetime.date) -> int:
    return ((value.month - 1) // 3) * 3 + 1


def quarter_months(focus: datetime.date) -> list[int]:
    start = quarter_start_month(focus)
    return [start, start + 1, start + 2]


# -----------------------------------------------------------------------------
# Windows and navigation
# -----------------------------------------------------------------------------


def calendar_window(
    view: "CalendarView | str",
    focus: datetime.date,
    week_start: "WeekStart | str",
) -> CalendarWindow:
    """Return the inclusive window shown by ``view`` around ``focus``."""

    view = CalendarView(view)
    if view is CalendarView.YEAR:
        return CalendarWindow(
            first_day_of_month(focus.year, 1), last_day_of_month(focus.year, 12)
        )
    if view is CalendarView.QUARTER:
        start_month = quarter_start_month(focus)
        return CalendarWindow(
            first_day_of_month(focus.year, start_month),
            last_day_of_month(focus.year, start_month + 2),
        )
    if view is CalendarView.MONTH:
        return CalendarWindow(
            first_day_of_month(focus.year, focus.month),
            last_day_of_month(focus.year, focus.month),
        )
    if view is CalendarView.WEEK:
        start = start_of_week(focus, week_start)
        return CalendarWindow(start, start + datetime.timedelta(days=6))
    return CalendarWindow(focus, focus)


def shift_calendar_focus(
    focus: datetime.date,
    view: "CalendarView | str",
    step: int,
    week_start: "WeekStart | str",
) -> datetime.date:
    """Move ``focus`` by ``step`` units of the view's granularity."""

    view = CalendarView(view)
    if view is CalendarView.YEAR:
        return shift_years(focus, step)
    if view is CalendarView.QUARTER:
        return shift_months(focus, step * 3)
    if view is CalendarView.MONTH:
        return shift_months(focus, step)
    if view is CalendarView.WEEK:
        return start_of_week(focus, week_start) + datetime.timedelta(days=step * 7)
    return focus + datetime.timedelta(days=step)


def calendar_title_for_view(
    view: "CalendarView | str",
    focus: datetime.date,
    week_start: "WeekStart | str",
) -> str:
    view = CalendarView(view)
    if view is CalendarView.YEAR:
        return f"Year View {focus.year}"
    if view is CalendarView.QUARTER:
        start_month = quarter_start_month(focus)
        quarter = (start_month - 1) // 3 + 1
        return (
            f"Quarter View Q{quarter} {focus.year} "
            f"({_MONTH_SHORT[start_month - 1]}-{_MONTH_SHORT[start_month + 1]})"
        )
    if view is CalendarView.MONTH:
        return f"Month View {focus:%B} {focus.year}"
    if view is CalendarView.WEEK:
        window = calendar_window(view, focus, week_start)
        return f"Week View {window.start.isoformat()} - {window.end.isoformat()}"
    return f"Day View {focus:%A}, {focus:%m/%d/%Y}"


# -----------------------------------------------------------------------------
# Month grid
# -----------------------------------------------------------------------------


def calendar_month_grid_start(
    focus: datetime.date, week_start: "WeekStart | str"
) -> datetime.date:
    return start_of_week(first_day_of_month(focus.year, focus.month), week_start)


def month_week_starts(
    focus: datetime.date, week_start: "WeekStart | str"
) -> list[datetime.date]:
    """Week-start dates of the grid rows that intersect the focus month."""

    month_first = first_day_of_month(focus.year, focus.month)
    month_last = last_day_of_month(focus.year, focus.month)
    grid_start = start_of_week(month_first, week_start)
    starts: list[datetime.date] = []
    for row in range(GRID_ROWS):
        row_start = grid_start + datetime.timedelta(days=row * GRID_COLUMNS)
        row_end = row_start + datetime.timedelta(days=GRID_COLUMNS - 1)
        if row_end < month_first or row_start > month_last:
            continue
        starts.append(row_start)
    return starts


def cap_markers(
    markers: Sequence["CalendarMarker"], limit: Optional[int]
) -> tuple[list["CalendarMarker"], int]:
    """Split ``markers`` into the first ``limit`` and the overflow count."""

    if limit is None:
        return list(markers), 0
    capped = list(markers[: max(0, limit)])
    return capped, len(markers) - len(capped)


def month_grid(
    focus: datetime.date,
    week_start: "WeekStart | str",
    entries: Iterable["CalendarDueTaskEntry"] = (),
    *,
    today: Optional[datetime.date] = None,
    marker_limit: Optional[int] = None,
) -> list[list[MonthGridCell]]:
    """Build the 6x7 month grid.

    Cells outside the focus month are flagged ``outside`` but still carry
    their markers.
    """
    markers_by_date: dict[datetime.date, list["CalendarMarker"]] = {}
    for entry in entries:
        markers_by_date.setdefault(entry.due_local.date, []).append(entry.marker)

    grid_start = calendar_month_grid_start(focus, week_start)
    rows: list[list[MonthGridCell]] = []
    for row in range(GRID_ROWS):
        cells: list[MonthGridCell] = []
        for column in range(GRID_COLUMNS):
            day = grid_start + datetime.timedelta(days=row * GRID_COLUMNS + column)
            markers, overflow = cap_markers(markers_by_date.get(day, []), marker_limit)
            cells.append(
                MonthGridCell(
                    date=day,
                    outside=(day.year, day.month) != (focus.year, focus.month),
                    markers=markers,
                    overflow=overflow,
                    is_today=today is not None and day == today,
                    is_past=today is not None and day < today,
                )
            )
        rows.append(cells)
    return rows


def is_past_period(
    view: "CalendarView | str",
    period_start: datetime.date,
    today: datetime.date,
) -> bool:
    """Whether a year/quarter/month card or a day cell lies before today."""

    view = CalendarView(view)
    if view in (CalendarView.YEAR, CalendarView.QUARTER, CalendarView.MONTH):
        return (period_start.year, period_start.month) < (today.year, today.month)
    return period_start < today


# -----------------------------------------------------------------------------
# Day view
# -----------------------------------------------------------------------------


def day_view_hours(
    entries: Iterable["CalendarDueTaskEntry"],
    day: datetime.date,
    config: "EffectiveCalendarConfig",
    *,
    today: datetime.date,
    now_hour: int,
) -> list[DayHourSlot]:
    """One slot per configured hour with the markers due in that local hour."""

    by_hour: dict[int, list["CalendarMarker"]] = {}
    for entry in entries:
        if entry.due_local.date == day:
            by_hour.setdefault(entry.due_local.hour, []).append(entry.marker)

    de_emphasize = config.toggles.de_emphasize_past_periods
    slots: list[DayHourSlot] = []
    for hour in range(config.day_view.hour_start, config.day_view.hour_end + 1):
        markers, overflow = cap_markers(
            by_hour.get(hour, []), config.policies.red_dot_limit
        )
        past = de_emphasize and (day < today or (day == today and hour < now_hour))
        slots.append(DayHourSlot(hour=hour, markers=markers, overflow=overflow, past=past))
    return slots


__all__ = [
    "CalendarView",
    "CalendarWindow",
    "DayHourSlot",
    "MonthGridCell",
    "WeekStart",
    "calendar_month_grid_start",
    "calendar_title_for_view",
    "calendar_window",
    "cap_markers",
    "day_view_hours",
    "first_day_of_month",
    "is_past_period",
    "last_day_of_month",
    "month_grid",
    "month_week_starts",
    "quarter_months",
    "shift_calendar_focus",
    "shift_months",
    "shift_years",
    "start_of_week",
    "week_start_day",
    "weekday_labels",
]
