"""Calendar configuration schemas: the partial runtime snapshot and its resolved form."""

from __future__ import annotations

import math
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

WeekStartName = Literal["monday", "sunday"]


# =============================================================================
# Runtime snapshot (possibly partial, as loaded from disk)
# =============================================================================


def _lenient_number(value: Any) -> Optional[float]:
    """Read a number the way a JSON consumer would; anything else is absent."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return None
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _lenient_int(value: Any) -> Optional[int]:
    number = _lenient_number(value)
    if number is None or not math.isfinite(number):
        return None
    return math.floor(number)


def _lenient_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _lenient_text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _lenient_section(value: Any) -> Any:
    return value if isinstance(value, (dict, BaseModel)) else None


class _Lenient(BaseModel):
    """Snapshot section where a malformed field reads as absent."""

    model_config = ConfigDict(extra="ignore")


class CalendarPoliciesInput(_Lenient):
    week_start: Optional[str] = None
    red_dot_limit: Optional[float] = None
    task_list_limit: Optional[float] = None
    task_list_window_days: Optional[float] = None

    @field_validator("week_start", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _lenient_text(value)

    @field_validator(
        "red_dot_limit", "task_list_limit", "task_list_window_days", mode="before"
    )
    @classmethod
    def _coerce_number(cls, value: Any) -> Optional[float]:
        return _lenient_number(value)


class CalendarVisibilityInput(_Lenient):
    pending: Optional[bool] = None
    waiting: Optional[bool] = None
    completed: Optional[bool] = None
    deleted: Optional[bool] = None

    @field_validator("pending", "waiting", "completed", "deleted", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> Optional[bool]:
        return _lenient_bool(value)


class CalendarDayViewInput(_Lenient):
    hour_start: Optional[float] = None
    hour_end: Optional[float] = None

    @field_validator("hour_start", "hour_end", mode="before")
    @classmethod
    def _coerce_hour(cls, value: Any) -> Optional[float]:
        return _lenient_number(value)


class CalendarTogglesInput(_Lenient):
    de_emphasize_past_periods: Optional[bool] = None
    filter_tasks_before_now: Optional[bool] = None
    hide_past_markers: Optional[bool] = None

    @field_validator(
        "de_emphasize_past_periods",
        "filter_tasks_before_now",
        "hide_past_markers",
        mode="before",
    )
    @classmethod
    def _coerce_flag(cls, value: Any) -> Optional[bool]:
        return _lenient_bool(value)


class CalendarSection(_Lenient):
    version: Optional[int] = None
    timezone: Optional[str] = None
    policies: Optional[CalendarPoliciesInput] = None
    visibility: Optional[CalendarVisibilityInput] = None
    day_view: Optional[CalendarDayViewInput] = None
    toggles: Optional[CalendarTogglesInput] = None

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, value: Any) -> Optional[int]:
        return _lenient_int(value)

    @field_validator("timezone", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _lenient_text(value)

    @field_validator("policies", "visibility", "day_view", "toggles", mode="before")
    @classmethod
    def _coerce_section(cls, value: Any) -> Any:
        return _lenient_section(value)


class TimeSection(_Lenient):
    timezone: Optional[str] = None

    @field_validator("timezone", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _lenient_text(value)


class RuntimeConfig(_Lenient):
    """Runtime configuration snapshot; every field may be absent."""

    version: Optional[int] = None
    timezone: Optional[str] = None
    time: Optional[TimeSection] = None
    calendar: Optional[CalendarSection] = None

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, value: Any) -> Optional[int]:
        return _lenient_int(value)

    @field_validator("timezone", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _lenient_text(value)

    @field_validator("time", "calendar", mode="before")
    @classmethod
    def _coerce_section(cls, value: Any) -> Any:
        return _lenient_section(value)


# =============================================================================
# Effective (fully defaulted) configuration
# =============================================================================


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class CalendarPolicies(_Frozen):
    week_start: WeekStartName = "monday"
    red_dot_limit: int = Field(default=5000, ge=1)
    task_list_limit: int = Field(default=200, ge=1)
    task_list_window_days: int = Field(default=365, ge=1)


class CalendarVisibility(_Frozen):
    pending: bool = True
    waiting: bool = True
    completed: bool = True
    deleted: bool = True


class CalendarDayView(_Frozen):
    hour_start: int = Field(default=0, ge=0, le=23)
    hour_end: int = Field(default=23, ge=0, le=23)


class CalendarToggles(_Frozen):
    de_emphasize_past_periods: bool = True
    filter_tasks_before_now: bool = True
    hide_past_markers: bool = True


class EffectiveCalendarConfig(_Frozen):
    """Resolved calendar configuration, immutable once built."""

    timezone: str
    policies: CalendarPolicies = Field(default_factory=CalendarPolicies)
    visibility: CalendarVisibility = Field(default_factory=CalendarVisibility)
    day_view: CalendarDayView = Field(default_factory=CalendarDayView)
    toggles: CalendarToggles = Field(default_factory=CalendarToggles)


__all__ = [
    "CalendarDayView",
    "CalendarPolicies",
    "CalendarSection",
    "CalendarToggles",
    "CalendarVisibility",
    "EffectiveCalendarConfig",
    "RuntimeConfig",
    "TimeSection",
]
