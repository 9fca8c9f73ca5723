"""Utility helpers shared by the calendar engine and services."""

from .datetime_utils import (
    DEFAULT_TIMEZONE,
    ZonedDateTimeParts,
    parse_task_due_utc_ms,
    resolve_timezone,
    zoned_date_time_parts,
)

__all__ = [
    "DEFAULT_TIMEZONE",
    "ZonedDateTimeParts",
    "parse_task_due_utc_ms",
    "resolve_timezone",
    "zoned_date_time_parts",
]
