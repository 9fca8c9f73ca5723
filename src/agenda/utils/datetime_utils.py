"""Zoned time conversion and due-date parsing.

Absolute instants are integer milliseconds since the Unix epoch.  Calendar
dates are plain :class:`datetime.date` values, so all period arithmetic is
free of daylight-saving drift; only instant-to-zone conversion consults the
tz database.
"""

from __future__ import annotations

import datetime
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from dateutil import parser as _dateutil_parser

DEFAULT_TIMEZONE = "America/Mexico_City"

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)
_ONE_MS = datetime.timedelta(milliseconds=1)
_COMPACT_UTC = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})Z$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
# Instants that stay convertible to a local date in every zone
_MIN_DUE = datetime.datetime(1, 1, 2, tzinfo=datetime.timezone.utc)
_MAX_DUE = datetime.datetime(9999, 12, 30, tzinfo=datetime.timezone.utc)


@dataclass(frozen=True, slots=True)
class ZonedDateTimeParts:
    """Wall-clock components of an instant in a named timezone."""

    year: int
    month: int
    day: int
    weekday: int  # 0=Sunday .. 6=Saturday
    hour: int
    minute: int
    second: int

    @property
    def date(self) -> datetime.date:
        return datetime.date(self.year, self.month, self.day)


@lru_cache(maxsize=64)
def _zone(timezone_name: str) -> ZoneInfo:
    return ZoneInfo(timezone_name)


def resolve_timezone(candidate: Optional[str]) -> str:
    """Return ``candidate`` when it names a usable zone, else the default."""

    name = (candidate or "").strip()
    if not name:
        return DEFAULT_TIMEZONE
    try:
        _zone(name)
    except Exception:
        return DEFAULT_TIMEZONE
    return name


def zone_for(timezone_name: Optional[str]) -> ZoneInfo:
    return _zone(resolve_timezone(timezone_name))


def datetime_to_ms(value: datetime.datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return (value - _EPOCH) // _ONE_MS


def ms_to_datetime(instant_ms: int) -> datetime.datetime:
    return _EPOCH + datetime.timedelta(milliseconds=instant_ms)


def now_utc_ms() -> int:
    return datetime_to_ms(datetime.datetime.now(datetime.timezone.utc))


def zoned_date_time_parts(instant_ms: int, timezone_name: str) -> ZonedDateTimeParts:
    """Break ``instant_ms`` into 24-hour wall-clock parts in ``timezone_name``."""

    local = ms_to_datetime(instant_ms).astimezone(zone_for(timezone_name))
    return ZonedDateTimeParts(
        year=local.year,
        month=local.month,
        day=local.day,
        weekday=local.isoweekday() % 7,
        hour=local.hour,
        minute=local.minute,
        second=local.second,
    )


def parse_task_due_utc_ms(raw: Optional[str]) -> Optional[int]:
    """Parse a task ``due`` string into epoch milliseconds.

    Accepts the compact ``YYYYMMDDThhmmssZ`` form (literal UTC wall clock) or
    anything python-dateutil understands.  Naive results are taken as UTC.
    Returns None instead of raising; callers treat that as "not due".
    """
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None

    compact = _COMPACT_UTC.match(value)
    if compact:
        try:
            parsed = datetime.datetime(
                *(int(group) for group in compact.groups()),
                tzinfo=datetime.timezone.utc,
            )
        except ValueError:
            return None
        return _bounded_ms(parsed)

    try:
        parsed = _dateutil_parser.parse(value)
    except (ValueError, OverflowError):
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return _bounded_ms(parsed)


def _bounded_ms(parsed: datetime.datetime) -> Optional[int]:
    ms = datetime_to_ms(parsed)
    if not datetime_to_ms(_MIN_DUE) <= ms <= datetime_to_ms(_MAX_DUE):
        return None
    return ms


def format_due_datetime(instant_ms: int, timezone_name: str) -> str:
    """Return ``"YYYY-MM-DD HH:MM (Zone/Id)"`` for display in notifications."""

    local = ms_to_datetime(instant_ms).astimezone(zone_for(timezone_name))
    return f"{local:%Y-%m-%d %H:%M} ({resolve_timezone(timezone_name)})"


def today_in_timezone(
    timezone_name: str, now_ms: Optional[int] = None
) -> datetime.date:
    instant = now_utc_ms() if now_ms is None else now_ms
    return zoned_date_time_parts(instant, timezone_name).date


def calendar_date_to_iso(value: datetime.date) -> str:
    return value.isoformat()


def calendar_date_from_iso(
    iso: Optional[str], fallback: Optional[datetime.date] = None
) -> datetime.date:
    """Parse ``YYYY-MM-DD``; anything else yields ``fallback`` (UTC today)."""

    match = _ISO_DATE.match((iso or "").strip())
    if match:
        try:
            return datetime.date(*(int(group) for group in match.groups()))
        except ValueError:
            pass
    if fallback is not None:
        return fallback
    return datetime.datetime.now(datetime.timezone.utc).date()


__all__ = [
    "DEFAULT_TIMEZONE",
    "ZonedDateTimeParts",
    "calendar_date_from_iso",
    "calendar_date_to_iso",
    "datetime_to_ms",
    "format_due_datetime",
    "ms_to_datetime",
    "now_utc_ms",
    "parse_task_due_utc_ms",
    "resolve_timezone",
    "today_in_timezone",
    "zone_for",
    "zoned_date_time_parts",
]
