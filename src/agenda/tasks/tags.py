"""Encode and decode ``key:value`` task tags.

Tags are plain strings.  A tag is *keyed* when it contains ``:`` and both the
key and the value are non-empty after trimming; anything else is opaque and
ignored by keyed lookups.  Nothing in this module raises for malformed tags.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence

from .models import Recurrence, TaskClassification

KANBAN_TAG_KEY = "kanban"
BOARD_TAG_KEY = "board"
RECUR_TAG_KEY = "recur"
RECUR_TIME_TAG_KEY = "recur_time"
RECUR_DAYS_TAG_KEY = "recur_days"
RECUR_MONTHS_TAG_KEY = "recur_months"
RECUR_MONTH_DAY_TAG_KEY = "recur_day"
CAL_SOURCE_TAG_KEY = "cal_source"
CAL_COLOR_TAG_KEY = "cal_color"

CALENDAR_UNAFFILIATED_COLOR = "#7f8691"

WEEKDAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
MONTH_KEYS = (
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
)
RECURRENCE_PATTERNS = ("daily", "weekly", "months", "monthly", "yearly")

_RECURRENCE_KEYS = (
    RECUR_TAG_KEY,
    RECUR_TIME_TAG_KEY,
    RECUR_DAYS_TAG_KEY,
    RECUR_MONTHS_TAG_KEY,
    RECUR_MONTH_DAY_TAG_KEY,
)
_HEX3 = re.compile(r"^[0-9a-fA-F]{3}$")
_HEX6 = re.compile(r"^[0-9a-fA-F]{6}$")


class _Unset:
    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return "UNSET"


UNSET = _Unset()


def split_tags(text: str) -> list[str]:
    """Split free text into tags on whitespace."""

    return [entry for entry in text.split() if entry]


def split_tag(tag: str) -> tuple[Optional[str], Optional[str]]:
    """Return ``(key, value)`` for a keyed tag, ``(None, None)`` otherwise."""

    if ":" not in tag:
        return None, None
    key, _, value = tag.partition(":")
    key = key.strip()
    value = value.strip()
    if not key or not value:
        return None, None
    return key, value


def first_tag_value(tags: Iterable[str], key: str) -> Optional[str]:
    for tag in tags:
        entry_key, entry_value = split_tag(tag)
        if entry_key == key and entry_value:
            return entry_value
    return None


def task_has_tag_value(tags: Iterable[str], key: str, value: str) -> bool:
    return any(split_tag(tag) == (key, value) for tag in tags)


def push_tag_unique(tags: list[str], tag: str) -> bool:
    """Append ``tag`` (trimmed) unless it is empty or already present."""

    normalized = tag.strip()
    if not normalized or normalized in tags:
        return False
    tags.append(normalized)
    return True


def remove_tags_for_key(tags: list[str], key: str) -> None:
    """Remove, in place, every keyed tag whose key is ``key``."""

    tags[:] = [tag for tag in tags if split_tag(tag)[0] != key]


def normalize_hex_color(value: str) -> Optional[str]:
    raw = value.strip().lstrip("#")
    if _HEX3.match(raw):
        return "#" + "".join(ch * 2 for ch in raw).lower()
    if _HEX6.match(raw):
        return f"#{raw.lower()}"
    return None


def normalize_marker_color(value: str) -> str:
    trimmed = value.strip()
    if not trimmed:
        return CALENDAR_UNAFFILIATED_COLOR
    return normalize_hex_color(trimmed) or trimmed


# -----------------------------------------------------------------------------
# Recurrence
# -----------------------------------------------------------------------------


def normalize_recurrence_pattern(value: str) -> str:
    normalized = value.strip().lower()
    if normalized in RECURRENCE_PATTERNS:
        return normalized
    return "none"


def _csv_keys(raw: Optional[str], allowed: Sequence[str]) -> tuple[str, ...]:
    if not raw:
        return ()
    values = (entry.strip().lower() for entry in raw.split(","))
    return tuple(entry for entry in values if entry in allowed)


def recurrence_from_tags(tags: Sequence[str]) -> Recurrence:
    return Recurrence(
        pattern=normalize_recurrence_pattern(first_tag_value(tags, RECUR_TAG_KEY) or "none"),
        time=first_tag_value(tags, RECUR_TIME_TAG_KEY) or "",
        days=_csv_keys(first_tag_value(tags, RECUR_DAYS_TAG_KEY), WEEKDAY_KEYS),
        months=_csv_keys(first_tag_value(tags, RECUR_MONTHS_TAG_KEY), MONTH_KEYS),
        month_day=first_tag_value(tags, RECUR_MONTH_DAY_TAG_KEY) or "",
    )


def append_recurrence_tags(tags: list[str], recurrence: Recurrence) -> None:
    """Replace every recurrence tag in ``tags`` with ones encoding ``recurrence``."""

    for key in _RECURRENCE_KEYS:
        remove_tags_for_key(tags, key)

    pattern = normalize_recurrence_pattern(recurrence.pattern)
    if pattern == "none":
        return

    push_tag_unique(tags, f"{RECUR_TAG_KEY}:{pattern}")
    if recurrence.time.strip():
        push_tag_unique(tags, f"{RECUR_TIME_TAG_KEY}:{recurrence.time.strip()}")

    if pattern == "weekly":
        days = [d.strip().lower() for d in recurrence.days if d.strip().lower() in WEEKDAY_KEYS]
        if days:
            push_tag_unique(tags, f"{RECUR_DAYS_TAG_KEY}:{','.join(days)}")

    if pattern in ("months", "monthly", "yearly"):
        months = [m.strip().lower() for m in recurrence.months if m.strip().lower() in MONTH_KEYS]
        if months:
            push_tag_unique(tags, f"{RECUR_MONTHS_TAG_KEY}:{','.join(months)}")
        if recurrence.month_day.strip():
            push_tag_unique(tags, f"{RECUR_MONTH_DAY_TAG_KEY}:{recurrence.month_day.strip()}")


# -----------------------------------------------------------------------------
# Kanban
# -----------------------------------------------------------------------------


def board_id_from_task_tags(tags: Sequence[str]) -> Optional[str]:
    return first_tag_value(tags, BOARD_TAG_KEY)


def tags_for_kanban_move(
    tags: Sequence[str],
    lane: str,
    board_id: "Optional[str] | _Unset" = UNSET,
) -> list[str]:
    """Return a copy of ``tags`` moved to ``lane``.

    ``board_id`` left as ``UNSET`` keeps the current board; ``None`` or an
    empty string clears it; any other value replaces it.
    """

    updated = list(tags)
    remove_tags_for_key(updated, KANBAN_TAG_KEY)
    push_tag_unique(updated, f"{KANBAN_TAG_KEY}:{lane}")

    if not isinstance(board_id, _Unset):
        remove_tags_for_key(updated, BOARD_TAG_KEY)
        normalized = (board_id or "").strip()
        if normalized:
            push_tag_unique(updated, f"{BOARD_TAG_KEY}:{normalized}")

    return updated


def kanban_lane_from_task(
    tags: Sequence[str], available_lanes: Sequence[str], fallback_lane: str
) -> str:
    lane = first_tag_value(tags, KANBAN_TAG_KEY)
    if not lane or lane not in available_lanes:
        return fallback_lane
    return lane


# -----------------------------------------------------------------------------
# Classification
# -----------------------------------------------------------------------------


def classify_task_tags(tags: Sequence[str]) -> TaskClassification:
    """Decode the provenance facts carried by ``tags``."""

    return TaskClassification(
        kanban_lane=first_tag_value(tags, KANBAN_TAG_KEY),
        board_id=first_tag_value(tags, BOARD_TAG_KEY),
        calendar_source_id=first_tag_value(tags, CAL_SOURCE_TAG_KEY),
        calendar_color=first_tag_value(tags, CAL_COLOR_TAG_KEY),
        recurrence=recurrence_from_tags(tags),
    )


def encode_classification(
    tags: Sequence[str], classification: TaskClassification
) -> list[str]:
    """Write ``classification`` back over the keyed tags of ``tags``.

    Opaque and unrelated keyed tags keep their relative order.
    """

    updated = list(tags)
    single_valued = (
        (KANBAN_TAG_KEY, classification.kanban_lane),
        (BOARD_TAG_KEY, classification.board_id),
        (CAL_SOURCE_TAG_KEY, classification.calendar_source_id),
        (CAL_COLOR_TAG_KEY, classification.calendar_color),
    )
    for key, value in single_valued:
        remove_tags_for_key(updated, key)
        if value and value.strip():
            push_tag_unique(updated, f"{key}:{value.strip()}")
    append_recurrence_tags(updated, classification.recurrence)
    return updated


__all__ = [
    "BOARD_TAG_KEY",
    "CALENDAR_UNAFFILIATED_COLOR",
    "CAL_COLOR_TAG_KEY",
    "CAL_SOURCE_TAG_KEY",
    "KANBAN_TAG_KEY",
    "MONTH_KEYS",
    "RECUR_DAYS_TAG_KEY",
    "RECUR_MONTHS_TAG_KEY",
    "RECUR_MONTH_DAY_TAG_KEY",
    "RECUR_TAG_KEY",
    "RECUR_TIME_TAG_KEY",
    "UNSET",
    "WEEKDAY_KEYS",
    "append_recurrence_tags",
    "board_id_from_task_tags",
    "classify_task_tags",
    "encode_classification",
    "first_tag_value",
    "kanban_lane_from_task",
    "normalize_hex_color",
    "normalize_marker_color",
    "normalize_recurrence_pattern",
    "push_tag_unique",
    "recurrence_from_tags",
    "remove_tags_for_key",
    "split_tag",
    "split_tags",
    "tags_for_kanban_move",
    "task_has_tag_value",
]
