"""Resolve runtime calendar configuration into its effective form."""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from ..schemas.calendar_config import (
    CalendarDayView,
    CalendarPolicies,
    CalendarToggles,
    CalendarVisibility,
    EffectiveCalendarConfig,
    RuntimeConfig,
)
from ..utils.datetime_utils import DEFAULT_TIMEZONE, resolve_timezone

logger = logging.getLogger(__name__)


def _clamp_positive_int(value: Optional[float], fallback: int) -> int:
    if value is None or not math.isfinite(value) or value <= 0:
        return fallback
    return max(1, math.floor(value))


def _clamp_hour(value: Optional[float], fallback: int) -> int:
    if value is None:
        return fallback
    if not math.isfinite(value):
        return 0
    return max(0, min(23, math.floor(value)))


def _first_nonblank(*candidates: Optional[str]) -> Optional[str]:
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def resolve_calendar_config(
    runtime: RuntimeConfig | Mapping[str, Any] | None,
) -> EffectiveCalendarConfig:
    """Build an :class:`EffectiveCalendarConfig` from a possibly-partial snapshot."""

    if runtime is None:
        runtime = RuntimeConfig()
    elif not isinstance(runtime, RuntimeConfig):
        runtime = RuntimeConfig.model_validate(runtime)

    calendar = runtime.calendar
    timezone = resolve_timezone(
        _first_nonblank(
            calendar.timezone if calendar else None,
            runtime.time.timezone if runtime.time else None,
            runtime.timezone,
        )
        or DEFAULT_TIMEZONE
    )

    policies = calendar.policies if calendar else None
    week_start_raw = (policies.week_start if policies else None) or "monday"
    defaults = CalendarPolicies()

    visibility = calendar.visibility if calendar else None
    day_view = calendar.day_view if calendar else None
    toggles = calendar.toggles if calendar else None

    hour_start = _clamp_hour(day_view.hour_start if day_view else None, 0)
    hour_end = _clamp_hour(day_view.hour_end if day_view else None, 23)
    if hour_end < hour_start:
        hour_end = hour_start

    def _flag(section: Any, name: str) -> bool:
        value = getattr(section, name, None) if section is not None else None
        return True if value is None else value

    return EffectiveCalendarConfig(
        timezone=timezone,
        policies=CalendarPolicies(
            week_start="sunday" if week_start_raw.strip().lower() == "sunday" else "monday",
            red_dot_limit=_clamp_positive_int(
                policies.red_dot_limit if policies else None, defaults.red_dot_limit
            ),
            task_list_limit=_clamp_positive_int(
                policies.task_list_limit if policies else None, defaults.task_list_limit
            ),
            task_list_window_days=_clamp_positive_int(
                policies.task_list_window_days if policies else None,
                defaults.task_list_window_days,
            ),
        ),
        visibility=CalendarVisibility(
            pending=_flag(visibility, "pending"),
            waiting=_flag(visibility, "waiting"),
            completed=_flag(visibility, "completed"),
            deleted=_flag(visibility, "deleted"),
        ),
        day_view=CalendarDayView(hour_start=hour_start, hour_end=hour_end),
        toggles=CalendarToggles(
            de_emphasize_past_periods=_flag(toggles, "de_emphasize_past_periods"),
            filter_tasks_before_now=_flag(toggles, "filter_tasks_before_now"),
            hide_past_markers=_flag(toggles, "hide_past_markers"),
        ),
    )


class CalendarConfigService:
    """Loads the runtime calendar snapshot from disk and caches its resolution."""

    def __init__(self, config_path: Path | None = None):
        self.config_path = config_path
        self._runtime: RuntimeConfig | None = None
        self._effective: EffectiveCalendarConfig | None = None

    def get_runtime(self) -> RuntimeConfig:
        if self._runtime is None:
            self._runtime = self._load_runtime()
        return self._runtime

    def get_effective(self) -> EffectiveCalendarConfig:
        """Return the effective configuration, resolving it once per snapshot."""
        if self._effective is None:
            self._effective = resolve_calendar_config(self.get_runtime())
        return self._effective

    def set_runtime(self, runtime: RuntimeConfig | Mapping[str, Any]) -> EffectiveCalendarConfig:
        """Replace the snapshot (persisting it when a path is configured)."""
        if not isinstance(runtime, RuntimeConfig):
            runtime = RuntimeConfig.model_validate(runtime)
        self._runtime = runtime
        self._effective = None
        self._save_runtime()
        return self.get_effective()

    def reload(self) -> EffectiveCalendarConfig:
        self._runtime = None
        self._effective = None
        return self.get_effective()

    def _load_runtime(self) -> RuntimeConfig:
        if self.config_path is None or not self.config_path.exists():
            return RuntimeConfig()
        try:
            data = json.loads(self.config_path.read_text(encoding="utf-8"))
            return RuntimeConfig.model_validate(data)
        except (OSError, ValueError, ValidationError) as exc:
            logger.error(f"Failed to load calendar config {self.config_path}: {exc}")
            return RuntimeConfig()

    def _save_runtime(self) -> None:
        if self.config_path is None or self._runtime is None:
            return
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            self.config_path.write_text(
                json.dumps(self._runtime.model_dump(exclude_none=True), indent=2),
                encoding="utf-8",
            )
        except OSError as exc:
            logger.error(f"Failed to save calendar config {self.config_path}: {exc}")


__all__ = ["CalendarConfigService", "resolve_calendar_config"]
