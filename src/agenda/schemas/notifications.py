"""Due-notification settings schemas."""

from __future__ import annotations

import math
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

PRE_NOTIFY_MIN_MINUTES = 1
PRE_NOTIFY_MAX_MINUTES = 43_200
PRE_NOTIFY_DEFAULT_MINUTES = 15


def clamp_pre_notify_minutes(value: Any) -> int:
    """Floor and clamp to [1, 43200]; non-numeric input yields the default."""

    try:
        minutes = float(value)
    except (TypeError, ValueError):
        return PRE_NOTIFY_DEFAULT_MINUTES
    if not math.isfinite(minutes):
        return PRE_NOTIFY_DEFAULT_MINUTES
    return max(PRE_NOTIFY_MIN_MINUTES, min(PRE_NOTIFY_MAX_MINUTES, math.floor(minutes)))


class DueNotificationConfig(BaseModel):
    """Persisted settings for due and pre-due notifications."""

    enabled: bool = Field(default=False, description="Emit notifications at due time.")
    pre_notify_enabled: bool = Field(
        default=False,
        description="Also emit a heads-up before the due time.",
    )
    pre_notify_minutes: int = Field(
        default=PRE_NOTIFY_DEFAULT_MINUTES,
        ge=PRE_NOTIFY_MIN_MINUTES,
        le=PRE_NOTIFY_MAX_MINUTES,
        description="Minutes before due time for the heads-up.",
    )

    @field_validator("pre_notify_minutes", mode="before")
    @classmethod
    def _sanitize_minutes(cls, value: Any) -> int:
        if value is None:
            return PRE_NOTIFY_DEFAULT_MINUTES
        return clamp_pre_notify_minutes(value)

    @field_validator("enabled", "pre_notify_enabled", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return bool(value)


class DueNotificationConfigUpdate(BaseModel):
    """Partial update - all fields optional."""

    enabled: Optional[bool] = None
    pre_notify_enabled: Optional[bool] = None
    pre_notify_minutes: Optional[float] = None


__all__ = [
    "DueNotificationConfig",
    "DueNotificationConfigUpdate",
    "PRE_NOTIFY_DEFAULT_MINUTES",
    "PRE_NOTIFY_MAX_MINUTES",
    "PRE_NOTIFY_MIN_MINUTES",
    "clamp_pre_notify_minutes",
]
