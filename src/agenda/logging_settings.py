"""Read ``logging_settings.conf``: output levels, scheduler verbosity and log retention."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

LEVELS: dict[str, int | None] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": None,
}

# Loggers that speak on every scheduler pass
SCHEDULER_LOGGERS = (
    "agenda.services.due_scheduler",
    "agenda.services.auto_sweep",
    "agenda.services.notifications",
)

DEFAULT_RETENTION_HOURS = 48


@dataclass(frozen=True)
class LoggingSettings:
    terminal_level: int | None = logging.INFO
    file_level: int | None = logging.INFO
    scheduler_level: int | None = logging.INFO
    retention_hours: int = DEFAULT_RETENTION_HOURS
    problems: tuple[str, ...] = field(default=())


_LEVEL_KEYS = {
    "terminal": "terminal_level",
    "file": "file_level",
    "scheduler": "scheduler_level",
}


def parse_logging_settings(path: Path) -> LoggingSettings:
    """Parse ``key = value`` lines from ``path``.

    A missing file yields the defaults.  Lines that cannot be used keep the
    default for their key and are reported in ``problems`` so the caller can
    log them once logging is up.
    """
    values: dict[str, object] = {}
    problems: list[str] = []

    if not path.exists():
        return LoggingSettings()

    for number, raw_line in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
        line = raw_line.split("#", 1)[0].strip()
        if not line:
            continue
        key, sep, value = (part.strip() for part in line.partition("="))
        key = key.lower()
        if not sep:
            problems.append(f"line {number}: expected 'key = value'")
        elif key == "retention_hours":
            try:
                values["retention_hours"] = max(0, int(value))
            except ValueError:
                problems.append(f"line {number}: retention_hours '{value}' is not a number")
        elif key in _LEVEL_KEYS:
            level = value.lower()
            if level in LEVELS:
                values[_LEVEL_KEYS[key]] = LEVELS[level]
            else:
                problems.append(f"line {number}: unknown level '{value}' for {key}")
        else:
            problems.append(f"line {number}: unknown key '{key}'")

    return LoggingSettings(problems=tuple(problems), **values)  # type: ignore[arg-type]


def apply_scheduler_level(settings: LoggingSettings, base_level: int) -> None:
    """Quieten (or silence) the per-pass scheduler loggers."""
    level = settings.scheduler_level
    for name in SCHEDULER_LOGGERS:
        target = logging.getLogger(name)
        target.setLevel(logging.CRITICAL + 1 if level is None else max(base_level, level))


__all__ = [
    "LEVELS",
    "LoggingSettings",
    "SCHEDULER_LOGGERS",
    "apply_scheduler_level",
    "parse_logging_settings",
]
