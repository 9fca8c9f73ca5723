"""Tests for logging settings parsing."""

import logging
from pathlib import Path

from agenda.logging_settings import (
    SCHEDULER_LOGGERS,
    LoggingSettings,
    apply_scheduler_level,
    parse_logging_settings,
)


def test_parse_logging_settings(tmp_path: Path) -> None:
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text(
        """
# agenda logging
terminal = debug
file = Warning   # only warnings on disk
scheduler = error
retention_hours = 72
"""
    )

    settings = parse_logging_settings(config_file)

    assert settings.terminal_level == logging.DEBUG
    assert settings.file_level == logging.WARNING
    assert settings.scheduler_level == logging.ERROR
    assert settings.retention_hours == 72
    assert settings.problems == ()


def test_parse_logging_settings_defaults(tmp_path: Path) -> None:
    settings = parse_logging_settings(tmp_path / "nonexistent.conf")

    assert settings == LoggingSettings()
    assert settings.terminal_level == logging.INFO
    assert settings.retention_hours == 48


def test_bad_lines_keep_defaults_and_are_reported(tmp_path: Path) -> None:
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text(
        "terminal = loud\nfile = off\nretention_hours = soon\nverbose\ncolour = yes\n"
    )

    settings = parse_logging_settings(config_file)

    assert settings.terminal_level == logging.INFO
    assert settings.file_level is None
    assert settings.retention_hours == 48
    assert [problem.split(":", 1)[0] for problem in settings.problems] == [
        "line 1",
        "line 3",
        "line 4",
        "line 5",
    ]


def test_parse_logging_settings_negative_retention(tmp_path: Path) -> None:
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text("retention_hours = -10\n")

    assert parse_logging_settings(config_file).retention_hours == 0


def test_apply_scheduler_level() -> None:
    previous = {name: logging.getLogger(name).level for name in SCHEDULER_LOGGERS}
    try:
        apply_scheduler_level(LoggingSettings(scheduler_level=logging.WARNING), logging.INFO)
        assert all(
            logging.getLogger(name).level == logging.WARNING for name in SCHEDULER_LOGGERS
        )

        apply_scheduler_level(LoggingSettings(scheduler_level=logging.DEBUG), logging.INFO)
        assert logging.getLogger(SCHEDULER_LOGGERS[0]).level == logging.INFO

        apply_scheduler_level(LoggingSettings(scheduler_level=None), logging.INFO)
        assert not logging.getLogger(SCHEDULER_LOGGERS[0]).isEnabledFor(logging.CRITICAL)
    finally:
        for name, level in previous.items():
            logging.getLogger(name).setLevel(level)
