"""Tests for resolving the runtime calendar snapshot."""

from __future__ import annotations

import json
from pathlib import Path

from agenda.calendar.config import CalendarConfigService, resolve_calendar_config
from agenda.utils.datetime_utils import DEFAULT_TIMEZONE


def test_defaults_for_missing_snapshot() -> None:
    config = resolve_calendar_config(None)
    assert config.timezone == DEFAULT_TIMEZONE
    assert config.policies.week_start == "monday"
    assert config.policies.red_dot_limit == 5000
    assert config.policies.task_list_limit == 200
    assert config.policies.task_list_window_days == 365
    assert (config.day_view.hour_start, config.day_view.hour_end) == (0, 23)
    assert config.visibility.completed
    assert config.toggles.hide_past_markers


def test_timezone_priority() -> None:
    snapshot = {
        "timezone": "Asia/Tokyo",
        "time": {"timezone": "Europe/Paris"},
        "calendar": {"timezone": "  "},
    }
    assert resolve_calendar_config(snapshot).timezone == "Europe/Paris"
    snapshot["calendar"]["timezone"] = "UTC"
    assert resolve_calendar_config(snapshot).timezone == "UTC"
    assert resolve_calendar_config({"timezone": "Nowhere/Invalid"}).timezone == DEFAULT_TIMEZONE


def test_numeric_clamping() -> None:
    config = resolve_calendar_config(
        {
            "calendar": {
                "policies": {
                    "week_start": "SUNDAY",
                    "red_dot_limit": 0,
                    "task_list_limit": 12.9,
                    "task_list_window_days": -4,
                },
                "day_view": {"hour_start": 30, "hour_end": 5},
            }
        }
    )
    assert config.policies.week_start == "sunday"
    assert config.policies.red_dot_limit == 5000
    assert config.policies.task_list_limit == 12
    assert config.policies.task_list_window_days == 365
    assert (config.day_view.hour_start, config.day_view.hour_end) == (23, 23)


def test_malformed_fields_fall_back_individually() -> None:
    config = resolve_calendar_config(
        {
            "version": "v2",
            "calendar": {
                "timezone": "Europe/Paris",
                "version": "v2",
                "policies": {"week_start": 7, "red_dot_limit": "lots", "task_list_limit": "12"},
                "visibility": {"completed": False, "deleted": "nope"},
                "day_view": {"hour_start": [8], "hour_end": 18},
                "toggles": "off",
            },
        }
    )
    assert config.timezone == "Europe/Paris"
    assert config.policies.week_start == "monday"
    assert config.policies.red_dot_limit == 5000
    assert config.policies.task_list_limit == 12
    assert config.visibility.completed is False
    assert config.visibility.deleted is True
    assert (config.day_view.hour_start, config.day_view.hour_end) == (0, 18)
    assert config.toggles.hide_past_markers is True


def test_unknown_week_start_is_monday() -> None:
    config = resolve_calendar_config({"calendar": {"policies": {"week_start": "friday"}}})
    assert config.policies.week_start == "monday"


def test_service_persists_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "calendar.json"
    service = CalendarConfigService(path)
    assert service.get_effective().timezone == DEFAULT_TIMEZONE

    effective = service.set_runtime({"calendar": {"timezone": "UTC"}})
    assert effective.timezone == "UTC"
    assert json.loads(path.read_text())["calendar"]["timezone"] == "UTC"

    assert CalendarConfigService(path).get_effective().timezone == "UTC"


def test_service_tolerates_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "calendar.json"
    path.write_text("{not json")
    assert CalendarConfigService(path).get_effective().timezone == DEFAULT_TIMEZONE


def test_service_keeps_valid_fields_of_partly_bad_file(tmp_path: Path) -> None:
    path = tmp_path / "calendar.json"
    path.write_text(
        json.dumps(
            {
                "calendar": {
                    "timezone": "Europe/Paris",
                    "policies": {"week_start": "sunday", "red_dot_limit": "lots"},
                }
            }
        )
    )
    effective = CalendarConfigService(path).get_effective()
    assert effective.timezone == "Europe/Paris"
    assert effective.policies.week_start == "sunday"
    assert effective.policies.red_dot_limit == 5000
