from __future__ import annotations

import json
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from agenda.app import create_app
from agenda.config import get_settings


@pytest.fixture
def client(monkeypatch, tmp_path) -> Generator[TestClient, None, None]:
    calendar_path = tmp_path / "calendar.json"
    calendar_path.write_text(json.dumps({"calendar": {"timezone": "UTC"}}))
    monkeypatch.setenv("CALENDAR_CONFIG_PATH", str(calendar_path))
    monkeypatch.setenv("PREFERENCES_DB_PATH", str(tmp_path / "prefs.db"))
    monkeypatch.setenv("LOGGING_SETTINGS_PATH", str(tmp_path / "logging_settings.conf"))
    monkeypatch.setenv("AGENDA_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    monkeypatch.delenv("LOG_FILE", raising=False)
    get_settings.cache_clear()

    app = create_app()

    with TestClient(app) as test_client:
        yield test_client

    get_settings.cache_clear()


def _create(client: TestClient, **task) -> dict:
    response = client.post("/api/tasks", json=task)
    assert response.status_code == 201
    return response.json()


def test_health(client: TestClient) -> None:
    payload = client.get("/health").json()
    assert payload["status"] == "ok"
    assert payload["timezone"] == "UTC"
    assert payload["scheduler_running"] is False


def test_create_and_list_tasks(client: TestClient) -> None:
    _create(client, uuid="a", title="Alpha", due="2030-01-10T09:00:00Z")
    _create(client, uuid="b", title="Beta", status="Completed")

    all_tasks = client.get("/api/tasks").json()["tasks"]
    assert [task["uuid"] for task in all_tasks] == ["a", "b"]

    completed = client.get("/api/tasks", params={"status": "Completed"}).json()["tasks"]
    assert [task["uuid"] for task in completed] == ["b"]


def test_manual_completion_errors(client: TestClient) -> None:
    _create(client, uuid="event", due="2099-01-01T00:00:00Z", tags=["cal_source:work"])

    blocked = client.post("/api/tasks/event/done")
    assert blocked.status_code == 409
    assert "due time has passed" in blocked.json()["detail"]

    assert client.post("/api/tasks/missing/done").status_code == 404


def test_done_undone_and_bulk(client: TestClient) -> None:
    _create(client, uuid="a")
    _create(client, uuid="b")
    _create(client, uuid="future", due="2099-01-01T00:00:00Z", tags=["cal_source:work"])

    assert client.post("/api/tasks/a/done").json()["status"] == "Completed"
    assert client.post("/api/tasks/a/undone").json()["status"] == "Pending"
    assert client.post("/api/tasks/b/undone").status_code == 400

    bulk = client.post("/api/tasks/bulk/done", json={"uuids": ["a", "b", "future"]}).json()
    assert bulk["updated"] == ["a", "b"]
    assert bulk["blocked"] == ["future"]
    assert bulk["error"] == "Blocked 1 calendar task(s) before due time."

    undone = client.post("/api/tasks/bulk/undone", json={"uuids": ["a"]}).json()
    assert undone["updated"] == ["a"]
    assert undone["error"] is None


def test_tags_and_classification(client: TestClient) -> None:
    _create(client, uuid="a", tags=["home"])

    response = client.put(
        "/api/tasks/a/tags",
        json={"tags": ["home", "board:b1", "kanban:doing", "recur:weekly", "recur_days:mon"]},
    )
    assert response.status_code == 200

    classification = client.get("/api/tasks/a/classification").json()
    assert classification["board_id"] == "b1"
    assert classification["kanban_lane"] == "doing"
    assert classification["is_calendar_event"] is False
    assert classification["recurrence"]["days"] == ["mon"]


def test_calendar_window_and_shift(client: TestClient) -> None:
    window = client.get(
        "/api/calendar/window", params={"view": "quarter", "focus": "2026-05-15"}
    ).json()
    assert (window["start"], window["end"]) == ("2026-04-01", "2026-06-30")
    assert window["title"] == "Quarter View Q2 2026 (Apr-Jun)"

    shifted = client.get(
        "/api/calendar/shift", params={"view": "month", "focus": "2026-01-31", "step": 1}
    ).json()
    assert shifted["focus"] == "2026-02-28"

    assert client.get("/api/calendar/window", params={"view": "decade"}).status_code == 422


def test_month_grid_and_entries(client: TestClient) -> None:
    _create(client, uuid="cal", due="2030-01-10T09:00:00Z", tags=["cal_source:work"])
    _create(client, uuid="board", due="2030-01-10T10:00:00Z", tags=["board:b1"])
    _create(client, uuid="feb", due="2030-02-01T10:00:00Z")

    grid = client.get("/api/calendar/month-grid", params={"focus": "2030-01-15"}).json()
    assert len(grid["weeks"]) == 6
    cells = {cell["date"]: cell for week in grid["weeks"] for cell in week}
    assert [m["shape"] for m in cells["2030-01-10"]["markers"]] == ["circle", "triangle"]
    assert cells["2030-02-01"]["outside"] is True

    entries = client.get(
        "/api/calendar/entries", params={"view": "month", "focus": "2030-01-15"}
    ).json()
    assert [entry["task"]["uuid"] for entry in entries["entries"]] == ["cal", "board"]
    assert entries["entries"][0]["due_local"] == {
        "date": "2030-01-10",
        "hour": 9,
        "minute": 0,
        "weekday": 4,
    }
    assert entries["stats"]["total"] == 2

    only_work = client.get(
        "/api/calendar/entries",
        params={"view": "month", "focus": "2030-01-15", "calendar": "work"},
    ).json()
    assert [entry["task"]["uuid"] for entry in only_work["entries"]] == ["cal"]

    day = client.get("/api/calendar/day", params={"date": "2030-01-10"}).json()
    hours = {slot["hour"]: slot for slot in day["hours"]}
    assert len(day["hours"]) == 24
    assert [m["shape"] for m in hours[9]["markers"]] == ["circle"]
    assert hours[9]["label"] == "09:00"


def test_calendar_config_and_view_state(client: TestClient) -> None:
    updated = client.put(
        "/api/calendar/config",
        json={"calendar": {"timezone": "Europe/Berlin", "policies": {"week_start": "sunday"}}},
    ).json()
    assert updated["timezone"] == "Europe/Berlin"
    assert client.get("/api/calendar/config").json()["policies"]["week_start"] == "sunday"

    fallback = client.put(
        "/api/calendar/config",
        json={"timezone": "Europe/Paris", "calendar": {"policies": "nope", "version": "v2"}},
    )
    assert fallback.status_code == 200
    assert fallback.json()["timezone"] == "Europe/Paris"
    assert fallback.json()["policies"]["week_start"] == "monday"
    assert client.put("/api/calendar/config", json=["not", "an", "object"]).status_code == 422

    saved = client.put(
        "/api/calendar/view-state", json={"view": "week", "focus": "2026-05-15"}
    ).json()
    assert saved == {"view": "week", "focus": "2026-05-15"}
    assert client.get("/api/calendar/view-state").json() == saved


def test_notification_flow(client: TestClient) -> None:
    _create(client, uuid="late", title="Call bank", due="2020-01-01T00:00:00Z")

    config = client.put("/api/notifications/config", json={"enabled": True}).json()
    assert config == {"enabled": True, "pre_notify_enabled": False, "pre_notify_minutes": 15}

    denied = client.post("/api/notifications/scan").json()
    assert denied["permission"] == "default"
    assert denied["delivered"] == []

    assert client.post("/api/notifications/permission/request").json() == {
        "permission": "granted"
    }

    sweep = client.post("/api/tasks/sweep").json()
    assert sweep["sweep"]["updated"] == []
    assert len(sweep["notifications"]["delivered"]) == 1

    inbox = client.get("/api/notifications/inbox").json()["notifications"]
    assert [entry["title"] for entry in inbox] == ["Task due now"]
    assert inbox[0]["body"] == "Call bank\nDue 2020-01-01 00:00 (UTC)"

    assert client.post("/api/notifications/scan").json()["delivered"] == []

    notification_id = inbox[0]["id"]
    assert client.delete(f"/api/notifications/inbox/{notification_id}").status_code == 204
    assert client.delete(f"/api/notifications/inbox/{notification_id}").status_code == 404


def test_auto_sweep_via_endpoint(client: TestClient) -> None:
    _create(client, uuid="past", due="2020-01-01T00:00:00Z", tags=["cal_source:work"])
    _create(client, uuid="early", status="Completed", due="2099-01-01T00:00:00Z", tags=["cal_source:work"])

    sweep = client.post("/api/tasks/sweep").json()["sweep"]
    assert sorted(sweep["updated"]) == ["early", "past"]

    statuses = {task["uuid"]: task["status"] for task in client.get("/api/tasks").json()["tasks"]}
    assert statuses == {"past": "Completed", "early": "Pending"}
