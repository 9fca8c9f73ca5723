from __future__ import annotations

import pytest

from agenda.services.preferences_repository import (
    NOTIFICATION_SENT_KEY,
    PreferencesRepository,
)


@pytest.fixture
async def repository(tmp_path):
    repo = PreferencesRepository(tmp_path / "prefs.db")
    await repo.initialize()
    try:
        yield repo
    finally:
        await repo.close()


@pytest.mark.anyio
async def test_json_roundtrip_and_delete(repository):
    assert await repository.get_json("missing", {"x": 1}) == {"x": 1}

    await repository.set_json("key", {"a": [1, 2]})
    await repository.set_json("key", {"a": [3]})
    assert await repository.get_json("key") == {"a": [3]}

    assert await repository.delete("key")
    assert not await repository.delete("key")
    assert await repository.get_json("key") is None


@pytest.mark.anyio
async def test_sent_keys_are_deduplicated(repository):
    await repository.set_sent_keys(["b", "a", "b"])
    assert await repository.get_sent_keys() == ["a", "b"]


@pytest.mark.anyio
async def test_malformed_sent_keys_degrade_to_empty(repository):
    await repository.set_json(NOTIFICATION_SENT_KEY, {"not": "a list"})
    assert await repository.get_sent_keys() == []


@pytest.mark.anyio
async def test_calendar_view_state(repository):
    assert await repository.get_calendar_view_state() == {"view": None, "focus": None}
    await repository.set_calendar_view_state("week", "2026-05-15")
    assert await repository.get_calendar_view_state() == {
        "view": "week",
        "focus": "2026-05-15",
    }
