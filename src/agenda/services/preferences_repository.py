"""SQLite-backed key/value store for client preferences and ledgers."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import aiosqlite

logger = logging.getLogger(__name__)

NOTIFICATION_SENT_KEY = "agenda.notifications.sent"
NOTIFICATION_SETTINGS_KEY = "agenda.notifications.settings"
CALENDAR_VIEW_KEY = "agenda.calendar.view"
CALENDAR_FOCUS_KEY = "agenda.calendar.focus"


class PreferencesRepository:
    """Persist JSON values under string keys in SQLite."""

    def __init__(self, database_path: Path):
        self._path = database_path
        self._connection: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the SQLite connection and ensure tables exist."""
        if self._connection is not None:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self._path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute("PRAGMA journal_mode=WAL;")
        await self._connection.executescript(
            """
            CREATE TABLE IF NOT EXISTS preferences (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )
        await self._connection.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    async def get_json(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for ``key``; unreadable values yield ``default``."""
        assert self._connection is not None

        cursor = await self._connection.execute(
            "SELECT value FROM preferences WHERE key = ?",
            (key,),
        )
        row = await cursor.fetchone()
        await cursor.close()

        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except ValueError as exc:
            logger.warning("storage.read %s: %s", key, exc)
            return default

    async def set_json(self, key: str, value: Any) -> None:
        assert self._connection is not None

        await self._connection.execute(
            """
            INSERT INTO preferences (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, json.dumps(value), datetime.now(timezone.utc).isoformat()),
        )
        await self._connection.commit()

    async def delete(self, key: str) -> bool:
        assert self._connection is not None

        cursor = await self._connection.execute(
            "DELETE FROM preferences WHERE key = ?",
            (key,),
        )
        deleted = cursor.rowcount
        await cursor.close()
        await self._connection.commit()
        return bool(deleted)

    async def get_sent_keys(self) -> list[str]:
        stored = await self.get_json(NOTIFICATION_SENT_KEY, [])
        if not isinstance(stored, list):
            logger.warning("storage.read %s: expected a list", NOTIFICATION_SENT_KEY)
            return []
        return [str(key) for key in stored]

    async def set_sent_keys(self, keys: Iterable[str]) -> None:
        await self.set_json(NOTIFICATION_SENT_KEY, sorted(set(keys)))

    async def get_calendar_view_state(self) -> dict[str, Any]:
        """Return the last selected view and focus date as stored strings."""
        return {
            "view": await self.get_json(CALENDAR_VIEW_KEY),
            "focus": await self.get_json(CALENDAR_FOCUS_KEY),
        }

    async def set_calendar_view_state(self, view: str, focus: str) -> None:
        await self.set_json(CALENDAR_VIEW_KEY, view)
        await self.set_json(CALENDAR_FOCUS_KEY, focus)


__all__ = [
    "CALENDAR_FOCUS_KEY",
    "CALENDAR_VIEW_KEY",
    "NOTIFICATION_SENT_KEY",
    "NOTIFICATION_SETTINGS_KEY",
    "PreferencesRepository",
]
