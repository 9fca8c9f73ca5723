"""Due and pre-due notifications with an idempotent sent-key ledger."""

from __future__ import annotations

import itertools
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Container, Iterable, Iterator, Optional, Protocol

from ..schemas.notifications import (
    DueNotificationConfig,
    DueNotificationConfigUpdate,
    clamp_pre_notify_minutes,
)
from ..tasks.models import Task
from ..calendar.entries import task_due_utc_ms
from ..utils.datetime_utils import format_due_datetime, now_utc_ms
from .preferences_repository import NOTIFICATION_SETTINGS_KEY, PreferencesRepository

logger = logging.getLogger(__name__)

MINUTE_MS = 60_000
DAY_MS = 24 * 60 * MINUTE_MS
# Host-side lifetime of a shown notification
AUTO_DISMISS_MS = 20_000


class NotificationPermission(str, Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True, slots=True)
class DueNotificationEvent:
    key: str
    title: str
    body: str


def default_due_notification_config() -> DueNotificationConfig:
    return DueNotificationConfig()


def sanitize_due_notification_config(raw: object) -> DueNotificationConfig:
    """Coerce any stored or submitted value into a valid config."""

    if isinstance(raw, DueNotificationConfig):
        return DueNotificationConfig.model_validate(raw.model_dump())
    if not isinstance(raw, dict):
        return default_due_notification_config()
    base = default_due_notification_config().model_dump()
    merged = {**base, **{k: v for k, v in raw.items() if k in base and v is not None}}
    return DueNotificationConfig.model_validate(merged)


def pre_notification_key(uuid: str, due_utc_ms: int, minutes: int) -> str:
    return f"{uuid}:{due_utc_ms}:pre:{minutes}"


def due_notification_key(uuid: str, due_utc_ms: int) -> str:
    return f"{uuid}:{due_utc_ms}:due"


def _key_identity(key: str) -> Optional[tuple[str, int]]:
    """Return ``(task uuid, due ms)`` embedded in a sent key, if well formed."""

    if key.endswith(":due"):
        parts = key.rsplit(":", 2)
    else:
        parts = key.rsplit(":", 3)
        if len(parts) != 4 or parts[2] != "pre":
            return None
    if len(parts) < 3:
        return None
    try:
        return parts[0], int(parts[1])
    except ValueError:
        return None


def notification_task_title(task: Task) -> str:
    title = task.title.strip()
    if title:
        return title
    description = task.description.strip()
    if description:
        return description
    return f"Task {task.uuid}"


def collect_due_notification_events(
    tasks: Iterable[Task],
    timezone: str,
    config: DueNotificationConfig,
    sent_keys: Container[str],
    now_ms: int,
) -> list[DueNotificationEvent]:
    """Return the notifications that should be delivered at ``now_ms``.

    Pure: the caller records each delivered event's key in the registry.  An
    event whose delivery failed must stay unrecorded so the next scan retries.
    """
    if not config.enabled:
        return []

    pre_minutes = clamp_pre_notify_minutes(config.pre_notify_minutes)
    events: list[DueNotificationEvent] = []

    for task in tasks:
        if not task.status.is_open:
            continue
        due_ms = task_due_utc_ms(task)
        if due_ms is None:
            continue

        title = notification_task_title(task)
        body = f"{title}\nDue {format_due_datetime(due_ms, timezone)}"

        if config.pre_notify_enabled and now_ms < due_ms:
            if now_ms >= due_ms - pre_minutes * MINUTE_MS:
                pre_key = pre_notification_key(task.uuid, due_ms, pre_minutes)
                if pre_key not in sent_keys:
                    events.append(
                        DueNotificationEvent(
                            key=pre_key,
                            title=f"Task due soon ({pre_minutes}m)",
                            body=body,
                        )
                    )

        if now_ms >= due_ms:
            due_key = due_notification_key(task.uuid, due_ms)
            if due_key not in sent_keys:
                events.append(
                    DueNotificationEvent(key=due_key, title="Task due now", body=body)
                )

    return events


class SentKeyRegistry:
    """Set of notification keys that were delivered."""

    def __init__(self, keys: Iterable[str] = ()):
        self._keys: set[str] = {str(key) for key in keys}

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._keys))

    def add(self, key: str) -> None:
        self._keys.add(key)

    def to_list(self) -> list[str]:
        return sorted(self._keys)

    def prune(
        self,
        now_ms: int,
        retention_ms: int,
        live: Container[tuple[str, int]] = (),
    ) -> int:
        """Drop keys for dues older than the retention window.

        Keys whose ``(uuid, due)`` pair still matches a known task in ``live``
        are kept regardless of age so the notification cannot fire again.
        Returns the number of keys removed.
        """
        cutoff = now_ms - retention_ms
        stale = set()
        for key in self._keys:
            identity = _key_identity(key)
            if identity is None or identity in live:
                continue
            if identity[1] < cutoff:
                stale.add(key)
        self._keys -= stale
        return len(stale)


class NotificationHost(Protocol):
    """Host facility that actually displays notifications."""

    async def request_permission(self) -> NotificationPermission: ...

    def current_permission(self) -> NotificationPermission: ...

    def show(self, title: str, body: str) -> bool: ...


@dataclass(frozen=True, slots=True)
class InboxNotification:
    id: int
    title: str
    body: str
    created_ms: int
    expires_ms: int

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "created_ms": self.created_ms,
            "expires_ms": self.expires_ms,
        }


class InboxNotificationHost:
    """Queue notifications for connected clients to poll and display.

    Entries auto-dismiss after :data:`AUTO_DISMISS_MS`.
    """

    def __init__(
        self,
        permission: NotificationPermission = NotificationPermission.DEFAULT,
        *,
        grant_on_request: bool = True,
        max_pending: int = 100,
    ):
        self._permission = permission
        self._grant_on_request = grant_on_request
        self._pending: deque[InboxNotification] = deque(maxlen=max_pending)
        self._ids = itertools.count(1)

    async def request_permission(self) -> NotificationPermission:
        if self._permission == NotificationPermission.DEFAULT:
            self._permission = (
                NotificationPermission.GRANTED
                if self._grant_on_request
                else NotificationPermission.DENIED
            )
        return self._permission

    def current_permission(self) -> NotificationPermission:
        return self._permission

    def set_permission(self, permission: NotificationPermission) -> None:
        self._permission = permission

    def show(self, title: str, body: str) -> bool:
        if self._permission != NotificationPermission.GRANTED:
            return False
        now = now_utc_ms()
        self._pending.append(
            InboxNotification(
                id=next(self._ids),
                title=title,
                body=body,
                created_ms=now,
                expires_ms=now + AUTO_DISMISS_MS,
            )
        )
        return True

    def pending(self, now_ms: Optional[int] = None) -> list[InboxNotification]:
        now = now_utc_ms() if now_ms is None else now_ms
        while self._pending and self._pending[0].expires_ms <= now:
            self._pending.popleft()
        return list(self._pending)

    def dismiss(self, notification_id: int) -> bool:
        for entry in list(self._pending):
            if entry.id == notification_id:
                self._pending.remove(entry)
                return True
        return False


@dataclass(slots=True)
class NotificationScanResult:
    delivered: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    permission: NotificationPermission = NotificationPermission.DEFAULT
    persist_error: Optional[str] = None


class DueNotificationService:
    """Scan tasks, show due notifications and keep the sent-key ledger."""

    def __init__(
        self,
        host: NotificationHost,
        repository: PreferencesRepository | None = None,
        *,
        retention_days: int = 30,
    ):
        self._host = host
        self._repository = repository
        self._retention_ms = max(0, retention_days) * DAY_MS
        self._config = default_due_notification_config()
        self._sent = SentKeyRegistry()

    @property
    def host(self) -> NotificationHost:
        return self._host

    @property
    def config(self) -> DueNotificationConfig:
        return self._config

    @property
    def sent(self) -> SentKeyRegistry:
        return self._sent

    async def load(self) -> None:
        """Restore config and sent keys so reloads do not re-fire history."""
        if self._repository is None:
            return
        self._config = sanitize_due_notification_config(
            await self._repository.get_json(NOTIFICATION_SETTINGS_KEY)
        )
        self._sent = SentKeyRegistry(await self._repository.get_sent_keys())
        logger.info(
            "notifications.load enabled=%s sent_keys=%d",
            self._config.enabled,
            len(self._sent),
        )

    async def update_config(
        self, update: DueNotificationConfigUpdate
    ) -> DueNotificationConfig:
        """Apply a partial update; turning notifications off also disables pre-notify."""
        data = self._config.model_dump()
        data.update(update.model_dump(exclude_unset=True, exclude_none=True))
        if not data["enabled"]:
            data["pre_notify_enabled"] = False
        self._config = sanitize_due_notification_config(data)
        if self._repository is not None:
            await self._repository.set_json(
                NOTIFICATION_SETTINGS_KEY, self._config.model_dump()
            )
        logger.info(
            "settings.notifications enabled=%s pre_enabled=%s pre_minutes=%d",
            self._config.enabled,
            self._config.pre_notify_enabled,
            self._config.pre_notify_minutes,
        )
        return self._config

    async def request_permission(self) -> NotificationPermission:
        permission = await self._host.request_permission()
        logger.info("settings.notifications.permission %s", permission.value)
        return permission

    async def scan(
        self,
        tasks: Iterable[Task],
        timezone: str,
        now_ms: Optional[int] = None,
    ) -> NotificationScanResult:
        now = now_utc_ms() if now_ms is None else now_ms
        permission = self._host.current_permission()
        result = NotificationScanResult(permission=permission)
        if permission != NotificationPermission.GRANTED:
            return result

        tasks = list(tasks)
        events = collect_due_notification_events(
            tasks, timezone, self._config, self._sent, now
        )
        for event in events:
            if not self._host.show(event.title, event.body):
                result.failed.append(event.key)
                logger.warning("notifications.emit.failed %s", event.key)
                continue
            self._sent.add(event.key)
            result.delivered.append(event.key)
            logger.info("notifications.emit.ok %s", event.key)

        pruned = 0
        if self._retention_ms:
            live = {
                (task.uuid, due_ms)
                for task in tasks
                if (due_ms := task_due_utc_ms(task)) is not None
            }
            pruned = self._sent.prune(now, self._retention_ms, live)

        if result.delivered or pruned:
            result.persist_error = await self._persist_sent()
        return result

    async def _persist_sent(self) -> Optional[str]:
        if self._repository is None:
            return None
        try:
            await self._repository.set_sent_keys(self._sent)
        except Exception as exc:
            logger.warning("notifications.sent_registry.persist_failed %s", exc)
            return f"Failed to persist {len(self._sent)} notification key(s): {exc}"
        logger.debug("notifications.sent_registry size=%d", len(self._sent))
        return None


__all__ = [
    "AUTO_DISMISS_MS",
    "DueNotificationEvent",
    "DueNotificationService",
    "InboxNotification",
    "InboxNotificationHost",
    "NotificationHost",
    "NotificationPermission",
    "NotificationScanResult",
    "SentKeyRegistry",
    "collect_due_notification_events",
    "default_due_notification_config",
    "due_notification_key",
    "notification_task_title",
    "pre_notification_key",
    "sanitize_due_notification_config",
]
