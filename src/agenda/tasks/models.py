"""Domain models representing tasks owned by the external task store."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional


class TaskStatus(str, Enum):
    """Possible states for a task."""

    PENDING = "Pending"
    WAITING = "Waiting"
    COMPLETED = "Completed"
    DELETED = "Deleted"

    @property
    def is_open(self) -> bool:
        return self in (TaskStatus.PENDING, TaskStatus.WAITING)


@dataclass(slots=True)
class Task:
    """Representation of a task as returned by the task store."""

    uuid: str
    title: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    due: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    project: Optional[str] = None
    priority: Optional[str] = None
    wait: Optional[str] = None
    scheduled: Optional[str] = None
    created: Optional[str] = None
    modified: Optional[str] = None

    def with_status(self, status: TaskStatus) -> "Task":
        """Return a copy of the task with ``status`` applied."""

        return replace(self, status=status, tags=list(self.tags))

    def with_tags(self, tags: list[str]) -> "Task":
        return replace(self, tags=list(tags))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "uuid": self.uuid,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "due": self.due,
            "tags": list(self.tags),
            "project": self.project,
            "priority": self.priority,
            "wait": self.wait,
            "scheduled": self.scheduled,
            "created": self.created,
            "modified": self.modified,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        return cls(
            uuid=str(data["uuid"]),
            title=data.get("title") or "",
            description=data.get("description") or "",
            status=TaskStatus(data.get("status", TaskStatus.PENDING.value)),
            due=data.get("due"),
            tags=[str(tag) for tag in data.get("tags") or []],
            project=data.get("project"),
            priority=data.get("priority"),
            wait=data.get("wait"),
            scheduled=data.get("scheduled"),
            created=data.get("created"),
            modified=data.get("modified"),
        )


@dataclass(frozen=True, slots=True)
class Recurrence:
    """Recurrence rule carried by ``recur*`` tags."""

    pattern: str = "none"
    time: str = ""
    days: tuple[str, ...] = ()
    months: tuple[str, ...] = ()
    month_day: str = ""


@dataclass(frozen=True, slots=True)
class TaskClassification:
    """Typed view of the facts encoded in a task's tags."""

    kanban_lane: Optional[str] = None
    board_id: Optional[str] = None
    calendar_source_id: Optional[str] = None
    calendar_color: Optional[str] = None
    recurrence: Recurrence = field(default_factory=Recurrence)

    @property
    def is_calendar_event(self) -> bool:
        return self.calendar_source_id is not None


__all__ = ["Recurrence", "Task", "TaskClassification", "TaskStatus"]
