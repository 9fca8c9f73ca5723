"""Request payloads for the task and notification endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ..tasks.models import TaskStatus


class TaskCreatePayload(BaseModel):
    uuid: str = Field(..., min_length=1)
    title: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    due: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    project: Optional[str] = None
    priority: Optional[str] = None


class BulkTaskPayload(BaseModel):
    uuids: list[str] = Field(default_factory=list)


class TaskTagsPayload(BaseModel):
    tags: list[str]


class CalendarViewStatePayload(BaseModel):
    view: str
    focus: str


__all__ = [
    "BulkTaskPayload",
    "CalendarViewStatePayload",
    "TaskCreatePayload",
    "TaskTagsPayload",
]
