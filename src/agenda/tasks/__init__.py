"""Task domain package: models, tag codec and the task store contract."""

from .models import Recurrence, Task, TaskClassification, TaskStatus
from .store import (
    InMemoryTaskStore,
    ManualCompletionBlocked,
    TaskNotFoundError,
    TaskState,
    TaskStore,
    TaskStoreError,
)

__all__ = [
    "InMemoryTaskStore",
    "ManualCompletionBlocked",
    "Recurrence",
    "Task",
    "TaskClassification",
    "TaskNotFoundError",
    "TaskState",
    "TaskStatus",
    "TaskStore",
    "TaskStoreError",
]
