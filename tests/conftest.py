import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from agenda.tasks.models import Task, TaskStatus  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def make_task():
    """Build tasks with terse keyword arguments."""

    def _make(uuid: str, **fields) -> Task:
        status = fields.pop("status", TaskStatus.PENDING)
        if isinstance(status, str):
            status = TaskStatus(status)
        return Task(uuid=uuid, status=status, **fields)

    return _make
