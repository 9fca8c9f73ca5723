"""Application factory for the agenda service."""

from __future__ import annotations

import json
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .calendar.config import CalendarConfigService
from .config import PROJECT_ROOT, Settings, get_settings
from .logging_handlers import DateStampedFileHandler, cleanup_old_logs
from .logging_settings import apply_scheduler_level, parse_logging_settings
from .routers.calendar import router as calendar_router
from .routers.notifications import router as notifications_router
from .routers.tasks import router as tasks_router
from .services.auto_sweep import AutoSweepController
from .services.due_scheduler import DueScheduler
from .services.notifications import DueNotificationService, InboxNotificationHost
from .services.preferences_repository import PreferencesRepository
from .services.task_actions import TaskActionsService
from .tasks.models import Task
from .tasks.store import InMemoryTaskStore, TaskState

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _resolve_under(base: Path, p: Path) -> Path:
    # Absolute paths are used as-is (tests and external mounts).
    if p.is_absolute():
        return p.resolve()
    resolved = (base / p).resolve()
    if not resolved.is_relative_to(base):
        raise ValueError(f"Configured path {resolved} escapes project root {base}")
    return resolved


def _configure_logging(settings: Settings, timezone_name: str) -> None:
    """Configure logging from LOG_LEVEL/LOG_FILE and the logging settings file."""
    # Load .env first so LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    file_settings = parse_logging_settings(
        _resolve_under(PROJECT_ROOT, settings.logging_settings_path)
    )
    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATEFMT)
    handlers: list[logging.Handler] = []

    if file_settings.terminal_level is not None:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(max(log_level, file_settings.terminal_level))
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    log_file = os.getenv("LOG_FILE")
    if log_file and file_settings.file_level is not None:
        file_handler = DateStampedFileHandler(log_file, timezone_name=timezone_name)
        file_handler.setLevel(file_settings.file_level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers or [logging.NullHandler()],
        force=True,
    )
    logging.getLogger("agenda").setLevel(log_level)
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    if log_level > logging.DEBUG:
        logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    apply_scheduler_level(file_settings, log_level)
    for problem in file_settings.problems:
        logger.warning("logging_settings %s", problem)

    log_dirs = [_resolve_under(PROJECT_ROOT, settings.log_dir)]
    if log_file:
        log_dirs.append(Path(log_file).resolve().parent)
    cleanup_old_logs(log_dirs, file_settings.retention_hours, logger)


def _load_seed_tasks(path: Path | None) -> list[Task]:
    if path is None or not path.exists():
        return []
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return [Task.from_dict(item) for item in raw]
    except (OSError, ValueError, KeyError, TypeError) as exc:
        logger.error("Failed to load seed tasks from %s: %s", path, exc)
        return []


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    calendar_config_service = CalendarConfigService(
        _resolve_under(PROJECT_ROOT, settings.calendar_config_path)
    )
    timezone_name = calendar_config_service.get_effective().timezone
    _configure_logging(settings, timezone_name)

    seed_path = (
        _resolve_under(PROJECT_ROOT, settings.tasks_seed_path)
        if settings.tasks_seed_path is not None
        else None
    )
    task_store = InMemoryTaskStore(_load_seed_tasks(seed_path))
    task_state = TaskState()
    preferences = PreferencesRepository(
        _resolve_under(PROJECT_ROOT, settings.preferences_db_path)
    )
    notification_service = DueNotificationService(
        InboxNotificationHost(),
        preferences,
        retention_days=settings.notification_retention_days,
    )
    sweeper = AutoSweepController(task_store, task_state)
    scheduler = DueScheduler(
        task_store,
        task_state,
        sweeper,
        notification_service,
        calendar_config_service,
        interval_seconds=settings.sweep_interval_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await preferences.initialize()
        await notification_service.load()
        await task_state.refresh(task_store)
        if settings.scheduler_enabled:
            scheduler.start()
        try:
            yield
        finally:
            await scheduler.shutdown()
            await preferences.close()

    app = FastAPI(
        title="Agenda Calendar Backend",
        version="0.1.0",
        description="Calendar time engine and due-notification scheduler.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.calendar_config_service = calendar_config_service
    app.state.task_store = task_store
    app.state.task_state = task_state
    app.state.preferences_repository = preferences
    app.state.notification_service = notification_service
    app.state.auto_sweep = sweeper
    app.state.task_actions = TaskActionsService(task_store, task_state)
    app.state.due_scheduler = scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(calendar_router)
    app.include_router(notifications_router)
    app.include_router(tasks_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, object]:
        return {
            "status": "ok",
            "timezone": calendar_config_service.get_effective().timezone,
            "scheduler_running": scheduler.running,
            "sweep_in_flight": sweeper.in_flight,
        }

    return app


__all__ = ["create_app"]
