"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path = Field(
        default_factory=lambda: Path("data"),
        validation_alias=AliasChoices("AGENDA_DATA_DIR", "data_dir"),
    )
    preferences_db_path: Path = Field(
        default_factory=lambda: Path("data/agenda_preferences.db"),
        validation_alias=AliasChoices("PREFERENCES_DB_PATH", "preferences_db_path"),
    )
    calendar_config_path: Path = Field(
        default_factory=lambda: Path("data/calendar_config.json"),
        validation_alias=AliasChoices("CALENDAR_CONFIG_PATH", "calendar_config_path"),
    )
    # Optional JSON list of task records loaded into the in-process store
    tasks_seed_path: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("TASKS_SEED_PATH", "tasks_seed_path"),
    )
    sweep_interval_seconds: float = Field(
        default=30.0,
        ge=1,
        validation_alias=AliasChoices(
            "SWEEP_INTERVAL_SECONDS",
            "sweep_interval_seconds",
        ),
    )
    scheduler_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("SCHEDULER_ENABLED", "scheduler_enabled"),
    )
    notification_retention_days: int = Field(
        default=30,
        ge=0,
        validation_alias=AliasChoices(
            "NOTIFICATION_RETENTION_DAYS",
            "notification_retention_days",
        ),
    )
    logging_settings_path: Path = Field(
        default_factory=lambda: Path("logging_settings.conf"),
        validation_alias=AliasChoices(
            "LOGGING_SETTINGS_PATH",
            "logging_settings_path",
        ),
    )
    log_dir: Path = Field(
        default_factory=lambda: Path("logs/app"),
        validation_alias=AliasChoices("AGENDA_LOG_DIR", "log_dir"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()


__all__ = ["PROJECT_ROOT", "Settings", "get_settings"]
