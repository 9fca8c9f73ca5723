"""Log file handler that files logs by local calendar date."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional

from .utils.datetime_utils import DEFAULT_TIMEZONE, zone_for


class DateStampedFileHandler(logging.FileHandler):
    """Write to ``<directory>/<YYYY-MM-DD>/<prefix>_<time>_<tz>.log``.

    The date folder and file stamp use the calendar timezone so a day's logs
    line up with the agenda's notion of "today".
    """

    def __init__(
        self,
        filename: str | None = None,
        *,
        directory: str | Path | None = None,
        prefix: str | None = None,
        timezone_name: str = DEFAULT_TIMEZONE,
        encoding: str | None = "utf-8",
        mode: str = "a",
        delay: bool = False,
        errors: Optional[str] = None,
        current_time: datetime | None = None,
    ) -> None:
        base_dir, base_prefix = self._resolve_base(filename, directory, prefix)

        stamp = (current_time or datetime.now(timezone.utc)).astimezone(
            zone_for(timezone_name)
        )
        tz_abbr = stamp.tzname() or "local"
        file_name = f"{base_prefix}_{stamp.strftime('%Y-%m-%d_%H-%M-%S')}_{tz_abbr}.log"
        log_path = (base_dir / stamp.strftime("%Y-%m-%d") / file_name).resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        self.log_path = log_path
        super().__init__(
            log_path,
            mode=mode,
            encoding=encoding,
            delay=delay,
            errors=errors,
        )

    @staticmethod
    def _resolve_base(
        filename: str | None,
        directory: str | Path | None,
        prefix: str | None,
    ) -> tuple[Path, str]:
        if filename:
            path = Path(filename)
            if path.suffix:
                return path.parent.resolve(), prefix or path.stem or "agenda"
            return path.resolve(), prefix or "agenda"
        return Path(directory or "logs/app").resolve(), prefix or "agenda"


def cleanup_old_logs(
    log_directories: Iterable[str | Path],
    retention_hours: int,
    logger: logging.Logger | None = None,
) -> tuple[int, int]:
    """Delete ``*.log`` files older than ``retention_hours`` and empty date folders.

    A retention of 0 disables cleanup. Returns ``(files_deleted, errors)``.
    """
    if retention_hours <= 0:
        return (0, 0)

    cutoff = datetime.now(timezone.utc) - timedelta(hours=retention_hours)
    deleted = 0
    errors = 0

    for directory in log_directories:
        root = Path(directory).resolve()
        if not root.is_dir():
            continue

        for log_file in root.rglob("*.log"):
            try:
                modified = datetime.fromtimestamp(log_file.stat().st_mtime, tz=timezone.utc)
                if modified < cutoff:
                    log_file.unlink()
                    deleted += 1
            except OSError as exc:
                errors += 1
                if logger:
                    logger.warning("logs.cleanup failed to delete %s: %s", log_file, exc)

        for date_dir in root.iterdir():
            if date_dir.is_dir() and not any(date_dir.iterdir()):
                try:
                    date_dir.rmdir()
                except OSError:
                    errors += 1

    if logger and deleted:
        logger.info("logs.cleanup deleted=%d errors=%d", deleted, errors)
    return (deleted, errors)


__all__ = ["DateStampedFileHandler", "cleanup_old_logs"]
