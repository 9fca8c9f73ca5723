import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

from agenda.logging_handlers import DateStampedFileHandler, cleanup_old_logs


def _age(path: Path, delta: timedelta) -> None:
    stamp = (datetime.now(timezone.utc) - delta).timestamp()
    os.utime(path, (stamp, stamp))


def test_handler_files_logs_under_calendar_date(tmp_path) -> None:
    # 03:00 UTC is still the previous day in Mexico City
    current = datetime(2024, 5, 26, 3, 0, 0, tzinfo=timezone.utc)
    handler = DateStampedFileHandler(
        directory=tmp_path / "app",
        prefix="agenda",
        current_time=current,
    )
    try:
        expected = (tmp_path / "app" / "2024-05-25" / "agenda_2024-05-25_21-00-00_CST.log").resolve()
        assert Path(handler.baseFilename) == expected
        assert handler.log_path == expected

        handler.emit(
            logging.LogRecord(
                name="test",
                level=logging.INFO,
                pathname=__file__,
                lineno=0,
                msg="calendar.auto_sweep.done updated=1",
                args=(),
                exc_info=None,
            )
        )
        assert "auto_sweep.done" in expected.read_text(encoding="utf-8")
    finally:
        handler.close()


def test_handler_uses_given_timezone_and_filename_prefix(tmp_path) -> None:
    current = datetime(2024, 5, 26, 12, 34, 56, tzinfo=timezone.utc)
    handler = DateStampedFileHandler(
        str(tmp_path / "custom.log"),
        timezone_name="America/New_York",
        current_time=current,
    )
    try:
        expected = (tmp_path / "2024-05-26" / "custom_2024-05-26_08-34-56_EDT.log").resolve()
        assert Path(handler.baseFilename) == expected
    finally:
        handler.close()


def test_cleanup_old_logs(tmp_path) -> None:
    log_dir = tmp_path / "logs" / "app"
    date_dir = log_dir / "2024-01-01"
    date_dir.mkdir(parents=True)

    stale = date_dir / "stale.log"
    stale.write_text("old")
    _age(stale, timedelta(days=3))
    recent = log_dir / "recent.log"
    recent.write_text("recent")
    _age(recent, timedelta(days=1))

    files_deleted, errors = cleanup_old_logs([log_dir, tmp_path / "missing"], retention_hours=48)

    assert (files_deleted, errors) == (1, 0)
    assert not stale.exists()
    assert not date_dir.exists()
    assert recent.exists()


def test_cleanup_disabled_with_zero_retention(tmp_path) -> None:
    old = tmp_path / "old.log"
    old.write_text("content")
    _age(old, timedelta(days=100))

    assert cleanup_old_logs([tmp_path], retention_hours=0) == (0, 0)
    assert old.exists()
