"""Logging setup for the procurement service.

Logs go to a rotating file and to the console. Rotated files older than
``LOG_RETENTION_DAYS`` are purged when logging is configured.
"""

import logging
import os
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path
from stat import ST_MTIME

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
QUIET_LOGGERS = ("httpx", "httpcore", "hpack")

_configured = False


def _log_file() -> str:
    return os.getenv("LOG_FILE", "procurement.log")


def _retention_days() -> int:
    try:
        return int(os.getenv("LOG_RETENTION_DAYS", "30"))
    except ValueError:
        return 30


def configure_logging() -> None:
    """Configure application-wide logging once per process.

    Uses a :class:`~logging.handlers.RotatingFileHandler` that keeps the log
    file to roughly 1MB with up to three backups. The log level can be
    controlled via the ``LOG_LEVEL`` environment variable.
    """

    global _configured
    if _configured:
        return

    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = RotatingFileHandler(_log_file(), maxBytes=1_000_000, backupCount=3)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    # The Supabase HTTP client logs every request at INFO.
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _configured = True
    _purge_old_logs()


def _purge_old_logs() -> None:
    """Delete rotated log files older than ``LOG_RETENTION_DAYS``."""

    retention = _retention_days()
    if retention <= 0:
        return

    log_path = Path(_log_file()).resolve()
    cutoff = datetime.now() - timedelta(days=retention)
    for file in log_path.parent.glob(f"{log_path.name}*"):
        if file == log_path:
            continue
        try:
            mtime = datetime.fromtimestamp(file.stat()[ST_MTIME])
        except FileNotFoundError:
            continue
        if mtime < cutoff:
            try:
                file.unlink()
            except FileNotFoundError:
                pass


__all__ = ["configure_logging"]
