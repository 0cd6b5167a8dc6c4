"""Logging setup for the automation CLI and any host process embedding the services.

Service modules only call logging.getLogger(__name__); handlers are attached
here, once, by the entry point.
"""

import logging
import sys
from pathlib import Path

from tenancy.services.config import get_settings

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# SQL echo is noisy at INFO; raise it explicitly when debugging queries
QUIET_LOGGERS = ("sqlalchemy.engine", "alembic.runtime.migration")


def get_log_level(level_name: str | None = None) -> int:
    """Resolve a level name, falling back to the LOG_LEVEL setting.

    Unknown names resolve to INFO.
    """
    name = (level_name or get_settings().log_level).upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(log_file: str | None = None, level_name: str | None = None) -> logging.Logger:
    """
    Send log records to stdout and to a file.

    Args:
        log_file: Log file path (default: LOG_FILE setting); parent dirs are created
        level_name: Level name (default: LOG_LEVEL setting)

    Returns:
        The "tenancy" package logger
    """
    log_path = Path(log_file or get_settings().log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    level = get_log_level(level_name)

    root = logging.getLogger()
    # Re-running setup (tests, repeated CLI calls in one process) must not duplicate output
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    root.setLevel(level)
    root.addHandler(_handler(logging.StreamHandler(sys.stdout), level))
    root.addHandler(_handler(logging.FileHandler(log_path, encoding="utf-8"), level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return logging.getLogger("tenancy")


__all__ = ["get_log_level", "setup_logging"]
