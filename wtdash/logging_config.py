"""Logging setup.

The TUI owns the terminal, so records go to a rotating file under the cache
directory instead of stderr.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from wtdash.constants import CACHE_DIR

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s%(context)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_BYTES = 2 * 1024 * 1024
BACKUP_COUNT = 2

# Attributes every LogRecord has; anything else came in through `extra=`.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime", "context"}


class ContextFormatter(logging.Formatter):
    """Appends `extra=` fields as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        extras = {k: v for k, v in vars(record).items() if k not in _RESERVED}
        record.context = "".join(f" {k}={v}" for k, v in sorted(extras.items()))
        return super().format(record)


def log_file_path() -> Path:
    return CACHE_DIR / "wtdash.log"


def setup_logging(debug: bool = False, log_file: Path | None = None) -> Path:
    """Attach a rotating file handler to the package logger. Returns the log path."""
    log_file = log_file or log_file_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if debug else logging.INFO
    package_logger = logging.getLogger("wtdash")
    package_logger.setLevel(level)
    package_logger.handlers.clear()

    handler = RotatingFileHandler(log_file, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(ContextFormatter(LOG_FORMAT, DATE_FORMAT))
    package_logger.addHandler(handler)
    return log_file
