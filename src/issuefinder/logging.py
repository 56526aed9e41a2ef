"""JSON-lines logging for the issuefinder MCP server and query engine.

Records land in ``.issuefinder/issuefinder.log``. The file rotates at 5MB and
keeps three backups. Every line is one JSON object with ``ts``, ``level``,
``logger`` and ``msg``, plus whichever of the known ``extra=`` keys the call
supplied (see ``_EXTRA_FIELDS``).
"""

from __future__ import annotations

import json
import logging
import os
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOG_FILENAME = "issuefinder.log"
PACKAGE_LOGGER = "issuefinder"

_MAX_BYTES = 5 * 1024 * 1024
_BACKUP_COUNT = 3
_lock = threading.Lock()

# LogRecord attribute -> JSON key. ``args`` is taken by LogRecord itself,
# so callers pass tool arguments as ``args_data``.
_EXTRA_FIELDS: tuple[tuple[str, str], ...] = (
    ("tool", "tool"),
    ("args_data", "args"),
    ("duration_ms", "duration_ms"),
    ("result_count", "result_count"),
    ("error", "error"),
)


class _JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for attr, key in _EXTRA_FIELDS:
            if hasattr(record, attr):
                line[key] = getattr(record, attr)
        if record.exc_info and record.exc_info[1] is not None:
            line["exception"] = str(record.exc_info[1])
        return json.dumps(line, default=str)


def _file_handlers(logger: logging.Logger) -> list[RotatingFileHandler]:
    return [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]


def setup_logging(issuefinder_dir: Path, *, level: int = logging.INFO) -> logging.Logger:
    """Attach the rotating JSON handler for *issuefinder_dir* to the package logger.

    Calling again for the same directory is a no-op. Calling for another
    directory moves logging there (one project per process). Child loggers
    such as ``issuefinder.query`` propagate into the returned logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    log_path = os.path.abspath(str(issuefinder_dir / LOG_FILENAME))

    with _lock:
        existing = _file_handlers(logger)
        if any(h.baseFilename == log_path for h in existing):
            return logger
        for stale in existing:
            logger.removeHandler(stale)
            stale.close()

        handler = RotatingFileHandler(log_path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT)
        handler.setFormatter(_JsonLineFormatter())
        logger.addHandler(handler)
        logger.setLevel(level)
    return logger
