"""Structured JSON logging for orbit.

Writes JSONL to <data_dir>/orbit.log with rotation (5MB, 3 backups).
"""

import json
import logging
import os
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict

_LOG_FILENAME = "orbit.log"
_setup_lock = threading.Lock()
_MAX_BYTES = 5 * 1024 * 1024  # 5MB
_BACKUP_COUNT = 3


class _JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "operation"):
            entry["operation"] = record.operation
        if hasattr(record, "template_id"):
            entry["template_id"] = record.template_id
        if hasattr(record, "entity"):
            entry["entity"] = record.entity
        if hasattr(record, "error"):
            entry["error"] = record.error
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = str(record.exc_info[1])
        return json.dumps(entry, default=str)


def setup_logging(data_dir: Path, level: str = "INFO") -> logging.Logger:
    """Set up structured JSON logging to <data_dir>/orbit.log.

    Returns the package logger; module loggers propagate into it.
    """
    logger = logging.getLogger("orbit")
    log_path = data_dir / _LOG_FILENAME
    target_filename = os.path.abspath(str(log_path))

    with _setup_lock:
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        for h in logger.handlers[:]:
            if not isinstance(h, RotatingFileHandler):
                continue
            if h.baseFilename == target_filename:
                return logger
            # Different path: drop the stale handler so records are not duplicated.
            logger.removeHandler(h)
            h.close()

        handler = RotatingFileHandler(
            str(log_path),
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
        )
        handler.setFormatter(_JsonFormatter())
        logger.addHandler(handler)
    return logger
