"""Logging configuration and setup.

Every record is written as one JSON object to stdout and to a per-session
file under LOG_DIR. Records emitted while a reconciliation run is active
carry that run's id.
"""

import json
import logging
import os
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))

# Distinguishes several worker starts on the same day
SESSION_ID = uuid.uuid4().hex[:8]

# Extra attributes copied into the JSON payload when present on a record
EXTRA_FIELDS = ("run_id", "kind", "order_id", "external_order_id")

_current_run_id: ContextVar[Optional[str]] = ContextVar("current_run_id", default=None)


def bind_run_id(run_id: str):
    """Tag subsequent records in this context with run_id. Returns a reset token."""
    return _current_run_id.set(run_id)


def reset_run_id(token) -> None:
    _current_run_id.reset(token)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging (UTC timestamps)."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "session": SESSION_ID,
        }

        run_id = _current_run_id.get()
        if run_id:
            log_data["run_id"] = run_id

        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            log_data["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
            }

        return json.dumps(log_data, default=str)


def configure_logging(level: str = LOG_LEVEL, log_dir: Path = LOG_DIR) -> None:
    """Attach the JSON file and console handlers to the root logger (once)."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    root_logger.setLevel(logging.DEBUG)
    formatter = JSONFormatter()

    log_dir.mkdir(parents=True, exist_ok=True)
    log_date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    file_handler = logging.FileHandler(log_dir / f"status_worker_{log_date}_{SESSION_ID}.log")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level, logging.INFO))
    console_handler.setFormatter(formatter)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def setup_logger(name: str) -> logging.Logger:
    """Get logger for a module."""
    configure_logging()
    return logging.getLogger(name)
