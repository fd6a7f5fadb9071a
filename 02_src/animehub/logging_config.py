"""Structured logging configuration for AnimeHub."""

import json
import logging
import logging.config
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Set through `extra={"context": {...}}`
        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context

        return json.dumps(log_data, default=str)


def setup_logging(
    log_level: str = "INFO",
    log_file: str | None = None,
    console: bool = True,
) -> None:
    """
    Configure root, uvicorn and aiosqlite loggers.

    Args:
        log_level: Level for the application loggers.
        log_file: Rotating log file path. Defaults to 04_logs/app.log.
        console: Also write JSON lines to stdout.
    """
    if log_file is None:
        log_file = str(DEFAULT_LOG_PATH)
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    handlers = ["file", "console"] if console else ["file"]
    level = log_level.upper()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": "animehub.logging_config.JSONFormatter"},
            },
            "handlers": {
                "file": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "filename": log_file,
                    "maxBytes": 10 * 1024 * 1024,
                    "backupCount": 5,
                    "formatter": "json",
                    "encoding": "utf-8",
                },
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {
                "uvicorn": {"level": level, "handlers": handlers, "propagate": False},
                "uvicorn.access": {"level": "WARNING", "handlers": handlers, "propagate": False},
                # aiosqlite logs every statement at DEBUG
                "aiosqlite": {"level": "WARNING"},
            },
            "root": {"level": level, "handlers": handlers},
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module (pass __name__)."""
    return logging.getLogger(name)
