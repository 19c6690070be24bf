"""
Logging setup for the engine.

Text output for development, one JSON object per line in production. Log
records emitted while a session is being processed carry that session's id.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from iqcat.core.config import Settings, settings

# Id of the session whose answer is being processed; set by SessionController
session_id_context: ContextVar[Optional[str]] = ContextVar("session_id", default=None)

# Attributes passed via ``extra=`` that are copied into JSON entries
STRUCTURED_FIELDS = ("theta", "standard_error", "item_id", "stop_reason")

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Render a record as a single-line JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        session_id = session_id_context.get()
        if session_id:
            entry["session_id"] = session_id

        entry.update(
            {key: getattr(record, key) for key in STRUCTURED_FIELDS if hasattr(record, key)}
        )

        if record.levelno >= logging.ERROR:
            entry["source"] = f"{record.pathname}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def build_logging_config(source: Settings) -> Dict[str, Any]:
    """
    Build a ``logging.config.dictConfig`` mapping from settings.

    ``LOG_FORMAT="auto"`` picks JSON when ``ENV`` is ``production``. Per-step
    estimator traces stay at INFO unless ``DEBUG`` is set.
    """
    level = getattr(logging, source.LOG_LEVEL.upper(), logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    if source.LOG_FORMAT == "auto":
        formatter = "json" if source.ENV == "production" else "text"
    else:
        formatter = "json" if source.LOG_FORMAT == "json" else "text"

    estimator_level = logging.DEBUG if source.DEBUG else max(level, logging.INFO)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "text": {"format": TEXT_FORMAT, "datefmt": "%Y-%m-%dT%H:%M:%S"},
            "json": {"()": JSONFormatter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": formatter,
                "stream": sys.stdout,
            },
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            "iqcat": {"level": level, "handlers": ["console"], "propagate": False},
            "iqcat.core.cat.ability_estimation": {
                "level": estimator_level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging(source: Optional[Settings] = None) -> None:
    """Apply the logging configuration for ``source`` (process settings by default)."""
    logging.config.dictConfig(build_logging_config(source or settings))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
