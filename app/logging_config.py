"""Logging setup: JSON lines in production, colored console output otherwise.

Records may carry learner, lesson and metric context through `extra=`;
the JSON formatter copies those fields onto the output object.
"""
import logging
import sys
import json
from datetime import datetime
from typing import Any, Dict, Optional
from app.config import settings

CONTEXT_FIELDS = ("user_id", "lesson_id", "metric_id", "request_id")

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")

DEV_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEV_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update({
            field: getattr(record, field)
            for field in CONTEXT_FIELDS
            if hasattr(record, field)
        })

        return json.dumps(log_data, default=str)


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Color a copy; other handlers share the original record.
        color = self.COLORS.get(record.levelname, self.RESET)
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def build_formatter() -> logging.Formatter:
    """Formatter for the current environment."""
    if settings.is_production:
        return JSONFormatter()
    return ColoredFormatter(fmt=DEV_FORMAT, datefmt=DEV_DATE_FORMAT)


def setup_logging(log_level: Optional[str] = None) -> None:
    """
    Configure the root logger.

    Level defaults to INFO in production and DEBUG elsewhere. Calling this
    again replaces the handler installed by the previous call.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    if log_level is None:
        log_level = "INFO" if settings.is_production else "DEBUG"
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if getattr(existing, "_lesson_pacer", False):
            root_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter())
    handler._lesson_pacer = True

    root_logger.setLevel(numeric_level)
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={log_level}, "
        f"environment={settings.ENVIRONMENT}, "
        f"format={'JSON' if settings.is_production else 'colored'}"
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
