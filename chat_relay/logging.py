"""
Logging configuration for the chat relay.

This module provides:
- Per-connection logging context (connection id, username)
- Human-readable console output
- JSON-formatted error log file
"""

import json
import logging
import sys
from contextvars import ContextVar
from typing import Any

from chat_relay.settings import app_settings

# Context variable holding connection-specific logging fields
log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

# LogRecord attributes that are not copied into the JSON payload
_RESERVED_RECORD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
        "connection",
    }
)


def set_log_context(**kwargs: Any) -> None:
    """
    Set contextual fields for logging.

    Every connection runs in its own task, so fields set here are attached
    to all log messages emitted while handling that connection.

    Example:
        >>> set_log_context(connection_id="3f2a9c1e", username="alice")
        >>> logger.info("Routing frame")  # Will include connection_id and username
    """
    current = dict(log_context.get())
    current.update(kwargs)
    log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Get current log context."""
    return log_context.get()


def clear_log_context() -> None:
    """Clear the log context (useful when a connection ends)."""
    log_context.set({})


def _format_connection(context: dict[str, Any]) -> str:
    connection_id = context.get("connection_id")
    if not connection_id:
        return "-"
    username = context.get("username")
    return f"{connection_id}:{username}" if username else connection_id


class StructuredJSONFormatter(logging.Formatter):
    """
    JSON formatter for the error log file.

    Outputs the standard fields, the connection context and exception
    information when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "environment": app_settings.ENVIRONMENT,
        }
        log_data.update(get_log_context())

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Fields passed via ``extra=``
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter for console output.

    Uses different format strings based on log level.
    """

    INFO_FMT = "%(asctime)s - [%(connection)s] %(levelname)s: %(message)s"
    ERROR_FMT = "%(asctime)s - [%(connection)s] %(levelname)s: %(module)s.%(funcName)s:%(lineno)d - %(message)s"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._formatters = {
            logging.INFO: logging.Formatter(
                self.INFO_FMT, datefmt="%Y-%m-%d %H:%M:%S"
            ),
            logging.WARNING: logging.Formatter(
                self.ERROR_FMT, datefmt="%Y-%m-%d %H:%M:%S"
            ),
            logging.ERROR: logging.Formatter(
                self.ERROR_FMT, datefmt="%Y-%m-%d %H:%M:%S"
            ),
            logging.DEBUG: logging.Formatter(
                self.ERROR_FMT, datefmt="%Y-%m-%d %H:%M:%S"
            ),
        }

    def format(self, record: logging.LogRecord) -> str:
        record.connection = _format_connection(get_log_context())

        formatter = self._formatters.get(
            record.levelno, self._formatters[logging.INFO]
        )
        return formatter.format(record)


def setup_logging() -> logging.Logger:
    """
    Configure the root logger.

    Sets up:
    - Console handler with human-readable format
    - File handler for errors (JSON format)

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, app_settings.LOG_LEVEL.upper()))

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(HumanReadableFormatter())
    logger.addHandler(console_handler)

    try:
        file_handler = logging.FileHandler(app_settings.LOG_FILE_PATH)
        file_handler.setLevel(logging.ERROR)
        file_handler.setFormatter(StructuredJSONFormatter())
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"Could not create file handler: {e}")

    # Disable logging during pytest runs
    if sys.argv[0].split("/")[-1] in ["pytest"]:
        logging.disable(logging.ERROR)

    return logger


# Create default logger instance
logger = setup_logging()
