"""Centralized logging configuration for sqlbind.

Loggers live under the ``sqlbind`` namespace. Records can carry a correlation ID
(tracked with a context variable) and are rendered as JSON by
:class:`StructuredFormatter`.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from sqlbind._serialization import encode_json

if TYPE_CHECKING:
    from logging import LogRecord

__all__ = (
    "CorrelationIDFilter",
    "StructuredFormatter",
    "configure_logging",
    "correlation_id_var",
    "get_correlation_id",
    "get_logger",
    "log_with_context",
    "set_correlation_id",
)

ROOT_LOGGER_NAME = "sqlbind"

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context.

    Args:
        correlation_id: The correlation ID to set, or None to clear
    """
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> str | None:
    """Get the current correlation ID."""
    return correlation_id_var.get()


class StructuredFormatter(logging.Formatter):
    """Structured JSON formatter with correlation ID support."""

    def format(self, record: LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if correlation_id := get_correlation_id():
            log_entry["correlation_id"] = correlation_id

        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return encode_json(log_entry)


class CorrelationIDFilter(logging.Filter):
    """Filter that adds correlation ID to log records."""

    def filter(self, record: LogRecord) -> bool:
        if correlation_id := get_correlation_id():
            record.correlation_id = correlation_id
        return True


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance under the ``sqlbind`` namespace.

    Args:
        name: Logger name. If not provided, returns the root sqlbind logger.

    Returns:
        Configured logger instance
    """
    if name is None:
        return logging.getLogger(ROOT_LOGGER_NAME)

    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"

    logger = logging.getLogger(name)

    if not any(isinstance(f, CorrelationIDFilter) for f in logger.filters):
        logger.addFilter(CorrelationIDFilter())

    return logger


def configure_logging(
    level: str = "INFO",
    format_style: str = "structured",
    log_to_file: str | None = None,
    extra_handlers: list[logging.Handler] | None = None,
) -> None:
    """Configure logging for the whole library.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_style: Log format style ("structured" for JSON, "simple" for text)
        log_to_file: Optional file path to log to
        extra_handlers: Additional handlers to add
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    formatter: logging.Formatter
    if format_style == "structured":
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_to_file:
        file_handler = logging.FileHandler(log_to_file)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    if extra_handlers:
        for handler in extra_handlers:
            root_logger.addHandler(handler)

    root_logger.propagate = False

    root_logger.debug(
        "sqlbind logging configured",
        extra={"extra_fields": {"level": level, "format_style": format_style, "handlers_count": len(root_logger.handlers)}},
    )


def log_with_context(logger: logging.Logger, level: int, message: str, **extra_fields: Any) -> None:
    """Log a message with structured extra fields.

    Args:
        logger: The logger to use
        level: Log level
        message: Log message
        **extra_fields: Additional fields to include in structured logs
    """
    if not logger.isEnabledFor(level):
        return
    record = logger.makeRecord(logger.name, level, "(unknown file)", 0, message, (), None)
    record.extra_fields = extra_fields
    logger.handle(record)
