"""Structured logging helpers and process-wide logging setup."""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any, Optional, Union

# Attributes every LogRecord carries; anything else was passed as a field
_STANDARD_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "message",
    "asctime",
    "taskName",
}


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that supports structured logging with extra fields.

    Usage:
        logger = get_structured_logger(__name__, component="nest")
        logger.info("Collected thermostats", count=2)
        logger.error("Scrape failed", source="weather", error="timeout")
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        """Process log message and extract extra fields."""
        standard_kwargs = {"exc_info", "stack_info", "stacklevel", "extra"}
        extra = kwargs.pop("extra", {})

        for key in list(kwargs.keys()):
            if key not in standard_kwargs:
                extra[key] = kwargs.pop(key)

        if self.extra:
            extra = {**self.extra, **extra}

        kwargs["extra"] = extra
        return msg, kwargs


Logger = Union[logging.Logger, logging.LoggerAdapter]


def get_structured_logger(name: str, **default_extra: Any) -> StructuredLoggerAdapter:
    """
    Get a structured logger that supports extra keyword arguments.

    Args:
        name: Logger name (usually __name__)
        **default_extra: Default extra fields to include in all logs

    Returns:
        A StructuredLoggerAdapter instance
    """
    base_logger = logging.getLogger(name)
    return StructuredLoggerAdapter(base_logger, default_extra)


class StructuredFormatter(logging.Formatter):
    """Formatter that appends structured fields as ``key=value`` pairs"""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = [
            f"{key}={value}"
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        ]
        if fields:
            line = f"{line} " + " ".join(fields)
        return line


def setup_logging(level: str, log_file: Optional[str]) -> None:
    """Configure logging handlers"""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    # Add file handler if log file is specified and writable
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file))
        except PermissionError:
            print(
                f"Warning: Cannot write to {log_file}, logging to stderr only",
                file=sys.stderr,
            )

    formatter = StructuredFormatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)
