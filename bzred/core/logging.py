"""
Copyright (c) 2025 Eric C.

Mumford (@heymumford) This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.

"""

"""Logging infrastructure for migration runs.

This module configures console and file logging for the ``bzred`` logger
hierarchy, redacts credentials from messages and provides a context manager
that times each migration stage.
"""

import json
import logging
import os
import re
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from re import Pattern
from typing import Any

from rich.logging import RichHandler


class LogRedactor:
    """
    Redacts sensitive information from log messages.
    """

    def __init__(self) -> None:
        """
        Initialize the log redactor with patterns for sensitive information.

        Sets up regex patterns to detect and redact passwords, both as
        key/value pairs and inside database connection URLs.
        """
        self.patterns: dict[str, Pattern] = {
            "password": re.compile(
                r'(password|passwd|secret|bind_pass)["\']?\s*[:=]\s*["\']?([^"\'&\s,}]+)',
                re.IGNORECASE,
            ),
            "url_password": re.compile(r"(://[^:/@\s]+:)[^@\s]+(@)"),
        }

    def redact(self, message: str) -> str:
        """
        Redact sensitive information from the message.
        """
        if not isinstance(message, str):
            return message

        message = self.patterns["password"].sub(r"\1: [REDACTED]", message)
        return self.patterns["url_password"].sub(r"\1[REDACTED]\2", message)


# Global redactor instance
redactor = LogRedactor()


class RedactingFilter(logging.Filter):
    """Filter that applies the redactor to every formatted record message."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redactor.redact(record.msg)
        return True


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs log records as JSON.
    """

    def format_record(self, record: logging.LogRecord) -> str:
        """
        Format the log record as a JSON string.

        Args:
        ----
            record: The LogRecord to format

        Returns:
        -------
            A JSON string representation of the log record

        """
        log_data: dict[str, Any] = {
            "timestamp": datetime.now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "stage"):
            log_data["stage"] = record.stage

        # Add exception info if available
        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, default=str)

    def format(self, record: logging.LogRecord) -> str:
        """Forward logging format calls to format_record."""
        return self.format_record(record)


@contextmanager
def log_operation(
    logger: logging.Logger,
    operation_name: str,
    level: int = logging.INFO,
) -> Iterator[None]:
    """
    Context manager for logging operations with timing.

    Args:
    ----
        logger: The logger instance to use
        operation_name: Name of the operation being performed
        level: Log level to use

    Raises:
    ------
        Exception: Re-raises any exception that occurs within the context

    """
    start_time = time.time()
    extra = {"stage": operation_name}

    logger.log(level, f"Starting {operation_name}", extra=extra)

    try:
        yield
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Failed {operation_name} after {duration:.2f}s: {type(e).__name__}: {e}",
            extra=extra,
        )
        raise
    duration = time.time() - start_time
    logger.log(level, f"Completed {operation_name} in {duration:.2f}s", extra=extra)


def configure_logging(
    level: int | str = logging.INFO,
    log_file: str | None = None,
    json_format: bool = False,
    include_timestamp: bool = True,
    use_rich: bool = True,
) -> None:
    """
    Configure application logging.

    Args:
    ----
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL or integer)
        log_file: Optional path to log file
        json_format: Whether to use JSON format for logs
        include_timestamp: Whether to include timestamps in logs
        use_rich: Whether to use Rich for console output

    """
    # Convert string level to int if needed
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    format_str = (
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        if include_timestamp
        else "[%(levelname)s] %(name)s: %(message)s"
    )

    handlers: list[logging.Handler] = []

    # Console handler
    if use_rich and not json_format:
        rich_handler = RichHandler(rich_tracebacks=True, markup=False, show_time=include_timestamp)
        rich_handler.setFormatter(logging.Formatter("%(message)s"))
        handlers.append(rich_handler)
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        if json_format:
            console_handler.setFormatter(JSONFormatter())
        else:
            console_handler.setFormatter(logging.Formatter(format_str))
        handlers.append(console_handler)

    # File handler if requested
    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        if json_format:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(format_str))
        handlers.append(file_handler)

    for handler in handlers:
        handler.addFilter(RedactingFilter())

    # Configure bzred logger
    logger = logging.getLogger("bzred")
    logger.setLevel(level)
    logger.propagate = False

    # Remove existing handlers and add our configured ones
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    for handler in handlers:
        logger.addHandler(handler)

    logger.debug(f"Logging configured with level {logging.getLevelName(level)}")
