"""
Logging configuration for the GitHub issue scraper.

Console output goes to stderr so CLI progress and JSON results on stdout stay
clean. File output is opt-in via ``LOG_TO_FILE`` and rotates under ``LOG_DIR``.
"""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from issue_scraper.config import Config
from issue_scraper.utils.errors import ErrorKind, ScraperError

ROOT_LOGGER_NAME = "issue_scraper"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(filename)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """One JSON object per line; structured context is merged at top level."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "filename": record.filename,
            "lineno": record.lineno,
        }

        if record.exc_info:
            log_entry["exc_info"] = self.formatException(record.exc_info)

        extra_payload = getattr(record, "extra", None)
        if isinstance(extra_payload, dict):
            log_entry.update(extra_payload)

        return json.dumps(log_entry, ensure_ascii=True, default=str)


def _level(level: str) -> int:
    return getattr(logging, level.upper())


def setup_logging(
    name: str = ROOT_LOGGER_NAME,
    level: Optional[str] = None,
    log_to_file: bool = True,
) -> logging.Logger:
    """
    Set up logging with console and optional file output.

    Calling again with a different level re-levels the existing handlers
    instead of adding new ones.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to also log to a file (still gated by LOG_TO_FILE)

    Returns:
        Configured logger instance
    """
    numeric_level = _level(level or Config.LOG_LEVEL)
    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(numeric_level)
        return logger

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_to_file and Config.LOG_TO_FILE:
        Config.LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            Config.LOG_DIR / f"{name}.log",
            maxBytes=Config.LOG_FILE_MAX_BYTES,
            backupCount=Config.LOG_FILE_BACKUP_COUNT,
        )
        file_handler.setLevel(numeric_level)
        if Config.LOG_JSON_FORMAT:
            file_handler.setFormatter(JsonFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
        else:
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the ``issue_scraper`` namespace.

    Args:
        name: Logger name (will be prefixed with 'issue_scraper.')

    Returns:
        Logger instance
    """
    full_name = (
        name if name.startswith(ROOT_LOGGER_NAME) else f"{ROOT_LOGGER_NAME}.{name}"
    )
    logger = logging.getLogger(full_name)

    if not logger.handlers and not logging.getLogger(ROOT_LOGGER_NAME).handlers:
        setup_logging()

    return logger


def error_context(error: ScraperError) -> dict[str, Any]:
    """Flatten a classified error into log context fields."""
    fields: dict[str, Any] = {
        "error_kind": error.kind.value,
        "retryable": error.retryable,
    }
    fields.update(error.context.to_dict())
    if error.cause is not None:
        fields["cause"] = type(error.cause).__name__
    return fields


def log_exception(logger: logging.Logger, exc: BaseException, message: str, **context: Any) -> None:
    """
    Log a failure with structured context.

    Classified errors contribute their kind, retryability and error context.
    Tracebacks are attached only for UNKNOWN and unclassified failures.
    """
    payload: dict[str, Any] = {}
    show_traceback = True
    if isinstance(exc, ScraperError):
        payload.update(error_context(exc))
        show_traceback = exc.kind == ErrorKind.UNKNOWN
    payload.update(context)

    logger.error(
        message,
        exc_info=exc if show_traceback else None,
        extra={"extra": payload} if payload else None,
    )


def log_event(logger: logging.Logger, level: str, message: str, **context: Any) -> None:
    """Emit a structured log event with optional context payload."""
    log_fn = getattr(logger, level.lower(), logger.info)
    log_fn(message, extra={"extra": context} if context else None)
