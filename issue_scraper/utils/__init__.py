"""
Utility modules for the GitHub issue scraper.
"""

from .logging_config import setup_logging, get_logger
from .file_utils import sanitize_filename, ensure_dir, slugify
from .errors import (
    ErrorContext,
    ErrorKind,
    ErrorSuggestion,
    ScraperError,
    format_error,
)
from .error_classifier import classify
from .retry import execute_with_retry

__all__ = [
    "setup_logging",
    "get_logger",
    "sanitize_filename",
    "ensure_dir",
    "slugify",
    "ErrorContext",
    "ErrorKind",
    "ErrorSuggestion",
    "ScraperError",
    "format_error",
    "classify",
    "execute_with_retry",
]
