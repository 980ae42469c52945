"""Orchestration-level retry with a fixed progressive delay schedule."""

from __future__ import annotations

import time
import logging
from typing import Callable, Iterable, Optional, TypeVar

from issue_scraper.utils.error_classifier import classify
from issue_scraper.utils.errors import ErrorContext, ErrorKind, ScraperError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRY_DELAYS: tuple[float, ...] = (1.0, 2.0, 4.0)
DEFAULT_MAX_ATTEMPTS = 3


def retry_delay(attempt: int, delays: tuple[float, ...] = RETRY_DELAYS) -> float:
    """Delay before the retry that follows ``attempt`` (0-based)."""
    return delays[min(attempt, len(delays) - 1)]


def execute_with_retry(
    operation: Callable[[], T],
    context: ErrorContext,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    *,
    retry_kinds: Iterable[ErrorKind] = (),
    delays: tuple[float, ...] = RETRY_DELAYS,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Optional[Callable[[ScraperError, int, float], None]] = None,
) -> T:
    """Run ``operation``, retrying classified retryable failures.

    Attempts run from 0 to ``max_attempts`` inclusive, so an operation that
    always fails is called ``max_attempts + 1`` times.

    Args:
        operation: Zero-argument callable to run
        context: Context attached to classified errors
        max_attempts: Number of retries after the first call
        retry_kinds: Error kinds retried here even when not marked retryable
        delays: Delay schedule in seconds; the last entry repeats
        sleep: Sleep function (injectable for tests)
        on_retry: Optional callback invoked as ``on_retry(error, attempt, delay)``

    Returns:
        The operation's return value

    Raises:
        ScraperError: The classified error from the final attempt, or the
            first non-retryable one.
    """
    if max_attempts < 0:
        raise ValueError(f"max_attempts must be non-negative, got {max_attempts}")
    if not delays:
        raise ValueError("delays must contain at least one entry")
    extra_kinds = frozenset(retry_kinds)

    attempt = 0
    while True:
        try:
            return operation()
        except Exception as exc:
            error = classify(exc, context)
            should_retry = error.retryable or error.kind in extra_kinds

            if not should_retry or attempt >= max_attempts:
                if error is exc:
                    raise
                raise error from exc

            delay = retry_delay(attempt, delays)
            logger.warning(
                "Attempt %s/%s failed for %s: %s. Retrying in %.2fs",
                attempt + 1,
                max_attempts + 1,
                context.operation,
                error.message,
                delay,
            )
            if on_retry:
                on_retry(error, attempt, delay)
            sleep(delay)
            attempt += 1
