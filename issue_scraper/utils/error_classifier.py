"""Map raw exceptions to classified :class:`ScraperError` values.

Classification is a pure function of the exception, the context and an
optional clock reading: it performs no I/O and keeps no state, so calling it
twice on the same inputs yields structurally equal errors.
"""

from __future__ import annotations

import errno
import json
import math
from datetime import datetime, timezone
from typing import Optional

import requests

from issue_scraper.utils.errors import (
    ErrorContext,
    ErrorKind,
    ErrorSuggestion,
    ScraperError,
)

RETRYABLE_STATUS_CODES = frozenset({408, 429})
CONTEXT_LIMIT_MARKERS = ("context length", "maximum context", "token limit", "too many tokens")
FILE_SYSTEM_ERRNOS = {
    errno.ENOENT: "not_found",
    errno.EACCES: "permission",
    errno.EPERM: "permission",
    errno.ENOSPC: "no_space",
}


def classify(
    raw_error: BaseException,
    context: ErrorContext,
    *,
    now: Optional[float] = None,
) -> ScraperError:
    """Classify an exception into a :class:`ScraperError`.

    Args:
        raw_error: Any exception raised by an operation
        context: Where the operation ran
        now: Epoch seconds used to phrase the rate-limit wait in minutes;
            without it the hint names the absolute reset time

    Returns:
        The classified error. An existing ``ScraperError`` is returned as-is.
    """
    if isinstance(raw_error, ScraperError):
        return raw_error

    message = str(raw_error) or type(raw_error).__name__

    # requests' JSON errors subclass RequestException but carry no response
    is_json_error = isinstance(raw_error, requests.exceptions.InvalidJSONError)

    if isinstance(raw_error, requests.RequestException) and not is_json_error:
        response = raw_error.response
        if response is not None:
            return _classify_http(raw_error, response, context, now)
        return _network_error(raw_error, context, message)

    if isinstance(raw_error, (ConnectionError, TimeoutError)) and not is_json_error:
        return _network_error(raw_error, context, message)

    if context.service == "analyzer" and _mentions_context_limit(message):
        return _analysis_context_error(raw_error, context, message)

    if isinstance(raw_error, OSError) and raw_error.errno in FILE_SYSTEM_ERRNOS:
        return _file_system_error(raw_error, context)

    if context.service == "analyzer" and isinstance(
        raw_error,
        (json.JSONDecodeError, requests.exceptions.InvalidJSONError, ValueError, KeyError, TypeError),
    ):
        return ScraperError(
            ErrorKind.ANALYSIS_RESPONSE,
            f"Invalid analysis response: {message}",
            context=context,
            suggestions=[
                ErrorSuggestion(
                    "Retry the analysis",
                    "The model returned malformed JSON; a retry usually succeeds",
                    "high",
                ),
                ErrorSuggestion(
                    "Try a different model",
                    "Some models follow JSON instructions more reliably",
                    "medium",
                ),
            ],
            retryable=True,
            cause=raw_error,
        )

    return ScraperError(
        ErrorKind.UNKNOWN,
        f"Unexpected error: {message}",
        context=context,
        suggestions=[
            ErrorSuggestion(
                "Retry the operation",
                "The failure may be transient",
                "medium",
            ),
            ErrorSuggestion(
                "Enable debug logging",
                "Run with LOG_LEVEL=DEBUG and report the error if it persists",
                "low",
            ),
        ],
        retryable=False,
        cause=raw_error,
    )


def _response_message(response: requests.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        if isinstance(body.get("message"), str):
            return body["message"]
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    text = (response.text or "").strip()
    return text[:500] if text else fallback


def _mentions_context_limit(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in CONTEXT_LIMIT_MARKERS)


def _classify_http(
    raw_error: requests.RequestException,
    response: requests.Response,
    context: ErrorContext,
    now: Optional[float],
) -> ScraperError:
    status = response.status_code
    message = _response_message(response, str(raw_error))
    repository = context.repository or "the repository"

    if status == 401:
        return ScraperError(
            ErrorKind.AUTHENTICATION,
            f"Authentication failed: {message}",
            context=context,
            suggestions=[
                ErrorSuggestion(
                    "Check your token",
                    "Verify that GITHUB_TOKEN (or the analysis API key) is set and valid",
                    "high",
                ),
                ErrorSuggestion(
                    "Regenerate the token",
                    "The token may have expired; create a new one in your GitHub settings",
                    "medium",
                ),
                ErrorSuggestion(
                    "Check token scopes",
                    "Private repositories need the 'repo' scope; public ones need 'public_repo'",
                    "low",
                ),
            ],
            retryable=False,
            cause=raw_error,
        )

    if context.service == "analyzer":
        analysis_error = _classify_analysis_http(raw_error, status, message, context)
        if analysis_error is not None:
            return analysis_error

    if status == 403:
        remaining = response.headers.get("x-ratelimit-remaining")
        if remaining == "0" or "rate limit" in message.lower():
            return _rate_limit_error(raw_error, response, context, message, now)
        return ScraperError(
            ErrorKind.REPOSITORY_ACCESS,
            f"Access denied to {repository}: {message}",
            context=context,
            suggestions=[
                ErrorSuggestion(
                    "Check repository permissions",
                    "Make sure your token has access to this repository",
                    "high",
                ),
                ErrorSuggestion(
                    "Check token scopes",
                    "Private repositories need a token with the 'repo' scope",
                    "medium",
                ),
            ],
            retryable=False,
            cause=raw_error,
        )

    if status == 404:
        return ScraperError(
            ErrorKind.REPOSITORY_ACCESS,
            f"Repository not found: {repository}",
            context=context,
            suggestions=[
                ErrorSuggestion(
                    "Check the repository name",
                    "Use the owner/repository format, e.g. 'microsoft/vscode'",
                    "high",
                ),
                ErrorSuggestion(
                    "Check repository visibility",
                    "Private repositories are reported as missing without access",
                    "medium",
                ),
            ],
            retryable=False,
            cause=raw_error,
        )

    if status == 422:
        return ScraperError(
            ErrorKind.VALIDATION,
            f"Request rejected by the API: {message}",
            context=context,
            suggestions=[
                ErrorSuggestion(
                    "Check the search parameters",
                    "The product area or filters may contain unsupported syntax",
                    "high",
                ),
                ErrorSuggestion(
                    "Simplify the query",
                    "Use plain keywords without special characters",
                    "medium",
                ),
            ],
            retryable=False,
            cause=raw_error,
        )

    if status >= 500 or status in RETRYABLE_STATUS_CODES:
        return ScraperError(
            ErrorKind.NETWORK,
            f"Service error (HTTP {status}): {message}",
            context=context,
            suggestions=[
                ErrorSuggestion(
                    "Wait and retry",
                    "The service is temporarily unavailable; try again in a few minutes",
                    "high",
                ),
                ErrorSuggestion(
                    "Check GitHub status",
                    "See https://www.githubstatus.com for ongoing incidents",
                    "low",
                ),
            ],
            retryable=True,
            cause=raw_error,
        )

    return ScraperError(
        ErrorKind.UNKNOWN,
        f"Unexpected HTTP {status} response: {message}",
        context=context,
        suggestions=[
            ErrorSuggestion(
                "Retry the operation",
                "The failure may be transient",
                "medium",
            ),
        ],
        retryable=False,
        cause=raw_error,
    )


def _classify_analysis_http(
    raw_error: requests.RequestException,
    status: int,
    message: str,
    context: ErrorContext,
) -> Optional[ScraperError]:
    if _mentions_context_limit(message) or (
        status == 400 and any(word in message.lower() for word in ("context", "token"))
    ):
        return _analysis_context_error(raw_error, context, message)

    if status in (400, 404, 429):
        not_found = status == 404
        return ScraperError(
            ErrorKind.ANALYSIS_SERVICE,
            f"Analysis service error (HTTP {status}): {message}",
            context=context,
            suggestions=[
                ErrorSuggestion(
                    "Check the model name" if not_found else "Wait and retry",
                    "Make sure the configured model is installed and loaded"
                    if not_found
                    else "The analysis service is busy or rejected the request",
                    "high",
                ),
                ErrorSuggestion(
                    "Check the service URL",
                    "Verify LLM_API_URL points at a running service",
                    "medium",
                ),
            ],
            retryable=not not_found,
            cause=raw_error,
        )
    return None


def _analysis_context_error(
    raw_error: BaseException, context: ErrorContext, message: str
) -> ScraperError:
    return ScraperError(
        ErrorKind.ANALYSIS_CONTEXT,
        f"Issue content exceeds the model context window: {message}",
        context=context,
        suggestions=[
            ErrorSuggestion(
                "Use a model with a larger context window",
                "Configure LLM_MODEL with a model that accepts longer prompts",
                "high",
            ),
            ErrorSuggestion(
                "Reduce the issue count",
                "Fewer issues per run keeps batches smaller",
                "medium",
            ),
        ],
        retryable=True,
        cause=raw_error,
    )


def _rate_limit_error(
    raw_error: requests.RequestException,
    response: requests.Response,
    context: ErrorContext,
    message: str,
    now: Optional[float],
) -> ScraperError:
    suggestions: list[ErrorSuggestion] = []
    reset = response.headers.get("x-ratelimit-reset")
    if reset is not None:
        try:
            reset_at = float(reset)
        except ValueError:
            reset_at = None
        if reset_at is not None:
            if now is None:
                reset_time = datetime.fromtimestamp(reset_at, tz=timezone.utc)
                wait_hint = f"The rate limit resets at {reset_time:%Y-%m-%d %H:%M} UTC"
            else:
                minutes = max(0, math.ceil((reset_at - now) / 60))
                wait_hint = f"The rate limit resets in about {minutes} minute(s)"
            suggestions.append(
                ErrorSuggestion("Wait for the rate limit reset", wait_hint, "high")
            )
    suggestions.extend(
        [
            ErrorSuggestion(
                "Use an authenticated token",
                "Authenticated requests have a much higher hourly limit",
                "high" if reset is None else "medium",
            ),
            ErrorSuggestion(
                "Reduce the issue count",
                "Scrape fewer issues per run to use fewer requests",
                "low",
            ),
        ]
    )
    return ScraperError(
        ErrorKind.RATE_LIMIT,
        f"GitHub API rate limit exceeded: {message}",
        context=context,
        suggestions=suggestions,
        retryable=True,
        cause=raw_error,
    )


def _network_error(raw_error: BaseException, context: ErrorContext, message: str) -> ScraperError:
    if context.service == "analyzer":
        return ScraperError(
            ErrorKind.ANALYSIS_SERVICE,
            f"Cannot reach the analysis service: {message}",
            context=context,
            suggestions=[
                ErrorSuggestion(
                    "Start the analysis service",
                    "Make sure the local model server (e.g. Jan) is running",
                    "high",
                ),
                ErrorSuggestion(
                    "Check the service URL",
                    "Verify LLM_API_URL and any proxy settings",
                    "medium",
                ),
            ],
            retryable=True,
            cause=raw_error,
        )
    return ScraperError(
        ErrorKind.NETWORK,
        f"Network error: {message}",
        context=context,
        suggestions=[
            ErrorSuggestion(
                "Check your connection",
                "Make sure you are online and can reach api.github.com",
                "high",
            ),
            ErrorSuggestion(
                "Check proxy settings",
                "Corporate proxies may block API requests",
                "medium",
            ),
            ErrorSuggestion(
                "Retry later",
                "The connection failure may be temporary",
                "low",
            ),
        ],
        retryable=True,
        cause=raw_error,
    )


def _file_system_error(raw_error: OSError, context: ErrorContext) -> ScraperError:
    reason = FILE_SYSTEM_ERRNOS[raw_error.errno]
    target = raw_error.filename or context.file_path or "the output path"
    if reason == "not_found":
        message = f"Path not found: {target}"
        first = ErrorSuggestion(
            "Check the output path",
            "Make sure the output directory exists or can be created",
            "high",
        )
    elif reason == "permission":
        message = f"Permission denied: {target}"
        first = ErrorSuggestion(
            "Check permissions",
            "Make sure you can write to the output directory",
            "high",
        )
    else:
        message = f"No space left on device while writing {target}"
        first = ErrorSuggestion(
            "Free up disk space",
            "Remove old reports or choose another output directory",
            "high",
        )
    return ScraperError(
        ErrorKind.FILE_SYSTEM,
        message,
        context=context,
        suggestions=[
            first,
            ErrorSuggestion(
                "Use a different output path",
                "Pass --output with a writable directory",
                "medium",
            ),
        ],
        retryable=False,
        cause=raw_error,
    )
