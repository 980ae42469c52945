"""Error taxonomy shared by every layer of the scraper."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Closed set of failure categories."""

    AUTHENTICATION = "AUTHENTICATION"
    NETWORK = "NETWORK"
    RATE_LIMIT = "RATE_LIMIT"
    REPOSITORY_ACCESS = "REPOSITORY_ACCESS"
    VALIDATION = "VALIDATION"
    PARSING = "PARSING"
    FILE_SYSTEM = "FILE_SYSTEM"
    EMPTY_RESULTS = "EMPTY_RESULTS"
    ANALYSIS_SERVICE = "ANALYSIS_SERVICE"
    ANALYSIS_RESPONSE = "ANALYSIS_RESPONSE"
    ANALYSIS_CONTEXT = "ANALYSIS_CONTEXT"
    UNKNOWN = "UNKNOWN"


PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


@dataclass(frozen=True)
class ErrorSuggestion:
    """A ranked remediation hint shown to the user."""

    action: str
    description: str
    priority: str = "medium"  # high, medium, low

    def to_dict(self) -> dict[str, str]:
        return {
            "action": self.action,
            "description": self.description,
            "priority": self.priority,
        }


@dataclass
class ErrorContext:
    """Where an error happened.

    ``service`` is ``"github"`` for provider calls and ``"analyzer"`` for
    analysis backends; the classifier uses it to pick the analysis-specific
    categories.
    """

    operation: str
    repository: Optional[str] = None
    product_area: Optional[str] = None
    issue_id: Optional[int] = None
    file_path: Optional[str] = None
    service: str = "github"
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"operation": self.operation, "service": self.service}
        for key in ("repository", "product_area", "issue_id", "file_path"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.extra:
            data["extra"] = dict(self.extra)
        return data


class ScraperError(Exception):
    """Classified failure carrying a kind, context and remediation hints."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        context: ErrorContext,
        suggestions: Optional[list[ErrorSuggestion]] = None,
        retryable: bool = False,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.context = context
        self.suggestions = list(suggestions or [])
        self.retryable = retryable
        self.cause = cause
        super().__init__(self.message)

    def sorted_suggestions(self) -> list[ErrorSuggestion]:
        """Suggestions ordered high > medium > low, stable within a priority."""
        return sorted(
            self.suggestions, key=lambda s: PRIORITY_ORDER.get(s.priority, len(PRIORITY_ORDER))
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context.to_dict(),
            "suggestions": [s.to_dict() for s in self.suggestions],
            "cause": type(self.cause).__name__ if self.cause is not None else None,
        }

    def __str__(self) -> str:
        parts = [self.message, f"[kind={self.kind.value}]"]
        if self.context.operation:
            parts.append(f"[operation={self.context.operation}]")
        return " ".join(parts)


def validation_error(
    message: str,
    context: ErrorContext,
    suggestions: Optional[list[ErrorSuggestion]] = None,
) -> ScraperError:
    """Build a VALIDATION error for bad user or configuration input."""
    return ScraperError(
        ErrorKind.VALIDATION,
        message,
        context=context,
        suggestions=suggestions
        or [
            ErrorSuggestion(
                "Check your input",
                "Review the provided parameters and correct any invalid values",
                "high",
            )
        ],
        retryable=False,
    )


def parsing_error(cause: BaseException, context: ErrorContext) -> ScraperError:
    """Build a PARSING error for a provider record that could not be read."""
    return ScraperError(
        ErrorKind.PARSING,
        f"Failed to parse response data: {cause}",
        context=context,
        suggestions=[
            ErrorSuggestion(
                "Retry later",
                "The API may have returned malformed data; the next request may succeed",
                "medium",
            ),
            ErrorSuggestion(
                "Report the record",
                "If this keeps happening for the same issue, report it with the issue number",
                "low",
            ),
        ],
        retryable=False,
        cause=cause,
    )


def empty_results_error(context: ErrorContext, min_relevance_score: float) -> ScraperError:
    """Build the EMPTY_RESULTS error raised when nothing passes filtering."""
    return ScraperError(
        ErrorKind.EMPTY_RESULTS,
        f"No issues met the minimum relevance score of {min_relevance_score}",
        context=context,
        suggestions=[
            ErrorSuggestion(
                "Lower the relevance threshold",
                f"Try a minimum relevance score below {min_relevance_score}",
                "high",
            ),
            ErrorSuggestion(
                "Broaden the product area",
                "Use fewer or more general keywords for the product area",
                "medium",
            ),
            ErrorSuggestion(
                "Increase the issue limit",
                "Raise the maximum number of issues so more candidates are scored",
                "low",
            ),
        ],
        retryable=False,
    )


def format_error(error: ScraperError, include_suggestions: bool = True) -> str:
    """Render an error for terminal output.

    Args:
        error: Classified error
        include_suggestions: Whether to list remediation hints

    Returns:
        Multi-line text: message, operation context, then suggestions
        ordered by priority.
    """
    lines = [f"Error: {error.message}"]

    operation = error.context.operation
    if error.context.repository:
        operation = f"{operation} (repository: {error.context.repository})"
    if operation:
        lines.append(f"Context: {operation}")

    if include_suggestions and error.suggestions:
        lines.append("")
        lines.append("Suggestions:")
        for index, suggestion in enumerate(error.sorted_suggestions(), start=1):
            lines.append(
                f"  {index}. [{suggestion.priority}] {suggestion.action}: {suggestion.description}"
            )

    return "\n".join(lines)
