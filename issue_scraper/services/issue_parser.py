"""
Heuristic workaround detection and summary generation for issues.
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from issue_scraper.models import Comment, Issue, Workaround
from issue_scraper.utils import get_logger

logger = get_logger("issue_parser")


@dataclass(frozen=True)
class WorkaroundPattern:
    keywords: tuple[str, ...]
    code_block_required: bool
    weight: float


WORKAROUND_PATTERNS = (
    WorkaroundPattern(("workaround", "work around", "temporary fix", "temp fix"), False, 1.0),
    WorkaroundPattern(("solution", "fix", "resolved", "solve"), False, 0.9),
    WorkaroundPattern(("try this", "you can", "here's how", "this works"), True, 0.8),
    WorkaroundPattern(("patch", "hotfix", "quick fix"), False, 0.9),
    WorkaroundPattern(("alternative", "instead", "use this"), False, 0.7),
)

STEP_INDICATORS = ("step", "first", "second", "third", "next", "then", "after", "finally")
ACTION_WORDS = (
    "install", "run", "execute", "change", "modify", "update",
    "replace", "add", "remove", "set", "configure",
)

EFFECTIVENESS_ORDER = {"confirmed": 3, "partial": 2, "suggested": 1}
AUTHOR_TYPE_ORDER = {"maintainer": 3, "contributor": 2, "user": 1}

CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```|`[^`]+`")
NUMBERED_LIST_RE = re.compile(r"\d+\.\s")

MAX_WORKAROUND_LENGTH = 500


class IssueParser:
    """Finds workaround comments and writes short issue summaries."""

    def __init__(self, patterns: tuple[WorkaroundPattern, ...] = WORKAROUND_PATTERNS):
        self.patterns = patterns

    def analyze_comments(self, comments: list[Comment]) -> list[Comment]:
        """Return copies of ``comments`` with ``is_workaround`` set."""
        analyzed = []
        for comment in comments:
            is_workaround = bool(comment.body.strip()) and self.is_workaround_comment(comment)
            analyzed.append(dataclasses.replace(comment, is_workaround=is_workaround))
        logger.debug(
            f"Flagged {sum(c.is_workaround for c in analyzed)} of {len(analyzed)} comments as workarounds"
        )
        return analyzed

    def extract_workarounds(self, comments: list[Comment]) -> list[Workaround]:
        """Build workarounds from flagged comments, best first.

        Ordered by effectiveness (confirmed, partial, suggested) and then by
        author authority (maintainer, contributor, user).
        """
        workarounds = [
            Workaround(
                description=self.extract_description(comment.body),
                author=comment.author,
                author_type=comment.author_type,
                source_comment_id=comment.id,
                effectiveness=self.determine_effectiveness(comment),
            )
            for comment in comments
            if comment.is_workaround and comment.body.strip()
        ]
        return sorted(
            workarounds,
            key=lambda w: (
                -EFFECTIVENESS_ORDER[w.effectiveness],
                -AUTHOR_TYPE_ORDER[w.author_type],
            ),
        )

    def is_workaround_comment(self, comment: Comment) -> bool:
        text = comment.body.lower()
        has_code_block = bool(CODE_BLOCK_RE.search(comment.body))

        for pattern in self.patterns:
            if any(keyword in text for keyword in pattern.keywords):
                if pattern.code_block_required and not has_code_block:
                    continue
                return True

        return (
            self._has_workaround_structure(text)
            or self._has_step_by_step_instructions(text)
            or (has_code_block and any(word in text for word in ACTION_WORDS))
        )

    @staticmethod
    def _has_workaround_structure(text: str) -> bool:
        return (
            any(marker in text for marker in ("step 1", "first,", "then,", "finally,"))
            or bool(NUMBERED_LIST_RE.search(text))
        )

    @staticmethod
    def _has_step_by_step_instructions(text: str) -> bool:
        return sum(indicator in text for indicator in STEP_INDICATORS) >= 2

    @staticmethod
    def determine_effectiveness(comment: Comment) -> str:
        text = comment.body.lower()
        if (
            any(marker in text for marker in ("confirmed", "tested", "verified"))
            or comment.author_type == "maintainer"
        ):
            return "confirmed"
        if any(marker in text for marker in ("partial", "workaround", "temporary")):
            return "partial"
        return "suggested"

    @staticmethod
    def extract_description(body: str) -> str:
        """Collapse whitespace and cap at 500 characters."""
        description = re.sub(r"\s+", " ", body.strip())
        if len(description) > MAX_WORKAROUND_LENGTH:
            description = description[: MAX_WORKAROUND_LENGTH - 3] + "..."
        return description

    def generate_summary(
        self,
        issue: Issue,
        max_length: int = 200,
        include_labels: bool = True,
        include_metrics: bool = True,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Build a short summary: description excerpt, labels and activity.

        Args:
            issue: Issue to summarize
            max_length: Summary cap, clamped to 50..1000
            include_labels: Add a "Tagged as" part
            include_metrics: Add comment/workaround counts and age
            now: Reference time for the age (defaults to now)

        Returns:
            Summary text no longer than ``max_length``
        """
        max_length = max(50, min(1000, max_length))
        parts: list[str] = []
        remaining = max_length

        labels = [label for label in issue.labels if label.strip()]
        if include_labels and labels:
            label_text = f"Tagged as: {', '.join(labels)}"
            parts.append(label_text)
            remaining -= len(label_text) + 2

        if include_metrics:
            metrics: list[str] = []
            if issue.comments:
                metrics.append(f"{len(issue.comments)} comments")
            if issue.workarounds:
                metrics.append(f"{len(issue.workarounds)} workarounds available")
            reference = now or datetime.now(timezone.utc)
            age_days = (reference - issue.created_at).days
            if 0 <= age_days < 10000:
                metrics.append(f"{age_days} days old")
            if metrics:
                activity_text = f"Activity: {', '.join(metrics)}"
                parts.append(activity_text)
                remaining -= len(activity_text) + 2

        if remaining > 20 and issue.description.strip():
            cleaned = re.sub(r"\s+", " ", issue.description.strip())
            excerpt = summarize_text(cleaned, max(remaining - 2, 20))
            if excerpt.strip():
                parts.insert(0, excerpt)

        summary = ". ".join(parts)
        if len(summary) > max_length:
            return summary[: max_length - 3] + "..."
        return summary or f"Issue #{issue.number}: {issue.title or 'No title available'}"


def summarize_text(text: str, max_length: int) -> str:
    """Cut at the last sentence end past half the limit, else at a word."""
    if len(text) <= max_length:
        return text

    truncated = text[:max_length]
    last_sentence_end = max(truncated.rfind("."), truncated.rfind("!"), truncated.rfind("?"))
    if last_sentence_end > max_length * 0.5:
        return truncated[: last_sentence_end + 1]

    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.7:
        return truncated[:last_space] + "..."
    return truncated + "..."
