"""Shared data models for issues, comments, workarounds and run results."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Literal, Optional

if TYPE_CHECKING:
    from issue_scraper.services.analyzer import AnalysisResult


AuthorType = Literal["maintainer", "contributor", "user"]
Effectiveness = Literal["confirmed", "suggested", "partial"]
IssueState = Literal["open", "closed"]

MAINTAINER_ASSOCIATIONS = frozenset({"OWNER", "MEMBER", "COLLABORATOR"})
CONTRIBUTOR_ASSOCIATIONS = frozenset({"CONTRIBUTOR"})

SYNTHESIZED_WORKAROUND_ID = -1


def author_type_from_association(association: Optional[str]) -> AuthorType:
    """Map GitHub's ``author_association`` code to an author type."""
    code = (association or "").upper()
    if code in MAINTAINER_ASSOCIATIONS:
        return "maintainer"
    if code in CONTRIBUTOR_ASSOCIATIONS:
        return "contributor"
    return "user"


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into aware UTC."""
    if not value:
        raise ValueError("missing timestamp")
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _login(user: Any) -> str:
    if isinstance(user, dict) and user.get("login"):
        return str(user["login"])
    return "unknown"


@dataclass
class Comment:
    id: int
    author: str
    author_type: AuthorType
    body: str
    created_at: datetime
    is_workaround: bool = False

    @classmethod
    def from_api(cls, record: dict[str, Any]) -> "Comment":
        """Build a comment from a GitHub API record.

        Raises:
            KeyError, TypeError, ValueError: On malformed records
        """
        return cls(
            id=int(record["id"]),
            author=_login(record.get("user")),
            author_type=author_type_from_association(record.get("author_association")),
            body=record.get("body") or "",
            created_at=parse_timestamp(record["created_at"]),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data


@dataclass
class Workaround:
    description: str
    author: str
    author_type: AuthorType
    source_comment_id: int
    effectiveness: Effectiveness = "suggested"

    @property
    def is_synthesized(self) -> bool:
        return self.source_comment_id == SYNTHESIZED_WORKAROUND_ID

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Issue:
    id: int
    number: int
    title: str
    description: str
    labels: list[str]
    state: IssueState
    created_at: datetime
    updated_at: datetime
    author: str
    url: str
    comments: list[Comment] = field(default_factory=list)
    relevance_score: float = 0.0
    summary: str = ""
    workarounds: list[Workaround] = field(default_factory=list)
    analysis: Optional["AnalysisResult"] = None

    @classmethod
    def from_api(cls, record: dict[str, Any]) -> "Issue":
        """Build an issue from a GitHub API record.

        Labels keep provider order with duplicates removed.

        Raises:
            KeyError, TypeError, ValueError: On malformed records
        """
        labels: list[str] = []
        for label in record.get("labels") or []:
            name = label.get("name") if isinstance(label, dict) else label
            if name and name not in labels:
                labels.append(str(name))

        state = record.get("state", "open")
        if state not in ("open", "closed"):
            raise ValueError(f"unexpected issue state '{state}'")

        return cls(
            id=int(record["id"]),
            number=int(record["number"]),
            title=record["title"] or "",
            description=record.get("body") or "",
            labels=labels,
            state=state,
            created_at=parse_timestamp(record["created_at"]),
            updated_at=parse_timestamp(record["updated_at"]),
            author=_login(record.get("user")),
            url=record.get("html_url") or "",
        )

    def copy(self) -> "Issue":
        """Deep copy used at pipeline phase handoffs."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "number": self.number,
            "title": self.title,
            "description": self.description,
            "labels": list(self.labels),
            "state": self.state,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "author": self.author,
            "url": self.url,
            "comments": [c.to_dict() for c in self.comments],
            "relevance_score": self.relevance_score,
            "summary": self.summary,
            "workarounds": [w.to_dict() for w in self.workarounds],
            "analysis": self.analysis.to_dict() if self.analysis else None,
        }


@dataclass(frozen=True)
class RateLimitInfo:
    limit: int
    remaining: int
    reset_at: datetime

    @classmethod
    def from_values(cls, limit: int, remaining: int, reset_epoch: float) -> "RateLimitInfo":
        limit = max(int(limit), 0)
        remaining = min(max(int(remaining), 0), limit)
        return cls(
            limit=limit,
            remaining=remaining,
            reset_at=datetime.fromtimestamp(float(reset_epoch), tz=timezone.utc),
        )

    @classmethod
    def from_headers(cls, headers: Any) -> Optional["RateLimitInfo"]:
        """Read ``x-ratelimit-*`` headers; returns None when any is missing."""
        try:
            return cls.from_values(
                headers["x-ratelimit-limit"],
                headers["x-ratelimit-remaining"],
                headers["x-ratelimit-reset"],
            )
        except (KeyError, TypeError, ValueError):
            return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_at": self.reset_at.isoformat(),
        }


@dataclass(frozen=True)
class ScrapingProgress:
    phase: Literal["fetching", "analyzing", "generating", "complete"]
    current: int
    total: int
    message: str


@dataclass
class ScrapingMetadata:
    total_issues_analyzed: int
    relevant_issues_found: int
    average_relevance_score: float
    workarounds_found: int
    analysis_method: str = "keyword"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ScrapingResult:
    """Result of a pipeline execution."""

    issues: list[Issue]
    report_path: str
    metadata: ScrapingMetadata
    completed_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "report_path": self.report_path,
            "metadata": self.metadata.to_dict(),
            "completed_at": self.completed_at,
            "issues": [
                {
                    "number": issue.number,
                    "title": issue.title,
                    "url": issue.url,
                    "relevance_score": issue.relevance_score,
                    "workarounds": len(issue.workarounds),
                }
                for issue in self.issues
            ],
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2)
