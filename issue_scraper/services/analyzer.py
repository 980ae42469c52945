"""
Issue analyzers: score an issue against a product area and describe workarounds.

Two implementations share the :class:`Analyzer` contract:

- :class:`KeywordAnalyzer` scores with weighted keyword matching, offline.
- :class:`LLMAnalyzer` asks a chat model for a JSON verdict.

The pipeline treats any exception from ``analyze`` as an item-local failure
and substitutes :meth:`AnalysisResult.fallback`.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Optional

from issue_scraper.models import Comment, Issue
from issue_scraper.services.issue_parser import IssueParser
from issue_scraper.services.llm_client import LLMClient, create_llm_client
from issue_scraper.services.relevance_filter import RelevanceFilter
from issue_scraper.utils import get_logger
from issue_scraper.utils.errors import ErrorContext
from issue_scraper.utils.file_utils import truncate_text
from issue_scraper.utils.retry import execute_with_retry

FALLBACK_SCORE = 50
FALLBACK_REASONING = "analysis failed, manual review required"
DEFAULT_BATCH_SIZE = 5

WORKAROUND_COMPLEXITIES = ("simple", "moderate", "complex", "unknown")
WORKAROUND_TYPES = ("usage-level", "code-level", "architecture-level", "unknown")
IMPLEMENTATION_DIFFICULTIES = ("easy", "medium", "hard", "unknown")

CODE_FENCE_RE = re.compile(r"^```[\w-]*\s*\n?|\n?```\s*$")


@dataclass
class AnalysisResult:
    """Analyzer verdict for one issue."""

    relevance_score: int
    relevance_reasoning: str
    has_workaround: bool
    workaround_complexity: str = "unknown"
    workaround_type: str = "unknown"
    workaround_description: Optional[str] = None
    implementation_difficulty: str = "unknown"
    summary: str = ""

    @classmethod
    def fallback(cls, issue: Issue) -> "AnalysisResult":
        """Neutral result used when analysis of an issue fails."""
        return cls(
            relevance_score=FALLBACK_SCORE,
            relevance_reasoning=FALLBACK_REASONING,
            has_workaround=False,
            summary=f"Issue #{issue.number}: {issue.title}",
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _normalize_enum(value: Any, allowed: tuple[str, ...], default: str = "unknown") -> str:
    normalized = str(value).strip().lower() if value is not None else ""
    return normalized if normalized in allowed else default


def clamp_score(value: Any) -> int:
    """Coerce to an int in [0, 100]; non-numeric values become 0."""
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0
    if score != score:  # NaN
        return 0
    return int(round(max(0.0, min(100.0, score))))


class Analyzer(ABC):
    """Scores an issue for a product area."""

    batch_size: int = DEFAULT_BATCH_SIZE

    @property
    @abstractmethod
    def name(self) -> str:
        """Analyzer name recorded in run metadata."""
        raise NotImplementedError

    @abstractmethod
    def analyze(self, issue: Issue, product_area: str) -> AnalysisResult:
        """Analyze one issue.

        Raises:
            Exception: Any failure; callers substitute a fallback result
        """
        raise NotImplementedError


class KeywordAnalyzer(Analyzer):
    """Offline analyzer built on weighted keyword matching."""

    def __init__(
        self,
        relevance_filter: Optional[RelevanceFilter] = None,
        issue_parser: Optional[IssueParser] = None,
        now: Optional[datetime] = None,
    ):
        self.relevance_filter = relevance_filter or RelevanceFilter()
        self.issue_parser = issue_parser or IssueParser()
        self._now = now

    @property
    def name(self) -> str:
        return "keyword"

    def analyze(self, issue: Issue, product_area: str) -> AnalysisResult:
        score = self.relevance_filter.score_relevance(issue, product_area, now=self._now)
        keywords = self.relevance_filter.extract_keywords(product_area)
        matched = [
            m.keyword
            for m in self.relevance_filter.find_keyword_matches(
                f"{issue.title} {' '.join(issue.labels)} {issue.description}", keywords
            )
        ]
        if matched:
            reasoning = f"Matched keywords: {', '.join(matched)}"
        else:
            reasoning = "No product-area keywords matched; score reflects recent activity only"

        comments = self.issue_parser.analyze_comments(issue.comments)
        return AnalysisResult(
            relevance_score=clamp_score(score * 100),
            relevance_reasoning=reasoning,
            has_workaround=any(c.is_workaround for c in comments),
            summary=self.issue_parser.generate_summary(issue, now=self._now),
        )


SYSTEM_PROMPT = (
    "You are an assistant that triages GitHub issues for developers. "
    "You always answer with a single valid JSON object and nothing else."
)

ANALYSIS_INSTRUCTIONS = """Analyze this GitHub issue and respond with a JSON object of this shape:

{{
  "relevanceScore": 55,
  "relevanceReasoning": "Why this issue is or is not relevant to the product area",
  "hasWorkaround": true,
  "workaroundComplexity": "simple|moderate|complex|unknown",
  "workaroundType": "usage-level|code-level|architecture-level|unknown",
  "workaroundDescription": "Brief description of the workaround if available",
  "implementationDifficulty": "easy|medium|hard|unknown",
  "summary": "Concise summary of the issue and its impact"
}}

Guidelines:
- relevanceScore: 0-100, how relevant the issue is to "{product_area}"
- relevanceReasoning: 1-2 sentences
- hasWorkaround: whether the issue or its comments describe a workaround
- workaroundType: "usage-level" means changing how the feature is used, "code-level" means
  changes in the consuming application, "architecture-level" means changes to the library itself
- summary: 1-2 sentences about the core problem and its impact

Respond ONLY with valid JSON, no text outside the JSON object."""


class LLMAnalyzer(Analyzer):
    """Analyzer that asks a chat model for a structured verdict."""

    def __init__(
        self,
        llm_client: LLMClient,
        max_tokens: int = 4000,
        max_retries: int = 2,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retry_delays: tuple[float, ...] = (1.0, 2.0, 4.0),
    ):
        """
        Initialize the analyzer.

        Args:
            llm_client: Chat backend
            max_tokens: Response token cap; also sizes the prompt budget
            max_retries: Retries per issue for retryable analysis failures
            batch_size: Preferred number of concurrent analyses
            retry_delays: Delay schedule between retries
        """
        self.llm_client = llm_client
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.batch_size = batch_size
        self.retry_delays = retry_delays
        self.logger = get_logger(f"analyzer.{llm_client.name}")

    @property
    def name(self) -> str:
        return f"{self.llm_client.name}:{self.llm_client.model}"

    def analyze(self, issue: Issue, product_area: str) -> AnalysisResult:
        context = ErrorContext(
            operation=f"analyzing issue #{issue.number}",
            product_area=product_area,
            issue_id=issue.number,
            service="analyzer",
        )
        return execute_with_retry(
            lambda: self._analyze_once(issue, product_area),
            context,
            max_attempts=self.max_retries,
            delays=self.retry_delays,
        )

    def _analyze_once(self, issue: Issue, product_area: str) -> AnalysisResult:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": self.build_prompt(issue, product_area)},
        ]
        result = self.llm_client.chat(messages, response_format="json", max_tokens=self.max_tokens)
        if result.finish_reason == "length":
            self.logger.warning(f"Response for issue #{issue.number} was cut off at the token limit")
        return self.parse_response(result.content)

    def build_prompt(self, issue: Issue, product_area: str) -> str:
        """Render the analysis prompt, trimming description and comments to budget."""
        available = self.max_tokens * 3 - 1500
        description = truncate_text(
            issue.description or "No description provided",
            int(min(800, max(available * 0.4, 200))),
        )
        comments = self.prepare_comments(issue.comments, int(min(1200, max(available * 0.6, 300))))

        header = "\n".join(
            [
                "GitHub Issue Analysis Request",
                "",
                f"Product Area: {product_area}",
                "",
                f"Issue #{issue.number}: {issue.title}",
                f"Labels: {', '.join(issue.labels) or 'None'}",
                f"State: {issue.state}",
                f"Created: {issue.created_at.isoformat()}",
                f"Updated: {issue.updated_at.isoformat()}",
                f"Author: {issue.author}",
                "",
                f"Description: {description}",
                "",
                f"Comments: {comments}",
                "",
            ]
        )
        return header + ANALYSIS_INSTRUCTIONS.format(product_area=product_area)

    @staticmethod
    def prepare_comments(comments: list[Comment], max_chars: int) -> str:
        """Maintainer comments first, then the rest, until the budget runs out."""
        if not comments:
            return "No comments"

        authority = {"maintainer": 0, "contributor": 1, "user": 2}
        ordered = sorted(comments, key=lambda c: authority.get(c.author_type, 3))

        lines: list[str] = []
        used = 0
        for comment in ordered:
            body = re.sub(r"\s+", " ", comment.body.strip())
            line = f"\n- {comment.author} ({comment.author_type}): {truncate_text(body, 300)}"
            if used + len(line) > max_chars:
                lines.append(f"\n- ... {len(ordered) - len(lines)} more comment(s) omitted")
                break
            lines.append(line)
            used += len(line)
        return "".join(lines)

    @staticmethod
    def parse_response(content: str) -> AnalysisResult:
        """Parse and normalize a model response.

        Raises:
            ValueError: If the content is not a JSON object
        """
        cleaned = CODE_FENCE_RE.sub("", content.strip()).strip()
        if cleaned.startswith("json\n"):
            cleaned = cleaned[len("json\n"):]

        data = json.loads(cleaned)
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

        description = data.get("workaroundDescription")
        return AnalysisResult(
            relevance_score=clamp_score(data.get("relevanceScore")),
            relevance_reasoning=str(data.get("relevanceReasoning") or "No reasoning provided"),
            has_workaround=bool(data.get("hasWorkaround")),
            workaround_complexity=_normalize_enum(data.get("workaroundComplexity"), WORKAROUND_COMPLEXITIES),
            workaround_type=_normalize_enum(data.get("workaroundType"), WORKAROUND_TYPES),
            workaround_description=str(description) if description else None,
            implementation_difficulty=_normalize_enum(
                data.get("implementationDifficulty"), IMPLEMENTATION_DIFFICULTIES
            ),
            summary=str(data.get("summary") or "No summary provided"),
        )


def create_analyzer(
    backend: str = "keyword",
    model: str = "",
    url: str = "",
    api_key: str = "",
    timeout: int = 120,
    batch_size: int = 0,
) -> Analyzer:
    """Factory function to create an analyzer.

    Args:
        backend: "keyword" or an LLM backend accepted by ``create_llm_client``
        model: Model name for LLM backends
        url: Service URL for LLM backends
        api_key: API key for LLM backends
        timeout: LLM request timeout in seconds
        batch_size: Preferred batch size (0 keeps the analyzer default)

    Returns:
        Analyzer instance

    Raises:
        ValueError: If backend type is unknown
    """
    if backend == "keyword":
        analyzer: Analyzer = KeywordAnalyzer()
    else:
        llm_client = create_llm_client(
            backend=backend,
            model=model,
            url=url,
            api_key=api_key,
            timeout=timeout,
        )
        analyzer = LLMAnalyzer(llm_client)

    if batch_size > 0:
        analyzer.batch_size = batch_size
    return analyzer
