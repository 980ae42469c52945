"""
Keyword relevance scoring and the threshold/rank/truncate filter.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from issue_scraper.models import Issue

KEYWORD_SPLIT_RE = re.compile(r"[\s,;|&\-_]+")
FUZZY_THRESHOLD = 0.7

STOP_WORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "has",
    "he", "in", "is", "it", "its", "of", "on", "that", "the", "to", "was",
    "will", "with", "or", "but", "not", "this", "have", "had", "what",
    "when", "where", "who", "which", "why", "how",
})

# (max days since update, score)
ACTIVITY_BUCKETS = ((7, 1.0), (30, 0.8), (90, 0.6), (180, 0.4), (365, 0.2))
STALE_ACTIVITY_SCORE = 0.1


@dataclass(frozen=True)
class RelevanceWeights:
    title: float = 0.4
    labels: float = 0.3
    description: float = 0.2
    activity: float = 0.1


@dataclass
class KeywordMatch:
    keyword: str
    matches: float = 0.0
    positions: list[int] = field(default_factory=list)


def filter_and_rank(issues: list[Issue], min_score: float, max_results: int) -> list[Issue]:
    """
    Keep issues scoring at least ``min_score``, best first, at most ``max_results``.

    The sort is stable: equal scores keep their input order.
    """
    kept = [issue for issue in issues if issue.relevance_score >= min_score]
    ranked = sorted(kept, key=lambda issue: issue.relevance_score, reverse=True)
    return ranked[: max(max_results, 0)]


def levenshtein_distance(a: str, b: str) -> int:
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    current[j - 1] + 1,
                    previous[j] + 1,
                    previous[j - 1] + (char_a != char_b),
                )
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1 - levenshtein_distance(a, b) / longest


class RelevanceFilter:
    """Scores issues against a free-text product area."""

    def __init__(self, weights: Optional[RelevanceWeights] = None, fuzzy_threshold: float = FUZZY_THRESHOLD):
        self.weights = weights or RelevanceWeights()
        self.fuzzy_threshold = fuzzy_threshold

    @staticmethod
    def extract_keywords(product_area: str) -> list[str]:
        """Lowercased, de-duplicated keywords longer than two characters."""
        keywords: list[str] = []
        for word in KEYWORD_SPLIT_RE.split(product_area.lower()):
            word = word.strip()
            if len(word) > 2 and word not in STOP_WORDS and word not in keywords:
                keywords.append(word)
        return keywords

    def score_relevance(self, issue: Issue, product_area: str, now: Optional[datetime] = None) -> float:
        """
        Weighted relevance in [0, 1], rounded to 2 decimals.

        Args:
            issue: Issue to score
            product_area: Product-area query
            now: Reference time for the activity component

        Returns:
            Score combining title, labels, description and recency
        """
        keywords = self.extract_keywords(product_area)
        total = (
            self.text_score(issue.title, keywords) * self.weights.title
            + self.text_score(" ".join(issue.labels), keywords) * self.weights.labels
            + self.text_score(issue.description, keywords) * self.weights.description
            + self.activity_score(issue, now) * self.weights.activity
        )
        return round(total, 2)

    def fuzzy_match(self, text: str, keyword: str) -> float:
        text = text.lower()
        keyword = keyword.lower()
        if keyword in text:
            return 1.0
        score = similarity(text, keyword)
        return score if score >= self.fuzzy_threshold else 0.0

    def find_keyword_matches(self, text: str, keywords: list[str]) -> list[KeywordMatch]:
        normalized = text.lower()
        matches: list[KeywordMatch] = []

        for keyword in keywords:
            match = KeywordMatch(keyword)
            start = normalized.find(keyword)
            while start != -1:
                match.matches += 1
                match.positions.append(start)
                start = normalized.find(keyword, start + len(keyword))

            if not match.positions:
                for index, word in enumerate(normalized.split()):
                    score = self.fuzzy_match(word, keyword)
                    if score >= self.fuzzy_threshold:
                        match.matches += score
                        match.positions.append(index)

            if match.matches > 0:
                matches.append(match)

        return matches

    def text_score(self, text: str, keywords: list[str]) -> float:
        """Keyword coverage (70%) blended with match density (30%)."""
        if not text or not keywords:
            return 0.0
        matches = self.find_keyword_matches(text, keywords)
        if not matches:
            return 0.0

        coverage = len(matches) / len(keywords)
        word_count = max(len(text.split()), 1)
        density = min(sum(m.matches for m in matches) / word_count, 1.0)
        return coverage * 0.7 + density * 0.3

    @staticmethod
    def activity_score(issue: Issue, now: Optional[datetime] = None) -> float:
        reference = now or datetime.now(timezone.utc)
        days = (reference - issue.updated_at).total_seconds() / 86400
        for max_days, score in ACTIVITY_BUCKETS:
            if days <= max_days:
                return score
        return STALE_ACTIVITY_SCORE
