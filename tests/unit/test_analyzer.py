"""Unit tests for issue analyzers."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from issue_scraper.services.analyzer import (
    FALLBACK_REASONING,
    AnalysisResult,
    KeywordAnalyzer,
    LLMAnalyzer,
    clamp_score,
    create_analyzer,
)
from issue_scraper.services.llm_client import LLMResult
from issue_scraper.utils.errors import ErrorKind, ScraperError

VALID_RESPONSE = """{
  "relevanceScore": 82,
  "relevanceReasoning": "Directly about login failures",
  "hasWorkaround": true,
  "workaroundComplexity": "Simple",
  "workaroundType": "usage-level",
  "workaroundDescription": "Sign out and back in",
  "implementationDifficulty": "easy",
  "summary": "SSO login loops after update"
}"""


@pytest.fixture
def llm_client():
    client = MagicMock()
    client.name = "jan"
    client.model = "llama3.2-3b"
    client.chat.return_value = LLMResult(content=VALID_RESPONSE, model="llama3.2-3b", finish_reason="stop")
    return client


@pytest.fixture
def llm_analyzer(llm_client):
    return LLMAnalyzer(llm_client, retry_delays=(0.0,))


# ── Helpers ──────────────────────────────────────────────────────────────


class TestClampScore:
    @pytest.mark.parametrize(
        "value, expected",
        [(85, 85), ("85", 85), (49.6, 50), (150, 100), (-5, 0), ("abc", 0), (None, 0), (float("nan"), 0)],
    )
    def test_clamp(self, value, expected):
        assert clamp_score(value) == expected


def test_fallback_result(make_issue):
    result = AnalysisResult.fallback(make_issue(number=3, title="Crash"))
    assert result.relevance_score == 50
    assert result.relevance_reasoning == FALLBACK_REASONING
    assert result.has_workaround is False
    assert result.summary == "Issue #3: Crash"


# ── KeywordAnalyzer ──────────────────────────────────────────────────────


class TestKeywordAnalyzer:
    def test_scores_as_percentage(self, make_issue, now):
        issue = make_issue(
            title="Editor performance regression",
            labels=["performance"],
            description="The editor is slow",
            updated_at=now - timedelta(days=2),
        )
        result = KeywordAnalyzer(now=now).analyze(issue, "editor performance")

        assert result.relevance_score == 74
        assert "editor" in result.relevance_reasoning
        assert result.has_workaround is False
        assert result.summary

    def test_detects_workaround_comments(self, make_issue, make_comment, now):
        issue = make_issue(comments=[make_comment("Workaround: clear the keychain entry")])
        result = KeywordAnalyzer(now=now).analyze(issue, "authentication")
        assert result.has_workaround is True

    def test_no_keyword_match_reasoning(self, make_issue, now):
        issue = make_issue(title="Crash", description="Segfault", labels=[])
        result = KeywordAnalyzer(now=now).analyze(issue, "authentication")
        assert "No product-area keywords matched" in result.relevance_reasoning

    def test_name(self):
        assert KeywordAnalyzer().name == "keyword"


# ── LLMAnalyzer ──────────────────────────────────────────────────────────


class TestLLMAnalyzer:
    def test_name_includes_model(self, llm_analyzer):
        assert llm_analyzer.name == "jan:llama3.2-3b"

    def test_analyze_parses_response(self, llm_analyzer, llm_client, make_issue):
        result = llm_analyzer.analyze(make_issue(), "authentication")

        assert result.relevance_score == 82
        assert result.has_workaround is True
        assert result.workaround_complexity == "simple"
        assert result.workaround_description == "Sign out and back in"
        messages = llm_client.chat.call_args[0][0]
        assert messages[0]["role"] == "system"
        assert "authentication" in messages[1]["content"]
        assert llm_client.chat.call_args.kwargs["response_format"] == "json"

    def test_retries_malformed_json(self, llm_analyzer, llm_client, make_issue):
        llm_client.chat.side_effect = [
            LLMResult(content="Sure! Here is the analysis", model="m", finish_reason="stop"),
            LLMResult(content=VALID_RESPONSE, model="m", finish_reason="stop"),
        ]
        result = llm_analyzer.analyze(make_issue(), "authentication")
        assert result.relevance_score == 82
        assert llm_client.chat.call_count == 2

    def test_gives_up_after_retries(self, llm_analyzer, llm_client, make_issue):
        llm_client.chat.return_value = LLMResult(content="not json", model="m", finish_reason="stop")

        with pytest.raises(ScraperError) as exc_info:
            llm_analyzer.analyze(make_issue(), "authentication")

        assert exc_info.value.kind == ErrorKind.ANALYSIS_RESPONSE
        assert exc_info.value.context.service == "analyzer"
        assert llm_client.chat.call_count == 3

    def test_build_prompt_orders_maintainer_comments_first(self, llm_analyzer, make_issue, make_comment):
        issue = make_issue(
            labels=[],
            comments=[
                make_comment("me too", comment_id=1, author="alice"),
                make_comment("Fixed in main", comment_id=2, author="bob", author_type="maintainer"),
            ],
        )
        prompt = llm_analyzer.build_prompt(issue, "authentication")

        assert "Product Area: authentication" in prompt
        assert "Labels: None" in prompt
        assert prompt.index("bob (maintainer)") < prompt.index("alice (user)")
        assert '"relevanceScore": 55' in prompt

    def test_prepare_comments_respects_budget(self, make_comment):
        comments = [make_comment("x" * 200, comment_id=i) for i in range(10)]
        text = LLMAnalyzer.prepare_comments(comments, 500)
        assert "more comment(s) omitted" in text
        assert LLMAnalyzer.prepare_comments([], 500) == "No comments"


class TestParseResponse:
    def test_strips_code_fences(self):
        result = LLMAnalyzer.parse_response(f"```json\n{VALID_RESPONSE}\n```")
        assert result.relevance_score == 82

    def test_normalizes_unknown_enums_and_defaults(self):
        result = LLMAnalyzer.parse_response(
            '{"relevanceScore": "140", "workaroundType": "magic", "hasWorkaround": false}'
        )
        assert result.relevance_score == 100
        assert result.workaround_type == "unknown"
        assert result.workaround_description is None
        assert result.summary == "No summary provided"
        assert result.relevance_reasoning == "No reasoning provided"

    def test_rejects_non_object(self):
        with pytest.raises(ValueError, match="JSON object"):
            LLMAnalyzer.parse_response("[1, 2, 3]")


# ── Factory ──────────────────────────────────────────────────────────────


class TestCreateAnalyzer:
    def test_keyword(self):
        analyzer = create_analyzer("keyword")
        assert isinstance(analyzer, KeywordAnalyzer)
        assert analyzer.batch_size == 5

    def test_batch_size_override(self):
        assert create_analyzer("keyword", batch_size=3).batch_size == 3

    def test_jan(self):
        analyzer = create_analyzer("jan", model="llama3.2-3b")
        assert isinstance(analyzer, LLMAnalyzer)
        assert analyzer.name == "jan:llama3.2-3b"

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_analyzer("ollama")
