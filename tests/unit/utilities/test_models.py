import json
from datetime import datetime, timezone

import pytest

from issue_scraper.models import (
    Comment,
    Issue,
    RateLimitInfo,
    ScrapingMetadata,
    ScrapingResult,
    Workaround,
    author_type_from_association,
    parse_timestamp,
)


def test_parse_timestamp_handles_z_suffix():
    assert parse_timestamp("2024-04-29T10:00:00Z") == datetime(2024, 4, 29, 10, tzinfo=timezone.utc)


def test_parse_timestamp_rejects_missing():
    with pytest.raises(ValueError):
        parse_timestamp(None)


@pytest.mark.parametrize(
    "association, expected",
    [("OWNER", "maintainer"), ("member", "maintainer"), ("CONTRIBUTOR", "contributor"), (None, "user")],
)
def test_author_type_from_association(association, expected):
    assert author_type_from_association(association) == expected


def test_issue_from_api(api_issue):
    issue = Issue.from_api(api_issue(3, labels=("bug", "auth", "bug"), user=None))
    assert issue.number == 3
    assert issue.labels == ["bug", "auth"]
    assert issue.author == "unknown"
    assert issue.comments == []
    assert issue.relevance_score == 0.0


def test_issue_from_api_rejects_unknown_state(api_issue):
    with pytest.raises(ValueError):
        Issue.from_api(api_issue(3, state="merged"))


def test_comment_from_api(api_comment):
    comment = Comment.from_api(api_comment(9, body=None, association="OWNER", login="octocat"))
    assert comment.body == ""
    assert comment.author == "octocat"
    assert comment.author_type == "maintainer"
    assert comment.is_workaround is False


def test_issue_copy_is_deep(make_issue, make_comment):
    original = make_issue(comments=[make_comment()])
    clone = original.copy()
    clone.comments[0].body = "changed"
    clone.labels.append("new")
    assert original.comments[0].body == "Thanks for the report"
    assert original.labels == ["bug"]


def test_synthesized_workaround_flag():
    assert Workaround("d", "keyword", "user", -1).is_synthesized is True
    assert Workaround("d", "octocat", "user", 12).is_synthesized is False


def test_rate_limit_clamps_remaining():
    info = RateLimitInfo.from_values(5000, 7000, 1_700_000_000)
    assert info.remaining == 5000
    assert RateLimitInfo.from_values(5000, -3, 1_700_000_000).remaining == 0


def test_rate_limit_from_headers_requires_all_fields():
    assert RateLimitInfo.from_headers({"x-ratelimit-limit": "5000"}) is None
    info = RateLimitInfo.from_headers(
        {"x-ratelimit-limit": "60", "x-ratelimit-remaining": "59", "x-ratelimit-reset": "1700000000"}
    )
    assert (info.limit, info.remaining) == (60, 59)


def test_scraping_result_to_json(make_issue):
    issue = make_issue(number=5, relevance_score=70)
    result = ScrapingResult(
        issues=[issue],
        report_path="reports/r.md",
        metadata=ScrapingMetadata(10, 1, 70.0, 0),
        completed_at="2024-05-01T12:00:00",
    )
    data = json.loads(result.to_json())
    assert data["report_path"] == "reports/r.md"
    assert data["metadata"]["analysis_method"] == "keyword"
    assert data["issues"] == [
        {
            "number": 5,
            "title": issue.title,
            "url": issue.url,
            "relevance_score": 70,
            "workarounds": 0,
        }
    ]
