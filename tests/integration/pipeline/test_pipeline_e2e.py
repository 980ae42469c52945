"""End-to-end pipeline tests.

Runs the real GitHub client, keyword analyzer and report generator against a
mocked GitHub API.
"""

from datetime import datetime, timezone

import pytest
import responses

from issue_scraper.config import ScraperSettings
from issue_scraper.orchestrator import ScrapingPipeline
from issue_scraper.services import GitHubClient, KeywordAnalyzer, ReportGenerator
from issue_scraper.utils.errors import ErrorKind, ScraperError

API = "https://api.github.com"
SEARCH_URL = f"{API}/search/issues"
NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

pytestmark = pytest.mark.integration


def _comments_url(number):
    return f"{API}/repos/octo/repo/issues/{number}/comments"


@pytest.fixture
def settings(tmp_path):
    return ScraperSettings(
        repository="octo/repo",
        product_area="authentication",
        max_issues=10,
        min_relevance_score=20,
        output_path=tmp_path / "reports",
        github_token="ghp_test",
    )


@pytest.fixture
def pipeline():
    no_sleep = lambda seconds: None  # noqa: E731
    client = GitHubClient("ghp_test", base_url=API, sleep=no_sleep)
    return ScrapingPipeline(
        client,
        KeywordAnalyzer(now=NOW),
        ReportGenerator(),
        batch_delay=0,
        sleep=no_sleep,
    )


@pytest.fixture
def search_results(api_issue):
    return [
        api_issue(1, title="Authentication error after update", body="Authentication fails on login",
                  labels=("bug", "authentication")),
        api_issue(2, title="Authentication token expires", body="The session drops"),
        api_issue(3, title="Crash on startup", body="Segfault", labels=("crash",)),
    ]


class TestPipelineEndToEnd:
    @responses.activate
    def test_full_run_writes_report(self, pipeline, settings, search_results, api_comment):
        responses.add(responses.GET, SEARCH_URL, json={"items": search_results}, status=200)
        responses.add(
            responses.GET,
            _comments_url(1),
            json=[
                api_comment(11, body="Workaround: sign out and clear the keychain", association="OWNER",
                            login="maintainer1"),
                api_comment(12, body="+1"),
            ],
            status=200,
        )
        responses.add(responses.GET, _comments_url(2), json=[], status=200)
        responses.add(responses.GET, _comments_url(3), json=[], status=200)

        events = []
        result = pipeline.run(settings, on_progress=events.append)

        assert [i.number for i in result.issues] == [1, 2]
        assert result.metadata.total_issues_analyzed == 3
        assert result.metadata.relevant_issues_found == 2
        assert result.metadata.workarounds_found == 1
        assert result.metadata.analysis_method == "keyword"
        assert all(0 <= i.relevance_score <= 100 for i in result.issues)
        assert result.issues[0].relevance_score >= result.issues[1].relevance_score

        report_files = list(settings.output_path.glob("github-issues-octo-repo-authentication-*.md"))
        assert len(report_files) == 1
        assert str(report_files[0]) == result.report_path

        report = report_files[0].read_text(encoding="utf-8")
        assert "# GitHub Issues Report: octo/repo - authentication" in report
        assert "Issue #1: Authentication error after update" in report
        assert "Issue #2: Authentication token expires" in report
        assert "Crash on startup" not in report
        assert "**Maintainer** (maintainer1) - confirmed" in report

        assert events[-1].phase == "complete"

        search_call = responses.calls[0]
        assert search_call.request.headers["Authorization"] == "Bearer ghp_test"
        assert "repo%3Aocto%2Frepo" in search_call.request.url

    @responses.activate
    def test_comment_failure_does_not_stop_run(self, pipeline, settings, search_results):
        responses.add(responses.GET, SEARCH_URL, json={"items": search_results}, status=200)
        responses.add(responses.GET, _comments_url(1), json={"message": "Not Found"}, status=404)
        responses.add(responses.GET, _comments_url(2), json=[], status=200)
        responses.add(responses.GET, _comments_url(3), json=[], status=200)

        result = pipeline.run(settings)

        assert [i.number for i in result.issues] == [1, 2]
        assert result.issues[0].comments == []

    @responses.activate
    def test_authentication_failure_writes_nothing(self, pipeline, settings):
        responses.add(responses.GET, SEARCH_URL, json={"message": "Bad credentials"}, status=401)

        with pytest.raises(ScraperError) as exc_info:
            pipeline.run(settings)

        assert exc_info.value.kind == ErrorKind.AUTHENTICATION
        assert len(responses.calls) == 1
        assert not settings.output_path.exists()

    @responses.activate
    def test_no_relevant_issues(self, pipeline, settings, api_issue):
        responses.add(
            responses.GET,
            SEARCH_URL,
            json={"items": [api_issue(3, title="Crash on startup", body="Segfault", labels=("crash",))]},
            status=200,
        )
        responses.add(responses.GET, _comments_url(3), json=[], status=200)

        with pytest.raises(ScraperError) as exc_info:
            pipeline.run(settings)

        assert exc_info.value.kind == ErrorKind.EMPTY_RESULTS
        assert not settings.output_path.exists()
