"""Unit tests for markdown report rendering and saving."""

from __future__ import annotations

import errno
from datetime import datetime
from unittest.mock import patch

import pytest

from issue_scraper.config import ScraperSettings
from issue_scraper.models import Workaround
from issue_scraper.services.analyzer import AnalysisResult
from issue_scraper.services.report_generator import ReportGenerator, ReportMetadata
from issue_scraper.utils.errors import ErrorKind, ScraperError


@pytest.fixture
def generator():
    return ReportGenerator()


@pytest.fixture
def metadata():
    return ReportMetadata(
        repository_name="microsoft/vscode",
        product_area="authentication",
        total_issues_analyzed=12,
        relevant_issues_found=2,
        min_relevance_score=30,
        scrape_date=datetime(2024, 5, 1, 9, 30, 0),
        analysis_model="keyword",
    )


@pytest.fixture
def issues(make_issue):
    first = make_issue(number=42, title="SSO login loop", labels=["bug", "auth"], relevance_score=88)
    first.summary = "Users get stuck in a login loop."
    first.analysis = AnalysisResult(
        relevance_score=88,
        relevance_reasoning="Matched keywords: authentication",
        has_workaround=True,
    )
    first.workarounds = [
        Workaround("Sign out of all accounts first", "octocat", "maintainer", 7, "confirmed"),
    ]
    second = make_issue(number=7, title="Token refresh fails", labels=[], relevance_score=45.5)
    return [first, second]


# ── Metadata ─────────────────────────────────────────────────────────────


def test_metadata_create_from_settings(issues, tmp_path):
    settings = ScraperSettings(
        repository="octo/repo",
        product_area="login",
        max_issues=5,
        min_relevance_score=40,
        output_path=tmp_path,
        github_token="t",
    )

    metadata = ReportMetadata.create(settings, issues, 9, "keyword")

    assert metadata.repository_name == "octo/repo"
    assert metadata.repository_url == "https://github.com/octo/repo"
    assert metadata.total_issues_analyzed == 9
    assert metadata.relevant_issues_found == len(issues)
    assert metadata.min_relevance_score == 40
    assert metadata.analysis_model == "keyword"


# ── Rendering ────────────────────────────────────────────────────────────


class TestGenerateReport:
    def test_header_and_summary(self, generator, metadata, issues):
        report = generator.generate_report(issues, metadata)

        assert report.startswith("# GitHub Issues Report: microsoft/vscode - authentication\n")
        assert "- **Repository**: [microsoft/vscode](https://github.com/microsoft/vscode)" in report
        assert "- **Total Issues Analyzed**: 12" in report
        assert "- **Relevant Issues Found**: 2" in report
        assert "- **Report Generated**: 2024-05-01 09:30:00" in report
        assert "- **Analysis Model**: keyword" in report

    def test_table_of_contents_links(self, generator, metadata, issues):
        report = generator.generate_report(issues, metadata)
        assert (
            "1. [Issue #42: SSO login loop](#1-issue-42-sso-login-loop) (88% relevance)" in report
        )
        assert "2. [Issue #7: Token refresh fails]" in report
        assert "(45.5% relevance)" in report

    def test_issue_sections_keep_order(self, generator, metadata, issues):
        report = generator.generate_report(issues, metadata)
        assert report.index("### 1. Issue #42") < report.index("### 2. Issue #7")
        assert "**Labels**: `bug`, `auth`" in report
        assert "**URL**: [View on GitHub](https://github.com/octo/repo/issues/42)" in report
        assert "Matched keywords: authentication" in report

    def test_workarounds_rendered(self, generator, metadata, issues):
        report = generator.generate_report(issues, metadata)
        assert "1. **Maintainer** (octocat) - confirmed" in report
        assert "   Sign out of all accounts first" in report
        assert "*No workarounds identified.*" in report

    def test_no_blank_line_runs(self, generator, metadata, issues):
        assert "\n\n\n" not in generator.generate_report(issues, metadata)

    def test_empty_issue_list(self, generator, metadata):
        report = generator.generate_report([], metadata)
        assert "*No relevant issues found.*" in report


# ── Saving ───────────────────────────────────────────────────────────────


class TestSaveReport:
    def test_saves_under_generated_name(self, generator, metadata, tmp_path):
        path = generator.save_report("# Report\r\nbody\n", metadata, tmp_path / "reports")

        assert path == tmp_path / "reports" / "github-issues-microsoft-vscode-authentication-2024-05-01.md"
        with open(path, encoding="utf-8", newline="") as f:
            assert f.read() == "# Report\r\nbody\n"

    def test_empty_report_rejected(self, generator, metadata, tmp_path):
        with pytest.raises(ScraperError) as exc_info:
            generator.save_report("   ", metadata, tmp_path)
        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_file_as_output_dir_rejected(self, generator, metadata, tmp_path):
        target = tmp_path / "not-a-dir"
        target.write_text("x")
        with pytest.raises(ScraperError, match="not a directory"):
            generator.save_report("# Report", metadata, target)

    def test_permission_error_classified(self, generator, metadata, tmp_path):
        with patch(
            "issue_scraper.services.report_generator.atomic_write_text",
            side_effect=PermissionError(errno.EACCES, "Permission denied", str(tmp_path)),
        ):
            with pytest.raises(ScraperError) as exc_info:
                generator.save_report("# Report", metadata, tmp_path)

        assert exc_info.value.kind == ErrorKind.FILE_SYSTEM
        assert exc_info.value.retryable is False
        assert exc_info.value.context.file_path.endswith(".md")

    def test_short_write_is_retryable_file_system_error(self, generator, metadata, tmp_path):
        def short_write(path, content):
            path.write_text(content[:3], encoding="utf-8")
            return path

        with patch(
            "issue_scraper.services.report_generator.atomic_write_text",
            side_effect=short_write,
        ):
            with pytest.raises(ScraperError) as exc_info:
                generator.save_report("# Report body", metadata, tmp_path)

        assert exc_info.value.kind == ErrorKind.FILE_SYSTEM
        assert exc_info.value.retryable is True
