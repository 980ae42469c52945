import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from issue_scraper.config import Config
from issue_scraper.models import Comment, Issue


NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_data_dir():
    """Create an isolated temporary data directory for tests."""
    path = Path(tempfile.mkdtemp())
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, temp_data_dir):
    """Redirect Config paths into the temp directory and drop real credentials."""
    monkeypatch.setattr(Config, "OUTPUT_PATH", temp_data_dir / "reports")
    monkeypatch.setattr(Config, "LOG_DIR", temp_data_dir / "logs")
    monkeypatch.setattr(Config, "LOG_TO_FILE", False)
    monkeypatch.setattr(Config, "GITHUB_TOKEN", "")
    monkeypatch.setattr(Config, "ANALYZER_BACKEND", "keyword")
    yield


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_comment():
    """Factory for comments with sensible defaults."""

    def _make(
        body="Thanks for the report",
        comment_id=1,
        author="someone",
        author_type="user",
        created_at=None,
    ):
        return Comment(
            id=comment_id,
            author=author,
            author_type=author_type,
            body=body,
            created_at=created_at or NOW - timedelta(days=1),
        )

    return _make


@pytest.fixture
def make_issue():
    """Factory for issues with sensible defaults."""

    def _make(
        number=1,
        title="Login fails with SSO",
        description="Authentication breaks after the latest update.",
        labels=None,
        comments=None,
        relevance_score=0.0,
        updated_at=None,
    ):
        return Issue(
            id=1000 + number,
            number=number,
            title=title,
            description=description,
            labels=list(labels) if labels is not None else ["bug"],
            state="open",
            created_at=NOW - timedelta(days=10),
            updated_at=updated_at or NOW - timedelta(days=2),
            author="reporter",
            url=f"https://github.com/octo/repo/issues/{number}",
            comments=list(comments or []),
            relevance_score=relevance_score,
        )

    return _make


def api_issue(number, title="Authentication error", body="Login fails", labels=("bug",), **extra):
    """GitHub API issue record."""
    record = {
        "id": 5000 + number,
        "number": number,
        "title": title,
        "body": body,
        "labels": [{"name": name} for name in labels],
        "state": "open",
        "created_at": "2024-04-20T10:00:00Z",
        "updated_at": "2024-04-29T10:00:00Z",
        "user": {"login": "reporter"},
        "html_url": f"https://github.com/octo/repo/issues/{number}",
    }
    record.update(extra)
    return record


def api_comment(comment_id, body="Same here", association="NONE", login="commenter"):
    """GitHub API comment record."""
    return {
        "id": comment_id,
        "body": body,
        "user": {"login": login},
        "author_association": association,
        "created_at": "2024-04-25T10:00:00Z",
    }


@pytest.fixture(name="api_issue")
def api_issue_fixture():
    return api_issue


@pytest.fixture(name="api_comment")
def api_comment_fixture():
    return api_comment
