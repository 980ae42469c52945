"""Unit tests for workaround detection and issue summaries."""

from datetime import timedelta

import pytest

from issue_scraper.services.issue_parser import IssueParser, summarize_text


@pytest.fixture
def parser():
    return IssueParser()


# ── Workaround detection ─────────────────────────────────────────────────


class TestWorkaroundDetection:
    @pytest.mark.parametrize(
        "body",
        [
            "Workaround: set `auth.legacy` to true",
            "A quick fix is to clear the token cache",
            "You can try this: `npm install keytar@7`",
            "1. Sign out\n2. Remove the cached token",
            "First, close the window. Then reopen it",
        ],
    )
    def test_detects_workarounds(self, parser, make_comment, body):
        assert parser.is_workaround_comment(make_comment(body)) is True

    @pytest.mark.parametrize(
        "body",
        [
            "Thanks for the report",
            "Same problem here on macOS",
            "You can try this",  # needs a code block
        ],
    )
    def test_ignores_plain_comments(self, parser, make_comment, body):
        assert parser.is_workaround_comment(make_comment(body)) is False

    def test_code_block_with_action_word(self, parser, make_comment):
        comment = make_comment("```\nrun npm ci\n```")
        assert parser.is_workaround_comment(comment) is True

    def test_analyze_comments_keeps_every_comment(self, parser, make_comment):
        comments = [
            make_comment("Workaround: downgrade to 1.2", comment_id=1),
            make_comment("", comment_id=2),
            make_comment("+1", comment_id=3),
        ]
        analyzed = parser.analyze_comments(comments)

        assert [c.id for c in analyzed] == [1, 2, 3]
        assert [c.is_workaround for c in analyzed] == [True, False, False]
        assert comments[0].is_workaround is False  # inputs untouched


# ── Effectiveness and ordering ───────────────────────────────────────────


class TestExtractWorkarounds:
    @pytest.mark.parametrize(
        "body, author_type, expected",
        [
            ("Confirmed this works", "user", "confirmed"),
            ("Use the old login flow", "maintainer", "confirmed"),
            ("Temporary workaround: restart", "user", "partial"),
            ("Try the fix in the PR", "contributor", "suggested"),
        ],
    )
    def test_effectiveness(self, parser, make_comment, body, author_type, expected):
        comment = make_comment(body, author_type=author_type)
        assert parser.determine_effectiveness(comment) == expected

    def test_ordered_by_effectiveness_then_authority(self, parser, make_comment):
        comments = parser.analyze_comments(
            [
                make_comment("Solution: try the fix in the PR", comment_id=1, author="u1"),
                make_comment("Workaround here, partial though", comment_id=2, author="c1", author_type="contributor"),
                make_comment("Verified fix: set the flag", comment_id=3, author="u2"),
                make_comment("Solution: use the old flow", comment_id=4, author="m1", author_type="maintainer"),
            ]
        )

        workarounds = parser.extract_workarounds(comments)

        assert [w.source_comment_id for w in workarounds] == [4, 3, 2, 1]
        assert [w.effectiveness for w in workarounds] == ["confirmed", "confirmed", "partial", "suggested"]
        assert workarounds[0].author == "m1"

    def test_description_is_capped(self, parser):
        description = parser.extract_description("word " * 200)
        assert len(description) == 500
        assert description.endswith("...")

    def test_description_collapses_whitespace(self, parser):
        assert parser.extract_description("  set\n\n the   flag  ") == "set the flag"


# ── Summaries ────────────────────────────────────────────────────────────


class TestGenerateSummary:
    def test_includes_labels_and_activity(self, parser, make_issue, make_comment, now):
        issue = make_issue(
            description="Login fails after upgrading.",
            labels=["bug", "auth"],
            comments=[make_comment(), make_comment(comment_id=2)],
        )
        summary = parser.generate_summary(issue, max_length=300, now=now)

        assert summary.startswith("Login fails after upgrading.")
        assert "Tagged as: bug, auth" in summary
        assert "2 comments" in summary
        assert "10 days old" in summary

    def test_respects_max_length(self, parser, make_issue, now):
        issue = make_issue(description="Authentication breaks. " * 100)
        summary = parser.generate_summary(issue, max_length=100, now=now)
        assert len(summary) <= 100

    def test_falls_back_to_title(self, parser, make_issue):
        issue = make_issue(number=9, title="SSO loop", description="", labels=[])
        assert parser.generate_summary(issue, include_metrics=False) == "Issue #9: SSO loop"

    def test_summarize_text_prefers_sentence_end(self):
        text = "First sentence here. Second sentence is much longer than the limit allows"
        assert summarize_text(text, 30) == "First sentence here."

    def test_summarize_text_short_text_unchanged(self):
        assert summarize_text("short", 30) == "short"
