"""
Markdown report rendering and atomic saving.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from jinja2 import Environment

from issue_scraper.config import ScraperSettings
from issue_scraper.models import Issue
from issue_scraper.utils import get_logger
from issue_scraper.utils.error_classifier import classify
from issue_scraper.utils.errors import (
    ErrorContext,
    ErrorKind,
    ErrorSuggestion,
    ScraperError,
    validation_error,
)
from issue_scraper.utils.file_utils import (
    atomic_write_text,
    ensure_dir,
    generate_report_filename,
    truncate_text,
)

GENERATED_BY = "github-issue-scraper"

REPORT_TEMPLATE = """\
# GitHub Issues Report: {{ metadata.repository_name }} - {{ metadata.product_area }}

## Summary

- **Repository**: [{{ metadata.repository_name }}]({{ metadata.repository_url }})
- **Product Area**: {{ metadata.product_area }}
- **Total Issues Analyzed**: {{ metadata.total_issues_analyzed }}
- **Relevant Issues Found**: {{ metadata.relevant_issues_found }}
- **Minimum Relevance Score**: {{ metadata.min_relevance_score }}%
- **Report Generated**: {{ metadata.scrape_date.strftime("%Y-%m-%d %H:%M:%S") }}
- **Generated By**: {{ metadata.generated_by }}
{% if metadata.analysis_model %}- **Analysis Model**: {{ metadata.analysis_model }}
{% endif %}

## Table of Contents

{% for issue in issues %}{{ loop.index }}. [Issue #{{ issue.number }}: {{ issue.title }}](#{{ issue | anchor(loop.index) }}) ({{ issue.relevance_score | score }}% relevance)
{% else %}*No relevant issues found.*
{% endfor %}

## Issues

{% for issue in issues %}
### {{ loop.index }}. Issue #{{ issue.number }}: {{ issue.title }}

**Status**: {{ issue.state | capitalize }}
**Created**: {{ issue.created_at.strftime("%Y-%m-%d") }} by {{ issue.author }}
**Last Updated**: {{ issue.updated_at.strftime("%Y-%m-%d") }}
**Relevance Score**: {{ issue.relevance_score | score }}/100
**URL**: [View on GitHub]({{ issue.url }})
{% if issue.labels %}**Labels**: {% for label in issue.labels %}`{{ label }}`{% if not loop.last %}, {% endif %}{% endfor %}
{% endif %}
{% if issue.summary %}
#### Summary

{{ issue.summary }}
{% endif %}
{% if issue.analysis and issue.analysis.relevance_reasoning %}
#### Relevance

{{ issue.analysis.relevance_reasoning }}
{% endif %}
{% if issue.description %}
#### Description

{{ issue.description | truncate_text(500) }}
{% endif %}
#### Workarounds

{% for workaround in issue.workarounds %}{{ loop.index }}. **{{ workaround.author_type | capitalize }}** ({{ workaround.author }}) - {{ workaround.effectiveness }}
   {{ workaround.description }}
{% else %}*No workarounds identified.*
{% endfor %}

---
{% else %}
*No relevant issues found. Consider broadening your search criteria or lowering the minimum relevance score.*
{% endfor %}
"""


@dataclass
class ReportMetadata:
    repository_name: str
    product_area: str
    total_issues_analyzed: int
    relevant_issues_found: int
    min_relevance_score: float
    scrape_date: datetime = field(default_factory=datetime.now)
    repository_url: str = ""
    generated_by: str = GENERATED_BY
    analysis_model: Optional[str] = None

    def __post_init__(self):
        if not self.repository_url:
            self.repository_url = f"https://github.com/{self.repository_name}"

    @classmethod
    def create(
        cls,
        settings: ScraperSettings,
        issues: list[Issue],
        total_analyzed: int,
        analysis_model: Optional[str] = None,
    ) -> ReportMetadata:
        """Build report metadata for a finished run."""
        return cls(
            repository_name=settings.repository,
            product_area=settings.product_area,
            total_issues_analyzed=total_analyzed,
            relevant_issues_found=len(issues),
            min_relevance_score=settings.min_relevance_score,
            analysis_model=analysis_model,
        )


def _anchor(issue: Issue, index: int) -> str:
    heading = f"{index}. Issue #{issue.number}: {issue.title}".lower()
    heading = re.sub(r"[^a-z0-9\s-]", "", heading)
    heading = re.sub(r"\s+", "-", heading)
    return re.sub(r"-+", "-", heading).strip("-")


def _format_score(value: float) -> str:
    return f"{value:g}"


class ReportGenerator:
    """Renders issues into a markdown report and saves it."""

    def __init__(self, template: str = REPORT_TEMPLATE):
        self.logger = get_logger("report")
        env = Environment(trim_blocks=False, lstrip_blocks=False, keep_trailing_newline=True)
        env.filters["anchor"] = _anchor
        env.filters["score"] = _format_score
        env.filters["truncate_text"] = truncate_text
        self._template = env.from_string(template)

    def generate_report(self, issues: list[Issue], metadata: ReportMetadata) -> str:
        """Render the report text. Issue order is preserved."""
        report = self._template.render(issues=issues, metadata=metadata)
        # Collapse the blank-line runs left by conditional blocks
        return re.sub(r"\n{3,}", "\n\n", report)

    def save_report(self, report: str, metadata: ReportMetadata, output_dir: Path | str) -> Path:
        """
        Write the report atomically under ``output_dir``.

        Args:
            report: Report text
            metadata: Used to build the filename
            output_dir: Target directory, created when missing

        Returns:
            Path of the saved report

        Raises:
            ScraperError: VALIDATION for empty content or a non-directory
                output path, FILE_SYSTEM for write failures
        """
        output_dir = Path(output_dir)
        filename = generate_report_filename(
            metadata.repository_name, metadata.product_area, metadata.scrape_date
        )
        full_path = output_dir / filename
        context = ErrorContext(
            operation="saving report to file",
            repository=metadata.repository_name,
            product_area=metadata.product_area,
            file_path=str(full_path),
        )

        if not report or not report.strip():
            raise validation_error(
                "Invalid report content provided",
                context,
                [
                    ErrorSuggestion(
                        "Check report generation",
                        "Ensure the report was generated successfully",
                        "high",
                    )
                ],
            )

        if output_dir.exists() and not output_dir.is_dir():
            raise validation_error(
                "Output path is not a directory",
                context,
                [
                    ErrorSuggestion(
                        "Use directory path",
                        "Specify a directory path, not a file path",
                        "high",
                    )
                ],
            )

        try:
            ensure_dir(output_dir)
            atomic_write_text(full_path, report)
            with open(full_path, encoding="utf-8", newline="") as f:
                written = f.read()
        except OSError as exc:
            raise classify(exc, context) from exc

        if len(written) != len(report):
            raise ScraperError(
                ErrorKind.FILE_SYSTEM,
                "File write verification failed - content length mismatch",
                context=context,
                suggestions=[
                    ErrorSuggestion(
                        "Check available disk space",
                        "A partial write usually means the disk is full",
                        "high",
                    )
                ],
                retryable=True,
            )

        self.logger.info(f"Report saved to {full_path}")
        return full_path
