"""
Pipeline execution for search -> details -> analysis -> filter -> report runs.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, Optional

from issue_scraper.config import ScraperSettings
from issue_scraper.models import (
    SYNTHESIZED_WORKAROUND_ID,
    Issue,
    ScrapingMetadata,
    ScrapingProgress,
    ScrapingResult,
    Workaround,
)
from issue_scraper.services.analyzer import AnalysisResult, Analyzer, clamp_score
from issue_scraper.services.github_client import GitHubClient
from issue_scraper.services.issue_parser import IssueParser
from issue_scraper.services.relevance_filter import filter_and_rank
from issue_scraper.services.report_generator import ReportGenerator, ReportMetadata
from issue_scraper.utils import get_logger
from issue_scraper.utils.error_classifier import classify
from issue_scraper.utils.errors import (
    ErrorContext,
    ErrorKind,
    ScraperError,
    empty_results_error,
)
from issue_scraper.utils.logging_config import log_event, log_exception
from issue_scraper.utils.retry import RETRY_DELAYS, execute_with_retry

MAX_SEARCH_RESULTS = 300
SEARCH_MULTIPLIER = 3
SMALL_BATCH_SIZE = 2
REPORT_SAVE_ATTEMPTS = 3

ProgressCallback = Callable[[ScrapingProgress], None]


class PipelinePhase(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    FETCHING_DETAILS = "fetching_details"
    ANALYZING = "analyzing"
    FILTERING = "filtering"
    GENERATING = "generating"
    COMPLETE = "complete"
    FAILED = "failed"


def search_cap(max_issues: int) -> int:
    """Number of candidates to search for: three per wanted issue, at most 300."""
    return min(max_issues * SEARCH_MULTIPLIER, MAX_SEARCH_RESULTS)


class ScrapingPipeline:
    """
    Five-phase scraping run.

    Steps:
    1. Search candidate issues for the product area (fatal on failure)
    2. Fetch comments per issue (failures leave an empty comment list)
    3. Analyze issues in concurrent batches (failures get a fallback result)
    4. Filter by minimum score, rank, truncate (no survivors is an error)
    5. Render and save the report (fatal on failure)
    """

    def __init__(
        self,
        client: GitHubClient,
        analyzer: Analyzer,
        reporter: ReportGenerator,
        *,
        issue_parser: Optional[IssueParser] = None,
        batch_size: Optional[int] = None,
        batch_delay: float = 2.0,
        large_payload_chars: int = 4000,
        retry_delays: tuple[float, ...] = RETRY_DELAYS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the pipeline.

        Args:
            client: GitHub API client
            analyzer: Issue analyzer
            reporter: Report generator
            issue_parser: Workaround heuristics (default instance if omitted)
            batch_size: Fixed analysis batch size; automatic when None
            batch_delay: Seconds to wait between analysis batches
            large_payload_chars: Average issue payload above which batches shrink to 2
            retry_delays: Delay schedule for orchestration-level retries
            sleep: Sleep function (injectable for tests)
        """
        self.client = client
        self.analyzer = analyzer
        self.reporter = reporter
        self.issue_parser = issue_parser or IssueParser()
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.large_payload_chars = large_payload_chars
        self.retry_delays = retry_delays
        self._sleep = sleep
        self.state = PipelinePhase.IDLE
        self.logger = get_logger("pipeline")
        self._step_times: dict[str, float] = {}

    def run(
        self,
        settings: ScraperSettings,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ScrapingResult:
        """
        Execute the full pipeline.

        Args:
            settings: Run settings
            on_progress: Optional synchronous progress callback

        Returns:
            ScrapingResult with ranked issues, report path and metadata

        Raises:
            ScraperError: When search or report generation fails, or when
                no issue reaches the minimum relevance score
        """
        notify = on_progress or (lambda progress: None)
        self._step_times = {}
        start_time = time.perf_counter()

        log_event(
            self.logger,
            "info",
            "pipeline.run.start",
            repository=settings.repository,
            product_area=settings.product_area,
            max_issues=settings.max_issues,
            analyzer=self.analyzer.name,
        )

        try:
            candidates = self._timed("search", self._search, settings, notify)
            detailed = self._timed("fetch_details", self._fetch_details, candidates, settings, notify)
            analyzed = self._timed("analyze", self._analyze, detailed, settings, notify)
            relevant = self._timed("filter", self._filter, analyzed, settings)
            report_path = self._timed("generate", self._generate, relevant, len(candidates), settings, notify)
        except Exception as exc:
            failed_phase = self.state
            self.state = PipelinePhase.FAILED
            error = classify(
                exc,
                ErrorContext(
                    operation="running scraping pipeline",
                    repository=settings.repository,
                    product_area=settings.product_area,
                ),
            )
            log_exception(
                self.logger,
                error,
                "pipeline.failed",
                state=failed_phase.value,
            )
            if error is exc:
                raise
            raise error from exc

        self.state = PipelinePhase.COMPLETE
        metadata = self._build_metadata(relevant, len(candidates))
        notify(
            ScrapingProgress(
                "complete",
                1,
                1,
                f"Found {metadata.relevant_issues_found} relevant issues",
            )
        )

        log_event(
            self.logger,
            "info",
            "pipeline.run.complete",
            repository=settings.repository,
            relevant_issues=metadata.relevant_issues_found,
            duration_seconds=round(time.perf_counter() - start_time, 2),
            step_times={k: round(v, 2) for k, v in self._step_times.items()},
        )
        return ScrapingResult(issues=relevant, report_path=str(report_path), metadata=metadata)

    def _timed(self, step: str, func, *args):
        step_start = time.perf_counter()
        try:
            return func(*args)
        finally:
            self._step_times[step] = time.perf_counter() - step_start

    # ── Phase 1: search ──────────────────────────────────────────────────

    def _search(self, settings: ScraperSettings, notify: ProgressCallback) -> list[Issue]:
        self.state = PipelinePhase.SEARCHING
        cap = search_cap(settings.max_issues)
        context = ErrorContext(
            operation="searching issues",
            repository=settings.repository,
            product_area=settings.product_area,
        )

        issues = execute_with_retry(
            lambda: self.client.search_issues(settings.repository, settings.product_area, cap),
            context,
            delays=self.retry_delays,
            sleep=self._sleep,
        )

        notify(
            ScrapingProgress(
                "fetching",
                len(issues),
                cap,
                f'Found {len(issues)} issues matching "{settings.product_area}"',
            )
        )
        return [issue.copy() for issue in issues]

    # ── Phase 2: details ─────────────────────────────────────────────────

    def _fetch_details(
        self, issues: list[Issue], settings: ScraperSettings, notify: ProgressCallback
    ) -> list[Issue]:
        self.state = PipelinePhase.FETCHING_DETAILS
        detailed: list[Issue] = []

        for index, issue in enumerate(issues, start=1):
            enriched = issue.copy()
            context = ErrorContext(
                operation=f"fetching comments for issue #{issue.number}",
                repository=settings.repository,
                issue_id=issue.number,
            )
            try:
                enriched.comments = execute_with_retry(
                    lambda: self.client.get_issue_comments(settings.repository, issue.number),
                    context,
                    delays=self.retry_delays,
                    sleep=self._sleep,
                )
            except ScraperError as e:
                self.logger.warning(
                    f"Could not fetch comments for issue #{issue.number}, continuing without them: {e.message}"
                )
                enriched.comments = []

            detailed.append(enriched)
            notify(
                ScrapingProgress(
                    "fetching",
                    index,
                    len(issues),
                    f"Fetched {len(enriched.comments)} comments for issue #{issue.number}",
                )
            )

        return detailed

    # ── Phase 3: analysis ────────────────────────────────────────────────

    def resolve_batch_size(self, issues: list[Issue]) -> int:
        """Fixed size when configured, else the analyzer's, shrunk for large payloads."""
        if self.batch_size:
            return max(self.batch_size, 1)
        size = max(self.analyzer.batch_size, 1)
        if issues:
            payload = sum(
                len(issue.description) + sum(len(c.body) for c in issue.comments)
                for issue in issues
            ) / len(issues)
            if payload > self.large_payload_chars:
                size = min(size, SMALL_BATCH_SIZE)
        return size

    def _analyze(
        self, issues: list[Issue], settings: ScraperSettings, notify: ProgressCallback
    ) -> list[Issue]:
        self.state = PipelinePhase.ANALYZING
        batch_size = self.resolve_batch_size(issues)
        analyzed: list[Issue] = []

        self.logger.info(
            f"Analyzing {len(issues)} issues with {self.analyzer.name} in batches of {batch_size}"
        )

        for batch_start in range(0, len(issues), batch_size):
            if batch_start > 0 and self.batch_delay > 0:
                self._sleep(self.batch_delay)

            batch = issues[batch_start : batch_start + batch_size]
            results = self._analyze_batch(batch, settings.product_area)

            for offset, (issue, result) in enumerate(zip(batch, results)):
                updated = self._apply_analysis(issue, result)
                analyzed.append(updated)
                notify(
                    ScrapingProgress(
                        "analyzing",
                        batch_start + offset + 1,
                        len(issues),
                        f"Analyzed issue #{issue.number} ({updated.relevance_score:g}% relevant)",
                    )
                )

        return analyzed

    def _analyze_batch(self, batch: list[Issue], product_area: str) -> list[AnalysisResult]:
        """Analyze a batch concurrently; results keep input order."""
        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            futures = [
                executor.submit(self.analyzer.analyze, issue.copy(), product_area)
                for issue in batch
            ]
            results: list[AnalysisResult] = []
            for issue, future in zip(batch, futures):
                try:
                    results.append(future.result())
                except Exception as e:
                    self.logger.warning(
                        f"Analysis failed for issue #{issue.number}, using fallback: {e}"
                    )
                    results.append(AnalysisResult.fallback(issue))
        return results

    def _apply_analysis(self, issue: Issue, result: AnalysisResult) -> Issue:
        analyzed = issue.copy()
        comments = self.issue_parser.analyze_comments(analyzed.comments)
        workarounds = self.issue_parser.extract_workarounds(comments)

        if result.has_workaround and result.workaround_description:
            workarounds.append(
                Workaround(
                    description=self.issue_parser.extract_description(result.workaround_description),
                    author=self.analyzer.name,
                    author_type="user",
                    source_comment_id=SYNTHESIZED_WORKAROUND_ID,
                    effectiveness="suggested",
                )
            )

        analyzed.comments = comments
        analyzed.workarounds = workarounds
        analyzed.relevance_score = float(clamp_score(result.relevance_score))
        analyzed.summary = result.summary or self.issue_parser.generate_summary(analyzed)
        analyzed.analysis = result
        return analyzed

    # ── Phase 4: filtering ───────────────────────────────────────────────

    def _filter(self, issues: list[Issue], settings: ScraperSettings) -> list[Issue]:
        self.state = PipelinePhase.FILTERING
        relevant = filter_and_rank(
            [issue.copy() for issue in issues],
            settings.min_relevance_score,
            settings.max_issues,
        )
        self.logger.info(
            f"{len(relevant)} of {len(issues)} issues scored at least {settings.min_relevance_score}"
        )
        if not relevant:
            raise empty_results_error(
                ErrorContext(
                    operation="filtering issues by relevance",
                    repository=settings.repository,
                    product_area=settings.product_area,
                ),
                settings.min_relevance_score,
            )
        return relevant

    # ── Phase 5: report ──────────────────────────────────────────────────

    def _generate(
        self,
        issues: list[Issue],
        total_analyzed: int,
        settings: ScraperSettings,
        notify: ProgressCallback,
    ):
        self.state = PipelinePhase.GENERATING
        notify(ScrapingProgress("generating", 0, 1, "Generating report..."))

        metadata = ReportMetadata.create(settings, issues, total_analyzed, self.analyzer.name)
        context = ErrorContext(
            operation="generating report",
            repository=settings.repository,
            product_area=settings.product_area,
            file_path=str(settings.output_path),
        )

        def render_and_save():
            report = self.reporter.generate_report(issues, metadata)
            return self.reporter.save_report(report, metadata, settings.output_path)

        report_path = execute_with_retry(
            render_and_save,
            context,
            max_attempts=REPORT_SAVE_ATTEMPTS,
            retry_kinds=(ErrorKind.FILE_SYSTEM,),
            delays=self.retry_delays,
            sleep=self._sleep,
        )
        notify(ScrapingProgress("generating", 1, 1, f"Report saved to {report_path}"))
        return report_path

    def _build_metadata(self, issues: list[Issue], total_analyzed: int) -> ScrapingMetadata:
        average = (
            round(sum(issue.relevance_score for issue in issues) / len(issues), 2)
            if issues
            else 0.0
        )
        return ScrapingMetadata(
            total_issues_analyzed=total_analyzed,
            relevant_issues_found=len(issues),
            average_relevance_score=average,
            workarounds_found=sum(len(issue.workarounds) for issue in issues),
            analysis_method=self.analyzer.name,
        )
