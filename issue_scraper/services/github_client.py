"""
GitHub REST API client with pagination and rate-limit aware retries.

Every physical request goes through :meth:`GitHubClient._request`, which
classifies failures and retries retryable ones: rate-limit responses with a
usable reset header sleep until the reset, other retryable failures back off
exponentially with jitter.
"""

from __future__ import annotations

import random
import time
from typing import Any, Callable, Optional

import requests

from issue_scraper.models import Comment, Issue, RateLimitInfo
from issue_scraper.utils import get_logger
from issue_scraper.utils.error_classifier import classify
from issue_scraper.utils.errors import (
    ErrorContext,
    ErrorKind,
    ErrorSuggestion,
    parsing_error,
    validation_error,
)
from issue_scraper.config import REPOSITORY_PATTERN
from issue_scraper.utils.logging_config import log_event

API_BASE_URL = "https://api.github.com"
USER_AGENT = "github-issue-scraper/1.0.0"
MAX_PAGE_SIZE = 100
MAX_RATE_LIMIT_WAIT = 3600.0


def parse_repository(repository: str) -> tuple[str, str]:
    """Split ``owner/repo``.

    Raises:
        ScraperError: VALIDATION error when the format is wrong
    """
    if not repository or not REPOSITORY_PATTERN.match(repository):
        raise validation_error(
            f"Invalid repository format: '{repository}'",
            ErrorContext(operation="parsing repository name", repository=repository or None),
            [
                ErrorSuggestion(
                    "Use owner/repo format",
                    "Specify the repository as 'owner/repository', e.g. 'microsoft/vscode'",
                    "high",
                )
            ],
        )
    owner, repo = repository.split("/", 1)
    return owner, repo


class GitHubClient:
    """Authenticated GitHub API client."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = API_BASE_URL,
        timeout: int = 30,
        max_retries: int = 5,
        base_delay: float = 1.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the client.

        Args:
            token: GitHub personal access token
            base_url: API root URL
            timeout: Per-request timeout in seconds
            max_retries: Retries per physical request after the first attempt
            base_delay: Base delay in seconds for exponential backoff
            session: Optional pre-built requests session
            sleep: Sleep function (injectable for tests)
            clock: Epoch-seconds clock used against rate-limit reset headers
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep
        self._clock = clock
        self.rate_limit: Optional[RateLimitInfo] = None
        self.logger = get_logger("github")

        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github.v3+json",
                "User-Agent": USER_AGENT,
            }
        )
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    # ── Transport ────────────────────────────────────────────────────────

    def _url(self, resource_path: str) -> str:
        if resource_path.startswith(("http://", "https://")):
            return resource_path
        return f"{self.base_url}/{resource_path.lstrip('/')}"

    def _request(
        self, resource_path: str, params: Optional[dict[str, Any]] = None
    ) -> requests.Response:
        """GET with transport-level retry.

        Raises:
            ScraperError: Classified error once retries are exhausted or the
                failure is not retryable
        """
        url = self._url(resource_path)
        context = ErrorContext(operation=f"GET {resource_path}")
        attempt = 0
        backoff_step = 0

        while True:
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
                self._record_rate_limit(response)
                response.raise_for_status()
                return response
            except requests.RequestException as exc:
                error = classify(exc, context, now=self._clock())
                if not error.retryable or attempt >= self.max_retries:
                    raise error from exc

                wait = None
                if error.kind == ErrorKind.RATE_LIMIT:
                    wait = self._rate_limit_wait(exc.response)

                if wait is not None:
                    log_event(
                        self.logger,
                        "warning",
                        f"Rate limit hit for {resource_path}; waiting {wait:.0f}s for reset",
                        path=resource_path,
                        wait_seconds=wait,
                    )
                    delay = wait
                else:
                    delay = self.base_delay * (2 ** backoff_step) + random.uniform(0, 1.0)
                    backoff_step += 1
                    self.logger.warning(
                        "Attempt %s/%s failed for %s: %s. Retrying in %.2fs",
                        attempt + 1,
                        self.max_retries + 1,
                        resource_path,
                        error.message,
                        delay,
                    )

                self._sleep(delay)
                attempt += 1

    def _rate_limit_wait(self, response: Optional[requests.Response]) -> Optional[float]:
        """Seconds until the rate limit resets, when within (0, 1 hour)."""
        if response is None:
            return None
        reset = response.headers.get("x-ratelimit-reset")
        if reset is None:
            return None
        try:
            wait = float(reset) - self._clock()
        except ValueError:
            return None
        if 0 < wait < MAX_RATE_LIMIT_WAIT:
            return wait
        return None

    def _record_rate_limit(self, response: requests.Response) -> None:
        info = RateLimitInfo.from_headers(response.headers)
        if info is not None:
            self.rate_limit = info

    # ── Pagination ───────────────────────────────────────────────────────

    def fetch_single(self, resource_path: str) -> Any:
        """Fetch one resource and return its decoded JSON body."""
        response = self._request(resource_path)
        return self._decode(response, resource_path)

    def fetch_page(
        self,
        resource_path: str,
        query: Optional[dict[str, Any]] = None,
        page: int = 1,
        page_size: int = MAX_PAGE_SIZE,
    ) -> list[dict[str, Any]]:
        """
        Fetch one page of a collection.

        Args:
            resource_path: API path, e.g. ``/repos/o/r/issues``
            query: Extra query parameters
            page: 1-based page number
            page_size: Records per page (at most 100)

        Returns:
            Records on the page. Search envelopes are unwrapped to ``items``.
        """
        params = dict(query or {})
        params["page"] = page
        params["per_page"] = min(page_size, MAX_PAGE_SIZE)

        response = self._request(resource_path, params)
        body = self._decode(response, resource_path)

        if isinstance(body, dict) and isinstance(body.get("items"), list):
            return body["items"]
        if isinstance(body, list):
            return body
        raise parsing_error(
            TypeError(f"expected a list of records, got {type(body).__name__}"),
            ErrorContext(operation=f"GET {resource_path}"),
        )

    def fetch_all_pages(
        self,
        resource_path: str,
        query: Optional[dict[str, Any]] = None,
        page_size: int = MAX_PAGE_SIZE,
        max_pages: Optional[int] = 10,
    ) -> list[dict[str, Any]]:
        """
        Fetch pages 1, 2, ... and concatenate them in request order.

        Stops at the first page shorter than ``page_size`` or after
        ``max_pages`` pages (``None`` means no page cap).

        Raises:
            ScraperError: VALIDATION error when ``page_size`` or
                ``max_pages`` is below 1
        """
        if page_size < 1 or (max_pages is not None and max_pages < 1):
            raise validation_error(
                f"Invalid pagination for {resource_path}: page_size={page_size}, max_pages={max_pages}",
                ErrorContext(operation=f"paginating {resource_path}"),
                [
                    ErrorSuggestion(
                        "Use positive page limits",
                        "Set page_size between 1 and 100 and max_pages to at least 1",
                        "high",
                    )
                ],
            )
        page_size = min(page_size, MAX_PAGE_SIZE)
        records: list[dict[str, Any]] = []
        page = 1

        while max_pages is None or page <= max_pages:
            batch = self.fetch_page(resource_path, query, page, page_size)
            records.extend(batch)
            self.logger.debug(
                f"Fetched page {page} of {resource_path}: {len(batch)} records"
            )
            if len(batch) < page_size:
                break
            page += 1

        return records

    def _decode(self, response: requests.Response, resource_path: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise parsing_error(exc, ErrorContext(operation=f"GET {resource_path}")) from exc

    # ── Rate limit ───────────────────────────────────────────────────────

    def get_rate_limit(self) -> RateLimitInfo:
        """Query ``GET /rate_limit`` for the core REST quota."""
        body = self.fetch_single("/rate_limit")
        try:
            core = body["resources"]["core"] if "resources" in body else body["rate"]
            info = RateLimitInfo.from_values(core["limit"], core["remaining"], core["reset"])
        except (KeyError, TypeError, ValueError) as exc:
            raise parsing_error(exc, ErrorContext(operation="GET /rate_limit")) from exc
        self.rate_limit = info
        return info

    # ── Issues ───────────────────────────────────────────────────────────

    def list_issues(
        self,
        repository: str,
        *,
        state: str = "open",
        labels: Optional[list[str]] = None,
        sort: str = "updated",
        direction: str = "desc",
        since: Optional[str] = None,
        max_pages: Optional[int] = 10,
    ) -> list[Issue]:
        """List repository issues, dropping pull requests."""
        owner, repo = parse_repository(repository)
        query: dict[str, Any] = {"state": state, "sort": sort, "direction": direction}
        if labels:
            query["labels"] = ",".join(labels)
        if since:
            query["since"] = since

        records = self.fetch_all_pages(
            f"/repos/{owner}/{repo}/issues", query, MAX_PAGE_SIZE, max_pages
        )
        return self._to_issues(
            [r for r in records if "pull_request" not in r], repository
        )

    def search_issues(
        self,
        repository: str,
        query: str,
        max_results: int,
        state: str = "open",
    ) -> list[Issue]:
        """
        Search a repository's issues for ``query``.

        Args:
            repository: Repository in owner/repo form
            query: Free-text product-area query
            max_results: Upper bound on returned issues
            state: Issue state qualifier

        Returns:
            At most ``max_results`` issues, most recently updated first
        """
        owner, repo = parse_repository(repository)
        if max_results <= 0:
            return []

        page_size = min(max_results, MAX_PAGE_SIZE)
        max_pages = -(-max_results // page_size)
        q = f"{query.strip()} repo:{owner}/{repo} is:issue state:{state}".strip()

        log_event(
            self.logger,
            "info",
            "github.search.start",
            repository=repository,
            query=query,
            max_results=max_results,
        )
        records = self.fetch_all_pages(
            "/search/issues",
            {"q": q, "sort": "updated", "order": "desc"},
            page_size,
            max_pages,
        )
        return self._to_issues(records[:max_results], repository)

    def get_issue_comments(self, repository: str, issue_number: int) -> list[Comment]:
        """Fetch every comment on an issue (no page cap)."""
        owner, repo = parse_repository(repository)
        records = self.fetch_all_pages(
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            max_pages=None,
        )

        comments: list[Comment] = []
        for record in records:
            try:
                comments.append(Comment.from_api(record))
            except (KeyError, TypeError, ValueError) as exc:
                error = parsing_error(
                    exc,
                    ErrorContext(
                        operation="parsing comment",
                        repository=repository,
                        issue_id=issue_number,
                    ),
                )
                self.logger.warning(f"Skipping malformed comment: {error.message}")
        return comments

    def _to_issues(self, records: list[dict[str, Any]], repository: str) -> list[Issue]:
        issues: list[Issue] = []
        for record in records:
            try:
                issues.append(Issue.from_api(record))
            except (KeyError, TypeError, ValueError) as exc:
                error = parsing_error(
                    exc,
                    ErrorContext(
                        operation="parsing issue",
                        repository=repository,
                        issue_id=record.get("number") if isinstance(record, dict) else None,
                    ),
                )
                self.logger.warning(f"Skipping malformed issue: {error.message}")
        return issues
