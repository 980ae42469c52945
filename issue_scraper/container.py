"""
Lightweight service container to centralize shared service construction.
"""

from __future__ import annotations

import threading
from typing import Optional

from issue_scraper.config import Config
from issue_scraper.orchestrator.pipeline import ScrapingPipeline
from issue_scraper.services import (
    Analyzer,
    GitHubClient,
    ReportGenerator,
    create_analyzer,
)
from issue_scraper.utils import get_logger


class ServiceContainer:
    """Simple container providing shared services and factories."""

    def __init__(self):
        self.logger = get_logger("container")
        self._analyzer: Optional[Analyzer] = None
        self._init_lock = threading.Lock()

    def get_github_client(self, token: Optional[str] = None) -> GitHubClient:
        return GitHubClient(
            token if token is not None else Config.GITHUB_TOKEN,
            base_url=Config.GITHUB_API_URL,
            timeout=Config.GITHUB_TIMEOUT,
            max_retries=Config.GITHUB_MAX_RETRIES,
        )

    def get_analyzer(self, backend: Optional[str] = None) -> Analyzer:
        """Analyzer for ``backend``; the configured one is built once and shared."""
        if backend and backend != Config.ANALYZER_BACKEND:
            return self._build_analyzer(backend)
        if self._analyzer is None:
            with self._init_lock:
                if self._analyzer is None:
                    self._analyzer = self._build_analyzer(Config.ANALYZER_BACKEND)
        return self._analyzer

    def _build_analyzer(self, backend: str) -> Analyzer:
        self.logger.debug(f"Creating analyzer for backend '{backend}'")
        return create_analyzer(
            backend=backend,
            model=Config.LLM_MODEL,
            url=Config.LLM_API_URL,
            api_key=Config.LLM_API_KEY,
            timeout=Config.LLM_TIMEOUT,
            batch_size=Config.ANALYSIS_BATCH_SIZE,
        )

    def get_report_generator(self) -> ReportGenerator:
        return ReportGenerator()

    def get_pipeline(
        self,
        token: Optional[str] = None,
        analyzer_backend: Optional[str] = None,
    ) -> ScrapingPipeline:
        return ScrapingPipeline(
            self.get_github_client(token),
            self.get_analyzer(analyzer_backend),
            self.get_report_generator(),
            batch_size=Config.ANALYSIS_BATCH_SIZE or None,
            batch_delay=Config.ANALYSIS_BATCH_DELAY,
        )


_container = ServiceContainer()


def get_container() -> ServiceContainer:
    return _container


def reset_container() -> None:
    """Drop cached services (used by tests after patching Config)."""
    global _container
    _container = ServiceContainer()
