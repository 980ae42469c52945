"""
Tests for the ServiceContainer.
"""

from unittest.mock import patch

from issue_scraper.config import Config
from issue_scraper.container import ServiceContainer, get_container, reset_container
from issue_scraper.orchestrator import ScrapingPipeline
from issue_scraper.services import GitHubClient, KeywordAnalyzer, LLMAnalyzer


class TestServiceContainer:
    """Test ServiceContainer functionality."""

    def teardown_method(self):
        reset_container()

    def test_singleton_accessor(self):
        assert get_container() is get_container()

    def test_reset_creates_new_instance(self):
        before = get_container()
        reset_container()
        assert get_container() is not before

    def test_github_client_uses_config(self):
        with (
            patch.object(Config, "GITHUB_TOKEN", "ghp_config"),
            patch.object(Config, "GITHUB_TIMEOUT", 12),
            patch.object(Config, "GITHUB_MAX_RETRIES", 2),
        ):
            client = ServiceContainer().get_github_client()

        assert isinstance(client, GitHubClient)
        assert client.session.headers["Authorization"] == "Bearer ghp_config"
        assert client.timeout == 12
        assert client.max_retries == 2

    def test_explicit_token_wins(self):
        with patch.object(Config, "GITHUB_TOKEN", "ghp_config"):
            client = ServiceContainer().get_github_client("ghp_explicit")
        assert client.session.headers["Authorization"] == "Bearer ghp_explicit"

    def test_configured_analyzer_is_cached(self):
        container = ServiceContainer()
        first = container.get_analyzer()
        assert isinstance(first, KeywordAnalyzer)
        assert container.get_analyzer() is first

    def test_other_backend_built_on_demand(self):
        with patch.object(Config, "LLM_MODEL", "llama3.2-3b"):
            analyzer = ServiceContainer().get_analyzer("jan")
        assert isinstance(analyzer, LLMAnalyzer)

    def test_pipeline_wiring(self):
        with (
            patch.object(Config, "ANALYSIS_BATCH_SIZE", 0),
            patch.object(Config, "ANALYSIS_BATCH_DELAY", 0.5),
        ):
            pipeline = ServiceContainer().get_pipeline(token="t")

        assert isinstance(pipeline, ScrapingPipeline)
        assert pipeline.batch_size is None
        assert pipeline.batch_delay == 0.5
        assert pipeline.analyzer.name == "keyword"
