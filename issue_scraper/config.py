"""
Configuration management for the GitHub issue scraper.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def load_env():
    """Load environment variables from .env (or .env.test under APP_ENV=test)."""
    app_env = os.getenv("APP_ENV", "development").lower()

    env_file = ".env"
    if app_env == "test" and os.path.exists(".env.test"):
        env_file = ".env.test"

    load_dotenv(env_file)


# Load environment variables
load_env()


# Base paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", BASE_DIR / "data"))

REPOSITORY_PATTERN = re.compile(r"^[\w.-]+/[\w.-]+$")


def _parse_timeout(
    raw: str, param_name: str, min_val: int = 1, max_val: int = 600
) -> int:
    """Validate timeout parameter as a bounded positive integer.

    Args:
        raw: Raw value from environment variable
        param_name: Name of the parameter for error messages
        min_val: Minimum allowed value (default 1)
        max_val: Maximum allowed value (default 600)

    Returns:
        Validated integer timeout value

    Raises:
        ValueError: If value is not an integer or out of range
    """
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValueError(
            f"Invalid Config.{param_name}: must be an integer, got '{raw}'"
        )

    if value < min_val or value > max_val:
        raise ValueError(
            f"Invalid Config.{param_name}: must be between {min_val} and {max_val} inclusive, got '{value}'"
        )
    return value


class Config:
    """Application configuration."""

    # GitHub
    GITHUB_TOKEN = os.getenv("GITHUB_TOKEN", "")
    GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com")
    GITHUB_TIMEOUT = _parse_timeout(
        os.getenv("GITHUB_TIMEOUT", "30"),
        "GITHUB_TIMEOUT",
        min_val=1,
        max_val=300,
    )
    GITHUB_MAX_RETRIES = int(os.getenv("GITHUB_MAX_RETRIES", 5))

    # Scrape defaults
    GITHUB_REPOSITORY = os.getenv("GITHUB_REPOSITORY", "")
    PRODUCT_AREA = os.getenv("PRODUCT_AREA", "")
    MAX_ISSUES = int(os.getenv("MAX_ISSUES", 50))
    MIN_RELEVANCE_SCORE = float(os.getenv("MIN_RELEVANCE_SCORE", 30))
    OUTPUT_PATH = Path(os.getenv("OUTPUT_PATH", "reports"))

    # Analysis
    VALID_ANALYZER_BACKENDS = ("keyword", "jan", "openai", "api", "gemini")
    ANALYZER_BACKEND = os.getenv("ANALYZER_BACKEND", "keyword").strip().lower()
    LLM_API_URL = os.getenv("LLM_API_URL", "")
    LLM_MODEL = os.getenv("LLM_MODEL", "")
    LLM_API_KEY = os.getenv("LLM_API_KEY", "")
    LLM_TIMEOUT = _parse_timeout(
        os.getenv("LLM_TIMEOUT", "120"),
        "LLM_TIMEOUT",
        min_val=1,
        max_val=600,
    )
    ANALYSIS_BATCH_SIZE = int(os.getenv("ANALYSIS_BATCH_SIZE", 0))  # 0 = automatic
    ANALYSIS_BATCH_DELAY = float(os.getenv("ANALYSIS_BATCH_DELAY", 2.0))

    # Directories
    LOG_DIR = Path(os.getenv("LOG_DIR", DATA_DIR / "logs"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON_FORMAT = os.getenv("LOG_JSON_FORMAT", "true").lower() == "true"
    LOG_FILE_MAX_BYTES = int(os.getenv("LOG_FILE_MAX_BYTES", 10 * 1024 * 1024))
    LOG_FILE_BACKUP_COUNT = int(os.getenv("LOG_FILE_BACKUP_COUNT", 5))
    LOG_TO_FILE = os.getenv("LOG_TO_FILE", "false").lower() == "true"

    @classmethod
    def ensure_directories(cls):
        """Create required directories if they don't exist."""
        for dir_path in [cls.OUTPUT_PATH, cls.LOG_DIR]:
            dir_path.mkdir(parents=True, exist_ok=True)

    @classmethod
    def validate(cls):
        """Validate config invariants and fail fast on misconfiguration."""
        if cls.ANALYZER_BACKEND not in cls.VALID_ANALYZER_BACKENDS:
            raise ValueError(
                f"Invalid ANALYZER_BACKEND '{cls.ANALYZER_BACKEND}'. "
                f"Must be one of: {', '.join(cls.VALID_ANALYZER_BACKENDS)}"
            )

        if cls.ANALYZER_BACKEND in ("openai", "api", "gemini") and not cls.LLM_API_KEY:
            raise ValueError(
                f"Invalid Config: ANALYZER_BACKEND='{cls.ANALYZER_BACKEND}' requires LLM_API_KEY"
            )

        if cls.ANALYZER_BACKEND in ("openai", "api") and not cls.LLM_API_URL:
            raise ValueError(
                f"Invalid Config: ANALYZER_BACKEND='{cls.ANALYZER_BACKEND}' requires LLM_API_URL"
            )

        if cls.GITHUB_MAX_RETRIES < 0:
            raise ValueError(
                f"Invalid Config.GITHUB_MAX_RETRIES: must be non-negative, got '{cls.GITHUB_MAX_RETRIES}'"
            )

        if cls.ANALYSIS_BATCH_SIZE < 0:
            raise ValueError(
                f"Invalid Config.ANALYSIS_BATCH_SIZE: must be non-negative, got '{cls.ANALYSIS_BATCH_SIZE}'"
            )

        if cls.ANALYSIS_BATCH_DELAY < 0:
            raise ValueError(
                f"Invalid Config.ANALYSIS_BATCH_DELAY: must be non-negative, got '{cls.ANALYSIS_BATCH_DELAY}'"
            )


@dataclass
class ScraperSettings:
    """Settings for a single scrape run, built once and passed explicitly."""

    repository: str
    product_area: str
    max_issues: int = 50
    min_relevance_score: float = 30
    output_path: Path = field(default_factory=lambda: Path("reports"))
    github_token: str = ""

    @classmethod
    def from_config(cls, **overrides: Optional[object]) -> "ScraperSettings":
        """Build settings from :class:`Config`, applying non-None overrides."""
        values = {
            "repository": Config.GITHUB_REPOSITORY,
            "product_area": Config.PRODUCT_AREA,
            "max_issues": Config.MAX_ISSUES,
            "min_relevance_score": Config.MIN_RELEVANCE_SCORE,
            "output_path": Config.OUTPUT_PATH,
            "github_token": Config.GITHUB_TOKEN,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        values["output_path"] = Path(values["output_path"])
        return cls(**values)  # type: ignore[arg-type]

    def validate(self) -> None:
        """Check run settings.

        Raises:
            ScraperError: VALIDATION error describing the first problem found
        """
        from issue_scraper.utils.errors import ErrorContext, ErrorSuggestion, validation_error

        context = ErrorContext(
            operation="validating settings",
            repository=self.repository or None,
            product_area=self.product_area or None,
        )

        if not self.github_token:
            raise validation_error(
                "GitHub token is required",
                context,
                [
                    ErrorSuggestion(
                        "Set GITHUB_TOKEN",
                        "Export GITHUB_TOKEN or add it to your .env file",
                        "high",
                    ),
                    ErrorSuggestion(
                        "Create a token",
                        "Generate a personal access token in GitHub developer settings",
                        "medium",
                    ),
                ],
            )

        if not REPOSITORY_PATTERN.match(self.repository or ""):
            raise validation_error(
                f"Repository must be in owner/repo format, got '{self.repository}'",
                context,
                [
                    ErrorSuggestion(
                        "Fix the repository name",
                        "Use the owner/repository format, e.g. 'microsoft/vscode'",
                        "high",
                    )
                ],
            )

        if not self.product_area.strip():
            raise validation_error(
                "Product area is required",
                context,
                [
                    ErrorSuggestion(
                        "Provide a product area",
                        "Describe the area to search for, e.g. 'authentication' or 'editor performance'",
                        "high",
                    )
                ],
            )

        if not 1 <= self.max_issues <= 1000:
            raise validation_error(
                f"max_issues must be between 1 and 1000, got {self.max_issues}",
                context,
            )

        if not 0 <= self.min_relevance_score <= 100:
            raise validation_error(
                f"min_relevance_score must be between 0 and 100, got {self.min_relevance_score}",
                context,
            )
