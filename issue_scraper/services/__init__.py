"""
Service modules for the GitHub issue scraper.
"""

from .github_client import GitHubClient, parse_repository
from .analyzer import Analyzer, AnalysisResult, KeywordAnalyzer, LLMAnalyzer, create_analyzer
from .issue_parser import IssueParser
from .relevance_filter import RelevanceFilter, filter_and_rank
from .report_generator import ReportGenerator, ReportMetadata

__all__ = [
    "GitHubClient",
    "parse_repository",
    "Analyzer",
    "AnalysisResult",
    "KeywordAnalyzer",
    "LLMAnalyzer",
    "create_analyzer",
    "IssueParser",
    "RelevanceFilter",
    "filter_and_rank",
    "ReportGenerator",
    "ReportMetadata",
]
