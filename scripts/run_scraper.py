#!/usr/bin/env python3
"""
CLI interface for scraping GitHub issues into a markdown report.

Exit codes:
    0 - Success
    1 - Failure (including no relevant issues found)
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from issue_scraper.config import Config, ScraperSettings
from issue_scraper.container import get_container
from issue_scraper.models import ScrapingProgress
from issue_scraper.utils import setup_logging, get_logger
from issue_scraper.utils.errors import ScraperError, format_error

logger = get_logger("cli")


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Scrape GitHub issues for a product area and report workarounds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    %(prog)s --repository microsoft/vscode --product-area "authentication"
    %(prog)s -r facebook/react -p "hooks state" --max-issues 20 --min-score 40
    %(prog)s -r microsoft/vscode -p "editor performance" --analyzer jan
    %(prog)s -r microsoft/vscode -p "terminal" --output-format json
    %(prog)s --rate-limit
        """,
    )

    # Scrape target
    parser.add_argument(
        "--repository", "-r",
        type=str,
        default=None,
        help="Repository in owner/repo format (default: GITHUB_REPOSITORY)",
    )
    parser.add_argument(
        "--product-area", "-p",
        type=str,
        default=None,
        help="Product area keywords to search for (default: PRODUCT_AREA)",
    )

    # Scrape options
    parser.add_argument(
        "--max-issues", "-m",
        type=int,
        default=None,
        help=f"Maximum issues in the report (default: {Config.MAX_ISSUES})",
    )
    parser.add_argument(
        "--min-score",
        type=float,
        default=None,
        help=f"Minimum relevance score 0-100 (default: {Config.MIN_RELEVANCE_SCORE:g})",
    )
    parser.add_argument(
        "--analyzer", "-a",
        choices=Config.VALID_ANALYZER_BACKENDS,
        default=None,
        help=f"Analysis backend (default: {Config.ANALYZER_BACKEND})",
    )
    parser.add_argument(
        "--output-path",
        type=Path,
        default=None,
        help=f"Directory for the report (default: {Config.OUTPUT_PATH})",
    )
    parser.add_argument(
        "--rate-limit",
        action="store_true",
        help="Show the current GitHub API rate limit and exit",
    )

    # Output options
    parser.add_argument(
        "--output-format", "-o",
        choices=["json", "text"],
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress progress output (only show final result)",
    )

    return parser.parse_args(argv)


def print_progress(progress: ScrapingProgress) -> None:
    print(f"[{progress.phase}] {progress.current}/{progress.total} {progress.message}", flush=True)


def report_error(error: ScraperError, output_format: str) -> None:
    if output_format == "json":
        print(json.dumps({"error": error.to_dict()}, indent=2))
    else:
        print(format_error(error), file=sys.stderr)


def show_rate_limit(output_format: str) -> int:
    """Print the current core API quota."""
    client = get_container().get_github_client()
    try:
        info = client.get_rate_limit()
    except ScraperError as e:
        report_error(e, output_format)
        return 1

    if output_format == "json":
        print(json.dumps(info.to_dict(), indent=2))
    else:
        print(f"Rate limit: {info.remaining}/{info.limit} remaining, resets at {info.reset_at.isoformat()}")
    return 0


def run_scrape(args) -> int:
    """Run one scrape and print the result."""
    settings = ScraperSettings.from_config(
        repository=args.repository,
        product_area=args.product_area,
        max_issues=args.max_issues,
        min_relevance_score=args.min_score,
        output_path=args.output_path,
    )

    try:
        settings.validate()
        pipeline = get_container().get_pipeline(
            token=settings.github_token,
            analyzer_backend=args.analyzer,
        )
        progress = None if args.quiet or args.output_format == "json" else print_progress
        result = pipeline.run(settings, on_progress=progress)
    except ScraperError as e:
        report_error(e, args.output_format)
        return 1

    if args.output_format == "json":
        print(result.to_json())
    else:
        metadata = result.metadata
        print("\n" + "=" * 60)
        print(f"Repository:   {settings.repository}")
        print(f"Product area: {settings.product_area}")
        print(f"Analyzer:     {metadata.analysis_method}")
        print("-" * 60)
        print(f"  Issues analyzed:   {metadata.total_issues_analyzed}")
        print(f"  Relevant issues:   {metadata.relevant_issues_found}")
        print(f"  Average relevance: {metadata.average_relevance_score}")
        print(f"  Workarounds found: {metadata.workarounds_found}")
        print("-" * 60)
        for issue in result.issues[:10]:  # Show top 10
            print(f"  #{issue.number:<7} {issue.relevance_score:>5g}%  {issue.title[:60]}")
        if len(result.issues) > 10:
            print(f"  ... and {len(result.issues) - 10} more in the report")
        print("-" * 60)
        print(f"Report: {result.report_path}")
        print("=" * 60 + "\n")

    return 0


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    log_level = "WARNING" if args.quiet else Config.LOG_LEVEL
    setup_logging(level=log_level)

    try:
        Config.validate()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.rate_limit:
        return show_rate_limit(args.output_format)

    return run_scrape(args)


if __name__ == "__main__":
    sys.exit(main())
