"""
File utility functions for the GitHub issue scraper.
"""

from __future__ import annotations

import logging
import os
import re
import unicodedata
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

REPORT_FILENAME_TEMPLATE = (
    "github-issues-{{ repository | slugify }}-{{ product_area | slugify | shorten(30) }}-"
    "{{ date }}.md"
)


def sanitize_filename(filename: str, max_length: int = 200) -> str:
    """
    Sanitize a filename by removing/replacing invalid characters.

    Args:
        filename: Original filename
        max_length: Maximum length for the filename

    Returns:
        Sanitized filename safe for filesystem use
    """
    filename = unicodedata.normalize("NFKD", filename)
    filename = filename.encode("ascii", "ignore").decode("ascii")

    filename = re.sub(r'[<>:"/\\|?*]', "_", filename)
    filename = re.sub(r"[\x00-\x1f\x7f]", "", filename)  # Control characters
    filename = re.sub(r"[\s_]+", "_", filename)
    filename = filename.strip(". _")

    if len(filename) > max_length:
        path = Path(filename)
        ext = path.suffix
        filename = f"{path.stem[: max_length - len(ext)]}{ext}"

    return filename or "unnamed"


def slugify(value: str) -> str:
    """Lowercase and replace every non-alphanumeric character with '-'."""
    value = unicodedata.normalize("NFKD", value or "")
    value = value.encode("ascii", "ignore").decode("ascii").lower()
    return re.sub(r"[^a-z0-9]", "-", value)


def shorten(value: str, length: int) -> str:
    """Truncate to ``length`` characters."""
    return value[:length]


def truncate_text(text: str, max_length: int) -> str:
    """Truncate text, preferring a word boundary near the end, and add '...'."""
    if len(text) <= max_length:
        return text
    truncated = text[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.8:
        return truncated[:last_space] + "..."
    return truncated + "..."


def ensure_dir(path: Path) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        The path that was ensured to exist
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def generate_report_filename(
    repository: str,
    product_area: str,
    date: Optional[datetime] = None,
    template: str = REPORT_FILENAME_TEMPLATE,
) -> str:
    """
    Generate a report filename from a Jinja2 template.

    Args:
        repository: Repository in owner/repo form
        product_area: Product area searched for
        date: Scrape date (defaults to now)
        template: Jinja2 template string

    Returns:
        Filename such as ``github-issues-microsoft-vscode-authentication-2024-05-01.md``

    Available template variables:
        - repository, product_area: raw values
        - date: YYYY-MM-DD
        - year, month, day
    """
    from jinja2.sandbox import SandboxedEnvironment

    dt = date or datetime.now()
    context = {
        "repository": repository,
        "product_area": product_area,
        "date": dt.strftime("%Y-%m-%d"),
        "year": dt.strftime("%Y"),
        "month": dt.strftime("%m"),
        "day": dt.strftime("%d"),
    }

    env = SandboxedEnvironment()
    env.filters["slugify"] = slugify
    env.filters["shorten"] = shorten
    rendered = env.from_string(template).render(**context)

    return sanitize_filename(rendered)


def atomic_write_text(path: Path, content: str, encoding: str = "utf-8") -> Path:
    """
    Write text through a temporary sibling file and rename it into place.

    Args:
        path: Final file path
        content: Text to write
        encoding: File encoding

    Returns:
        The final path

    Raises:
        OSError: If writing or renaming fails; the temp file is removed first
    """
    temp_path = path.with_name(path.name + ".tmp")
    try:
        with open(temp_path, "w", encoding=encoding, newline="") as f:
            f.write(content)
        os.replace(temp_path, path)
    except OSError:
        if temp_path.exists():
            try:
                temp_path.unlink()
            except OSError as cleanup_error:
                logger.warning(f"Could not remove temp file {temp_path}: {cleanup_error}")
        raise
    return path
