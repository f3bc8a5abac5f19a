"""Utility functions for Quire.

String, date and path helpers shared by the loader, the permalink
builder and the templates.

Key functions:
    slugify: Convert text or a filename stem to a URL slug.
    titleize: Convert filenames to human-readable titles.
    split_dated_name: Split a YYYY-MM-DD-prefixed name into date and slug.
    normalize_date: Coerce YAML dates, datetimes and strings to datetime.
    is_content_file: Check if a path has a recognised content suffix.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import re
import shutil
from datetime import date, datetime
from pathlib import Path

MARKDOWN_SUFFIXES = (".md", ".markdown")
HTML_SUFFIXES = (".html", ".htm")
CONTENT_SUFFIXES = MARKDOWN_SUFFIXES + HTML_SUFFIXES

DATED_NAME_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})-(.+)$")


def slugify(name: str) -> str:
    """Convert text to a lowercase, hyphen-separated slug.

    Args:
        name: Title or filename stem.

    Returns:
        URL-friendly slug, "index" when nothing usable remains.
    """
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", name)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Removes date prefixes (YYYY-MM-DD), replaces hyphens and underscores
    with spaces, and capitalizes each word.

    Args:
        filename: Filename with or without extension.

    Returns:
        Human-readable title string.

    Examples:
        >>> titleize("2025-12-08-lean-definitions.md")
        'Lean Definitions'

        >>> titleize("about.md")
        'About'
    """
    base = Path(filename).stem
    _, rest = split_dated_name(base)
    words = re.split(r"[\s\-_]+", rest)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def split_dated_name(name: str) -> tuple[datetime | None, str]:
    """Split a filename stem with a YYYY-MM-DD prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        Tuple of (date or None, remainder). When there is no valid date
        prefix the remainder is the whole name.

    Examples:
        >>> split_dated_name("2025-12-08-lean")
        (datetime.datetime(2025, 12, 8, 0, 0), 'lean')

        >>> split_dated_name("about")
        (None, 'about')
    """
    match = DATED_NAME_RE.match(name)
    if not match:
        return None, name
    year, month, day, rest = match.groups()
    try:
        return datetime(int(year), int(month), int(day)), rest
    except ValueError:
        return None, name


def normalize_date(value: date | datetime | str) -> datetime:
    """Coerce a front-matter date value to a naive datetime.

    YAML gives ``date`` for ``2025-12-08`` and ``datetime`` for full
    timestamps; quoted values arrive as strings. Timezone offsets are
    dropped and the wall-clock time is kept.

    Args:
        value: Date, datetime or ISO-8601 string.

    Returns:
        Naive datetime.

    Raises:
        ValueError: If a string value is not a recognisable date.
        TypeError: If the value is of another type.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        # Jekyll writes "2025-12-08 10:00:00 +0100"
        text = re.sub(r"\s+([+-]\d{2}):?(\d{2})$", r"\1:\2", text)
        return datetime.fromisoformat(text).replace(tzinfo=None)
    raise TypeError(f"expected a date, got {type(value).__name__}")


def is_markdown(path: Path) -> bool:
    """Return True if the path is a Markdown file."""
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def is_html(path: Path) -> bool:
    """Return True if the path is an HTML file."""
    return path.suffix.lower() in HTML_SUFFIXES


def is_content_file(path: Path) -> bool:
    """Return True if the path could hold a post or page."""
    return path.suffix.lower() in CONTENT_SUFFIXES


def is_hidden_part(part: str) -> bool:
    """Return True for path components Quire never treats as content."""
    return part.startswith(("_", "."))


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes all contents. Creates the
    directory if it doesn't exist.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)
