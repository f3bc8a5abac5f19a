"""URL derivation for posts and pages.

Posts are placed according to the site's ``permalink`` setting, either a
built-in style name or a template made of ``:placeholder`` segments.
Pages keep their source path. A ``permalink`` key in an item's own front
matter overrides both.

Key functions:
- post_url: URL for a post or draft.
- page_url: URL for a standalone page.
- expand_permalink: Substitute placeholders in a permalink template.
- post_placeholders, page_placeholders: Values for front-matter permalinks.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Iterable, Mapping
from datetime import datetime

from .utils import slugify

PERMALINK_STYLES = {
    "date": "/:categories/:year/:month/:day/:title:output_ext",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "ordinal": "/:categories/:year/:y_day/:title:output_ext",
    "none": "/:categories/:title:output_ext",
}

PAGE_TEMPLATE = "/:path/:basename:output_ext"
PRETTY_PAGE_TEMPLATE = "/:path/:basename/"
OUTPUT_EXT = ".html"

_PLACEHOLDER_RE = re.compile(r":([a-z_]+)")


def resolve_style(permalink: str | None) -> str:
    """Map a style name to its template; custom templates pass through."""
    value = (permalink or "date").strip()
    return PERMALINK_STYLES.get(value, value)


def expand_permalink(template: str, values: Mapping[str, str]) -> str:
    """Substitute ``:name`` placeholders and normalize slashes.

    Unknown placeholders are left as written.

    Args:
        template: Permalink template such as ``/:year/:title/``.
        values: Placeholder values.

    Returns:
        URL path beginning with "/".
    """

    def repl(match: re.Match) -> str:
        return values.get(match.group(1), match.group(0))

    expanded = _PLACEHOLDER_RE.sub(repl, template)
    trailing = expanded.endswith("/")
    collapsed = re.sub(r"/{2,}", "/", "/" + expanded)
    normalized = posixpath.normpath(collapsed)
    if normalized == "/":
        return "/"
    return normalized + "/" if trailing else normalized


def _category_path(categories: Iterable[str]) -> str:
    return "/".join(slugify(c) for c in categories)


def post_placeholders(
    date: datetime, slug: str, categories: Iterable[str] = ()
) -> dict[str, str]:
    """Placeholder values available to post permalinks."""
    return {
        "year": f"{date.year:04d}",
        "short_year": f"{date.year % 100:02d}",
        "month": f"{date.month:02d}",
        "i_month": str(date.month),
        "day": f"{date.day:02d}",
        "i_day": str(date.day),
        "y_day": f"{date.timetuple().tm_yday:03d}",
        "title": slug,
        "slug": slug,
        "categories": _category_path(categories),
        "output_ext": OUTPUT_EXT,
    }


def page_placeholders(identifier: str, slug: str | None = None) -> dict[str, str]:
    """Placeholder values available to page permalinks."""
    directory, filename = posixpath.split(identifier)
    basename = posixpath.splitext(filename)[0]
    return {
        "path": directory,
        "basename": basename,
        "title": slug or basename,
        "slug": slug or basename,
        "output_ext": OUTPUT_EXT,
    }


def post_url(
    date: datetime,
    slug: str,
    categories: Iterable[str] = (),
    permalink: str | None = None,
) -> str:
    """Derive the URL of a post.

    Args:
        date: Post date.
        slug: URL slug of the post.
        categories: Post categories, used by ``:categories``.
        permalink: Style name or template from the site configuration.

    Returns:
        URL path.

    Examples:
        >>> post_url(datetime(2025, 12, 8), "lean-definitions", ["lean"])
        '/lean/2025/12/08/lean-definitions.html'
    """
    values = post_placeholders(date, slug, categories)
    return expand_permalink(resolve_style(permalink), values)


def page_url(identifier: str, permalink: str | None = None) -> str:
    """Derive the URL of a page from its source path.

    ``index`` files map to their directory. Pages use the pretty form
    when the site permalink ends with a slash.

    Args:
        identifier: POSIX path of the page relative to the site root.
        permalink: Style name or template from the site configuration.

    Returns:
        URL path.

    Examples:
        >>> page_url("about.md")
        '/about.html'

        >>> page_url("teaching/index.html")
        '/teaching/'
    """
    values = page_placeholders(identifier)
    if values["basename"] == "index":
        return expand_permalink("/:path/", values)
    pretty = resolve_style(permalink).endswith("/")
    template = PRETTY_PAGE_TEMPLATE if pretty else PAGE_TEMPLATE
    return expand_permalink(template, values)
