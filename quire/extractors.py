"""Metadata extractors for Quire.

Each extractor derives one piece of item metadata from the front matter
(with defaults applied) and the source file's location.

Key classes:
- TitleExtractor: Title from front matter or filename.
- DateExtractor: Date from front matter, the post filename, or mtime.
- CategoriesExtractor: Categories from ``categories`` or ``category``.
- SlugExtractor: URL slug from front matter or filename.
- CompositeMetadataExtractor: Runs all extractors and merges results.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .errors import MalformedFrontMatterError
from .utils import normalize_date, slugify, split_dated_name, titleize

if TYPE_CHECKING:
    from .content import SourceFile


class TitleExtractor:
    """Uses the ``title`` key, falling back to a titleized filename."""

    def extract(self, frontmatter: Mapping[str, Any], source: SourceFile) -> dict[str, Any]:
        title = frontmatter.get("title")
        if title is None or str(title).strip() == "":
            return {"title": titleize(source.path.name)}
        return {"title": str(title)}


class DateExtractor:
    """Resolves the item date.

    Order of precedence: the ``date`` key, the date encoded in the
    source (post filename prefix, draft mtime). Pages without a ``date``
    key have no date.
    """

    def extract(self, frontmatter: Mapping[str, Any], source: SourceFile) -> dict[str, Any]:
        value = frontmatter.get("date")
        if value is None:
            return {"date": source.date}
        try:
            return {"date": normalize_date(value)}
        except (TypeError, ValueError) as exc:
            raise MalformedFrontMatterError(
                source.identifier, f"invalid date {value!r}: {exc}"
            ) from exc


class CategoriesExtractor:
    """Normalizes ``categories`` (list or space-separated string) and ``category``.

    The result is an ordered tuple without duplicates. Pages carry
    categories only when they declare them.
    """

    def extract(self, frontmatter: Mapping[str, Any], source: SourceFile) -> dict[str, Any]:
        collected: list[str] = []
        for key in ("category", "categories"):
            value = frontmatter.get(key)
            if value is None:
                continue
            if isinstance(value, str):
                names = value.split()
            elif isinstance(value, (list, tuple)):
                names = [str(v) for v in value if v is not None]
            else:
                raise MalformedFrontMatterError(
                    source.identifier,
                    f"'{key}' must be a string or a list, got {type(value).__name__}",
                )
            for name in names:
                if name and name not in collected:
                    collected.append(name)
        return {"categories": tuple(collected)}


class SlugExtractor:
    """Uses the ``slug`` key, falling back to the filename without its date prefix."""

    def extract(self, frontmatter: Mapping[str, Any], source: SourceFile) -> dict[str, Any]:
        explicit = frontmatter.get("slug")
        if explicit:
            return {"slug": slugify(str(explicit))}
        _, rest = split_dated_name(source.path.stem)
        return {"slug": slugify(rest)}


class CompositeMetadataExtractor:
    """Combines multiple metadata extractors.

    Runs all registered extractors and merges their results. Later
    extractors can override earlier ones.
    """

    def __init__(self, extractors: list | None = None):
        """Initialize with a list of extractors.

        Args:
            extractors: List of MetadataExtractor implementations.
                       If None, uses default extractors.
        """
        if extractors is None:
            self._extractors = [
                TitleExtractor(),
                DateExtractor(),
                CategoriesExtractor(),
                SlugExtractor(),
            ]
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor) -> None:
        """Add an extractor to the composite."""
        self._extractors.append(extractor)

    def extract(self, frontmatter: Mapping[str, Any], source: SourceFile) -> dict[str, Any]:
        """Extract all metadata for a source file.

        Args:
            frontmatter: Front matter with defaults applied.
            source: The file being parsed.

        Returns:
            Dictionary with all extracted metadata.
        """
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(frontmatter, source))
        return result


# Default composite extractor instance
default_metadata_extractor = CompositeMetadataExtractor()


def first_chunk(body: str, separator: str) -> str:
    """Return the body up to the first excerpt separator, stripped.

    Args:
        body: Body text.
        separator: Excerpt separator; an empty separator means no excerpt.

    Returns:
        The leading chunk, or "" when the body or separator is empty.
    """
    if not separator:
        return ""
    stripped = body.lstrip("\n")
    head, _, _ = stripped.partition(separator)
    return head.strip()

