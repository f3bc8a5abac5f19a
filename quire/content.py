"""Content discovery and parsing for Quire.

This module finds the posts, drafts and pages of a site and turns each
file into an immutable ContentItem.

Key classes:
- SourceFile: Reference to a discovered content file.
- ContentItem: Dataclass representing one post or page.
- ContentLoader: Discovers content files under a site root.
- ContentParser: Splits front matter from the body and builds ContentItems.

Key functions:
- discover: Ordered list of content files under a root.
- parse: Build a ContentItem from one file.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import MalformedFrontMatterError, NotFoundError
from .extractors import (
    CompositeMetadataExtractor,
    default_metadata_extractor,
    first_chunk,
)
from .frontmatter import FrontmatterDefaults, has_frontmatter, parse_frontmatter
from .permalinks import (
    expand_permalink,
    page_placeholders,
    page_url,
    post_placeholders,
    post_url,
)
from .renderers import RendererRegistry, default_renderer_registry
from .utils import is_content_file, is_hidden_part, split_dated_name

POSTS_DIR = "_posts"
DRAFTS_DIR = "_drafts"

# Front-matter values that mean "render without a layout"
NO_LAYOUT = (None, "", "none", "null")


@dataclass(frozen=True)
class SourceFile:
    """A content file found by discovery.

    Attributes:
        path: Absolute path to the file.
        identifier: POSIX path relative to the site root.
        kind: "post", "draft" or "page".
        date: Date encoded in the identifier (mtime for drafts), None for pages.
    """

    path: Path
    identifier: str
    kind: str
    date: datetime | None = None

    @property
    def is_post(self) -> bool:
        return self.kind in ("post", "draft")


@dataclass(frozen=True)
class ContentItem:
    """One unit of published content, a post or a standalone page.

    Attributes:
        identifier: Source path relative to the site root.
        path: Absolute path to the source file.
        kind: "post", "draft" or "page".
        layout: Name of the layout wrapping this item, None for no layout.
        title: Human-readable title.
        date: Publication date (None for undated pages).
        categories: Ordered, de-duplicated category names.
        body: Raw body text after the front matter.
        content: Body converted to HTML (HTML bodies are kept as written).
        excerpt: HTML of the body's first chunk.
        slug: URL slug.
        url: URL path of the rendered output.
        source_type: "markdown" or "html".
        frontmatter: Front matter with defaults applied.
    """

    identifier: str
    path: Path
    kind: str
    layout: str | None
    title: str
    date: datetime | None
    categories: tuple[str, ...]
    body: str
    content: str
    excerpt: str
    slug: str
    url: str
    source_type: str
    frontmatter: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_post(self) -> bool:
        return self.kind in ("post", "draft")

    @property
    def draft(self) -> bool:
        return self.kind == "draft"


def _sort_posts(sources: Iterable[SourceFile]) -> list[SourceFile]:
    # Stable two-pass sort: identifier ascending, then date descending
    by_identifier = sorted(sources, key=lambda s: s.identifier)
    return sorted(by_identifier, key=lambda s: s.date, reverse=True)


class ContentLoader:
    """Discovers content files under a site root.

    Posts live in ``_posts/`` and must be named ``YYYY-MM-DD-title.ext``.
    Drafts live in ``_drafts/``. Pages are any other Markdown or HTML
    file outside underscore- and dot-prefixed directories whose first
    line opens a front-matter block.

    Attributes:
        root: Site root directory.
        exclude: Directories never searched for pages (e.g. the output).
    """

    def __init__(self, root: Path, exclude: Iterable[Path] = ()):
        self.root = root
        self.exclude = [Path(p).resolve() for p in exclude]

    def discover(self, include_drafts: bool = False) -> list[SourceFile]:
        """Enumerate content files.

        Args:
            include_drafts: Whether to include files from ``_drafts/``.

        Returns:
            Posts (and drafts) newest first, ties broken by identifier,
            followed by pages sorted by identifier.

        Raises:
            NotFoundError: If the root directory does not exist.
        """
        if not self.root.is_dir():
            raise NotFoundError(self.root)

        posts = self._iter_posts()
        if include_drafts:
            posts.extend(self._iter_drafts())
        pages = sorted(self._iter_pages(), key=lambda s: s.identifier)
        return _sort_posts(posts) + pages

    def _identifier(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def _iter_posts(self) -> list[SourceFile]:
        posts_dir = self.root / POSTS_DIR
        sources: list[SourceFile] = []
        if not posts_dir.is_dir():
            return sources
        for path in sorted(posts_dir.rglob("*")):
            if not path.is_file() or not is_content_file(path):
                continue
            if any(part.startswith(".") for part in path.relative_to(posts_dir).parts):
                continue
            date, _ = split_dated_name(path.stem)
            if date is None:
                print(f"Skipping {self._identifier(path)}: post filenames must start with YYYY-MM-DD-")
                continue
            sources.append(SourceFile(path, self._identifier(path), "post", date))
        return sources

    def _iter_drafts(self) -> list[SourceFile]:
        drafts_dir = self.root / DRAFTS_DIR
        sources: list[SourceFile] = []
        if not drafts_dir.is_dir():
            return sources
        for path in sorted(drafts_dir.rglob("*")):
            if not path.is_file() or not is_content_file(path):
                continue
            if any(part.startswith(".") for part in path.relative_to(drafts_dir).parts):
                continue
            date = datetime.fromtimestamp(path.stat().st_mtime).replace(microsecond=0)
            sources.append(SourceFile(path, self._identifier(path), "draft", date))
        return sources

    def _iter_pages(self) -> list[SourceFile]:
        sources: list[SourceFile] = []
        for path in self.root.rglob("*"):
            if not path.is_file() or not is_content_file(path):
                continue
            rel = path.relative_to(self.root)
            if any(is_hidden_part(part) for part in rel.parts):
                continue
            if self._is_excluded(path):
                continue
            if not has_frontmatter(path):
                continue
            sources.append(SourceFile(path, rel.as_posix(), "page"))
        return sources

    def _is_excluded(self, path: Path) -> bool:
        resolved = path.resolve()
        return any(resolved.is_relative_to(ex) for ex in self.exclude)


def source_for(path: Path, root: Path | None = None) -> SourceFile:
    """Build a SourceFile for a single path.

    The kind is inferred from the enclosing ``_posts``/``_drafts``
    directory.

    Args:
        path: Content file.
        root: Site root; defaults to the directory above ``_posts``/``_drafts``
            or the file's own directory.

    Returns:
        SourceFile for the path.
    """
    parts = path.parts
    if POSTS_DIR in parts:
        kind = "post"
    elif DRAFTS_DIR in parts:
        kind = "draft"
    else:
        kind = "page"
    if root is None:
        if kind == "page":
            root = path.parent
        else:
            marker = POSTS_DIR if kind == "post" else DRAFTS_DIR
            index = len(parts) - 1 - parts[::-1].index(marker)
            root = Path(*parts[:index]) if index else Path(".")
    identifier = path.relative_to(root).as_posix()
    date = None
    if kind == "post":
        date, _ = split_dated_name(path.stem)
    elif kind == "draft":
        date = datetime.fromtimestamp(path.stat().st_mtime).replace(microsecond=0)
    return SourceFile(path, identifier, kind, date)


class ContentParser:
    """Builds ContentItems from source files.

    Attributes:
        config: Site configuration (``permalink``, ``defaults``,
            ``excerpt_separator`` are consulted).
        defaults: Scoped front-matter defaults.
        renderer_registry: Registry of body renderers.
        metadata_extractor: Composite metadata extractor.
    """

    def __init__(
        self,
        config: Mapping[str, Any] | None = None,
        renderer_registry: RendererRegistry | None = None,
        metadata_extractor: CompositeMetadataExtractor | None = None,
    ):
        self.config = dict(config or {})
        self.defaults = FrontmatterDefaults(self.config.get("defaults"))
        self.renderer_registry = renderer_registry or default_renderer_registry
        self.metadata_extractor = metadata_extractor or default_metadata_extractor

    def parse(self, source: SourceFile) -> ContentItem:
        """Parse one source file.

        Args:
            source: File to parse.

        Returns:
            ContentItem.

        Raises:
            MalformedFrontMatterError: On unbalanced delimiters, invalid
                YAML, non-mapping front matter or a missing ``layout``.
        """
        text = source.path.read_text(encoding="utf-8")
        own, body = parse_frontmatter(text, source.identifier)
        frontmatter = {**self.defaults.values_for(source.identifier, source.kind), **own}

        if "layout" not in frontmatter:
            raise MalformedFrontMatterError(source.identifier, "missing required key 'layout'")
        layout = frontmatter["layout"]
        if layout not in NO_LAYOUT and not isinstance(layout, str):
            raise MalformedFrontMatterError(
                source.identifier, f"'layout' must be a string, got {type(layout).__name__}"
            )

        metadata = self.metadata_extractor.extract(frontmatter, source)
        date = metadata.get("date")
        if source.is_post and date is None:
            raise MalformedFrontMatterError(source.identifier, "posts need a date")

        renderer = self.renderer_registry.get_renderer(source.path)
        if renderer is None:
            source_type = "html"
            content = body
        else:
            source_type = renderer.source_type
            content = renderer.render(body)

        return ContentItem(
            identifier=source.identifier,
            path=source.path,
            kind=source.kind,
            layout=None if layout in NO_LAYOUT else layout,
            title=metadata["title"],
            date=date,
            categories=metadata.get("categories", ()),
            body=body,
            content=content,
            excerpt=self._excerpt(frontmatter, body, renderer),
            slug=metadata["slug"],
            url=self._url(frontmatter, source, metadata),
            source_type=source_type,
            frontmatter=frontmatter,
        )

    def _excerpt(self, frontmatter: Mapping[str, Any], body: str, renderer) -> str:
        explicit = frontmatter.get("excerpt")
        if explicit is not None:
            chunk = str(explicit)
        else:
            separator = frontmatter.get(
                "excerpt_separator", self.config.get("excerpt_separator", "\n\n")
            )
            chunk = first_chunk(body, str(separator or ""))
        if not chunk:
            return ""
        return renderer.render(chunk) if renderer is not None else chunk

    def _url(
        self, frontmatter: Mapping[str, Any], source: SourceFile, metadata: Mapping[str, Any]
    ) -> str:
        style = self.config.get("permalink")
        explicit = frontmatter.get("permalink")
        if source.is_post:
            if explicit:
                values = post_placeholders(
                    metadata["date"], metadata["slug"], metadata.get("categories", ())
                )
                return expand_permalink(str(explicit), values)
            return post_url(
                metadata["date"], metadata["slug"], metadata.get("categories", ()), style
            )
        if explicit:
            return expand_permalink(str(explicit), page_placeholders(source.identifier))
        return page_url(source.identifier, style)


def discover(
    root: Path, include_drafts: bool = False, exclude: Iterable[Path] = ()
) -> list[SourceFile]:
    """Enumerate content files under ``root``.

    See :meth:`ContentLoader.discover`.
    """
    return ContentLoader(Path(root), exclude=exclude).discover(include_drafts)


def parse(source: SourceFile | Path, config: Mapping[str, Any] | None = None) -> ContentItem:
    """Parse one content file into a ContentItem.

    Args:
        source: A SourceFile from discovery, or a path (its kind is
            inferred from the enclosing directory).
        config: Site configuration.

    Returns:
        ContentItem.
    """
    if not isinstance(source, SourceFile):
        source = source_for(Path(source))
    return ContentParser(config).parse(source)
