"""Template rendering engine for Quire.

This module uses Jinja2 to render content items through their layout
chains. It owns the Jinja environment, the site-wide template context
and the URL/date filters available to layouts.

Key class:
- TemplateEngine: Builds the environment and site context, renders items.

Key function:
- render: Render one ContentItem through a LayoutCollection.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .collections import PostCollection, build_category_index
from .content import ContentItem
from .errors import BuildError
from .html_utils import is_external_url, join_root_url
from .layouts import Layout, LayoutCollection, load_layouts, resolve_chain
from .utils import slugify

INCLUDES_DIR = "_includes"
LAYOUTS_DIR = "_layouts"

__all__ = ["TemplateEngine", "create_environment", "render"]


def create_environment(search_path: Iterable[Path] = ()) -> Environment:
    """Create a Jinja2 environment with HTML autoescaping.

    Args:
        search_path: Directories searched by ``{% include %}``.

    Returns:
        Configured Environment.
    """
    return Environment(
        loader=FileSystemLoader([str(p) for p in search_path]),
        autoescape=select_autoescape(["html", "xml"], default_for_string=True),
        enable_async=False,
        keep_trailing_newline=True,
    )


def _render_body(item: ContentItem, env: Environment, context: Mapping[str, Any]) -> str:
    """Render the item body.

    HTML bodies are Jinja templates and see the same context as layouts;
    Markdown has already been converted during parsing.
    """
    if item.source_type == "html":
        return env.from_string(item.content).render(dict(context))
    return item.content


def render(
    item: ContentItem,
    layouts: Mapping[str, Layout],
    site: Mapping[str, Any] | None = None,
    env: Environment | None = None,
) -> str:
    """Render an item through its layout chain.

    The item's layout is resolved first, then each parent it declares;
    the body is substituted into the innermost layout and each result
    into the next one out.

    Args:
        item: Content item to render.
        layouts: Mapping of layout name to Layout.
        site: Site-wide template variables.
        env: Environment used for HTML bodies.

    Returns:
        Final markup.

    Raises:
        UnresolvedLayoutError: If a layout in the chain is missing.
        CyclicLayoutError: If the chain loops.
    """
    chain = resolve_chain(item.layout, layouts) if item.layout else []
    env = env or create_environment()
    context = {
        "page": item,
        "frontmatter": item.frontmatter,
        "site": site or {},
    }
    content = _render_body(item, env, context)
    for layout in chain:
        content = layout.render(content, context)
    return content


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        root: Site root directory.
        config: Site configuration.
        data: Site data from ``_data/``.
        env: Jinja2 environment.
        site: Site-wide template context, refreshed by update_collections.
    """

    def __init__(
        self,
        root: Path,
        config: Mapping[str, Any],
        data: Mapping[str, Any] | None = None,
    ):
        """Initialize the template engine.

        Args:
            root: Site root with ``_layouts/`` and ``_includes/``.
            config: Site configuration.
            data: Site data.
        """
        self.root = root
        self.config = dict(config)
        self.data = dict(data or {})
        self.env = create_environment([root / INCLUDES_DIR, root / LAYOUTS_DIR])
        self.site: dict[str, Any] = {}
        self._install_filters()
        self.update_collections([])

    def _install_filters(self) -> None:
        """Install filters and globals in the Jinja environment."""
        self.env.filters["relative_url"] = self._relative_url
        self.env.filters["absolute_url"] = self._absolute_url
        self.env.filters["date_to_string"] = date_to_string
        self.env.filters["date_to_xmlschema"] = date_to_xmlschema
        self.env.filters["slugify"] = slugify
        self.env.globals["url_for"] = self._relative_url

    def _relative_url(self, path: str) -> str:
        """Prefix a site path with ``baseurl``.

        Args:
            path: Path such as ``/about.html`` or ``assets/site.css``.

        Returns:
            Path including the base URL; external URLs are unchanged.
        """
        path = str(path)
        if is_external_url(path):
            return path
        return join_root_url(str(self.config.get("baseurl") or ""), path)

    def _absolute_url(self, path: str) -> str:
        """Prefix a site path with ``url`` and ``baseurl``."""
        path = str(path)
        if is_external_url(path):
            return path
        relative = self._relative_url(path)
        base = str(self.config.get("url") or "")
        return join_root_url(base, relative) if base else relative

    def update_collections(self, items: Iterable[ContentItem]) -> None:
        """Rebuild the ``site`` context from all parsed items.

        Args:
            items: Every item in the build.
        """
        items = list(items)
        posts = PostCollection(i for i in items if i.is_post).sorted()
        site = dict(self.config)
        site.update(
            {
                "posts": posts,
                "pages": [i for i in items if not i.is_post],
                "categories": build_category_index(posts),
                "data": self.data,
                "config": self.config,
            }
        )
        self.site = site

    def load_layouts(self) -> tuple[LayoutCollection, list[BuildError]]:
        """Load the layouts under ``_layouts/``."""
        return load_layouts(self.root / LAYOUTS_DIR, self.env)

    def render_item(self, item: ContentItem, layouts: Mapping[str, Layout]) -> str:
        """Render an item with the engine's environment and site context."""
        return render(item, layouts, site=self.site, env=self.env)

    def render_string(self, template: str, context: Mapping[str, Any]) -> str:
        """Render a template string.

        Args:
            template: Template string to render.
            context: Variables to make available in the template.

        Returns:
            Rendered string.
        """
        return self.env.from_string(template).render(dict(context))


def date_to_string(value: date | datetime | None) -> str:
    """Format a date as ``08 Dec 2025``."""
    if value is None:
        return ""
    return value.strftime("%d %b %Y")


def date_to_xmlschema(value: date | datetime | None) -> str:
    """Format a date as ISO 8601."""
    if value is None:
        return ""
    return value.isoformat()
