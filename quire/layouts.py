"""Named layouts and layout-chain resolution.

A layout is a Jinja2 template in ``_layouts/``. It may open with its own
front matter naming a parent layout::

    ---
    layout: default
    ---
    <article><h1>{{ page.title }}</h1>{{ content }}</article>

Layouts are loaded once per build into a read-only LayoutCollection and
passed explicitly to the renderer.

Key classes:
- Layout: One named rendering function.
- LayoutCollection: Immutable mapping of layout name to Layout.

Key functions:
- load_layouts: Read every layout in a directory.
- resolve_chain: Follow parent references, innermost first.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from jinja2 import Environment, Template, TemplateSyntaxError
from markupsafe import Markup

from .errors import BuildError, CyclicLayoutError, MalformedFrontMatterError, UnresolvedLayoutError
from .frontmatter import parse_frontmatter

# Checked in order; the first file found for a name wins
LAYOUT_SUFFIXES = (".html", ".html.jinja", ".jinja", ".htm")


@dataclass(frozen=True)
class Layout:
    """A named template that wraps rendered content.

    Attributes:
        name: Layout name referenced from front matter.
        template: Compiled Jinja2 template.
        parent: Name of the layout wrapping this one, or None.
        path: Source file, when loaded from disk.
        frontmatter: The layout's own front matter, exposed as ``layout``.
    """

    name: str
    template: Template
    parent: str | None = None
    path: Path | None = None
    frontmatter: Mapping[str, Any] = field(default_factory=dict)

    def render(self, content: str, context: Mapping[str, Any]) -> str:
        """Wrap ``content`` in this layout.

        Args:
            content: Inner markup, inserted unescaped as ``content``.
            context: Template variables.

        Returns:
            Rendered markup.
        """
        variables = dict(context)
        variables["content"] = Markup(content)
        variables["layout"] = self.frontmatter
        return self.template.render(variables)

    @classmethod
    def from_source(
        cls, name: str, source: str, env: Environment, path: Path | None = None
    ) -> Layout:
        """Compile a layout from text that may carry front matter.

        Raises:
            MalformedFrontMatterError: If the layout's front matter is malformed.
            TemplateSyntaxError: If the template does not compile.
        """
        identifier = path.as_posix() if path is not None else name
        frontmatter, body = parse_frontmatter(source, identifier)
        parent = frontmatter.get("layout")
        if parent in ("", "none", "null"):
            parent = None
        if parent is not None and not isinstance(parent, str):
            raise MalformedFrontMatterError(
                identifier, f"'layout' must be a string, got {type(parent).__name__}"
            )
        template = env.from_string(body)
        return cls(
            name=name,
            template=template,
            parent=parent,
            path=path,
            frontmatter=MappingProxyType(dict(frontmatter)),
        )


class LayoutCollection(Mapping[str, Layout]):
    """Read-only mapping of layout name to Layout."""

    def __init__(self, layouts: Mapping[str, Layout] | None = None):
        self._layouts = MappingProxyType(dict(layouts or {}))

    def __getitem__(self, key: str) -> Layout:
        return self._layouts[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._layouts)

    def __len__(self) -> int:
        return len(self._layouts)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"LayoutCollection({sorted(self._layouts)})"


def _layout_name(path: Path, layouts_dir: Path) -> str | None:
    rel = path.relative_to(layouts_dir).as_posix()
    for suffix in LAYOUT_SUFFIXES:
        if rel.endswith(suffix):
            return rel[: -len(suffix)]
    return None


def load_layouts(
    layouts_dir: Path, env: Environment
) -> tuple[LayoutCollection, list[BuildError]]:
    """Load every layout under ``layouts_dir``.

    A layout that fails to load is left out of the collection and its
    error is returned, so items using it fail with UnresolvedLayoutError
    while the rest of the site still builds.

    Args:
        layouts_dir: Directory holding layout files.
        env: Jinja2 environment used to compile templates.

    Returns:
        Tuple of (layouts, load failures).
    """
    layouts: dict[str, Layout] = {}
    failures: list[BuildError] = []
    if not layouts_dir.is_dir():
        return LayoutCollection(), failures

    candidates: list[tuple[int, str, Path]] = []
    for path in sorted(layouts_dir.rglob("*")):
        if not path.is_file():
            continue
        name = _layout_name(path, layouts_dir)
        if name is None:
            continue
        rank = next(i for i, s in enumerate(LAYOUT_SUFFIXES) if path.name.endswith(s))
        candidates.append((rank, name, path))

    for _, name, path in sorted(candidates):
        if name in layouts:
            continue
        try:
            source = path.read_text(encoding="utf-8")
            layouts[name] = Layout.from_source(name, source, env, path=path)
        except MalformedFrontMatterError as exc:
            failures.append(BuildError(path, exc.reason, exc))
        except (OSError, UnicodeDecodeError) as exc:
            failures.append(BuildError(path, f"{type(exc).__name__}: {exc}", exc))
        except TemplateSyntaxError as exc:
            failures.append(
                BuildError(path, f"Template syntax error on line {exc.lineno}: {exc.message}", exc)
            )
    return LayoutCollection(layouts), failures


def resolve_chain(name: str, layouts: Mapping[str, Layout]) -> list[Layout]:
    """Follow a layout and its parents.

    Args:
        name: Layout named by the content item.
        layouts: Layout collection.

    Returns:
        Layouts in application order, innermost first.

    Raises:
        UnresolvedLayoutError: If a name in the chain is missing.
        CyclicLayoutError: If the chain revisits a layout.
    """
    chain: list[Layout] = []
    visited: list[str] = []
    current: str | None = name
    while current is not None:
        if current in visited:
            raise CyclicLayoutError(visited + [current])
        layout = layouts.get(current)
        if layout is None:
            raise UnresolvedLayoutError(current, visited[-1] if visited else None)
        visited.append(current)
        chain.append(layout)
        current = layout.parent
    return chain
