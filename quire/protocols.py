"""Protocol definitions for Quire.

These protocols describe the seams between the loader, the metadata
extractors and the renderers, so alternative implementations can be
plugged in without touching the build pipeline.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .content import SourceFile


@runtime_checkable
class ContentRenderer(Protocol):
    """Protocol for turning a content body into HTML.

    Implementations handle one content type (Markdown, HTML).
    """

    @abstractmethod
    def can_render(self, path: Path) -> bool:
        """Check if this renderer can handle the given file.

        Args:
            path: Path to the source file.

        Returns:
            True if this renderer can process the file.
        """
        ...

    @abstractmethod
    def render(self, content: str) -> str:
        """Render a body to HTML.

        Args:
            content: Body text without front matter.

        Returns:
            Rendered HTML.
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier (e.g., 'markdown', 'html')."""
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Protocol for deriving item metadata from front matter and file location."""

    @abstractmethod
    def extract(self, frontmatter: Mapping[str, Any], source: SourceFile) -> dict[str, Any]:
        """Extract metadata.

        Args:
            frontmatter: Front matter with defaults applied.
            source: The file being parsed.

        Returns:
            Dictionary of extracted metadata.

        Raises:
            MalformedFrontMatterError: If a value has the wrong shape.
        """
        ...


@runtime_checkable
class LayoutRenderer(Protocol):
    """Protocol for a named layout that wraps rendered content."""

    name: str
    parent: str | None

    @abstractmethod
    def render(self, content: str, context: Mapping[str, Any]) -> str:
        """Wrap content in this layout.

        Args:
            content: Inner markup.
            context: Template variables (page, site, ...).

        Returns:
            Markup with the layout applied.
        """
        ...
