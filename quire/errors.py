"""Error types raised while building a Quire site.

Every error that concerns a single source file carries that file's
identifier so a batch build can report it and move on to the next item.

Classes:
    QuireError: Base class for all Quire errors.
    NotFoundError: The content root does not exist.
    MalformedFrontMatterError: A front-matter block cannot be parsed.
    UnresolvedLayoutError: A layout name is missing from the layout collection.
    CyclicLayoutError: Layout resolution loops back on itself.
    BuildError: Wraps any per-item failure with the offending source path.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class QuireError(Exception):
    """Base class for all errors raised by Quire."""


class NotFoundError(QuireError):
    """Raised when the content root directory does not exist.

    Attributes:
        path: The missing directory.
    """

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Content directory not found: {path}")


class MalformedFrontMatterError(QuireError):
    """Raised when a front-matter block is unbalanced or not a YAML mapping.

    Attributes:
        source: Identifier of the offending file.
        reason: Human-readable description of the problem.
    """

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: malformed front matter: {reason}")


class UnresolvedLayoutError(QuireError):
    """Raised when a layout name cannot be found.

    Attributes:
        layout: The layout name that could not be resolved.
        referenced_by: Name of the layout that declared it as parent, if any.
    """

    def __init__(self, layout: str, referenced_by: str | None = None):
        self.layout = layout
        self.referenced_by = referenced_by
        message = f"Layout '{layout}' does not exist"
        if referenced_by:
            message += f" (parent of layout '{referenced_by}')"
        super().__init__(message)


class CyclicLayoutError(QuireError):
    """Raised when a layout chain revisits a layout already being resolved.

    Attributes:
        chain: Layout names in resolution order, ending with the repeated name.
    """

    def __init__(self, chain: Sequence[str]):
        self.chain = list(chain)
        super().__init__("Cyclic layout chain: " + " -> ".join(self.chain))


class BuildError(QuireError):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")
