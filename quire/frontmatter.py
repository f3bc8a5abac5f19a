"""Front-matter parsing and serialization for Quire.

A content file may begin with a YAML block fenced by ``---`` lines::

    ---
    layout: post
    title: How Lean tracks your definitions
    date: 2025-12-08
    categories: [lean]
    ---
    Body text in Markdown...

The closing fence may also be ``...``. A file whose first line is not
``---`` has no front matter.

Key functions:
- parse_frontmatter: Split text into a metadata mapping and body.
- dump_frontmatter: Serialize a mapping and body back into file text.
- has_frontmatter: Cheap check used during discovery.

Key class:
- FrontmatterDefaults: Scoped default values from the site configuration.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml

from .errors import MalformedFrontMatterError

DELIMITER = "---"
CLOSING_DELIMITERS = ("---", "...")
_UTF8_BOM = b"\xef\xbb\xbf"

# Scope types accepted in `defaults` entries, keyed by source kind
_SCOPE_TYPES = {
    "post": "posts",
    "draft": "drafts",
    "page": "pages",
}


def _strip_bom(text: str) -> str:
    return text[1:] if text.startswith("\ufeff") else text


def parse_frontmatter(text: str, source: str = "<string>") -> tuple[dict[str, Any], str]:
    """Split file text into front matter and body.

    Args:
        text: Raw file content.
        source: Identifier used in error messages.

    Returns:
        Tuple of (front-matter mapping, body text). The mapping is empty
        when the text carries no front matter.

    Raises:
        MalformedFrontMatterError: If the opening fence is never closed,
            the YAML is invalid, or it does not describe a mapping.
    """
    text = _strip_bom(text)
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != DELIMITER:
        return {}, text

    closing = None
    for index in range(1, len(lines)):
        if lines[index].rstrip() in CLOSING_DELIMITERS:
            closing = index
            break
    if closing is None:
        raise MalformedFrontMatterError(
            source, f"opening '{DELIMITER}' on line 1 has no closing delimiter"
        )

    block = "".join(lines[1:closing])
    body = "".join(lines[closing + 1 :])
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f" on line {mark.line + 2}" if mark is not None else ""
        problem = getattr(exc, "problem", None) or str(exc)
        raise MalformedFrontMatterError(source, f"invalid YAML{where}: {problem}") from exc

    if data is None:
        return {}, body
    if not isinstance(data, dict):
        raise MalformedFrontMatterError(
            source, f"expected key-value pairs, got {type(data).__name__}"
        )
    return data, body


def dump_frontmatter(metadata: Mapping[str, Any], body: str = "") -> str:
    """Serialize a metadata mapping and body into file text.

    The output parses back to the same mapping and body with
    :func:`parse_frontmatter`.

    Args:
        metadata: Front-matter key-value pairs.
        body: Body text placed after the closing fence.

    Returns:
        Complete file content.
    """
    block = yaml.safe_dump(
        dict(metadata),
        allow_unicode=True,
        sort_keys=False,
        default_flow_style=False,
        width=1000,
    )
    return f"{DELIMITER}\n{block}{DELIMITER}\n{body}"


def has_frontmatter(path: Path) -> bool:
    """Return True if the file's first line opens a front-matter block.

    The line is compared as bytes, so files in other encodings are
    simply not content rather than a decoding failure.
    """
    with open(path, "rb") as f:
        first = f.readline()
    return first.removeprefix(_UTF8_BOM).rstrip() == DELIMITER.encode("ascii")


class FrontmatterDefaults:
    """Scoped front-matter defaults, in the form used by Jekyll's ``defaults``.

    Each entry looks like::

        - scope:
            path: "posts"     # identifier prefix, "" matches everything
            type: posts       # posts | drafts | pages, optional
          values:
            layout: post

    Values from more specific scopes (longer path, then those naming a
    type) override less specific ones; a file's own front matter
    overrides all defaults.
    """

    def __init__(self, entries: Iterable[Mapping[str, Any]] | None = None):
        self._entries: list[tuple[str, str | None, dict[str, Any]]] = []
        for entry in entries or []:
            if not isinstance(entry, Mapping):
                raise ValueError(f"defaults entry must be a mapping, got {entry!r}")
            scope = entry.get("scope") or {}
            values = entry.get("values") or {}
            path = str(scope.get("path") or "").strip("/")
            scope_type = scope.get("type")
            self._entries.append((path, scope_type, dict(values)))

    def __len__(self) -> int:
        return len(self._entries)

    def values_for(self, identifier: str, kind: str) -> dict[str, Any]:
        """Return merged default values for a source file.

        Args:
            identifier: POSIX path of the file relative to the site root.
            kind: "post", "draft" or "page".

        Returns:
            Merged default values.
        """
        scope_type = _SCOPE_TYPES.get(kind)
        matched = []
        for order, (path, entry_type, values) in enumerate(self._entries):
            if path and not (identifier == path or identifier.startswith(path + "/")):
                continue
            if entry_type and entry_type != scope_type:
                continue
            specificity = (len(path.split("/")) if path else 0, entry_type is not None, order)
            matched.append((specificity, values))

        merged: dict[str, Any] = {}
        for _, values in sorted(matched, key=lambda m: m[0]):
            merged.update(values)
        return merged
