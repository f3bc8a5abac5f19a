"""Writing rendered pages to the destination directory.

Key functions:
- destination_for: Map an item URL to a file path inside the output directory.
- emit: Atomically write markup to a destination file.
"""

from __future__ import annotations

import contextlib
import os
import posixpath
import tempfile
from pathlib import Path


def destination_for(url: str, output_dir: Path) -> Path:
    """Map a URL path to its output file.

    URLs ending in "/" are written as ``index.html`` in that directory.

    Args:
        url: URL path such as ``/lean/2025/12/08/definitions.html``.
        output_dir: Build destination.

    Returns:
        Path of the file to write.

    Raises:
        ValueError: If the URL would place the file outside ``output_dir``.
    """
    rel = url.lstrip("/")
    if not rel or url.endswith("/"):
        rel = posixpath.join(rel, "index.html")
    rel = posixpath.normpath(rel)
    base = output_dir.resolve()
    target = (base / rel).resolve()
    if target == base or not target.is_relative_to(base):
        raise ValueError(f"URL {url!r} resolves outside the output directory")
    return target


def emit(markup: str, destination: Path) -> Path:
    """Write markup to ``destination``, replacing any existing file.

    The markup goes to a temporary file in the same directory which then
    replaces the destination, so a failure never leaves a partially
    written page behind.

    Args:
        markup: Final page markup.
        destination: File to create or overwrite.

    Returns:
        The destination path.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{destination.name}.", suffix=".tmp", dir=destination.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(markup)
        # mkstemp creates owner-only files
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, destination)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise
    return destination
