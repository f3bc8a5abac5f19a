"""Site building functionality for Quire.

This module contains the core logic for building a static site from
source files. It loads configuration and data, discovers and parses
content, renders each item through its layouts and writes the output.

The build is a one-shot batch: a failure in one item is recorded with
the item's source path and the build moves on to the next item.

Key functions:
- build_site: Main function to build the entire site.
- load_config: Loads site configuration from _config.yml.
- load_data: Loads site data from YAML files in the _data directory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jinja2 import TemplateSyntaxError

from .content import ContentItem, ContentParser, discover
from .errors import BuildError, QuireError
from .output import destination_for, emit
from .templates import TemplateEngine
from .utils import ensure_clean_dir

CONFIG_FILE = "_config.yml"
DATA_DIR = "_data"

DEFAULT_CONFIG = {
    "title": "",
    "description": "",
    "url": "",
    "baseurl": "",
    "destination": "_site",
    "permalink": "date",
    "excerpt_separator": "\n\n",
    "defaults": [],
    "port": 4000,
}


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        items: Every successfully parsed content item.
        output_dir: Directory where the site was built.
        data: Site data dictionary.
        failures: Per-item errors, in the order they occurred.
        written: Output files written, in build order.
    """

    items: list[ContentItem]
    output_dir: Path
    data: dict[str, Any]
    failures: list[BuildError] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from _config.yml.

    Args:
        project_root: Root directory of the site.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        QuireError: If the file is not valid YAML or not a mapping.
    """
    config_path = project_root / CONFIG_FILE
    config = dict(DEFAULT_CONFIG)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise QuireError(f"{config_path}: invalid YAML: {exc}") from exc
            except UnicodeDecodeError as exc:
                raise QuireError(f"{config_path}: not valid UTF-8: {exc}") from exc
        if not isinstance(loaded, dict):
            raise QuireError(f"{config_path}: expected a mapping of settings")
        config.update(loaded)
    return config


def load_data(project_root: Path) -> dict[str, Any]:
    """Load site data from YAML files in the _data directory.

    Each ``_data/<name>.yml`` becomes ``site.data.<name>``.

    Args:
        project_root: Root directory of the site.

    Returns:
        Dictionary containing data keyed by file stem.
    """
    data_dir = project_root / DATA_DIR
    data: dict[str, Any] = {}
    if not data_dir.exists():
        return data
    paths = sorted([*data_dir.glob("*.yml"), *data_dir.glob("*.yaml")])
    for path in paths:
        with open(path, encoding="utf-8") as f:
            try:
                data[path.stem] = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise QuireError(f"{path}: invalid YAML: {exc}") from exc
            except UnicodeDecodeError as exc:
                raise QuireError(f"{path}: not valid UTF-8: {exc}") from exc
    return data


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    root_url: str | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the site.
        include_drafts: Whether to include drafts from ``_drafts/``.
        root_url: Optional value overriding the configured ``url``.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Optional path to write the build output instead
            of the configured ``destination``.

    Returns:
        BuildResult with all items, written files and per-item failures.

    Raises:
        NotFoundError: If ``project_root`` does not exist.
    """
    project_root = Path(project_root)
    config = load_config(project_root) if project_root.is_dir() else dict(DEFAULT_CONFIG)
    if root_url is not None:
        config["url"] = root_url
    destination = project_root / str(config["destination"])
    output_dir = output_dir_override or destination

    sources = discover(
        project_root, include_drafts=include_drafts, exclude=[output_dir, destination]
    )

    if project_root.resolve().is_relative_to(output_dir.resolve()):
        raise QuireError(f"Destination {output_dir} would overwrite the source directory")
    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    data = load_data(project_root)
    parser = ContentParser(config)
    items: list[ContentItem] = []
    failures: list[BuildError] = []
    for source in sources:
        try:
            items.append(parser.parse(source))
        except QuireError as exc:
            failures.append(BuildError(source.path, str(exc), exc))
        except (OSError, UnicodeDecodeError) as exc:
            failures.append(BuildError(source.path, _format_error_message(exc), exc))

    engine = TemplateEngine(project_root, config, data)
    engine.update_collections(items)
    layouts, layout_failures = engine.load_layouts()
    failures.extend(layout_failures)

    written: dict[Path, ContentItem] = {}
    for item in items:
        try:
            destination = destination_for(item.url, output_dir)
            if destination in written:
                other = written[destination].identifier
                raise BuildError(
                    item.path,
                    f"Output {destination.relative_to(output_dir.resolve())} is already written by {other}",
                )
            rendered = engine.render_item(item, layouts)
            emit(rendered, destination)
            written[destination] = item
        except BuildError as exc:
            failures.append(exc)
        except TemplateSyntaxError as exc:
            failures.append(
                BuildError(
                    item.path,
                    f"Template syntax error on line {exc.lineno}: {exc.message}",
                    exc,
                )
            )
        except QuireError as exc:
            failures.append(BuildError(item.path, str(exc), exc))
        except Exception as exc:
            failures.append(BuildError(item.path, _format_error_message(exc), exc))

    return BuildResult(
        items=items,
        output_dir=output_dir,
        data=data,
        failures=failures,
        written=list(written),
    )


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    # Handle common Jinja2/template errors
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"
