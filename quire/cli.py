"""Command-line interface for Quire.

This module defines the CLI commands using Click framework.

Commands:
- new: Scaffold a new site.
- build: Build the site into the destination directory.
- serve: Run development server with live reload.
- post: Create a new dated post.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from datetime import date, datetime
from pathlib import Path

import click

from . import __version__
from .errors import QuireError
from .frontmatter import dump_frontmatter
from .scaffold import scaffold_site
from .utils import slugify, split_dated_name


@click.group()
@click.version_option(version=__version__, prog_name="quire")
def cli():
    """Quire static site builder."""


@cli.command()
@click.argument("path")
def new(path: str):
    """Scaffold a new site."""
    target = Path(path).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    scaffold_site(target, date.today())
    _try_git_init(target)
    click.echo(f"New Quire site created at {target}")


@cli.command()
@click.option(
    "--source",
    "-s",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Site root directory",
)
@click.option(
    "--destination",
    "-d",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output directory (overrides _config.yml destination)",
)
@click.option("--drafts", is_flag=True, help="Include posts from _drafts")
def build(source: Path, destination: Path | None, drafts: bool):
    """Build the site into the destination directory."""
    project_root = source.resolve()
    from .build import build_site

    try:
        result = build_site(
            project_root,
            include_drafts=drafts,
            output_dir_override=destination.resolve() if destination else None,
        )
    except QuireError as exc:
        raise click.ClickException(str(exc)) from None

    if result.failures:
        count = len(result.failures)
        noun = "error" if count == 1 else "errors"
        click.echo(click.style(f"Build failed with {count} {noun}:", fg="red", bold=True), err=True)
        for failure in result.failures:
            click.echo(click.style(f"  File: {_display_path(failure.source_path, project_root)}", fg="yellow"), err=True)
            click.echo(click.style(f"  Error: {failure.message}", fg="white"), err=True)
        click.echo(f"Built {len(result.written)} pages into {result.output_dir}", err=True)
        raise SystemExit(1)
    click.echo(f"Built {len(result.written)} pages into {result.output_dir}")


@cli.command()
@click.option(
    "--source",
    "-s",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Site root directory",
)
@click.option("--drafts", is_flag=True, help="Include posts from _drafts")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides _config.yml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides _config.yml ws_port)",
)
def serve(source: Path, drafts: bool, port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    from .server import DevServer

    try:
        server = DevServer(source.resolve(), http_port=port, ws_port=ws_port)
    except QuireError as exc:
        raise click.ClickException(str(exc)) from None
    server.start(include_drafts=drafts)


@cli.command()
@click.argument("title")
@click.option("--category", "-c", "categories", multiple=True, help="Post category (repeatable)")
@click.option(
    "--date",
    "post_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Post date, YYYY-MM-DD (default: today)",
)
@click.option("--layout", default="post", show_default=True, help="Layout name")
@click.option(
    "--source",
    "-s",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Site root directory",
)
def post(
    title: str,
    categories: tuple[str, ...],
    post_date: datetime | None,
    layout: str,
    source: Path,
):
    """Create a new dated post in _posts/."""
    day = post_date.date() if post_date else date.today()
    slug = slugify(title)
    posts_dir = source / "_posts"
    target_path = posts_dir / f"{day.isoformat()}-{slug}.md"

    if target_path.exists():
        raise click.ClickException(f"File already exists: {target_path}")

    existing = _existing_slugs(posts_dir)
    if slug in existing:
        raise click.ClickException(
            f"A post with slug '{slug}' already exists: {existing[slug]}"
        )

    metadata = {"layout": layout, "title": title, "date": day}
    if categories:
        metadata["categories"] = list(categories)
    posts_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(dump_frontmatter(metadata, "\n"), encoding="utf-8")
    click.echo(f"Created {target_path}")


def _existing_slugs(folder: Path) -> dict[str, str]:
    """Map slugs of existing posts to their filenames."""
    slugs: dict[str, str] = {}
    if folder.exists():
        for f in sorted(folder.iterdir()):
            if f.is_file():
                _, rest = split_dated_name(f.stem)
                slugs[slugify(rest)] = f.name
    return slugs


def _display_path(path: Path, root: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


def main():
    """Entry point for the CLI application."""
    cli()


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("QUIRE_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run(
            [git_bin, "init"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        # Not fatal: the site is usable without a repository
        click.echo(f"git init failed ({exc}); skipping.", err=True)
