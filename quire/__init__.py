"""Quire static site builder.

Quire builds a small Jekyll-style blog: Markdown posts in ``_posts/``,
standalone pages with front matter, and nested Jinja2 layouts in
``_layouts/``. Each content file passes once through
discover -> parse -> render -> emit.

The main entry point is the CLI module, which provides commands for
scaffolding new sites, building them, creating posts and running the
development server.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
