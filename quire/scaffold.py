"""Starter files for ``quire new``.

The starter site has a config, three nested layouts (``post`` and
``page`` both wrap ``default``), a shared head include, a home page
listing posts, an About page and a first post.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

from .frontmatter import dump_frontmatter

CONFIG = """\
title: My Notes
description: Writing about proofs, programs and papers.
url: ""
baseurl: ""
permalink: date
defaults:
  - scope:
      type: posts
    values:
      layout: post
  - scope:
      type: pages
    values:
      layout: page
"""

HEAD_INCLUDE = """\
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{% if page.title %}{{ page.title }} | {% endif %}{{ site.title }}</title>
"""

DEFAULT_LAYOUT = """\
<!DOCTYPE html>
<html lang="en">
<head>
{% include "head.html" %}
</head>
<body>
<header><a href="{{ '/' | relative_url }}">{{ site.title }}</a> · <a href="{{ '/about.html' | relative_url }}">About</a></header>
<main>
{{ content }}
</main>
</body>
</html>
"""

POST_LAYOUT = """\
---
layout: default
---
<article class="post">
  <h1>{{ page.title }}</h1>
  <p class="meta">{{ page.date | date_to_string }}{% for c in page.categories %} · {{ c }}{% endfor %}</p>
  {{ content }}
</article>
"""

PAGE_LAYOUT = """\
---
layout: default
---
<article class="page">
  <h1>{{ page.title }}</h1>
  {{ content }}
</article>
"""

INDEX_PAGE = """\
---
layout: default
title: Home
---
<ul class="posts">
{% for post in site.posts %}
  <li><a href="{{ post.url | relative_url }}">{{ post.title }}</a> <span>{{ post.date | date_to_string }}</span></li>
{% endfor %}
</ul>
"""

ABOUT_PAGE = """\
---
title: About
---
Write a few lines about yourself here.
"""

FIRST_POST_BODY = """
This is the first post. Edit or delete it, then run `quire build`.

```python
print("hello")
```
"""


def scaffold_files(today: date) -> dict[str, str]:
    """Return the starter files keyed by path relative to the site root."""
    first_post = dump_frontmatter(
        {"title": "Welcome", "date": today, "categories": ["meta"]},
        FIRST_POST_BODY,
    )
    return {
        "_config.yml": CONFIG,
        "_includes/head.html": HEAD_INCLUDE,
        "_layouts/default.html": DEFAULT_LAYOUT,
        "_layouts/post.html": POST_LAYOUT,
        "_layouts/page.html": PAGE_LAYOUT,
        "index.html": INDEX_PAGE,
        "about.md": ABOUT_PAGE,
        f"_posts/{today.isoformat()}-welcome.md": first_post,
    }


def scaffold_site(root: Path, today: date) -> list[Path]:
    """Write the starter site under ``root``.

    Args:
        root: Directory for the new site.
        today: Date of the first post.

    Returns:
        Paths written.
    """
    written = []
    for rel_path, text in scaffold_files(today).items():
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        dest_path.write_text(text, encoding="utf-8")
        written.append(dest_path)
    return written
