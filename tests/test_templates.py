from datetime import datetime
from pathlib import Path

import pytest

from quire.content import ContentItem
from quire.errors import CyclicLayoutError, UnresolvedLayoutError
from quire.layouts import Layout, LayoutCollection, load_layouts, resolve_chain
from quire.templates import (
    TemplateEngine,
    create_environment,
    date_to_string,
    date_to_xmlschema,
    render,
)


def make_item(**overrides) -> ContentItem:
    values = dict(
        identifier="_posts/2025-12-08-defs.md",
        path=Path("_posts/2025-12-08-defs.md"),
        kind="post",
        layout="post",
        title="How Lean tracks your definitions",
        date=datetime(2025, 12, 8),
        categories=("lean",),
        body="Body",
        content="<p>Body</p>\n",
        excerpt="<p>Body</p>\n",
        slug="defs",
        url="/lean/2025/12/08/defs.html",
        source_type="markdown",
        frontmatter={"layout": "post", "title": "How Lean tracks your definitions"},
    )
    values.update(overrides)
    return ContentItem(**values)


def make_layouts(sources: dict[str, str]) -> LayoutCollection:
    env = create_environment()
    return LayoutCollection(
        {name: Layout.from_source(name, text, env) for name, text in sources.items()}
    )


NESTED = {
    "default": "<html><title>{{ page.title }}</title>{{ content }}</html>",
    "post": "---\nlayout: default\n---\n<article>{{ content }}</article>",
}


def test_render_applies_nested_layouts_innermost_first():
    layouts = make_layouts(NESTED)
    html = render(make_item(), layouts)
    assert html == (
        "<html><title>How Lean tracks your definitions</title>"
        "<article><p>Body</p>\n</article></html>"
    )


def test_render_is_deterministic():
    layouts = make_layouts(NESTED)
    item = make_item()
    assert render(item, layouts) == render(item, layouts)


def test_render_without_layout_returns_content():
    assert render(make_item(layout=None), LayoutCollection()) == "<p>Body</p>\n"


def test_render_escapes_variables_but_not_content():
    layouts = make_layouts({"post": "<h1>{{ page.title }}</h1>{{ content }}"})
    item = make_item(title="Types & <Terms>", content="<em>kept</em>")
    assert render(item, layouts) == "<h1>Types &amp; &lt;Terms&gt;</h1><em>kept</em>"


def test_render_exposes_layout_and_site_variables():
    layouts = make_layouts(
        {"post": "---\nlayout: none\nwidth: wide\n---\n{{ layout.width }}|{{ site.title }}|{{ frontmatter.title }}"}
    )
    html = render(make_item(), layouts, site={"title": "Notes"})
    assert html == "wide|Notes|How Lean tracks your definitions"
    assert layouts["post"].parent is None


def test_missing_layout_is_unresolved():
    with pytest.raises(UnresolvedLayoutError) as excinfo:
        render(make_item(layout="missing-layout"), make_layouts(NESTED))
    assert excinfo.value.layout == "missing-layout"
    assert "missing-layout" in str(excinfo.value)


def test_missing_parent_names_referencing_layout():
    layouts = make_layouts({"post": "---\nlayout: base\n---\n{{ content }}"})
    with pytest.raises(UnresolvedLayoutError) as excinfo:
        resolve_chain("post", layouts)
    assert excinfo.value.layout == "base"
    assert excinfo.value.referenced_by == "post"


def test_cyclic_layouts_are_detected():
    layouts = make_layouts(
        {
            "a": "---\nlayout: b\n---\n{{ content }}",
            "b": "---\nlayout: a\n---\n{{ content }}",
            "self": "---\nlayout: self\n---\n{{ content }}",
        }
    )
    with pytest.raises(CyclicLayoutError) as excinfo:
        render(make_item(layout="a"), layouts)
    assert excinfo.value.chain == ["a", "b", "a"]
    with pytest.raises(CyclicLayoutError) as excinfo:
        resolve_chain("self", layouts)
    assert excinfo.value.chain == ["self", "self"]


def test_resolve_chain_order():
    layouts = make_layouts(NESTED)
    assert [layout.name for layout in resolve_chain("post", layouts)] == ["post", "default"]


def test_html_body_is_a_template():
    item = make_item(
        identifier="index.html",
        kind="page",
        layout=None,
        source_type="html",
        content="{% for p in site.posts %}{{ p }};{% endfor %}",
    )
    assert render(item, LayoutCollection(), site={"posts": ["a", "b"]}) == "a;b;"


def test_layout_collection_is_read_only():
    layouts = make_layouts(NESTED)
    assert sorted(layouts) == ["default", "post"]
    assert len(layouts) == 2
    with pytest.raises(TypeError):
        layouts["x"] = layouts["post"]


def test_load_layouts_collects_failures(tmp_path):
    layouts_dir = tmp_path / "_layouts"
    layouts_dir.mkdir()
    (layouts_dir / "default.html").write_text("{{ content }}", encoding="utf-8")
    (layouts_dir / "default.jinja").write_text("ignored", encoding="utf-8")
    (layouts_dir / "post.html.jinja").write_text("<p>{{ content }}</p>", encoding="utf-8")
    (layouts_dir / "broken.html").write_text("{% if %}", encoding="utf-8")
    (layouts_dir / "bad-fm.html").write_text("---\nlayout: [x]\n---\n", encoding="utf-8")
    (layouts_dir / "notes.txt").write_text("not a layout", encoding="utf-8")

    layouts, failures = load_layouts(layouts_dir, create_environment())
    assert sorted(layouts) == ["default", "post"]
    assert layouts["default"].path == layouts_dir / "default.html"
    assert sorted(f.source_path.name for f in failures) == ["bad-fm.html", "broken.html"]
    assert load_layouts(tmp_path / "missing", create_environment())[0] == {}


def test_template_engine_filters_and_site(tmp_path):
    (tmp_path / "_includes").mkdir()
    (tmp_path / "_includes" / "nav.html").write_text(
        "<a href=\"{{ '/about.html' | relative_url }}\">About</a>", encoding="utf-8"
    )
    (tmp_path / "_layouts").mkdir()
    (tmp_path / "_layouts" / "post.html").write_text(
        "{% include 'nav.html' %}{{ content }}", encoding="utf-8"
    )
    config = {"title": "Notes", "url": "https://example.com", "baseurl": "/blog"}
    engine = TemplateEngine(tmp_path, config, {"authors": ["ada"]})
    post = make_item()
    page = make_item(identifier="about.md", kind="page", categories=(), date=None)
    engine.update_collections([page, post])

    assert list(engine.site["posts"]) == [post]
    assert engine.site["pages"] == [page]
    assert list(engine.site["categories"]) == ["lean"]
    assert engine.site["data"] == {"authors": ["ada"]}
    assert engine.site["title"] == "Notes"

    layouts, failures = engine.load_layouts()
    assert failures == []
    assert engine.render_item(post, layouts) == '<a href="/blog/about.html">About</a><p>Body</p>\n'

    rendered = engine.render_string(
        "{{ '/x/' | absolute_url }} {{ 'https://cdn.test/a.js' | relative_url }} "
        "{{ d | date_to_string }} {{ 'Type Theory' | slugify }} {{ url_for('/y') }}",
        {"d": datetime(2025, 12, 8)},
    )
    assert rendered == (
        "https://example.com/blog/x/ https://cdn.test/a.js 08 Dec 2025 type-theory /blog/y"
    )


def test_date_filters():
    assert date_to_string(None) == ""
    assert date_to_xmlschema(datetime(2025, 12, 8, 9, 30)) == "2025-12-08T09:30:00"
