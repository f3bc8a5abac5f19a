from pathlib import Path

import pytest

from quire import output
from quire.build import (
    BuildError,
    BuildResult,
    _format_error_message,
    build_site,
    load_config,
    load_data,
)
from quire.errors import NotFoundError, QuireError, UnresolvedLayoutError
from quire.output import destination_for, emit

LEAN_POST = "_posts/2025-12-08-how-lean-tracks-your-definitions.md"
LEAN_OUTPUT = Path("_site/lean/2025/12/08/how-lean-tracks-your-definitions.html")


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def create_project(tmp_path: Path) -> Path:
    project = tmp_path / "blog"
    write(project / "_config.yml", "title: Proof Notes\nurl: https://example.com\n")
    write(project / "_data" / "authors.yml", "- name: Ada\n")
    write(
        project / "_layouts" / "default.html",
        "<html><head>{% include 'head.html' %}</head><body>{{ content }}</body></html>",
    )
    write(project / "_layouts" / "post.html", "---\nlayout: default\n---\n<article>{{ content }}</article>")
    write(project / "_layouts" / "page.html", "---\nlayout: default\n---\n<div>{{ content }}</div>")
    write(project / "_includes" / "head.html", "<title>{{ page.title }} | {{ site.title }}</title>")
    write(
        project / LEAN_POST,
        "---\nlayout: post\ntitle: How Lean tracks your definitions\ndate: 2025-12-08\n"
        "categories: [lean]\n---\nLean keeps an *environment*.\n",
    )
    write(
        project / "index.html",
        "---\nlayout: default\ntitle: Home\n---\n"
        "{% for post in site.posts %}<a href=\"{{ post.url }}\">{{ post.title }}</a>{% endfor %}"
        "{% for a in site.data.authors %}<span>{{ a.name }}</span>{% endfor %}",
    )
    write(project / "about.md", "---\nlayout: page\ntitle: About\n---\nHello.\n")
    return project


def test_build_site_writes_posts_and_pages(tmp_path):
    project = create_project(tmp_path)
    result = build_site(project)

    assert isinstance(result, BuildResult)
    assert result.ok, result.failures
    assert result.output_dir == project / "_site"
    assert result.data == {"authors": [{"name": "Ada"}]}
    assert [item.identifier for item in result.items] == [LEAN_POST, "about.md", "index.html"]
    assert len(result.written) == 3

    post_html = (project / LEAN_OUTPUT).read_text(encoding="utf-8")
    assert post_html == (
        "<html><head><title>How Lean tracks your definitions | Proof Notes</title></head>"
        "<body><article><p>Lean keeps an <em>environment</em>.</p>\n</article></body></html>"
    )
    index_html = (project / "_site" / "index.html").read_text(encoding="utf-8")
    assert '<a href="/lean/2025/12/08/how-lean-tracks-your-definitions.html">' in index_html
    assert "<span>Ada</span>" in index_html
    assert (project / "_site" / "about.html").exists()


def test_build_continues_after_item_failures(tmp_path):
    project = create_project(tmp_path)
    write(project / "_posts" / "2025-12-09-orphan.md", "---\nlayout: missing-layout\n---\nLost.\n")
    write(project / "broken.md", "---\nlayout: page\ntitle: Oops\n\nNo closing fence.\n")

    result = build_site(project)

    assert not result.ok
    by_name = {failure.source_path.name: failure for failure in result.failures}
    assert set(by_name) == {"2025-12-09-orphan.md", "broken.md"}
    orphan = by_name["2025-12-09-orphan.md"]
    assert isinstance(orphan.original_error, UnresolvedLayoutError)
    assert "missing-layout" in orphan.message
    assert "malformed front matter" in by_name["broken.md"].message

    assert (project / LEAN_OUTPUT).exists()
    assert (project / "_site" / "about.html").exists()
    assert not (project / "_site" / "2025" / "12" / "09" / "orphan.html").exists()
    assert not (project / "_site" / "broken.html").exists()
    leftovers = [p for p in (project / "_site").rglob("*") if p.name.endswith(".tmp")]
    assert leftovers == []


def test_build_reports_cyclic_layouts(tmp_path):
    project = create_project(tmp_path)
    write(project / "_layouts" / "loop.html", "---\nlayout: loop\n---\n{{ content }}")
    write(project / "looped.md", "---\nlayout: loop\n---\nHi\n")
    result = build_site(project)
    assert [f.source_path.name for f in result.failures] == ["looped.md"]
    assert "Cyclic layout chain: loop -> loop" in result.failures[0].message


def test_build_reports_layout_load_errors(tmp_path):
    project = create_project(tmp_path)
    write(project / "_layouts" / "page.html", "{% for %}")
    result = build_site(project)
    names = sorted(f.source_path.name for f in result.failures)
    assert names == ["about.md", "page.html"]
    assert (project / LEAN_OUTPUT).exists()


def test_build_reports_template_errors(tmp_path):
    project = create_project(tmp_path)
    write(project / "broken.html", "---\nlayout: none\n---\n{% if %}")
    write(project / "undefined.html", "---\nlayout: none\n---\n{{ page.title.nope() }}")
    result = build_site(project)
    messages = {f.source_path.name: f.message for f in result.failures}
    assert messages["broken.html"].startswith("Template syntax error on line 1")
    assert messages["undefined.html"].startswith("Undefined variable:")


def test_build_ignores_non_utf8_files_without_frontmatter(tmp_path):
    project = create_project(tmp_path)
    (project / "legacy.html").write_bytes("<p>café</p>".encode("latin-1"))
    result = build_site(project)
    assert result.ok, result.failures
    assert (project / LEAN_OUTPUT).exists()
    assert "legacy.html" not in [item.identifier for item in result.items]


def test_build_reports_non_utf8_pages_and_layouts(tmp_path):
    project = create_project(tmp_path)
    (project / "_layouts" / "old.html").write_bytes("<p>café</p>".encode("latin-1"))
    (project / "menu.html").write_bytes(b"---\nlayout: page\n---\ncaf\xe9\n")
    result = build_site(project)

    failures = {f.source_path.name: f for f in result.failures}
    assert sorted(failures) == ["menu.html", "old.html"]
    assert isinstance(failures["old.html"].original_error, UnicodeDecodeError)
    assert isinstance(failures["menu.html"].original_error, UnicodeDecodeError)
    assert (project / LEAN_OUTPUT).exists()
    assert (project / "_site" / "about.html").exists()


def test_non_utf8_config_and_data_raise(tmp_path):
    project = create_project(tmp_path)
    (project / "_data" / "authors.yml").write_bytes(b"- name: Ren\xe9e\n")
    with pytest.raises(QuireError, match="not valid UTF-8"):
        load_data(project)
    (project / "_config.yml").write_bytes(b"title: Caf\xe9\n")
    with pytest.raises(QuireError, match="not valid UTF-8"):
        load_config(project)


def test_build_rejects_duplicate_destinations(tmp_path):
    project = create_project(tmp_path)
    write(project / "a.md", "---\nlayout: page\npermalink: /same/\n---\nA\n")
    write(project / "b.md", "---\nlayout: page\npermalink: /same/\n---\nB\n")
    result = build_site(project)
    assert [f.source_path.name for f in result.failures] == ["b.md"]
    assert "already written by a.md" in result.failures[0].message
    assert "A" in (project / "_site" / "same" / "index.html").read_text(encoding="utf-8")


def test_build_drafts_and_overrides(tmp_path):
    project = create_project(tmp_path)
    write(project / "_drafts" / "idea.md", "---\nlayout: post\ntitle: Idea\n---\nSoon.\n")
    out = tmp_path / "public"
    write(out / "stale.html", "old")

    without = build_site(project, output_dir_override=out)
    assert all(not item.draft for item in without.items)
    assert not (out / "stale.html").exists()

    with_drafts = build_site(project, include_drafts=True, output_dir_override=out)
    drafts = [item for item in with_drafts.items if item.draft]
    assert [d.title for d in drafts] == ["Idea"]
    assert (out / drafts[0].url.lstrip("/")).exists()


def test_build_keeps_output_when_not_cleaning(tmp_path):
    project = create_project(tmp_path)
    write(project / "_site" / "keep.txt", "x")
    build_site(project, clean_output=False)
    assert (project / "_site" / "keep.txt").exists()


def test_build_root_url_override(tmp_path):
    project = create_project(tmp_path)
    write(project / "feed.html", "---\nlayout: none\n---\n{{ '/x' | absolute_url }}")
    build_site(project, root_url="http://localhost:4000")
    assert (project / "_site" / "feed.html").read_text(encoding="utf-8") == "http://localhost:4000/x"


def test_build_missing_root(tmp_path):
    with pytest.raises(NotFoundError):
        build_site(tmp_path / "does-not-exist")


def test_build_refuses_destination_containing_source(tmp_path):
    project = create_project(tmp_path)
    write(project / "_config.yml", "destination: .\n")
    with pytest.raises(QuireError, match="overwrite the source"):
        build_site(project)
    assert (project / LEAN_POST).exists()


def test_load_config_and_data(tmp_path):
    config = load_config(tmp_path)
    assert config["destination"] == "_site"
    assert config["permalink"] == "date"

    write(tmp_path / "_config.yml", "title: X\npermalink: pretty\n")
    config = load_config(tmp_path)
    assert config["title"] == "X"
    assert config["permalink"] == "pretty"
    assert config["excerpt_separator"] == "\n\n"

    write(tmp_path / "_config.yml", "- not\n- a mapping\n")
    with pytest.raises(QuireError, match="expected a mapping"):
        load_config(tmp_path)
    write(tmp_path / "_config.yml", "title: [unclosed\n")
    with pytest.raises(QuireError, match="invalid YAML"):
        load_config(tmp_path)

    assert load_data(tmp_path) == {}
    write(tmp_path / "_data" / "nav.yaml", "- home\n")
    write(tmp_path / "_data" / "site.yml", "name: x\n")
    assert load_data(tmp_path) == {"nav": ["home"], "site": {"name": "x"}}
    write(tmp_path / "_data" / "bad.yml", "a: [\n")
    with pytest.raises(QuireError):
        load_data(tmp_path)


def test_destination_for(tmp_path):
    base = tmp_path.resolve()
    assert destination_for("/lean/2025/12/08/x.html", tmp_path) == base / "lean/2025/12/08/x.html"
    assert destination_for("/", tmp_path) == base / "index.html"
    assert destination_for("/about/", tmp_path) == base / "about" / "index.html"
    with pytest.raises(ValueError):
        destination_for("/../escape.html", tmp_path / "out")


def test_emit_replaces_atomically(tmp_path):
    target = tmp_path / "nested" / "page.html"
    assert emit("<p>one</p>", target) == target
    emit("<p>two</p>", target)
    assert target.read_text(encoding="utf-8") == "<p>two</p>"
    assert [p.name for p in target.parent.iterdir()] == ["page.html"]


def test_emit_failure_leaves_no_partial_file(monkeypatch, tmp_path):
    target = tmp_path / "page.html"
    target.write_text("original", encoding="utf-8")

    def failing_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(output.os, "replace", failing_replace)
    with pytest.raises(OSError, match="disk full"):
        emit("<p>new</p>", target)
    assert target.read_text(encoding="utf-8") == "original"
    assert [p.name for p in tmp_path.iterdir()] == ["page.html"]


def test_emit_failure_during_build_is_recorded(monkeypatch, tmp_path):
    project = create_project(tmp_path)

    def failing_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(output.os, "replace", failing_replace)
    result = build_site(project)
    assert len(result.failures) == 3
    assert result.written == []
    assert [p for p in (project / "_site").rglob("*") if p.is_file()] == []


def test_format_error_message():
    assert _format_error_message(TypeError("bad")) == "Type error: bad"
    assert _format_error_message(AttributeError("x")) == "Attribute error: x"
    assert _format_error_message(KeyError("k")) == "KeyError: 'k'"
    err = BuildError(Path("a.md"), "boom")
    assert str(err) == "a.md: boom"
    assert err.original_error is None
