import asyncio
from datetime import datetime
from pathlib import Path

import pytest

from kiln.config import load_config
from kiln.content import build_pages, render_pages, write_content
from kiln.renderers import (
    ContentRenderer,
    MarkdownRenderer,
    RenderError,
    extract_frontmatter,
)
from kiln.site import Metadata, Site


def create_site(tmp_path: Path, production: bool = False) -> Site:
    pages = tmp_path / "content" / "pages"
    pages.mkdir(parents=True)
    (tmp_path / "kiln.yaml").write_text(
        "meta:\n  title: Eons\n  url: https://eons.example/\n", encoding="utf-8"
    )
    return Site(load_config(tmp_path, production=production))


def write_page(site: Site, name: str, text: str) -> Path:
    path = site.config.content.pages / name
    path.write_text(text, encoding="utf-8")
    return path


def test_markdown_renderer_satisfies_protocol():
    assert isinstance(MarkdownRenderer(), ContentRenderer)


def test_extract_frontmatter():
    data, body = extract_frontmatter("---\ntitle: Hello\n---\nBody text")
    assert data == {"title": "Hello"}
    assert body == "Body text"

    data, body = extract_frontmatter("No frontmatter")
    assert data == {}
    assert body == "No frontmatter"


def test_extract_frontmatter_invalid_yaml():
    with pytest.raises(RenderError):
        extract_frontmatter("---\ntitle: [unclosed\n---\nBody")


def test_parse_title_precedence():
    renderer = MarkdownRenderer()
    meta = Metadata(path="/about/")

    from_frontmatter = renderer.parse("---\ntitle: Custom\n---\n# Heading\n\nText", meta)
    from_heading = renderer.parse("# About Us\n\nWe make things.", meta)
    from_name = renderer.parse("Just text.", meta, Path("getting-started.md"))

    assert from_frontmatter.frontmatter.title == "Custom"
    assert from_heading.frontmatter.title == "About Us"
    assert "About Us" not in from_heading.body
    assert from_heading.frontmatter.description == "We make things."
    assert from_name.frontmatter.title == "Getting Started"


def test_parse_created_date():
    renderer = MarkdownRenderer()
    doc = renderer.parse("---\ncreated: 2023-04-05\n---\nText", Metadata(path="/x/"))
    assert doc.frontmatter.created == datetime(2023, 4, 5)

    with pytest.raises(RenderError):
        renderer.parse("---\ncreated: someday\n---\nText", Metadata(path="/x/"))


def test_parse_highlights_code_and_anchors_headings():
    renderer = MarkdownRenderer()
    doc = renderer.parse(
        "Intro\n\n## Setup\n\n## Setup\n\n```python\nprint('hi')\n```\n\n```nosuchlang\nx < y\n```\n",
        Metadata(path="/guide/"),
    )

    assert 'id="setup"' in doc.body
    assert 'id="setup-1"' in doc.body
    assert 'class="highlight"' in doc.body
    assert 'class="language-nosuchlang"' in doc.body
    assert "x &lt; y" in doc.body


def test_render_pages_writes_index_and_registers_page(tmp_path):
    site = create_site(tmp_path)
    write_page(site, "about.md", "# About\n\nHello world")
    write_page(site, "notes.txt", "ignored")

    asyncio.run(render_pages(site, MarkdownRenderer()))

    html = (site.config.out / "about" / "index.html").read_text(encoding="utf-8")
    assert "About | Eons" in html
    assert "Hello world" in html
    assert "/about/" in site.state.pages
    assert not (site.config.out / "notes").exists()


def test_render_pages_stops_at_first_failure(tmp_path):
    site = create_site(tmp_path)
    write_page(site, "a-broken.md", "---\ntitle: [oops\n---\nBody")
    write_page(site, "b-fine.md", "Fine")

    with pytest.raises(RenderError):
        asyncio.run(render_pages(site, MarkdownRenderer()))

    assert not (site.config.out / "b-fine").exists()


def test_render_pages_uses_configured_extension(tmp_path):
    site = create_site(tmp_path)
    write_page(site, "post.markdown", "# Post\n\nBody")

    asyncio.run(render_pages(site, MarkdownRenderer(extension=".markdown")))

    assert (site.config.out / "post" / "index.html").exists()


def test_build_pages_writes_special_pages_and_sitemap(tmp_path):
    site = create_site(tmp_path)
    write_page(site, "about.md", "# About\n\nHello")

    asyncio.run(build_pages(site))

    out = site.config.out
    assert (out / "index.html").exists()
    assert (out / "404" / "index.html").exists()
    assert set(site.state.pages) == {"/", "/about/", "/404/"}

    sitemap = (out / "sitemap.xml").read_text(encoding="utf-8")
    assert "<loc>https://eons.example/</loc>" in sitemap
    assert "<loc>https://eons.example/about/</loc>" in sitemap
    assert "/404/" not in sitemap
    assert sitemap.index("https://eons.example/<") < sitemap.index("about")


def test_build_pages_links_hashed_stylesheet(tmp_path):
    site = create_site(tmp_path)
    site.state.styles["style.css"] = site.config.out / "style.1234abcd.css"
    write_page(site, "about.md", "Hello")

    asyncio.run(build_pages(site))

    html = (site.config.out / "about" / "index.html").read_text(encoding="utf-8")
    assert "/style.1234abcd.css" in html


def test_build_pages_minifies_in_production(tmp_path):
    site = create_site(tmp_path, production=True)
    write_page(site, "about.md", "# About\n\nHello")

    asyncio.run(build_pages(site))

    html = (site.config.out / "about" / "index.html").read_text(encoding="utf-8")
    assert "\n    <main>" not in html
    assert 'class=""' not in html


def test_write_content_creates_directory(tmp_path):
    asyncio.run(write_content(tmp_path / "deep" / "page", "<p>x</p>"))
    assert (tmp_path / "deep" / "page" / "index.html").read_text(encoding="utf-8") == "<p>x</p>"
