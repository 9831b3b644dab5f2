import logging
from datetime import datetime

from kiln.config import load_config
from kiln.site import ContentData, Frontmatter, Metadata, Site
from kiln.sitemap import generate_sitemap


def make_page(path, title="Page", created=None):
    return ContentData(
        metadata=Metadata(path=path),
        frontmatter=Frontmatter(title=title, created=created or datetime(2024, 5, 6)),
    )


def test_get_style_defaults_to_plain_name(tmp_path):
    site = Site(load_config(tmp_path, production=False))
    assert site.get_style("style.css") == "/style.css"

    site.state.styles["style.css"] = tmp_path / "public" / "style.0a1b2c3d.css"
    assert site.get_style("style.css") == "/style.0a1b2c3d.css"


def test_add_page_keeps_latest_and_warns(tmp_path, caplog):
    caplog.set_level(logging.WARNING, logger="kiln")
    site = Site(load_config(tmp_path, production=False))

    site.add_page(make_page("/about/", "First"))
    site.add_page(make_page("/about/", "Second"))

    pages = list(site.get_pages())
    assert len(pages) == 1
    assert pages[0].frontmatter.title == "Second"
    assert "more than once" in caplog.text

    site.reset_pages()
    assert list(site.get_pages()) == []


def test_sitemap_sorted_escaped_and_excludes_404(tmp_path):
    (tmp_path / "kiln.yaml").write_text("meta:\n  url: https://a.example/\n", encoding="utf-8")
    site = Site(load_config(tmp_path, production=False))
    site.add_page(make_page("/zeta/"))
    site.add_page(make_page("/404/"))
    site.add_page(make_page("/"))
    site.add_page(make_page("/q&a/", created=datetime(2021, 2, 3)))

    sitemap = generate_sitemap(site)

    assert sitemap.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    locs = [line for line in sitemap.splitlines() if "<loc>" in line]
    assert len(locs) == 3
    assert "https://a.example/</loc>" in locs[0]
    assert "https://a.example/q&amp;a/</loc><lastmod>2021-02-03</lastmod>" in locs[1]
    assert "zeta" in locs[2]
    assert "404" not in sitemap
