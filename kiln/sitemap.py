"""Sitemap generation for Kiln.

The sitemap lists every page registered in the site state, following the
sitemaps.org protocol with absolute URLs built from the configured site URL.

Functions:
    generate_sitemap: Build sitemap.xml content from the site state.
    write_sitemap: Generate and write <out>/sitemap.xml.
"""

from __future__ import annotations

from xml.sax.saxutils import escape

from .fs import write_file
from .logging import get_logger
from .site import Site

logger = get_logger("sitemap")

SITEMAP_FILENAME = "sitemap.xml"

# Pages that should never be indexed.
_EXCLUDED_PATHS = {"/404/"}


def generate_sitemap(site: Site) -> str:
    """Generate sitemap.xml content.

    Args:
        site: Site whose registered pages are listed, sorted by path.

    Returns:
        Sitemap XML content.
    """
    base_url = site.config.meta.url.rstrip("/")
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for record in sorted(site.get_pages(), key=lambda r: r.metadata.path):
        if record.metadata.path in _EXCLUDED_PATHS:
            continue
        loc = escape(f"{base_url}{record.metadata.path}")
        lastmod = record.frontmatter.created.strftime("%Y-%m-%d")
        lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
    lines.append("</urlset>")
    return "\n".join(lines) + "\n"


async def write_sitemap(site: Site) -> None:
    """Write the sitemap into the output directory.

    Raises:
        FSError: If the file cannot be written.
    """
    logger.debug("Writing sitemap")
    await write_file(site.config.out / SITEMAP_FILENAME, generate_sitemap(site))
