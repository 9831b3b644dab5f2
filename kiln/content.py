"""Content pipeline for Kiln.

Turns the documents in the pages directory into ``<out>/<slug>/index.html``,
synthesizes the landing and 404 pages, and writes the sitemap. Documents are
rendered one after another in name order so pages register in a predictable
order; the first failing document stops the loop.

Key functions:
- render_pages: Render every source document.
- render_special_pages: Render pages without a source document.
- build_pages: Run both, then write the sitemap.
- write_content: Write a page's index.html.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path

from .fs import create_directory, read_file, walk, write_file
from .html_utils import format_html
from .logging import get_logger
from .renderers import ContentRenderer, MarkdownRenderer
from .site import ContentData, Frontmatter, Metadata, Site
from .sitemap import write_sitemap
from .templates import TemplateRenderer

logger = get_logger("content")


async def write_content(directory: Path, html: str) -> None:
    """Write html to ``directory/index.html``, creating the directory.

    Raises:
        FSError: If the directory or file cannot be written.
    """
    await create_directory(directory)
    await write_file(directory / "index.html", html)


async def render_pages(site: Site, renderer: ContentRenderer) -> None:
    """Render all documents in the configured pages directory.

    Args:
        site: Site being built.
        renderer: Content renderer for the source documents.

    Raises:
        FSError: If a document cannot be read or its page written.
        RenderError: If a document cannot be parsed.
    """
    config = site.config
    sources = await walk(config.content.pages, renderer.extension, recurse=False)

    for source in sorted(sources):
        logger.debug("Rendering %s", source.name)
        text = await read_file(source)
        document = renderer.parse(
            text, Metadata(path=f"/{source.stem}/", layout="page"), source
        )
        rendered = renderer.render(site, document)
        site.add_page(document)
        await write_content(
            config.out / source.stem, format_html(rendered, config.production)
        )


async def render_special_pages(site: Site, templates: TemplateRenderer) -> None:
    """Render the landing and 404 pages, which have no source document."""
    config = site.config

    await write_content(config.out, format_html(templates.landing(site), config.production))
    site.add_page(
        ContentData(
            metadata=Metadata(path="/", layout="default"),
            frontmatter=Frontmatter(
                title=config.meta.title,
                description=config.meta.description,
                created=datetime.now(),
            ),
        )
    )

    await write_content(
        config.out / "404", format_html(templates.not_found(site), config.production)
    )
    site.add_page(
        ContentData(
            metadata=Metadata(path="/404/", layout="default"),
            frontmatter=Frontmatter(
                title="404", description="Page not found", created=datetime.now()
            ),
        )
    )


async def build_pages(site: Site, renderer: ContentRenderer | None = None) -> None:
    """Render documents and special pages concurrently, then the sitemap.

    Both renders settle before a failure is re-raised, so one failing side
    does not stop the other from writing its pages.

    Args:
        site: Site being built.
        renderer: Content renderer; defaults to MarkdownRenderer.
    """
    if renderer is None:
        renderer = MarkdownRenderer(extension=site.config.content.extension)
    templates = getattr(renderer, "templates", None) or TemplateRenderer()

    results = await asyncio.gather(
        render_pages(site, renderer),
        render_special_pages(site, templates),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, Exception):
            raise result
    await write_sitemap(site)
