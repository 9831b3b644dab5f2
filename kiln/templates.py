"""Template rendering for Kiln.

Layouts are Jinja2 templates shipped inside the package. The renderer takes
a site, a layout name and a parsed document and returns a complete HTML
page; it also synthesizes the pages that have no source document.

Key class:
- TemplateRenderer: Renders layouts, the landing page and the 404 page.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from markupsafe import Markup

from .config import Config
from .logging import get_logger
from .site import ContentData, Site

logger = get_logger("template")

TEMPLATES_DIR = Path(__file__).parent / "templates"


def create_title(config: Config, title: str) -> str:
    """Build the ``<title>`` text for a page.

    The landing page already carries the site title, so it is not repeated.

    Examples:
        For a site titled "Eons": ``create_title(config, "About")`` gives
        ``"About | Eons"`` and ``create_title(config, "Eons")`` gives
        ``"Eons"``.
    """
    if title == config.meta.title:
        return title
    return f"{title} | {config.meta.title}"


class TemplateRenderer:
    """Renders pages from the packaged Jinja2 layouts.

    Attributes:
        env: Jinja2 environment loading from ``template_dirs``.
    """

    def __init__(self, template_dirs: list[Path] | None = None):
        """Initialize the renderer.

        Args:
            template_dirs: Directories searched before the packaged templates,
                letting a project override individual layouts.
        """
        search_path = [*(template_dirs or []), TEMPLATES_DIR]
        self.env = Environment(
            loader=FileSystemLoader(search_path),
            autoescape=select_autoescape(["html", "xml", "html.jinja"]),
        )

    def render(self, site: Site, layout: str, content: ContentData) -> str:
        """Render a document inside a layout.

        Args:
            site: Site being built; provides config and stylesheet lookup.
            layout: Layout name, e.g. ``page`` or ``default``.
            content: Parsed document.

        Returns:
            The full HTML page.
        """
        logger.debug("Rendering %s", layout)
        title = content.frontmatter.title
        template = self._resolve_layout_template(layout)
        return template.render(
            **self._context(site),
            title=create_title(site.config, title),
            heading=title,
            description=content.frontmatter.description or site.config.meta.description,
            created=content.frontmatter.created,
            body=Markup(content.body),
        )

    def landing(self, site: Site) -> str:
        """Render the landing page."""
        template = self.env.get_template("landing.html.jinja")
        return template.render(
            **self._context(site),
            title=site.config.meta.title,
            description=site.config.meta.description,
        )

    def not_found(self, site: Site) -> str:
        """Render the 404 page."""
        template = self.env.get_template("404.html.jinja")
        return template.render(
            **self._context(site),
            title=create_title(site.config, "404"),
            description="Page not found",
        )

    def _context(self, site: Site) -> dict[str, Any]:
        return {
            "site": site.config.meta,
            "style": site.get_style,
        }

    def _resolve_layout_template(self, layout: str):
        candidates = [f"{layout}.html.jinja"]
        if layout != "default":
            candidates.append("default.html.jinja")
        for name in candidates:
            try:
                return self.env.get_template(name)
            except TemplateNotFound:
                logger.debug("Layout %s not found", name)
                continue
        return self.env.from_string("{{ body }}")
