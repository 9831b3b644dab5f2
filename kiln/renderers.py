"""Content renderers for Kiln.

A content renderer turns the text of a source document into ContentData and
wraps a parsed document in its layout. The pipeline only depends on the
ContentRenderer protocol; the markup grammar belongs to the renderer.

Key classes:
- ContentRenderer: Protocol implemented by every renderer.
- MarkdownRenderer: Renders Markdown with YAML frontmatter, anchored
  headings and Pygments highlighting.
- RenderError: Raised when a document cannot be parsed.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import mistune
import yaml
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .site import ContentData, Frontmatter, Metadata
from .utils import first_paragraph, titleize

if TYPE_CHECKING:
    from .site import Site
    from .templates import TemplateRenderer

FRONTMATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*\n", re.DOTALL)


class RenderError(Exception):
    """A source document could not be turned into ContentData."""


@runtime_checkable
class ContentRenderer(Protocol):
    """Protocol for turning source documents into rendered pages."""

    @property
    def extension(self) -> str:
        """Source file extension handled by this renderer, without the dot."""
        ...

    def parse(
        self, source: str, metadata: Metadata, path: Path | None = None
    ) -> ContentData:
        """Parse document text into ContentData.

        Raises:
            RenderError: If the document cannot be parsed.
        """
        ...

    def render(self, site: Site, document: ContentData) -> str:
        """Wrap a parsed document in its layout and return the page HTML."""
        ...


def extract_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split YAML frontmatter from the document body.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (frontmatter dict, remaining content).

    Raises:
        RenderError: If the frontmatter block is not valid YAML.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        raise RenderError(f"Invalid frontmatter: {exc}") from exc
    if not isinstance(data, dict):
        return {}, text
    return data, text[match.end() :]


def _generate_heading_id(text: str) -> str:
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


def _coerce_created(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError as exc:
            raise RenderError(f"Invalid created date: {value!r}") from exc
    return None


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer with anchored headings and syntax highlighting."""

    def __init__(self):
        super().__init__(escape=False)
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        if info:
            try:
                lexer = get_lexer_by_name(info.split()[0], stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                return highlight(code, lexer, HtmlFormatter(cssclass="highlight"))
        escaped = code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        lang_class = f' class="language-{info}"' if info else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown documents.

    The title comes from the ``title`` frontmatter key, then the first
    level-one heading (which is dropped from the body since the layout
    prints the title), then the file name. The description comes from the
    ``description`` key or the first paragraph.

    Attributes:
        templates: Template renderer used to wrap documents in layouts.
    """

    extension = "md"

    def __init__(self, templates: TemplateRenderer | None = None, extension: str | None = None):
        if extension:
            self.extension = extension.lstrip(".")
        if templates is None:
            from .templates import TemplateRenderer

            templates = TemplateRenderer()
        self.templates = templates

    def parse(
        self, source: str, metadata: Metadata, path: Path | None = None
    ) -> ContentData:
        frontmatter, body = extract_frontmatter(source)

        title = frontmatter.get("title")
        if not title:
            title, body = self._pop_title(body)
        if not title:
            title = titleize(path.name if path else metadata.path.strip("/") or "index")

        description = frontmatter.get("description") or first_paragraph(body)
        created = _coerce_created(frontmatter.get("created", frontmatter.get("date")))

        markdown = mistune.create_markdown(
            renderer=_HighlightRenderer(),
            plugins=["strikethrough", "footnotes", "table", "url"],
        )
        try:
            html = markdown(body)
        except Exception as exc:
            raise RenderError(f"{type(exc).__name__}: {exc}") from exc

        return ContentData(
            metadata=metadata,
            frontmatter=Frontmatter(
                title=str(title),
                description=str(description),
                created=created or datetime.now(),
            ),
            body=html,
            source=path,
        )

    def render(self, site: Site, document: ContentData) -> str:
        return self.templates.render(site, document.metadata.layout, document)

    @staticmethod
    def _pop_title(body: str) -> tuple[str | None, str]:
        lines = body.splitlines()
        for index, line in enumerate(lines):
            stripped = line.strip()
            if not stripped:
                continue
            if stripped.startswith("# "):
                remaining = "\n".join(lines[:index] + lines[index + 1 :])
                return stripped[2:].strip(), remaining
            break
        return None, body
