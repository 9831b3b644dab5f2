"""Build-time site model for Kiln.

Key classes:
- Metadata, Frontmatter, ContentData: A rendered document and its metadata.
- PageRecord: What the site remembers about a registered page.
- State: Mutable maps of emitted styles and registered pages.
- Site: Owns the Config and the State and exposes accessors over them.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from .config import Config
from .logging import get_logger

logger = get_logger("site")

@dataclass
class Metadata:
    """Where a page is published and which layout wraps it.

    Attributes:
        path: URL path of the page, e.g. ``/about/``.
        layout: Layout name used by the template renderer.
    """

    path: str
    layout: str = "page"


@dataclass
class Frontmatter:
    title: str
    description: str = ""
    created: datetime = field(default_factory=datetime.now)


@dataclass
class ContentData:
    """A parsed document ready to be rendered.

    Attributes:
        metadata: Output path and layout.
        frontmatter: Title, description and creation date.
        body: Rendered HTML fragment owned by the content renderer.
        source: Source file the document came from, when there is one.
    """

    metadata: Metadata
    frontmatter: Frontmatter
    body: str = ""
    source: Path | None = None


@dataclass
class PageRecord:
    metadata: Metadata
    frontmatter: Frontmatter


@dataclass
class State:
    """Mutable build state shared by every stage.

    Attributes:
        styles: Logical stylesheet name (``style.css``) to the emitted file.
        pages: URL path to the registered page record.
    """

    styles: dict[str, Path] = field(default_factory=dict)
    pages: dict[str, PageRecord] = field(default_factory=dict)


class Site:
    """The site being built: a read-only Config plus mutable State."""

    def __init__(self, config: Config, state: State | None = None):
        self.config = config
        self.state = state if state is not None else State()

    def get_style(self, name: str) -> str:
        """Resolve a logical stylesheet name to its URL.

        Cache busting turns ``style.css`` into ``style.abcd1234.css``; until
        the style renderer has registered a file the plain name is used.

        Args:
            name: Logical file name, e.g. ``style.css``.

        Returns:
            Root-relative URL of the stylesheet.
        """
        style_path = self.state.styles.get(name)
        if style_path is None:
            return f"/{name}"
        return f"/{Path(style_path).name}"

    def get_pages(self) -> Iterator[PageRecord]:
        return iter(self.state.pages.values())

    def add_page(self, content: ContentData) -> None:
        """Register a rendered page in the site state.

        A path registered twice in one build keeps the last registration and
        is reported as a warning.
        """
        path = content.metadata.path
        if path in self.state.pages:
            logger.warning("Page %s registered more than once; keeping the latest", path)
        logger.debug("Adding page %s to state", content.frontmatter.title)
        self.state.pages[path] = PageRecord(
            metadata=content.metadata, frontmatter=content.frontmatter
        )

    def reset_pages(self) -> None:
        """Forget registered pages before a fresh full render."""
        self.state.pages.clear()
