"""Small text helpers shared across Kiln.

Key functions:
    titleize: Convert a filename to a human-readable title.
    first_paragraph: Plain-text first paragraph of a document.
    format_duration: Human-readable elapsed time.
"""

from __future__ import annotations

import re
from pathlib import Path


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Examples:
        >>> titleize("getting-started.md")
        'Getting Started'

        >>> titleize("about_me")
        'About Me'
    """
    base = Path(filename).stem
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def first_paragraph(text: str, limit: int = 160) -> str:
    """Extract and clean the first paragraph from text.

    Strips leading ``#`` heading markers and HTML tags, collapses whitespace
    and truncates to ``limit`` characters. Headings are skipped so the
    description comes from prose.

    Args:
        text: Source text.
        limit: Maximum character length of result.

    Returns:
        Cleaned first paragraph, or an empty string.
    """
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    for para in paragraphs:
        if para.startswith("#"):
            continue
        para = re.sub(r"<[^>]+>", "", para)
        collapsed = " ".join(para.split())
        if collapsed:
            return collapsed[:limit]
    return ""


def format_duration(seconds: float) -> str:
    """Format elapsed seconds as ``"850ms"`` or ``"1.23s"``."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    return f"{seconds:.2f}s"
