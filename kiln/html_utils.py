"""HTML post-processing for Kiln.

Pages are pretty-printed during development so the output is readable, and
minified for production. Both transformations are deterministic and give
the same result when applied to their own output.

Functions:
    format_html: Pretty-print or minify depending on the build mode.
    prettify_html: Re-indent HTML one element per line.
    minify_html: Drop empty attributes and collapse whitespace.
    inject_reload_script: Add the live reload snippet to an HTML document.
"""

from __future__ import annotations

import htmlmin
from bs4 import BeautifulSoup

# Attributes that carry no meaning when their value is empty.
_REMOVABLE_WHEN_EMPTY = ("class", "id", "style", "title", "lang", "dir")


def format_html(html: str, production: bool) -> str:
    """Prepare rendered HTML for writing.

    Args:
        html: Rendered page.
        production: Minify when True, pretty-print otherwise.

    Returns:
        The transformed HTML.
    """
    return minify_html(html) if production else prettify_html(html)


def prettify_html(html: str) -> str:
    """Re-indent HTML with one element or text run per line.

    Examples:
        >>> print(prettify_html('<div class="a"><p>Hi</p></div>'), end="")
        <div class="a">
         <p>
          Hi
         </p>
        </div>
    """
    return BeautifulSoup(html, "html.parser").prettify()


def minify_html(html: str) -> str:
    """Minify HTML.

    Empty ``class``/``id``/``style``-like attributes are removed entirely,
    other empty values are reduced to bare attributes, optional attribute
    quotes are dropped, comments are removed and whitespace between tags is
    collapsed.

    Examples:
        >>> minify_html("<div  class='hello'><p class=''>Hello!</p></div>")
        '<div class=hello><p>Hello!</p></div>'
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(True):
        for name in _REMOVABLE_WHEN_EMPTY:
            if name in tag.attrs and not _attribute_text(tag.attrs[name]):
                del tag[name]
    return htmlmin.minify(
        str(soup),
        remove_comments=True,
        remove_empty_space=True,
        reduce_boolean_attributes=True,
        convert_charrefs=False,
    )


def _attribute_text(value: str | list[str]) -> str:
    if isinstance(value, list):
        return " ".join(value).strip()
    return str(value).strip()


def inject_reload_script(html: str, script: str) -> str:
    """Insert the live reload script before the last ``</body>``.

    Documents without a closing body tag get the script appended.
    """
    marker = html.rfind("</body>")
    if marker == -1:
        return html + script
    return html[:marker] + script + html[marker:]
