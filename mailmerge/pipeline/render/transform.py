"""Body transformations: Markdown to HTML, HTML to text, and CSS inlining.

Each function takes and returns text, so the renderer composes them per
``body_format``. Markdown conversion uses ``markdown2`` (the same library
and extras family the static site generator relied on), text flattening
uses BeautifulSoup, and CSS inlining uses ``premailer`` with network
access disabled.
"""

from __future__ import annotations

import logging
import re

import markdown2
from bs4 import BeautifulSoup
from premailer import Premailer

from mailmerge.config import AUTOLINK_PATTERN, MARKDOWN_EXTRAS
from mailmerge.exceptions import CssInlineError
from mailmerge.pipeline.template import Template

logger = logging.getLogger(__name__)

_WRAPPER_ID = "mailmerge-body"
_BLANK_RUNS = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")
_TRAILING_SPACE = re.compile(r"[ \t]+\n")
_BLOCK_TAGS = (
    "p",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "pre",
    "blockquote",
    "ul",
    "ol",
    "table",
    "hr",
    "div",
)
_LINE_TAGS = ("li", "tr")
_CELL_TAGS = ("td", "th")
_CONTAINER_TAGS = frozenset(
    {"ul", "ol", "table", "thead", "tbody", "tfoot", "tr", "blockquote", "div"}
)


def markdown_to_html(markdown_text: str) -> str:
    """Convert GitHub-flavoured Markdown to an HTML fragment.

    Examples
    --------
    >>> markdown_to_html("# Hello Ana").strip()
    '<h1>Hello Ana</h1>'
    """
    return str(
        markdown2.markdown(
            markdown_text,
            extras=MARKDOWN_EXTRAS,
            link_patterns=[(AUTOLINK_PATTERN, r"\1")],
        )
    )


def html_to_text(html: str) -> str:
    """Flatten HTML into a plain-text fallback (tags stripped, content kept).

    Block elements are separated by a blank line, list items and table rows
    by a line break. Whitespace-only text between block elements is dropped
    first, so the result does not depend on how the HTML was indented.

    Examples
    --------
    >>> html_to_text("<h1>Hello Ana</h1>\\n<p>Welcome</p>")
    'Hello Ana\\n\\nWelcome'
    """
    soup = BeautifulSoup(html, "html.parser")
    for string in soup.find_all(string=True):
        parent = string.parent
        if not string.strip() and (parent is soup or parent.name in _CONTAINER_TAGS):
            string.extract()
    for tag in soup.find_all("br"):
        tag.replace_with("\n")
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.insert_before("\n\n")
        tag.insert_after("\n\n")
    for tag in soup.find_all(_LINE_TAGS):
        tag.insert_after("\n")
    for tag in soup.find_all(_CELL_TAGS):
        tag.insert_after(" ")
    text = _TRAILING_SPACE.sub("\n", soup.get_text())
    return _BLANK_RUNS.sub("\n\n", text).strip()


def inline_css(html: str, css: str | None) -> str:
    """Rewrite CSS rules as inline ``style`` attributes on ``html``.

    The fragment is wrapped in a single ``div`` so sibling top-level elements
    are all processed, then the wrapper is removed again.

    Raises
    ------
    CssInlineError
        If the CSS cannot be parsed or applied.
    """
    if not css or not css.strip():
        return html
    wrapped = f'<div id="{_WRAPPER_ID}">{html}</div>'
    try:
        document = Premailer(
            wrapped,
            css_text=css,
            keep_style_tags=False,
            remove_classes=False,
            disable_validation=True,
            allow_network=False,
            cssutils_logging_level=logging.CRITICAL,
        ).transform()
    except Exception as exc:
        raise CssInlineError(str(exc) or type(exc).__name__) from exc
    wrapper = BeautifulSoup(document, "html.parser").find(id=_WRAPPER_ID)
    if wrapper is None:
        raise CssInlineError("inliner output lost the body wrapper")
    return wrapper.decode_contents()


def load_css(template: Template) -> str | None:
    """Return the CSS configured on ``template``: stylesheet file, then ``style``.

    A stylesheet that cannot be read is logged and skipped; its absence is
    reported by the validator, not raised here.
    """
    parts: list[str] = []
    path = template.stylesheet_path()
    if path is not None:
        try:
            parts.append(path.read_text(encoding="utf-8"))
        except OSError as exc:
            logger.warning("Stylesheet %s not readable: %s", path, exc)
    if template.style:
        parts.append(template.style)
    return "\n".join(parts) if parts else None
