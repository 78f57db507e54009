"""Render one context against a template into a :class:`RenderedInstance`.

``render`` is a pure function of (context, template, css): the same inputs
always give byte-identical output, so preview navigation can re-render
freely. Attachment paths are resolved but not checked; existence belongs
to the validator.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mailmerge.exceptions import RenderError
from mailmerge.pipeline.template import BodyFormat, Template

from .templating import render_text
from .transform import html_to_text, inline_css, load_css, markdown_to_html

logger = logging.getLogger(__name__)

_UNSET: Any = object()


@dataclass(frozen=True)
class RenderedInstance:
    """Fully evaluated email fields for one primary entry.

    Attributes
    ----------
    entry_index : int
        Index of the primary entry this instance was rendered from.
    to, subject : str
        Rendered recipient list and subject.
    cc, bcc : str | None
        Rendered copy lists, ``None`` when the template has no such field.
    html_body : str | None
        HTML part; ``None`` for ``text`` format.
    text_body : str
        Plain-text part, always present.
    attachments : tuple[Path, ...]
        Attachment paths in template order.
    """

    entry_index: int
    to: str
    subject: str
    text_body: str
    html_body: str | None = None
    cc: str | None = None
    bcc: str | None = None
    attachments: tuple[Path, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_index": self.entry_index,
            "to": self.to,
            "cc": self.cc,
            "bcc": self.bcc,
            "subject": self.subject,
            "html_body": self.html_body,
            "text_body": self.text_body,
            "attachments": [str(p) for p in self.attachments],
        }


def split_attachments(rendered: str, base_dir: Path) -> tuple[Path, ...]:
    """Split rendered attachment text into paths, one per non-blank line.

    Examples
    --------
    >>> split_attachments(" a.pdf \\n\\n/tmp/b.pdf\\n", Path("/t"))
    (PosixPath('/t/a.pdf'), PosixPath('/tmp/b.pdf'))
    """
    paths: list[Path] = []
    for line in rendered.splitlines():
        candidate = line.strip()
        if candidate:
            paths.append(base_dir / candidate)
    return tuple(paths)


def _entry_index(context: Mapping[str, Any]) -> int:
    return int(getattr(context, "entry_index", 0))


def render(
    context: Mapping[str, Any],
    template: Template,
    *,
    css: str | None = _UNSET,
) -> RenderedInstance:
    """Render every template field against ``context``.

    Parameters
    ----------
    context : Mapping[str, Any]
        Namespace -> value; usually a :class:`mailmerge.pipeline.join.Context`,
        whose ``entry_index`` is carried into the result and diagnostics.
    template : Template
        Parsed template.
    css : str | None, optional
        Pre-loaded CSS. When omitted it is read from the template's
        ``stylesheet`` and ``style``; ignored for ``text`` format.

    Returns
    -------
    RenderedInstance

    Raises
    ------
    UnresolvedReferenceError
        An expression in any field does not resolve.
    TemplateSyntaxError
        A field is not well-formed.
    CssInlineError
        The configured CSS could not be applied.
    """
    entry_index = _entry_index(context)
    try:
        fields = {
            name: None
            if source is None
            else render_text(source, context, field=name, entry_index=entry_index)
            for name, source in template.text_fields().items()
        }
        body = fields["body"] or ""
        html_body: str | None = None
        if template.body_format is BodyFormat.TEXT:
            text_body = body
        else:
            html = (
                markdown_to_html(body)
                if template.body_format is BodyFormat.MARKDOWN
                else body
            )
            text_body = html_to_text(html)
            html_body = inline_css(html, load_css(template) if css is _UNSET else css)
    except RenderError as exc:
        exc.entry_index = entry_index
        exc.context["entry_index"] = entry_index
        raise

    attachments = (
        split_attachments(fields["attachments"], template.base_dir)
        if fields["attachments"]
        else ()
    )
    logger.debug("Rendered entry %d", entry_index)
    return RenderedInstance(
        entry_index=entry_index,
        to=fields["to"] or "",
        cc=fields["cc"],
        bcc=fields["bcc"],
        subject=fields["subject"] or "",
        html_body=html_body,
        text_body=text_body,
        attachments=attachments,
    )
