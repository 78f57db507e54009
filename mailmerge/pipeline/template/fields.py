"""Infer which record fields a template references for a namespace.

Used to build the input form for ``form: true`` sources without rendering.
"""

from __future__ import annotations

import re

from .model import Template


def infer_form_fields(template: Template, namespace: str) -> list[str]:
    """Return sorted, unique field names referenced as ``namespace.field``.

    Scans to, cc, bcc, subject, body and attachments. The namespace must
    start on an identifier boundary, so ``r`` never matches
    ``recipient.email``.

    Examples
    --------
    >>> from mailmerge.pipeline.template.parser import parse_template_str
    >>> t = parse_template_str(
    ...     "sources: {rcpt: {primary: true, form: true}}\\n"
    ...     "to: '{{rcpt.email}}'\\nsubject: 'Hi {{rcpt.name}}'\\nbody: b"
    ... )
    >>> infer_form_fields(t, "rcpt")
    ['email', 'name']
    """
    pattern = re.compile(rf"(?<![A-Za-z0-9_]){re.escape(namespace)}\.([A-Za-z0-9_]+)")
    found: set[str] = set()
    for text in template.text_fields().values():
        if text:
            found.update(pattern.findall(text))
    return sorted(found)
