"""Recipient list parsing and address syntax checks."""

from __future__ import annotations

from email.utils import parseaddr

from email_validator import EmailNotValidError, validate_email

_SEPARATORS = (",", ";")


def split_addresses(text: str) -> list[str]:
    """Split a recipient list on ``,``/``;`` outside quotes and angle brackets.

    Examples
    --------
    >>> split_addresses('"Doe, Jane" <jane@school.org>; bob@school.org,')
    ['"Doe, Jane" <jane@school.org>', 'bob@school.org']
    """
    parts: list[str] = []
    current: list[str] = []
    in_quotes = False
    in_angle = False
    escaped = False
    for char in text:
        if escaped:
            escaped = False
        elif char == "\\" and in_quotes:
            escaped = True
        elif char == '"' and not in_angle:
            in_quotes = not in_quotes
        elif char == "<" and not in_quotes:
            in_angle = True
        elif char == ">" and not in_quotes:
            in_angle = False
        elif char in _SEPARATORS and not in_quotes and not in_angle:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def address_problem(raw: str) -> str | None:
    """Return why ``raw`` is not a valid mailbox, or None if it is.

    ``raw`` may be a bare address or ``Display Name <address>``. Only the
    syntax is checked; no DNS lookups are made.
    """
    if raw.count("<") != raw.count(">"):
        return "unbalanced angle brackets"
    _, address = parseaddr(raw)
    if not address:
        return "no address found"
    try:
        validate_email(address, check_deliverability=False)
    except EmailNotValidError as exc:
        return str(exc)
    return None
