"""Normalized value model shared by every pipeline stage.

Every source format is coerced into the same recursive semi-structured value:
``None``, ``bool``, ``int``, ``float``, ``str``, ``list`` and ``dict`` with
string keys. This module owns the coercion, the equality used for join-key
matching, the strict path lookup used by the template language, and the
text formatting of resolved values.

Boundaries
----------
- Pure functions only; nothing here performs I/O.
- A failed lookup is returned as a typed :class:`Missing` outcome, never
  raised, so callers decide whether a miss is an error (strict rendering) or
  a non-match (joins).

Examples
--------
>>> values_equal(1, 1.0)
True
>>> values_equal("1", 1)
False
>>> lookup_path({"a": {"b": [10, 20]}}, ["a", "b", "1"])
20
>>> isinstance(lookup_path({"a": 1}, ["b"]), Missing)
True
"""

from __future__ import annotations

import datetime as _dt
import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from mailmerge.exceptions import DataShapeError


class _NoMatch:
    """Marker stored in a context for a 1:1 join that matched nothing."""

    _instance: _NoMatch | None = None

    def __new__(cls) -> _NoMatch:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_MATCH"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _NoMatch:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _NoMatch:
        return self


NO_MATCH = _NoMatch()


@dataclass(frozen=True)
class Missing:
    """Outcome of a lookup that did not resolve.

    Attributes
    ----------
    segment : str
        The path segment that could not be resolved.
    reason : str
        Human-readable explanation, suitable for a diagnostic.
    """

    segment: str
    reason: str


def normalize_value(raw: Any, *, where: str = "value") -> Any:
    """Coerce a loader-produced value into the normalized value model.

    Parameters
    ----------
    raw : Any
        Value produced by a format parser (JSON, YAML, TOML, CSV).
    where : str, optional
        Location used in error messages, e.g. ``"students[3].age"``.

    Returns
    -------
    Any
        The normalized value.

    Raises
    ------
    DataShapeError
        If ``raw`` contains a type with no normalized representation.

    Examples
    --------
    >>> normalize_value((1, Decimal("2.5"), {"d": _dt.date(2024, 1, 2)}))
    [1, 2.5, {'d': '2024-01-02'}]
    """
    if raw is None or isinstance(raw, (bool, str)):
        return raw
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return raw
    if isinstance(raw, Decimal):
        return int(raw) if raw == raw.to_integral_value() else float(raw)
    if isinstance(raw, (_dt.datetime, _dt.date, _dt.time)):
        return raw.isoformat()
    if isinstance(raw, Mapping):
        return {
            str(key): normalize_value(value, where=f"{where}.{key}")
            for key, value in raw.items()
        }
    if isinstance(raw, Sequence) and not isinstance(raw, (bytes, bytearray)):
        return [
            normalize_value(item, where=f"{where}[{i}]") for i, item in enumerate(raw)
        ]
    raise DataShapeError(
        f"unsupported value of type {type(raw).__name__} at {where}",
        context={"where": where, "type": type(raw).__name__},
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def values_equal(left: Any, right: Any) -> bool:
    """Compare two normalized values.

    Numbers compare numerically regardless of int/float representation,
    strings compare by exact text, and there is no coercion between strings,
    numbers and booleans.
    """
    if _is_number(left) and _is_number(right):
        return left == right
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, str) or isinstance(right, str):
        return isinstance(left, str) and isinstance(right, str) and left == right
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(
            values_equal(a, b) for a, b in zip(left, right)
        )
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(
            values_equal(left[key], right[key]) for key in left
        )
    return False


def type_name(value: Any) -> str:
    """Return the normalized type name of ``value`` for diagnostics."""
    if value is NO_MATCH:
        return "no match"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if _is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "list"
    if isinstance(value, dict):
        return "map"
    return type(value).__name__


def lookup_field(value: Any, segment: str) -> Any | Missing:
    """Resolve one path segment against ``value``."""
    if value is NO_MATCH:
        return Missing(segment, "join had no matching record")
    if isinstance(value, Mapping):
        if segment in value:
            return value[segment]
        return Missing(segment, f"no field '{segment}'")
    if isinstance(value, list):
        if segment.isascii() and segment.isdigit():
            index = int(segment)
            if index < len(value):
                return value[index]
            return Missing(segment, f"index {index} out of range ({len(value)} items)")
        return Missing(segment, f"cannot read field '{segment}' of a list")
    return Missing(segment, f"cannot read field '{segment}' of a {type_name(value)}")


def lookup_path(root: Any, segments: Sequence[str]) -> Any | Missing:
    """Strictly resolve a sequence of path segments starting at ``root``.

    Returns the resolved value, or a :class:`Missing` describing the first
    segment that failed. ``NO_MATCH`` is never traversed.
    """
    current = root
    for segment in segments:
        current = lookup_field(current, segment)
        if isinstance(current, Missing):
            return current
    return current


def format_scalar(value: Any) -> str:
    """Render a resolved value as template output text.

    Examples
    --------
    >>> format_scalar(3.0), format_scalar(True), format_scalar(None)
    ('3', 'true', '')
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float, str)):
        return str(value)
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
