"""Per-entry context: the namespace -> value mapping a template renders against."""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any

from mailmerge.pipeline.values import NO_MATCH


class Context(Mapping[str, Any]):
    """Read-only mapping from namespace to resolved value for one primary entry.

    Attributes
    ----------
    entry_index : int
        Zero-based index of the primary entry this context was built from.

    Notes
    -----
    Values are deep copies of the loaded datasets, so a context holds no
    references back into the source data. A 1:1 join without a match is
    stored as :data:`mailmerge.pipeline.values.NO_MATCH`, never omitted.
    """

    __slots__ = ("entry_index", "_values")

    def __init__(self, entry_index: int, values: Mapping[str, Any]) -> None:
        self.entry_index = entry_index
        self._values = MappingProxyType(dict(values))

    def __getitem__(self, namespace: str) -> Any:
        return self._values[namespace]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Context(entry_index={self.entry_index}, namespaces={list(self._values)})"

    def is_matched(self, namespace: str) -> bool:
        """Return False if ``namespace`` holds the no-match marker."""
        return self._values.get(namespace) is not NO_MATCH

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly copy; unmatched joins become ``None``."""
        return {
            namespace: None if value is NO_MATCH else copy.deepcopy(value)
            for namespace, value in self._values.items()
        }
