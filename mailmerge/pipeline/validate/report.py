"""Validation report data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

REQUIRED_FIELD_EMPTY = "REQUIRED_FIELD_EMPTY"
INVALID_ADDRESS = "INVALID_ADDRESS"
ATTACHMENT_NOT_FOUND = "ATTACHMENT_NOT_FOUND"
STYLESHEET_NOT_FOUND = "STYLESHEET_NOT_FOUND"
MISSING_JOIN = "MISSING_JOIN"
AMBIGUOUS_JOIN = "AMBIGUOUS_JOIN"
NOT_RENDERED = "NOT_RENDERED"


@dataclass(frozen=True)
class ValidationIssue:
    """One failed check for one entry.

    ``scope`` names what failed: a field (``to``, ``body``), ``attachments``,
    ``stylesheet`` or ``join:<namespace>``.
    """

    scope: str
    code: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"scope": self.scope, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class PerEntryResult:
    entry_index: int
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.issues

    def codes(self) -> list[str]:
        return [issue.code for issue in self.issues]


@dataclass(frozen=True)
class ValidationReport:
    """Outcome of validating a whole batch, one result per primary entry.

    Examples
    --------
    >>> report = ValidationReport(2, (PerEntryResult(0), PerEntryResult(1)))
    >>> report.is_valid, report.invalid_entries()
    (True, [])
    """

    entry_count: int
    entries: tuple[PerEntryResult, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return all(entry.is_valid for entry in self.entries)

    def invalid_entries(self) -> list[PerEntryResult]:
        return [entry for entry in self.entries if not entry.is_valid]

    def entry(self, entry_index: int) -> PerEntryResult:
        return self.entries[entry_index]

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_count": self.entry_count,
            "is_valid": self.is_valid,
            "entries": [
                {
                    "entry_index": entry.entry_index,
                    "is_valid": entry.is_valid,
                    "issues": [issue.to_dict() for issue in entry.issues],
                }
                for entry in self.entries
            ],
        }
