"""Join engine package."""

from .context import Context
from .engine import (
    AMBIGUOUS,
    MISSING,
    EntryResolution,
    ErrorPolicy,
    JoinIssue,
    JoinResult,
    build_contexts,
    build_contexts_lenient,
    resolve_entries,
)

__all__ = [
    "AMBIGUOUS",
    "MISSING",
    "Context",
    "EntryResolution",
    "ErrorPolicy",
    "JoinIssue",
    "JoinResult",
    "build_contexts",
    "build_contexts_lenient",
    "resolve_entries",
]
