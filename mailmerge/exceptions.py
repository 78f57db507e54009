"""Central application exception hierarchy.

This module defines the base application exception ``AppError`` and the
specialized subclasses raised by each pipeline stage: template parsing and
source resolution, data loading, joining, and rendering. Using a centralized
hierarchy makes error handling and testing consistent, and every error
carries a structured ``context`` (entry index, field, expression, namespace)
so a diagnostic is actionable without re-running the pipeline.

Validation failures are *not* exceptions; they are collected as data by
:mod:`mailmerge.pipeline.validate`.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any, Mapping


class AppError(Exception):
    """Base exception for all application-level errors.

    Parameters
    ----------
    code : str
        Machine-readable error code (e.g., ``'MISSING_JOIN'``).
    message : str
        Human-readable message describing the error.
    context : Mapping[str, Any] | None, optional
        Optional structured context for logging.
    transient : bool, optional
        Whether the error is temporary and may be retried. Every subclass
        here passes False: the pipeline does no network I/O, so retrying
        the same input gives the same failure. The flag is for callers
        such as a sending transport that wrap their own errors.

    Attributes
    ----------
    code : str
        Stable machine-readable error code.
    message : str
        Human-readable message.
    context : dict
        Structured, non-sensitive context for logging.
    transient : bool
        True if the error is transient.

    Examples
    --------
    >>> e = AppError('CODE', 'message', context={'k': 'v'}, transient=True)
    >>> e.code
    'CODE'
    """

    __slots__ = ("code", "message", "context", "transient")

    def __init__(
        self,
        code: str,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        transient: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.context = dict(context or {})
        self.transient = bool(transient)

    def __str__(self) -> str:
        """Return a compact string representation of the error."""
        return f"{self.code}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Return a log-safe dictionary representation of the error."""
        return {
            "error_code": self.code,
            "message": self.message,
            "context": self.context,
            "is_transient": self.transient,
        }


class ConfigurationError(AppError):
    """Raised for invalid or missing configuration."""

    def __init__(
        self, message: str, *, context: Mapping[str, Any] | None = None
    ) -> None:
        super().__init__(
            "CONFIGURATION_ERROR", message, context=context, transient=False
        )


class DataValidationError(AppError):
    """Raised for data that fails schema or content validation."""

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        code: str = "DATA_VALIDATION_ERROR",
    ) -> None:
        super().__init__(code, message, context=context, transient=False)


class UserInputError(AppError):
    """Raised when user input (CLI arguments, entry index) is invalid."""

    def __init__(
        self, message: str, *, context: Mapping[str, Any] | None = None
    ) -> None:
        super().__init__("USER_INPUT_ERROR", message, context=context, transient=False)


# ---------------------------------------------------------------------------
# Template parsing and source descriptor resolution
# ---------------------------------------------------------------------------


class TemplateParseError(AppError):
    """Raised when a template document cannot be read or has the wrong shape."""

    def __init__(
        self, message: str, *, context: Mapping[str, Any] | None = None
    ) -> None:
        super().__init__(
            "TEMPLATE_PARSE_ERROR", message, context=context, transient=False
        )


class TemplateValidityError(AppError):
    """Base class for errors in a template's source declarations.

    These are fatal to opening a template at all and are detected before any
    dataset is requested.
    """

    def __init__(
        self, code: str, message: str, *, context: Mapping[str, Any] | None = None
    ) -> None:
        super().__init__(code, message, context=context, transient=False)


class MissingPrimaryError(TemplateValidityError):
    """No source declares ``primary: true``."""

    def __init__(self) -> None:
        super().__init__("MISSING_PRIMARY", "no source has primary: true")


class DuplicatePrimaryError(TemplateValidityError):
    """More than one source declares ``primary: true``."""

    def __init__(self, namespaces: Sequence[str]) -> None:
        names = sorted(namespaces)
        super().__init__(
            "DUPLICATE_PRIMARY",
            f"multiple sources declare primary: true: {', '.join(names)}",
            context={"namespaces": names},
        )
        self.namespaces = names


class MalformedReferencePathError(TemplateValidityError):
    """A join reference path is not exactly ``namespace.field``."""

    def __init__(self, namespace: str, join_key: str, ref_value: str) -> None:
        super().__init__(
            "MALFORMED_REFERENCE_PATH",
            f"join in '{namespace}' key '{join_key}' has invalid reference "
            f"'{ref_value}' (must be namespace.field)",
            context={"namespace": namespace, "join_key": join_key, "ref": ref_value},
        )
        self.namespace = namespace


class SelfJoinError(TemplateValidityError):
    """A namespace joins to itself."""

    def __init__(self, namespace: str, join_key: str) -> None:
        super().__init__(
            "SELF_JOIN",
            f"source '{namespace}' joins on itself (key '{join_key}')",
            context={"namespace": namespace, "join_key": join_key},
        )
        self.namespace = namespace


class UnknownJoinTargetError(TemplateValidityError):
    """A join reference names a namespace that is not declared."""

    def __init__(self, namespace: str, join_key: str, ref_namespace: str) -> None:
        super().__init__(
            "UNKNOWN_JOIN_TARGET",
            f"join in '{namespace}' key '{join_key}' references unknown "
            f"namespace '{ref_namespace}'",
            context={
                "namespace": namespace,
                "join_key": join_key,
                "ref_namespace": ref_namespace,
            },
        )
        self.namespace = namespace
        self.ref_namespace = ref_namespace


# ---------------------------------------------------------------------------
# Loaded data
# ---------------------------------------------------------------------------


class DataShapeError(DataValidationError):
    """Raised when a loaded dataset does not have the shape its role needs."""

    def __init__(
        self, message: str, *, context: Mapping[str, Any] | None = None
    ) -> None:
        super().__init__(message, context=context, code="INVALID_DATA_SHAPE")


class SourceNotLoadedError(DataValidationError):
    """Raised when a declared namespace has no loaded dataset."""

    def __init__(self, namespace: str) -> None:
        super().__init__(
            f"no data loaded for namespace '{namespace}'",
            context={"namespace": namespace},
            code="SOURCE_NOT_LOADED",
        )
        self.namespace = namespace


class UnsupportedFormatError(DataValidationError):
    """Raised for a source file whose extension has no loader."""

    def __init__(self, path: Path) -> None:
        super().__init__(
            f"unsupported file format: '{path.suffix}'",
            context={"path": str(path)},
            code="UNSUPPORTED_FORMAT",
        )


class SourceLoadError(DataValidationError):
    """Raised when a source file cannot be read or parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(
            f"failed to load {path}: {reason}",
            context={"path": str(path), "reason": reason},
            code="SOURCE_LOAD_ERROR",
        )


# ---------------------------------------------------------------------------
# Join engine
# ---------------------------------------------------------------------------


class JoinError(AppError):
    """Base class for per-entry join failures."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        entry_index: int,
        namespace: str,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        merged = {"entry_index": entry_index, "namespace": namespace}
        merged.update(context or {})
        super().__init__(code, message, context=merged, transient=False)
        self.entry_index = entry_index
        self.namespace = namespace


class MissingJoinError(JoinError):
    """A 1:1 join found no matching record for a primary entry."""

    def __init__(self, entry_index: int, namespace: str) -> None:
        super().__init__(
            "MISSING_JOIN",
            f"join '{namespace}' found no match for primary entry {entry_index}",
            entry_index=entry_index,
            namespace=namespace,
        )


class AmbiguousJoinError(JoinError):
    """A 1:1 join found more than one matching record for a primary entry."""

    def __init__(self, entry_index: int, namespace: str, match_count: int) -> None:
        super().__init__(
            "AMBIGUOUS_JOIN",
            f"join '{namespace}' is ambiguous for primary entry {entry_index}: "
            f"{match_count} matches",
            entry_index=entry_index,
            namespace=namespace,
            context={"match_count": match_count},
        )
        self.match_count = match_count


# ---------------------------------------------------------------------------
# Render pipeline
# ---------------------------------------------------------------------------


class RenderError(AppError):
    """Base class for failures rendering one template field."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        field: str,
        entry_index: int | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        merged: dict[str, Any] = {"field": field, "entry_index": entry_index}
        merged.update(context or {})
        super().__init__(code, message, context=merged, transient=False)
        self.field = field
        self.entry_index = entry_index


class UnresolvedReferenceError(RenderError):
    """A template expression does not resolve to a value."""

    def __init__(
        self,
        expression: str,
        field: str,
        reason: str,
        *,
        entry_index: int | None = None,
    ) -> None:
        where = f"entry {entry_index}, " if entry_index is not None else ""
        super().__init__(
            "UNRESOLVED_REFERENCE",
            f"{where}field '{field}': cannot resolve '{{{{{expression}}}}}': {reason}",
            field=field,
            entry_index=entry_index,
            context={"expression": expression, "reason": reason},
        )
        self.expression = expression
        self.reason = reason


class TemplateSyntaxError(RenderError):
    """A template field is not well-formed template-language source."""

    def __init__(self, field: str, reason: str, *, line: int | None = None) -> None:
        at = f" (line {line})" if line is not None else ""
        super().__init__(
            "TEMPLATE_SYNTAX",
            f"field '{field}': {reason}{at}",
            field=field,
            context={"reason": reason, "line": line},
        )
        self.reason = reason


class CssInlineError(RenderError):
    """CSS could not be inlined into the rendered HTML body."""

    def __init__(self, reason: str, *, entry_index: int | None = None) -> None:
        super().__init__(
            "CSS_INLINE",
            f"CSS inlining failed: {reason}",
            field="body",
            entry_index=entry_index,
            context={"reason": reason},
        )
        self.reason = reason
