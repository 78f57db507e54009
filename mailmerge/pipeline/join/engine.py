"""Join engine: resolve every namespace into one context per primary entry.

For each primary entry, in load order:

1. the primary record is placed under the primary namespace;
2. each global namespace receives its whole dataset unchanged (a ``form``
   namespace receives its single record, so ``{{ns.field}}`` works);
3. each joined namespace is resolved by a linear scan of its records. A
   candidate matches when, for every ``local_field: ns.field`` key, the
   candidate's ``local_field`` equals ``context[ns][field]`` under
   :func:`mailmerge.pipeline.values.values_equal`.

Strict and lenient behaviour share one routine, :func:`resolve_entries`,
parameterized by :class:`ErrorPolicy`. Strict excludes an entry whose 1:1
join is missing or ambiguous; lenient keeps it (``NO_MATCH`` or the first
match) and records the issue for the validator.

Data problems that make the whole batch meaningless (a namespace with no
data, a primary that is not a list of records) raise immediately.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from mailmerge.exceptions import (
    AmbiguousJoinError,
    DataShapeError,
    JoinError,
    MissingJoinError,
    SourceNotLoadedError,
)
from mailmerge.pipeline.template import (
    Cardinality,
    JoinKey,
    SourceDescriptor,
    primary_descriptor,
)
from mailmerge.pipeline.values import NO_MATCH, type_name, values_equal

from .context import Context

logger = logging.getLogger(__name__)

MISSING = "missing"
AMBIGUOUS = "ambiguous"


class ErrorPolicy(str, Enum):
    """How per-entry join failures are handled."""

    STRICT = "strict"
    LENIENT = "lenient"


@dataclass(frozen=True)
class JoinIssue:
    """A 1:1 join that did not find exactly one record for an entry."""

    entry_index: int
    namespace: str
    kind: str
    match_count: int = 0

    @property
    def message(self) -> str:
        if self.kind == AMBIGUOUS:
            return f"join '{self.namespace}': {self.match_count} matches (expected 1)"
        return f"join '{self.namespace}': no match found"

    def to_error(self) -> JoinError:
        if self.kind == AMBIGUOUS:
            return AmbiguousJoinError(self.entry_index, self.namespace, self.match_count)
        return MissingJoinError(self.entry_index, self.namespace)


@dataclass(frozen=True)
class EntryResolution:
    """Join outcome for one primary entry.

    ``context`` is None only under the strict policy, for an entry that
    has at least one issue.
    """

    entry_index: int
    context: Context | None
    issues: tuple[JoinIssue, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.issues


@dataclass(frozen=True)
class JoinResult:
    """Lenient join output: exactly one context per primary entry."""

    contexts: tuple[Context, ...]
    issues: tuple[JoinIssue, ...]

    def issues_for(self, entry_index: int) -> list[JoinIssue]:
        return [issue for issue in self.issues if issue.entry_index == entry_index]


def _records(value: Any, namespace: str) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        raise DataShapeError(
            f"source '{namespace}' must be a list of records, got {type_name(value)}",
            context={"namespace": namespace},
        )
    for position, record in enumerate(value):
        if not isinstance(record, dict):
            raise DataShapeError(
                f"source '{namespace}' entry {position} must be a record, "
                f"got {type_name(record)}",
                context={"namespace": namespace, "position": position},
            )
    return value


def _join_order(joined: Sequence[SourceDescriptor]) -> list[SourceDescriptor]:
    """Order joined descriptors so referenced joined namespaces come first."""
    names = {d.namespace for d in joined}
    placed: list[SourceDescriptor] = []
    done: set[str] = set()
    pending = list(joined)
    while pending:
        ready = [
            d
            for d in pending
            if all(ns in done or ns not in names for ns in d.referenced_namespaces)
        ]
        if not ready:
            logger.warning(
                "Cyclic joins between %s; resolving in declaration order",
                ", ".join(d.namespace for d in pending),
            )
            placed.extend(pending)
            break
        for descriptor in ready:
            placed.append(descriptor)
            done.add(descriptor.namespace)
            pending.remove(descriptor)
    return placed


def _matches(
    record: Mapping[str, Any], keys: Sequence[JoinKey], resolved: Mapping[str, Any]
) -> bool:
    for key in keys:
        if key.local_field not in record:
            return False
        target = resolved.get(key.namespace)
        if not isinstance(target, dict) or key.field not in target:
            return False
        if not values_equal(record[key.local_field], target[key.field]):
            return False
    return True


def resolve_entries(
    descriptors: Sequence[SourceDescriptor],
    loaded: Mapping[str, Any],
    policy: ErrorPolicy = ErrorPolicy.STRICT,
) -> list[EntryResolution]:
    """Resolve one context per primary entry under the given error policy.

    Parameters
    ----------
    descriptors : Sequence[SourceDescriptor]
        Output of :func:`mailmerge.pipeline.template.resolve_descriptors`.
    loaded : Mapping[str, Any]
        Namespace -> normalized value, one per descriptor.
    policy : ErrorPolicy, optional
        ``STRICT`` drops the context of an entry with a join issue;
        ``LENIENT`` keeps a best-effort context.

    Returns
    -------
    list[EntryResolution]
        Exactly one resolution per primary entry, in primary order.

    Raises
    ------
    SourceNotLoadedError
        A declared namespace is absent from ``loaded``.
    DataShapeError
        The primary or a joined dataset is not a list of records.
    """
    primary = primary_descriptor(list(descriptors))
    for descriptor in descriptors:
        if descriptor.namespace not in loaded:
            raise SourceNotLoadedError(descriptor.namespace)

    primary_records = _records(loaded[primary.namespace], primary.namespace)
    globals_ = [d for d in descriptors if d.is_global]
    joined = _join_order([d for d in descriptors if d.is_joined])
    joined_records = {d.namespace: _records(loaded[d.namespace], d.namespace) for d in joined}

    resolutions: list[EntryResolution] = []
    for entry_index, record in enumerate(primary_records):
        resolved: dict[str, Any] = {primary.namespace: copy.deepcopy(record)}
        for descriptor in globals_:
            value = loaded[descriptor.namespace]
            if descriptor.form and isinstance(value, list) and len(value) == 1:
                value = value[0]
            resolved[descriptor.namespace] = copy.deepcopy(value)

        issues: list[JoinIssue] = []
        for descriptor in joined:
            matches = [
                candidate
                for candidate in joined_records[descriptor.namespace]
                if _matches(candidate, descriptor.keys, resolved)
            ]
            if descriptor.cardinality is Cardinality.MANY:
                resolved[descriptor.namespace] = copy.deepcopy(matches)
            elif len(matches) == 1:
                resolved[descriptor.namespace] = copy.deepcopy(matches[0])
            elif not matches:
                issues.append(JoinIssue(entry_index, descriptor.namespace, MISSING))
                resolved[descriptor.namespace] = NO_MATCH
            else:
                issues.append(
                    JoinIssue(entry_index, descriptor.namespace, AMBIGUOUS, len(matches))
                )
                resolved[descriptor.namespace] = copy.deepcopy(matches[0])

        for issue in issues:
            logger.debug("Entry %d: %s", entry_index, issue.message)

        context: Context | None = Context(
            entry_index, {d.namespace: resolved[d.namespace] for d in descriptors}
        )
        if issues and policy is ErrorPolicy.STRICT:
            context = None
        resolutions.append(EntryResolution(entry_index, context, tuple(issues)))

    failed = sum(1 for r in resolutions if not r.ok)
    logger.info(
        "Resolved %d context(s) (%s policy, %d with join issues)",
        len(resolutions),
        policy.value,
        failed,
    )
    return resolutions


def build_contexts(
    descriptors: Sequence[SourceDescriptor], loaded: Mapping[str, Any]
) -> list[Context]:
    """Build all contexts or fail on the first join problem.

    Raises
    ------
    MissingJoinError, AmbiguousJoinError
        The first entry (in primary order) whose 1:1 join did not match
        exactly one record.
    """
    contexts: list[Context] = []
    for resolution in resolve_entries(descriptors, loaded, ErrorPolicy.STRICT):
        if resolution.context is None:
            raise resolution.issues[0].to_error()
        contexts.append(resolution.context)
    return contexts


def build_contexts_lenient(
    descriptors: Sequence[SourceDescriptor], loaded: Mapping[str, Any]
) -> JoinResult:
    """Build one best-effort context per entry and collect the join issues."""
    resolutions = resolve_entries(descriptors, loaded, ErrorPolicy.LENIENT)
    contexts = tuple(r.context for r in resolutions if r.context is not None)
    issues = tuple(issue for r in resolutions for issue in r.issues)
    return JoinResult(contexts, issues)
