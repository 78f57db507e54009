"""Validation engine: check every rendered instance and collect all issues.

Validation never raises for a failed check and never stops early; every
entry gets a :class:`PerEntryResult` listing every problem found, so the
user sees the whole batch's diagnostics in one pass. The only side effect
is read-only path existence checks, which can be replaced through
``path_exists`` for tests or remote collaborators.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from mailmerge.exceptions import RenderError
from mailmerge.pipeline.join import AMBIGUOUS, JoinIssue
from mailmerge.pipeline.render import RenderedInstance
from mailmerge.pipeline.template import BodyFormat, Template

from .addresses import address_problem, split_addresses
from .report import (
    AMBIGUOUS_JOIN,
    ATTACHMENT_NOT_FOUND,
    INVALID_ADDRESS,
    MISSING_JOIN,
    NOT_RENDERED,
    REQUIRED_FIELD_EMPTY,
    STYLESHEET_NOT_FOUND,
    PerEntryResult,
    ValidationIssue,
    ValidationReport,
)

logger = logging.getLogger(__name__)

PathExists = Callable[[Path], bool]


def _path_exists(path: Path) -> bool:
    return path.exists()


def _required(scope: str, value: str | None) -> list[ValidationIssue]:
    if value and value.strip():
        return []
    return [ValidationIssue(scope, REQUIRED_FIELD_EMPTY, f"'{scope}' is empty")]


def _addresses(scope: str, value: str | None) -> list[ValidationIssue]:
    if not value or not value.strip():
        return []
    issues: list[ValidationIssue] = []
    for raw in split_addresses(value):
        problem = address_problem(raw)
        if problem:
            issues.append(
                ValidationIssue(scope, INVALID_ADDRESS, f"invalid address '{raw}': {problem}")
            )
    return issues


def check_instance(
    instance: RenderedInstance, path_exists: PathExists = _path_exists
) -> list[ValidationIssue]:
    """Run the per-instance checks (required fields, addresses, attachments)."""
    issues = _required("to", instance.to) + _required("subject", instance.subject)
    body = instance.text_body if instance.text_body.strip() else instance.html_body
    issues += _required("body", body)
    for scope in ("to", "cc", "bcc"):
        issues += _addresses(scope, getattr(instance, scope))
    for path in instance.attachments:
        if not path_exists(path):
            issues.append(
                ValidationIssue(
                    "attachments", ATTACHMENT_NOT_FOUND, f"attachment not found: {path}"
                )
            )
    return issues


def _join_issue(issue: JoinIssue) -> ValidationIssue:
    code = AMBIGUOUS_JOIN if issue.kind == AMBIGUOUS else MISSING_JOIN
    return ValidationIssue(f"join:{issue.namespace}", code, issue.message)


def _stylesheet_issue(
    template: Template | None, path_exists: PathExists
) -> ValidationIssue | None:
    if template is None or template.body_format is BodyFormat.TEXT:
        return None
    path = template.stylesheet_path()
    if path is None or path_exists(path):
        return None
    return ValidationIssue(
        "stylesheet", STYLESHEET_NOT_FOUND, f"stylesheet not found: {path}"
    )


def validate(
    instances: Sequence[RenderedInstance | None],
    join_issues: Iterable[JoinIssue] = (),
    *,
    entry_count: int | None = None,
    render_errors: Iterable[RenderError] = (),
    template: Template | None = None,
    path_exists: PathExists | None = None,
) -> ValidationReport:
    """Validate a batch and return one result per primary entry.

    Parameters
    ----------
    instances : Sequence[RenderedInstance | None]
        Rendered instances; ``None`` (or absence) marks an entry that was not
        rendered. Instances are matched to entries by ``entry_index``.
    join_issues : Iterable[JoinIssue], optional
        Issues recorded by the join engine; merged into their entry.
    entry_count : int | None, optional
        Number of primary entries. Defaults to the highest index seen + 1.
    render_errors : Iterable[RenderError], optional
        Per-entry render failures; each must carry its ``entry_index``.
    template : Template | None, optional
        When given, the stylesheet is checked once and reported on every
        entry (never for ``text`` format).
    path_exists : callable, optional
        Existence check for attachments and the stylesheet.

    Returns
    -------
    ValidationReport

    Raises
    ------
    ValueError
        If a render error has no entry index.
    """
    exists = path_exists or _path_exists
    by_entry: dict[int, list[ValidationIssue]] = defaultdict(list)
    rendered: set[int] = set()
    accounted: set[int] = set()

    for issue in join_issues:
        by_entry[issue.entry_index].append(_join_issue(issue))
        accounted.add(issue.entry_index)
    for error in render_errors:
        if error.entry_index is None:
            raise ValueError(f"render error without entry index: {error}")
        by_entry[error.entry_index].append(
            ValidationIssue(error.field, error.code, error.message)
        )
        accounted.add(error.entry_index)
    for instance in instances:
        if instance is None:
            continue
        by_entry[instance.entry_index].extend(check_instance(instance, exists))
        rendered.add(instance.entry_index)

    if entry_count is None:
        seen = rendered | accounted
        entry_count = max(len(instances), max(seen) + 1 if seen else 0)

    stylesheet = _stylesheet_issue(template, exists)
    entries: list[PerEntryResult] = []
    for index in range(entry_count):
        issues = by_entry.get(index, [])
        if index not in rendered and index not in accounted:
            issues = issues + [
                ValidationIssue("entry", NOT_RENDERED, "entry was not rendered")
            ]
        if stylesheet is not None:
            issues = issues + [stylesheet]
        entries.append(PerEntryResult(index, tuple(issues)))

    report = ValidationReport(entry_count, tuple(entries))
    invalid = len(report.invalid_entries())
    if invalid:
        logger.warning("Validation: %d of %d entries invalid", invalid, entry_count)
    else:
        logger.info("Validation: all %d entries valid", entry_count)
    return report
