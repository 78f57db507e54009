"""Batch runner: descriptors, joins, rendering and validation in one pass.

This is the boundary API between the command-line interface (or any other
shell, e.g. a sending transport) and the pipeline stages. It holds no
business logic of its own: each stage is called with its full input and
its output is passed on unchanged.

Per-entry failures never abort the batch. A join issue or render error is
recorded against its entry and shows up in the validation report;
template-validity and structural data errors propagate to the caller.

Examples
--------
>>> from mailmerge.pipeline.runner import configure_logging, run_batch
>>> configure_logging(log_level="INFO", enable_file=False)
>>> result = run_batch(template, loaded)  # doctest: +SKIP
>>> [i.entry_index for i in result.sendable()]  # doctest: +SKIP
[0, 1, 2]
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from mailmerge.config import LOG_DIR, LOG_FILENAME, LOG_FORMAT
from mailmerge.exceptions import RenderError, UserInputError
from mailmerge.pipeline.join import ErrorPolicy, JoinIssue, resolve_entries
from mailmerge.pipeline.render import RenderedInstance, load_css, render
from mailmerge.pipeline.template import BodyFormat, Template, resolve_descriptors
from mailmerge.pipeline.validate import PerEntryResult, ValidationReport, validate
from mailmerge.pipeline.validate.engine import PathExists

logger = logging.getLogger(__name__)


def configure_logging(log_level: str = "INFO", enable_file: bool = True) -> None:
    """Configure root logging with a console handler and an optional log file.

    Existing root handlers are removed first, so repeated calls are safe.
    Failure to create the log file is tolerated.

    Parameters
    ----------
    log_level : str, optional
        Level name, e.g. ``"INFO"`` or ``"DEBUG"``.
    enable_file : bool, optional
        Also append to ``LOG_DIR / LOG_FILENAME``.
    """
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if enable_file:
        try:
            LOG_DIR.mkdir(exist_ok=True)
            handlers.insert(0, logging.FileHandler(LOG_DIR / LOG_FILENAME, mode="a"))
        except OSError:
            pass
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )


@dataclass(frozen=True)
class BatchResult:
    """Immutable outcome of one batch run.

    Attributes
    ----------
    instances : tuple[RenderedInstance | None, ...]
        ``instances[i]`` is the rendered email for primary entry ``i``, or
        ``None`` when the entry was excluded by a join issue or failed to
        render.
    report : ValidationReport
        One result per primary entry.
    join_issues : tuple[JoinIssue, ...]
    render_errors : tuple[RenderError, ...]
    """

    instances: tuple[RenderedInstance | None, ...]
    report: ValidationReport
    join_issues: tuple[JoinIssue, ...] = ()
    render_errors: tuple[RenderError, ...] = ()

    @property
    def entry_count(self) -> int:
        return self.report.entry_count

    def sendable(self) -> list[RenderedInstance]:
        """Return the rendered instances whose entry passed validation."""
        return [
            instance
            for instance in self.instances
            if instance is not None and self.report.entry(instance.entry_index).is_valid
        ]


@dataclass(frozen=True)
class EntryPreview:
    """Best-effort render of one entry together with its diagnostics."""

    entry_index: int
    instance: RenderedInstance | None
    result: PerEntryResult


def run_batch(
    template: Template,
    loaded: Mapping[str, Any],
    *,
    policy: ErrorPolicy = ErrorPolicy.STRICT,
    path_exists: PathExists | None = None,
) -> BatchResult:
    """Join, render and validate every primary entry.

    Parameters
    ----------
    template : Template
        Parsed template.
    loaded : Mapping[str, Any]
        Namespace -> normalized value for every declared namespace.
    policy : ErrorPolicy, optional
        ``STRICT`` (sending) excludes entries with join issues from
        rendering; ``LENIENT`` (preview) renders them best-effort.
    path_exists : callable, optional
        Existence check used by the validator.

    Returns
    -------
    BatchResult

    Raises
    ------
    TemplateValidityError
        The template's source declarations are invalid.
    SourceNotLoadedError, DataShapeError
        The loaded data cannot be joined at all.
    """
    descriptors = resolve_descriptors(template)
    resolutions = resolve_entries(descriptors, loaded, policy)
    css = None if template.body_format is BodyFormat.TEXT else load_css(template)

    instances: list[RenderedInstance | None] = []
    errors: list[RenderError] = []
    for resolution in resolutions:
        if resolution.context is None:
            instances.append(None)
            continue
        try:
            instances.append(render(resolution.context, template, css=css))
        except RenderError as exc:
            logger.warning("Entry %d not rendered: %s", resolution.entry_index, exc.message)
            errors.append(exc)
            instances.append(None)

    join_issues = tuple(issue for r in resolutions for issue in r.issues)
    report = validate(
        instances,
        join_issues,
        entry_count=len(resolutions),
        render_errors=errors,
        template=template,
        path_exists=path_exists,
    )
    logger.info(
        "Batch complete: %d entries, %d rendered, %d valid",
        report.entry_count,
        sum(1 for instance in instances if instance is not None),
        report.entry_count - len(report.invalid_entries()),
    )
    return BatchResult(tuple(instances), report, join_issues, tuple(errors))


def preview_entry(
    template: Template,
    loaded: Mapping[str, Any],
    entry_index: int,
    *,
    path_exists: PathExists | None = None,
) -> EntryPreview:
    """Render one entry leniently and validate it on its own.

    Raises
    ------
    UserInputError
        If ``entry_index`` is outside the primary dataset.
    """
    descriptors = resolve_descriptors(template)
    resolutions = resolve_entries(descriptors, loaded, ErrorPolicy.LENIENT)
    if not 0 <= entry_index < len(resolutions):
        raise UserInputError(
            f"entry {entry_index} out of range (0..{len(resolutions) - 1})"
            if resolutions
            else "the primary source has no entries",
            context={"entry_index": entry_index, "entry_count": len(resolutions)},
        )
    resolution = resolutions[entry_index]
    instance: RenderedInstance | None = None
    errors: list[RenderError] = []
    try:
        instance = render(resolution.context, template)
    except RenderError as exc:
        errors.append(exc)
    report = validate(
        [instance],
        resolution.issues,
        entry_count=entry_index + 1,
        render_errors=errors,
        template=template,
        path_exists=path_exists,
    )
    return EntryPreview(entry_index, instance, report.entry(entry_index))
