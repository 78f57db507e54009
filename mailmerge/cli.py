"""Command-line interface for checking, validating and previewing merges.

Subcommands
-----------
``check TEMPLATE``
    Parse the template and resolve its source declarations without loading
    any data. Lists every namespace with its role, and the form fields to
    prompt for.
``validate TEMPLATE --source NS=PATH ...``
    Load the data, run the whole batch and print the validation report.
``preview TEMPLATE --source NS=PATH ... --entry N``
    Render one entry leniently and show its fields and diagnostics.

Exit status is 0 when everything is valid, 1 when the report contains
invalid entries, and 2 for template, data or usage errors.

Examples
--------
>>> # In shell
>>> python -m mailmerge validate invite.mailmerge.yml --source students=students.csv
"""

from __future__ import annotations

import argparse
import json
import logging
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from mailmerge.exceptions import AppError, UserInputError
from mailmerge.pipeline.join import ErrorPolicy
from mailmerge.pipeline.runner import configure_logging, preview_entry, run_batch
from mailmerge.pipeline.settings import MergeSettings
from mailmerge.pipeline.sources import SourceSpec, load_sources
from mailmerge.pipeline.template import (
    Template,
    describe_sources,
    infer_form_fields,
    parse_template,
)
from mailmerge.pipeline.validate import PerEntryResult, ValidationReport

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for ``python -m mailmerge``."""
    parser = argparse.ArgumentParser(
        prog="mailmerge", description="Validate and preview mail-merge templates."
    )
    parser.add_argument("--log-level", default=None, help="override MAILMERGE_LOG_LEVEL")
    commands = parser.add_subparsers(dest="command", required=True)

    check = commands.add_parser("check", help="resolve a template's sources")
    check.add_argument("template", type=Path)

    def add_data_arguments(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("template", type=Path)
        sub.add_argument(
            "-s",
            "--source",
            action="append",
            default=[],
            metavar="NS=PATH",
            help="data file for a namespace (repeatable)",
        )
        sub.add_argument(
            "-f",
            "--form",
            action="append",
            default=[],
            metavar="NS:KEY=VALUE",
            help="form value for a form namespace (repeatable)",
        )
        sub.add_argument("--separator", default=None, help="CSV separator override")
        sub.add_argument("--encoding", default=None, help="CSV encoding override")

    validate = commands.add_parser("validate", help="run the batch and report")
    add_data_arguments(validate)
    validate.add_argument(
        "--lenient", action="store_true", help="render entries with join issues"
    )
    validate.add_argument("--json", action="store_true", help="print the report as JSON")

    preview = commands.add_parser("preview", help="render one entry")
    add_data_arguments(preview)
    preview.add_argument("-e", "--entry", type=int, default=0)
    preview.add_argument("--html", action="store_true", help="also print the HTML body")
    return parser


def parse_source_args(
    sources: Sequence[str],
    forms: Sequence[str],
    *,
    separator: str | None = None,
    encoding: str | None = None,
) -> list[SourceSpec]:
    """Turn ``NS=PATH`` and ``NS:KEY=VALUE`` arguments into source specs.

    Raises
    ------
    UserInputError
        If an argument is not in the expected form.

    Examples
    --------
    >>> [s.namespace for s in parse_source_args(["p=people.csv"], ["me:name=Ana"])]
    ['p', 'me']
    """
    specs: list[SourceSpec] = []
    for item in sources:
        namespace, sep, path = item.partition("=")
        if not sep or not namespace.strip() or not path.strip():
            raise UserInputError(f"--source expects NS=PATH, got '{item}'")
        specs.append(
            SourceSpec(
                namespace.strip(),
                path=Path(path.strip()),
                separator=separator,
                encoding=encoding,
            )
        )
    form_values: dict[str, dict[str, str]] = {}
    for item in forms:
        target, sep, value = item.partition("=")
        namespace, colon, key = target.partition(":")
        if not sep or not colon or not namespace.strip() or not key.strip():
            raise UserInputError(f"--form expects NS:KEY=VALUE, got '{item}'")
        form_values.setdefault(namespace.strip(), {})[key.strip()] = value
    specs.extend(SourceSpec(ns, form_data=data) for ns, data in form_values.items())
    return specs


def _issue_lines(result: PerEntryResult) -> str:
    return "\n".join(
        f"{escape(issue.code)}: {escape(issue.message)}" for issue in result.issues
    )


def _print_report(console: Console, report: ValidationReport) -> None:
    table = Table(show_header=True, header_style="bold blue")
    table.add_column("#", style="bold")
    table.add_column("Status")
    table.add_column("Issues")
    for entry in report.entries:
        status = "[green]ok[/green]" if entry.is_valid else "[red]invalid[/red]"
        table.add_row(str(entry.entry_index), status, _issue_lines(entry))
    console.print(table)
    invalid = len(report.invalid_entries())
    style = "green" if not invalid else "red"
    console.print(
        f"[{style}]{report.entry_count - invalid} of {report.entry_count} entries valid[/{style}]"
    )


def _cmd_check(console: Console, template: Template) -> int:
    descriptors, problems = describe_sources(template)
    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Namespace", style="bold")
    table.add_column("Role")
    table.add_column("Join")
    table.add_column("Form fields")
    for descriptor in descriptors:
        join = ", ".join(f"{k.local_field} = {k.reference}" for k in descriptor.keys)
        if descriptor.cardinality is not None:
            join = f"{join} ({descriptor.cardinality.value})"
        fields = (
            ", ".join(infer_form_fields(template, descriptor.namespace))
            if descriptor.form
            else ""
        )
        table.add_row(
            escape(descriptor.namespace),
            descriptor.role.value,
            escape(join),
            escape(fields),
        )
    console.print(table)
    for problem in problems:
        console.print(f"[red]{escape(problem.code)}[/red]: {escape(problem.message)}")
    return EXIT_ERROR if problems else EXIT_OK


def _cmd_validate(
    console: Console, template: Template, args: argparse.Namespace, settings: MergeSettings
) -> int:
    loaded = load_sources(
        parse_source_args(
            args.source,
            args.form,
            separator=args.separator,
            encoding=args.encoding or settings.csv_encoding,
        )
    )
    policy = ErrorPolicy.LENIENT if args.lenient else settings.policy
    result = run_batch(template, loaded, policy=policy)
    if args.json:
        console.print_json(json.dumps(result.report.to_dict()))
    else:
        _print_report(console, result.report)
    return EXIT_OK if result.report.is_valid else EXIT_INVALID


def _cmd_preview(
    console: Console, template: Template, args: argparse.Namespace, settings: MergeSettings
) -> int:
    loaded = load_sources(
        parse_source_args(
            args.source,
            args.form,
            separator=args.separator,
            encoding=args.encoding or settings.csv_encoding,
        )
    )
    preview = preview_entry(template, loaded, args.entry)
    instance = preview.instance
    if instance is not None:
        headers = Table.grid(padding=(0, 2))
        headers.add_column(style="bold")
        headers.add_column()
        headers.add_row("To", escape(instance.to))
        for label, value in (("Cc", instance.cc), ("Bcc", instance.bcc)):
            if value:
                headers.add_row(label, escape(value))
        headers.add_row("Subject", escape(instance.subject))
        for path in instance.attachments:
            headers.add_row("Attachment", escape(str(path)))
        console.print(Panel(headers, title=f"Entry {preview.entry_index}"))
        console.print(Panel(escape(instance.text_body), title="Text body"))
        if args.html and instance.html_body is not None:
            console.print(Panel(escape(instance.html_body), title="HTML body"))
    if preview.result.is_valid:
        console.print("[green]entry is valid[/green]")
        return EXIT_OK
    console.print(Panel(_issue_lines(preview.result), title="Issues", border_style="red"))
    return EXIT_INVALID


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return the process exit status."""
    args = build_parser().parse_args(argv)
    console = Console()
    try:
        settings = MergeSettings()
        configure_logging(args.log_level or settings.log_level, enable_file=settings.file_logs)
        template = parse_template(args.template)
        if args.command == "check":
            return _cmd_check(console, template)
        if args.command == "validate":
            return _cmd_validate(console, template, args, settings)
        return _cmd_preview(console, template, args, settings)
    except AppError as exc:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[red]error[/red] {escape(str(exc))}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_ERROR


__all__ = ["build_parser", "main", "parse_source_args"]
