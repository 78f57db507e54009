"""Read YAML template documents into :class:`Template` objects.

The document shape is::

    sources:
      students: {primary: true}
      classes:
        join: {id: students.class_id}
    to: "{{students.email}}"
    subject: "Welcome to {{classes.name}}"
    body: |
      # Hello {{students.name}}
    body_format: markdown      # optional: markdown | html | text
    stylesheet: mail.css       # optional, relative to the template file
    style: "h1 { color: navy; }"  # optional inline CSS

Only structure is checked here; source roles are checked by
:func:`mailmerge.pipeline.template.resolver.resolve_descriptors`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from mailmerge.config import (
    DEFAULT_BODY_FORMAT,
    TEMPLATE_OPTIONAL_FIELDS,
    TEMPLATE_REQUIRED_FIELDS,
)
from mailmerge.exceptions import TemplateParseError

from .model import BodyFormat, SourceDeclaration, Template

logger = logging.getLogger(__name__)


def parse_template(path: Path) -> Template:
    """Read and parse a template file.

    Parameters
    ----------
    path : Path
        Path to a YAML template document.

    Returns
    -------
    Template
        Parsed template whose ``base_dir`` is the file's directory.

    Raises
    ------
    TemplateParseError
        If the file cannot be read or is not a well-formed template.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise TemplateParseError(
            f"cannot read template {path}: {exc}", context={"path": str(path)}
        ) from exc
    logger.debug("Parsing template %s", path)
    return parse_template_str(content, base_dir=path.parent, origin=str(path))


def parse_template_str(
    content: str, *, base_dir: Path | str = ".", origin: str = "<string>"
) -> Template:
    """Parse template YAML text.

    Raises
    ------
    TemplateParseError
        On invalid YAML, a non-mapping document, a missing or non-string
        required field, or an unknown ``body_format``.
    """
    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise TemplateParseError(
            f"YAML parse error in {origin}: {exc}", context={"origin": origin}
        ) from exc
    if not isinstance(document, dict):
        raise TemplateParseError(
            f"template {origin} must be a mapping at the top level",
            context={"origin": origin},
        )

    sources = _parse_sources(document.get("sources"), origin)
    fields: dict[str, Any] = {}
    for name in TEMPLATE_REQUIRED_FIELDS:
        if name not in document or document[name] is None:
            raise TemplateParseError(
                f"template {origin} is missing required field '{name}'",
                context={"origin": origin, "field": name},
            )
        fields[name] = _as_text(document[name], name, origin)
    for name in TEMPLATE_OPTIONAL_FIELDS:
        if document.get(name) is not None:
            fields[name] = _as_text(document[name], name, origin)

    body_format = BodyFormat(DEFAULT_BODY_FORMAT)
    if "body_format" in fields:
        try:
            body_format = BodyFormat(fields.pop("body_format").strip().lower())
        except ValueError as exc:
            raise TemplateParseError(
                f"template {origin}: body_format must be one of "
                f"{', '.join(f.value for f in BodyFormat)}",
                context={"origin": origin, "field": "body_format"},
            ) from exc

    unknown = sorted(
        set(document)
        - {"sources", *TEMPLATE_REQUIRED_FIELDS, *TEMPLATE_OPTIONAL_FIELDS}
    )
    if unknown:
        logger.warning("Template %s: ignoring unknown keys %s", origin, unknown)

    return Template(
        sources=sources,
        body_format=body_format,
        base_dir=Path(base_dir),
        **fields,
    )


def _as_text(value: Any, name: str, origin: str) -> str:
    # YAML scalars such as `subject: 2024` arrive as numbers
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise TemplateParseError(
            f"template {origin}: field '{name}' must be text",
            context={"origin": origin, "field": name},
        )
    return value if isinstance(value, str) else str(value)


def _parse_sources(raw: Any, origin: str) -> dict[str, SourceDeclaration]:
    if not isinstance(raw, dict) or not raw:
        raise TemplateParseError(
            f"template {origin}: 'sources' must be a non-empty mapping",
            context={"origin": origin, "field": "sources"},
        )
    sources: dict[str, SourceDeclaration] = {}
    for namespace, spec in raw.items():
        namespace = str(namespace)
        if spec is None:
            spec = {}
        if not isinstance(spec, dict):
            raise TemplateParseError(
                f"template {origin}: source '{namespace}' must be a mapping",
                context={"origin": origin, "namespace": namespace},
            )
        join = spec.get("join")
        if join is not None:
            if not isinstance(join, dict) or not join:
                raise TemplateParseError(
                    f"template {origin}: join of source '{namespace}' must be a "
                    "non-empty mapping of field: namespace.field",
                    context={"origin": origin, "namespace": namespace},
                )
            join = {str(key): str(ref) for key, ref in join.items()}
        sources[namespace] = SourceDeclaration(
            primary=spec.get("primary") is True,
            join=join,
            many=spec.get("many") is True,
            form=spec.get("form") is True,
        )
    return sources
