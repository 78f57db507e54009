"""Template and source descriptor data model."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from mailmerge.config import DEFAULT_BODY_FORMAT, TEMPLATE_TEXT_FIELDS


class BodyFormat(str, Enum):
    """How the evaluated ``body`` field is turned into the final email body."""

    MARKDOWN = "markdown"
    HTML = "html"
    TEXT = "text"


class SourceRole(str, Enum):
    PRIMARY = "primary"
    JOINED = "joined"
    GLOBAL = "global"


class Cardinality(str, Enum):
    ONE = "one"
    MANY = "many"


@dataclass(frozen=True)
class SourceDeclaration:
    """One entry of a template's ``sources`` mapping, as written."""

    primary: bool = False
    join: Mapping[str, str] | None = None
    many: bool = False
    form: bool = False


@dataclass(frozen=True)
class JoinKey:
    """One ``local_field: namespace.field`` pair of a join declaration."""

    local_field: str
    namespace: str
    field: str

    @property
    def reference(self) -> str:
        return f"{self.namespace}.{self.field}"


@dataclass(frozen=True)
class SourceDescriptor:
    """Resolved role of one namespace.

    Attributes
    ----------
    namespace : str
        Name under which the dataset appears in every context.
    role : SourceRole
        Primary, joined or global.
    keys : tuple[JoinKey, ...]
        Join keys (composite joins have several); empty unless joined.
    cardinality : Cardinality | None
        ``ONE`` or ``MANY`` for joined namespaces, ``None`` otherwise.
    form : bool
        True when the single record is entered by the user.
    """

    namespace: str
    role: SourceRole
    keys: tuple[JoinKey, ...] = ()
    cardinality: Cardinality | None = None
    form: bool = False

    @property
    def is_primary(self) -> bool:
        return self.role is SourceRole.PRIMARY

    @property
    def is_joined(self) -> bool:
        return self.role is SourceRole.JOINED

    @property
    def is_global(self) -> bool:
        return self.role is SourceRole.GLOBAL

    @property
    def referenced_namespaces(self) -> tuple[str, ...]:
        seen: list[str] = []
        for key in self.keys:
            if key.namespace not in seen:
                seen.append(key.namespace)
        return tuple(seen)


@dataclass(frozen=True)
class Template:
    """A parsed mail-merge template.

    Each of ``to``/``cc``/``bcc``/``subject``/``body``/``attachments`` is
    template-language source text. ``base_dir`` is the directory relative
    ``stylesheet`` and attachment paths resolve against.
    """

    sources: Mapping[str, SourceDeclaration]
    to: str
    subject: str
    body: str
    cc: str | None = None
    bcc: str | None = None
    attachments: str | None = None
    body_format: BodyFormat = BodyFormat(DEFAULT_BODY_FORMAT)
    stylesheet: str | None = None
    style: str | None = None
    base_dir: Path = field(default_factory=lambda: Path("."))

    def __post_init__(self) -> None:
        object.__setattr__(self, "sources", MappingProxyType(dict(self.sources)))

    def text_fields(self) -> dict[str, str | None]:
        """Return the template-language fields in render order."""
        return {name: getattr(self, name) for name in TEMPLATE_TEXT_FIELDS}

    def stylesheet_path(self) -> Path | None:
        if not self.stylesheet:
            return None
        path = Path(self.stylesheet)
        return path if path.is_absolute() else self.base_dir / path

    def with_fields(self, **overrides: Any) -> Template:
        """Return a copy with editor overrides applied (sources are kept)."""
        if "body_format" in overrides and not isinstance(
            overrides["body_format"], BodyFormat
        ):
            value = overrides["body_format"]
            overrides["body_format"] = (
                BodyFormat.MARKDOWN if value is None else BodyFormat(value)
            )
        return dataclasses.replace(self, **overrides)
