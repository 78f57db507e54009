"""Logic-light template language evaluated against a per-entry context.

Supported syntax (a Handlebars-compatible subset):

- ``{{ns.field}}`` field access, nested as deep as the data goes.
  ``[segment with spaces]`` brackets allow arbitrary column names and
  numeric segments index lists (``{{ns.items.0}}``).
- ``{{#each path}}...{{else}}...{{/each}}`` iterates a list (or the values
  of a map). ``{{#each path as |alias|}}`` binds a named alias. Inside a
  block ``this``, ``@index``, ``@first``, ``@last``, ``@key`` and
  ``@root.ns.field`` are available, and a bare name is looked up on the
  current element before the context namespaces.
- ``{{! comment }}`` / ``{{!-- comment --}}``.

Evaluation is strict: a reference that does not resolve raises
:class:`mailmerge.exceptions.UnresolvedReferenceError` naming the literal
expression and owning field. Nothing ever renders as an empty string by
accident.

Boundaries
----------
- Stateless and deterministic; compiled templates are cached by source text.
- Does not interpret Markdown or HTML.

Examples
--------
>>> render_text("Hi {{p.name}}!", {"p": {"name": "Ana"}}, field="subject")
'Hi Ana!'
>>> render_text(
...     "{{#each p.tags}}{{@index}}:{{this}} {{/each}}",
...     {"p": {"tags": ["a", "b"]}},
...     field="body",
... )
'0:a 1:b '
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Union

from mailmerge.exceptions import TemplateSyntaxError, UnresolvedReferenceError
from mailmerge.pipeline.values import (
    NO_MATCH,
    Missing,
    format_scalar,
    lookup_path,
    type_name,
)

TAG_PATTERN = re.compile(r"\{\{(!--.*?--|[^{}]*?)\}\}", re.DOTALL)
SEGMENT_PATTERN = re.compile(r"\[([^\]]+)\]|([^.\[\]\s{}|]+)")
EACH_PATTERN = re.compile(r"^each\s+(\S+?)(?:\s+as\s+\|\s*([A-Za-z_][\w-]*)\s*\|)?$")
LOOP_VARIABLES = ("@index", "@first", "@last", "@key")


@dataclass(frozen=True)
class TextNode:
    text: str


@dataclass(frozen=True)
class ExprNode:
    expression: str
    segments: tuple[str, ...]
    line: int


@dataclass(frozen=True)
class EachNode:
    expression: str
    segments: tuple[str, ...]
    alias: str | None
    body: tuple[Node, ...]
    inverse: tuple[Node, ...]
    line: int


Node = Union[TextNode, ExprNode, EachNode]


@dataclass(frozen=True)
class _Tag:
    kind: str  # "expr" | "open" | "close" | "else" | "comment"
    body: str
    line: int


@dataclass(frozen=True)
class _Frame:
    element: Any
    alias: str | None
    index: int
    count: int
    key: str | None


def parse_path(expression: str) -> tuple[str, ...] | None:
    """Split an expression into path segments, or None if malformed.

    Examples
    --------
    >>> parse_path("students.[first name]")
    ('students', 'first name')
    >>> parse_path("a..b") is None
    True
    """
    segments: list[str] = []
    position = 0
    while True:
        match = SEGMENT_PATTERN.match(expression, position)
        if not match:
            return None
        segments.append(match.group(1) if match.group(1) is not None else match.group(2))
        position = match.end()
        if position == len(expression):
            return tuple(segments)
        if expression[position] != ".":
            return None
        position += 1


def _classify(body: str, line: int) -> _Tag:
    stripped = body.strip()
    if stripped.startswith("!"):
        return _Tag("comment", stripped, line)
    if stripped.startswith("#"):
        return _Tag("open", stripped[1:].strip(), line)
    if stripped.startswith("/"):
        return _Tag("close", stripped[1:].strip(), line)
    if stripped == "else":
        return _Tag("else", stripped, line)
    return _Tag("expr", stripped, line)


def _tokenize(source: str) -> list[str | _Tag]:
    """Split source into text chunks and tags, applying the standalone-line rule.

    A block tag or comment that is the only thing on its line removes that
    whole line (leading whitespace and trailing newline included).
    """
    tokens: list[str | _Tag] = []
    cursor = 0
    for match in TAG_PATTERN.finditer(source):
        tag = _classify(match.group(1), source.count("\n", 0, match.start()) + 1)
        start, end = match.start(), match.end()
        if tag.kind != "expr":
            line_start = source.rfind("\n", 0, start) + 1
            line_end = source.find("\n", end)
            line_end = len(source) if line_end == -1 else line_end
            if (
                line_start >= cursor
                and not source[line_start:start].strip()
                and not source[end:line_end].strip()
            ):
                start = line_start
                end = min(line_end + 1, len(source))
        if start > cursor:
            tokens.append(source[cursor:start])
        tokens.append(tag)
        cursor = end
    if cursor < len(source):
        tokens.append(source[cursor:])
    return tokens


def _parse_nodes(
    tokens: list[str | _Tag], position: int, field: str, open_tag: _Tag | None
) -> tuple[tuple[Node, ...], tuple[Node, ...] | None, int]:
    """Parse until the closing tag of ``open_tag`` (or end of input).

    Returns (body, inverse, next position); ``inverse`` is None when no
    ``{{else}}`` was seen.
    """
    body: list[Node] = []
    inverse: list[Node] | None = None
    current = body
    while position < len(tokens):
        token = tokens[position]
        position += 1
        if isinstance(token, str):
            current.append(TextNode(token))
            continue
        if token.kind == "comment":
            continue
        if token.kind == "expr":
            if not token.body:
                raise TemplateSyntaxError(field, "empty expression '{{}}'", line=token.line)
            segments = parse_path(token.body)
            if segments is None:
                raise TemplateSyntaxError(
                    field,
                    f"malformed expression '{{{{{token.body}}}}}' "
                    "(only field access and #each are supported)",
                    line=token.line,
                )
            current.append(ExprNode(token.body, segments, token.line))
            continue
        if token.kind == "else":
            if open_tag is None or inverse is not None:
                raise TemplateSyntaxError(field, "unexpected {{else}}", line=token.line)
            inverse = []
            current = inverse
            continue
        if token.kind == "close":
            if open_tag is None:
                raise TemplateSyntaxError(
                    field, f"unexpected {{{{/{token.body}}}}}", line=token.line
                )
            if token.body != "each":
                raise TemplateSyntaxError(
                    field,
                    f"{{{{/{token.body}}}}} does not close {{{{#each}}}}",
                    line=token.line,
                )
            return tuple(body), None if inverse is None else tuple(inverse), position
        # open block
        match = EACH_PATTERN.match(token.body)
        if not match:
            helper = token.body.split()[0] if token.body.split() else ""
            reason = (
                f"unknown block helper '#{helper}'"
                if helper and helper != "each"
                else f"malformed block '{{{{#{token.body}}}}}'"
            )
            raise TemplateSyntaxError(field, reason, line=token.line)
        segments = parse_path(match.group(1))
        if segments is None:
            raise TemplateSyntaxError(
                field, f"malformed #each path '{match.group(1)}'", line=token.line
            )
        child_body, child_inverse, position = _parse_nodes(tokens, position, field, token)
        current.append(
            EachNode(
                expression=match.group(1),
                segments=segments,
                alias=match.group(2),
                body=child_body,
                inverse=child_inverse or (),
                line=token.line,
            )
        )
    if open_tag is not None:
        raise TemplateSyntaxError(
            field, f"unclosed {{{{#{open_tag.body}}}}}", line=open_tag.line
        )
    return tuple(body), None if inverse is None else tuple(inverse), position


class CompiledTemplate:
    """A parsed template field, ready to render against any context."""

    def __init__(self, source: str, field: str, nodes: tuple[Node, ...]) -> None:
        self.source = source
        self.field = field
        self.nodes = nodes

    def render(self, context: Mapping[str, Any], *, entry_index: int | None = None) -> str:
        """Evaluate against ``context`` (namespace -> value)."""
        out: list[str] = []
        _Evaluator(context, self.field, entry_index).render(self.nodes, (), out)
        return "".join(out)


@lru_cache(maxsize=512)
def compile_template(source: str, field: str = "template") -> CompiledTemplate:
    """Parse template source; cached because rendering re-uses one template per batch.

    Raises
    ------
    TemplateSyntaxError
        If the source is not well-formed.
    """
    nodes, _, _ = _parse_nodes(_tokenize(source), 0, field, None)
    return CompiledTemplate(source, field, nodes)


def render_text(
    source: str,
    context: Mapping[str, Any],
    *,
    field: str,
    entry_index: int | None = None,
) -> str:
    """Compile (cached) and render one template field."""
    return compile_template(source, field).render(context, entry_index=entry_index)


def extract_expressions(source: str) -> list[str]:
    """Return sorted unique value and ``#each`` expressions used in ``source``.

    Examples
    --------
    >>> extract_expressions("{{#each s.items}}{{this.n}}{{/each}} {{p.name}}")
    ['p.name', 's.items', 'this.n']
    """
    found: set[str] = set()
    for token in _tokenize(source):
        if isinstance(token, str):
            continue
        if token.kind == "expr" and token.body:
            found.add(token.body)
        elif token.kind == "open":
            match = EACH_PATTERN.match(token.body)
            if match:
                found.add(match.group(1))
    return sorted(found)


class _Evaluator:
    def __init__(
        self, root: Mapping[str, Any], field: str, entry_index: int | None
    ) -> None:
        self.root = root
        self.field = field
        self.entry_index = entry_index

    def _fail(self, expression: str, reason: str) -> UnresolvedReferenceError:
        return UnresolvedReferenceError(
            expression, self.field, reason, entry_index=self.entry_index
        )

    def _head(self, head: str, frames: Sequence[_Frame]) -> Any | Missing:
        if head == "this":
            return frames[-1].element if frames else dict(self.root)
        if head == "@root":
            return dict(self.root)
        if head in LOOP_VARIABLES:
            if not frames:
                return Missing(head, f"'{head}' is only defined inside #each")
            frame = frames[-1]
            if head == "@index":
                return frame.index
            if head == "@first":
                return frame.index == 0
            if head == "@last":
                return frame.index == frame.count - 1
            if frame.key is None:
                return Missing(head, "'@key' is only defined when iterating a map")
            return frame.key
        for frame in reversed(frames):
            if frame.alias == head:
                return frame.element
        for frame in reversed(frames):
            if isinstance(frame.element, dict) and head in frame.element:
                return frame.element[head]
        if head in self.root:
            return self.root[head]
        return Missing(head, f"no namespace or loop variable named '{head}'")

    def resolve(
        self, expression: str, segments: tuple[str, ...], frames: Sequence[_Frame]
    ) -> Any:
        value = self._head(segments[0], frames)
        if isinstance(value, Missing):
            raise self._fail(expression, value.reason)
        if value is NO_MATCH:
            raise self._fail(expression, f"join '{segments[0]}' had no matching record")
        value = lookup_path(value, segments[1:])
        if isinstance(value, Missing):
            raise self._fail(expression, value.reason)
        if value is NO_MATCH:
            raise self._fail(expression, "join had no matching record")
        if isinstance(value, dict):
            unmatched = [key for key, item in value.items() if item is NO_MATCH]
            if unmatched:
                raise self._fail(
                    expression, f"join '{unmatched[0]}' had no matching record"
                )
        return value

    def render(
        self, nodes: Sequence[Node], frames: tuple[_Frame, ...], out: list[str]
    ) -> None:
        for node in nodes:
            if isinstance(node, TextNode):
                out.append(node.text)
            elif isinstance(node, ExprNode):
                out.append(format_scalar(self.resolve(node.expression, node.segments, frames)))
            else:
                self._render_each(node, frames, out)

    def _render_each(
        self, node: EachNode, frames: tuple[_Frame, ...], out: list[str]
    ) -> None:
        value = self.resolve(node.expression, node.segments, frames)
        if isinstance(value, list):
            items: list[tuple[str | None, Any]] = [(None, item) for item in value]
        elif isinstance(value, dict):
            items = [(str(key), item) for key, item in value.items()]
        else:
            raise self._fail(node.expression, f"cannot iterate over a {type_name(value)}")
        if not items:
            self.render(node.inverse, frames, out)
            return
        for index, (key, element) in enumerate(items):
            frame = _Frame(element, node.alias, index, len(items), key)
            self.render(node.body, frames + (frame,), out)
