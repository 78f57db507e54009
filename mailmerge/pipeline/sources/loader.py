"""Load source files into the normalized value model.

Supported formats are chosen by file extension:

- ``.json`` via :mod:`json`
- ``.yaml`` / ``.yml`` via PyYAML (``safe_load``)
- ``.toml`` via :mod:`tomllib`
- ``.csv`` via pandas, every cell read as text with no NA conversion

Whatever the format, a loaded source is a list of records: a root object
becomes a one-record list, and a TOML document holding a single array of
tables unwraps to that array. Form namespaces are built from key/value
pairs with :func:`form_source` instead of being read from disk.
"""

from __future__ import annotations

import io
import json
import logging
import tomllib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
import yaml

from mailmerge.config import (
    CSV_SEPARATOR_CANDIDATES,
    DEFAULT_CSV_ENCODING,
    FALLBACK_CSV_ENCODING,
    SUPPORTED_SOURCE_SUFFIXES,
)
from mailmerge.exceptions import (
    DataShapeError,
    SourceLoadError,
    UnsupportedFormatError,
    UserInputError,
)
from mailmerge.pipeline.values import normalize_value, type_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceSpec:
    """Where the data for one namespace comes from.

    Exactly one of ``path`` and ``form_data`` is set. ``separator`` and
    ``encoding`` only apply to CSV files.
    """

    namespace: str
    path: Path | None = None
    form_data: Mapping[str, Any] | None = None
    separator: str | None = None
    encoding: str | None = None


def detect_separator(first_line: str) -> str:
    """Pick the candidate separator that occurs most often in ``first_line``.

    Ties go to the earlier candidate, so a line with none of them gives ``,``.

    Examples
    --------
    >>> detect_separator("name;age;city")
    ';'
    >>> detect_separator("single")
    ','
    """
    best = CSV_SEPARATOR_CANDIDATES[0]
    best_count = first_line.count(best)
    for candidate in CSV_SEPARATOR_CANDIDATES[1:]:
        count = first_line.count(candidate)
        if count > best_count:
            best, best_count = candidate, count
    return best


def decode_bytes(raw: bytes, encoding: str | None = None) -> str:
    """Decode file bytes as UTF-8, or ``encoding`` when given.

    Undecodable UTF-8 and unknown encoding labels fall back to Windows-1252,
    the usual encoding of spreadsheet exports.
    """
    if encoding:
        try:
            return raw.decode(encoding, errors="replace")
        except LookupError:
            logger.warning(
                "Unknown encoding %r, falling back to %s", encoding, FALLBACK_CSV_ENCODING
            )
            return raw.decode(FALLBACK_CSV_ENCODING, errors="replace")
    try:
        return raw.decode(DEFAULT_CSV_ENCODING)
    except UnicodeDecodeError:
        logger.info("Content is not UTF-8, decoding as %s", FALLBACK_CSV_ENCODING)
        return raw.decode(FALLBACK_CSV_ENCODING, errors="replace")


def normalize_shape(value: Any, path: Path) -> list[Any]:
    """Coerce a parsed document root into a list of records."""
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return [value]
    raise DataShapeError(
        f"{path}: expected a list or an object at the root, got {type_name(value)}",
        context={"path": str(path)},
    )


def _read_text(path: Path, encoding: str = "utf-8") -> str:
    try:
        return path.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceLoadError(path, str(exc)) from exc


def _load_json(path: Path) -> Any:
    try:
        return json.loads(_read_text(path))
    except json.JSONDecodeError as exc:
        raise SourceLoadError(path, f"invalid JSON: {exc}") from exc


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(_read_text(path))
    except yaml.YAMLError as exc:
        raise SourceLoadError(path, f"invalid YAML: {exc}") from exc


def _load_toml(path: Path) -> Any:
    try:
        document = tomllib.loads(_read_text(path))
    except tomllib.TOMLDecodeError as exc:
        raise SourceLoadError(path, f"invalid TOML: {exc}") from exc
    if len(document) == 1:
        (inner,) = document.values()
        if isinstance(inner, list) and all(isinstance(item, dict) for item in inner):
            return inner
    return document


def load_csv(
    path: Path, *, separator: str | None = None, encoding: str | None = None
) -> list[dict[str, str]]:
    """Read a CSV file with a header row into a list of text-valued records.

    Parameters
    ----------
    path : Path
        CSV file.
    separator : str | None, optional
        Field separator; detected from the first non-blank line when omitted.
    encoding : str | None, optional
        Text encoding; UTF-8 (BOM tolerated) with Windows-1252 fallback when
        omitted.

    Returns
    -------
    list[dict[str, str]]
        One record per data row, keyed by header. Empty cells stay ``""``.

    Raises
    ------
    SourceLoadError
        If the file cannot be read or has no header row.
    """
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise SourceLoadError(path, str(exc)) from exc
    text = decode_bytes(raw, encoding)
    first_line = next((line for line in text.splitlines() if line.strip()), "")
    if not first_line:
        raise SourceLoadError(path, "CSV file has no header row")
    sep = separator or detect_separator(first_line)
    try:
        frame = pd.read_csv(
            io.StringIO(text),
            sep=sep,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as exc:
        raise SourceLoadError(path, f"invalid CSV: {exc}") from exc
    frame.columns = [str(column) for column in frame.columns]
    records = frame.to_dict(orient="records")
    logger.debug("Read %d CSV row(s) from %s (separator %r)", len(records), path, sep)
    return records


def load_source(
    path: Path | str, *, separator: str | None = None, encoding: str | None = None
) -> list[Any]:
    """Load one source file into a normalized list of records.

    Raises
    ------
    UnsupportedFormatError
        If the extension has no loader.
    SourceLoadError
        If the file cannot be read or parsed.
    DataShapeError
        If the document root is not a list or an object.

    Examples
    --------
    >>> from pathlib import Path
    >>> p = Path("/tmp/_people.json")
    >>> _ = p.write_text('{"name": "Ana"}', encoding="utf-8")
    >>> load_source(p)
    [{'name': 'Ana'}]
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SOURCE_SUFFIXES:
        raise UnsupportedFormatError(path)
    if suffix == ".csv":
        value: Any = load_csv(path, separator=separator, encoding=encoding)
    elif suffix == ".json":
        value = _load_json(path)
    elif suffix == ".toml":
        value = _load_toml(path)
    else:
        value = _load_yaml(path)
    records = normalize_value(normalize_shape(value, path), where=path.name)
    logger.info("Loaded %d record(s) from %s", len(records), path)
    return records


def form_source(values: Mapping[str, Any]) -> list[dict[str, str]]:
    """Build a one-record source from user-entered key/value pairs."""
    return [{str(key): "" if value is None else str(value) for key, value in values.items()}]


def load_sources(specs: Iterable[SourceSpec]) -> dict[str, Any]:
    """Build the namespace -> normalized value map for a batch.

    Raises
    ------
    UserInputError
        If a spec has neither or both of ``path`` and ``form_data``, or a
        namespace is given twice.
    """
    loaded: dict[str, Any] = {}
    for spec in specs:
        if spec.namespace in loaded:
            raise UserInputError(
                f"namespace '{spec.namespace}' given more than once",
                context={"namespace": spec.namespace},
            )
        if (spec.path is None) == (spec.form_data is None):
            raise UserInputError(
                f"namespace '{spec.namespace}' needs exactly one of a file or form data",
                context={"namespace": spec.namespace},
            )
        if spec.form_data is not None:
            loaded[spec.namespace] = form_source(spec.form_data)
        else:
            loaded[spec.namespace] = load_source(
                spec.path, separator=spec.separator, encoding=spec.encoding
            )
    return loaded


def record_fields(value: Any) -> list[str]:
    """Return the sorted field names of the first record, or ``[]``."""
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return sorted(value[0])
    return []
