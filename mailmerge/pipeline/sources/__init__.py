"""Source file loading package."""

from .loader import (
    SourceSpec,
    decode_bytes,
    detect_separator,
    form_source,
    load_csv,
    load_source,
    load_sources,
    normalize_shape,
    record_fields,
)

__all__ = [
    "SourceSpec",
    "decode_bytes",
    "detect_separator",
    "form_source",
    "load_csv",
    "load_source",
    "load_sources",
    "normalize_shape",
    "record_fields",
]
