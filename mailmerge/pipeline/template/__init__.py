"""Template package: document model, YAML parsing and source resolution.

A consumer should import from this package rather than its submodules.

Examples
--------
>>> from mailmerge.pipeline.template import parse_template_str, resolve_descriptors
>>> t = parse_template_str(
...     "sources: {p: {primary: true}}\\nto: a@b.org\\nsubject: s\\nbody: b"
... )
>>> [d.namespace for d in resolve_descriptors(t)]
['p']
"""

from .fields import infer_form_fields
from .model import (
    BodyFormat,
    Cardinality,
    JoinKey,
    SourceDeclaration,
    SourceDescriptor,
    SourceRole,
    Template,
)
from .parser import parse_template, parse_template_str
from .resolver import (
    describe_sources,
    primary_descriptor,
    resolve_descriptors,
    split_reference,
)

__all__ = [
    "BodyFormat",
    "Cardinality",
    "JoinKey",
    "SourceDeclaration",
    "SourceDescriptor",
    "SourceRole",
    "Template",
    "describe_sources",
    "infer_form_fields",
    "parse_template",
    "parse_template_str",
    "primary_descriptor",
    "resolve_descriptors",
    "split_reference",
]
