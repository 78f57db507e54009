"""Source descriptor resolution.

Turns a template's source declarations into a resolution plan: exactly one
primary, zero or more joined (1:1 or 1:N) and zero or more global
namespaces. Performs no I/O, so a caller can learn which namespaces need
data before opening any file.
"""

from __future__ import annotations

import logging

from mailmerge.exceptions import (
    DuplicatePrimaryError,
    MalformedReferencePathError,
    MissingPrimaryError,
    SelfJoinError,
    TemplateValidityError,
    UnknownJoinTargetError,
)

from .model import (
    Cardinality,
    JoinKey,
    SourceDescriptor,
    SourceRole,
    Template,
)

logger = logging.getLogger(__name__)


def split_reference(ref_value: str) -> tuple[str, str] | None:
    """Split ``namespace.field``; return None unless both parts are non-empty."""
    namespace, dot, field = ref_value.partition(".")
    if not dot or not namespace or not field:
        return None
    return namespace, field


def describe_sources(
    template: Template,
) -> tuple[list[SourceDescriptor], list[TemplateValidityError]]:
    """Build descriptors and collect every validity problem.

    Parameters
    ----------
    template : Template
        Parsed template.

    Returns
    -------
    tuple[list[SourceDescriptor], list[TemplateValidityError]]
        Descriptors (primary first, then declaration order) and the
        validity report. Descriptors are only trustworthy when the report
        is empty.
    """
    problems: list[TemplateValidityError] = []
    declared = template.sources

    primaries = [name for name, spec in declared.items() if spec.primary]
    if not primaries:
        problems.append(MissingPrimaryError())
    elif len(primaries) > 1:
        problems.append(DuplicatePrimaryError(primaries))

    descriptors: list[SourceDescriptor] = []
    for namespace, spec in declared.items():
        if spec.primary:
            if spec.join:
                logger.warning(
                    "Source '%s' is primary; its join declaration is ignored",
                    namespace,
                )
            descriptors.append(
                SourceDescriptor(namespace, SourceRole.PRIMARY, form=spec.form)
            )
            continue
        if not spec.join:
            if spec.many:
                logger.warning(
                    "Source '%s' declares many without join; treated as global",
                    namespace,
                )
            descriptors.append(
                SourceDescriptor(namespace, SourceRole.GLOBAL, form=spec.form)
            )
            continue

        keys: list[JoinKey] = []
        for local_field, ref_value in spec.join.items():
            parts = split_reference(ref_value)
            if parts is None:
                problems.append(
                    MalformedReferencePathError(namespace, local_field, ref_value)
                )
                continue
            ref_namespace, ref_field = parts
            if ref_namespace == namespace:
                problems.append(SelfJoinError(namespace, local_field))
                continue
            if ref_namespace not in declared:
                problems.append(
                    UnknownJoinTargetError(namespace, local_field, ref_namespace)
                )
                continue
            keys.append(JoinKey(local_field, ref_namespace, ref_field))
        descriptors.append(
            SourceDescriptor(
                namespace,
                SourceRole.JOINED,
                keys=tuple(keys),
                cardinality=Cardinality.MANY if spec.many else Cardinality.ONE,
                form=spec.form,
            )
        )

    descriptors.sort(key=lambda d: not d.is_primary)
    return descriptors, problems


def resolve_descriptors(template: Template) -> list[SourceDescriptor]:
    """Resolve source declarations, raising the first validity problem.

    Raises
    ------
    MissingPrimaryError, DuplicatePrimaryError
        Zero or several primary sources.
    MalformedReferencePathError, SelfJoinError, UnknownJoinTargetError
        A join reference is not ``namespace.field``, names its own
        namespace, or names an undeclared namespace.
    """
    descriptors, problems = describe_sources(template)
    if problems:
        raise problems[0]
    logger.debug(
        "Resolved %d source(s): %s",
        len(descriptors),
        ", ".join(f"{d.namespace}={d.role.value}" for d in descriptors),
    )
    return descriptors


def primary_descriptor(descriptors: list[SourceDescriptor]) -> SourceDescriptor:
    """Return the single primary descriptor of a resolved plan."""
    primaries = [d for d in descriptors if d.is_primary]
    if not primaries:
        raise MissingPrimaryError()
    if len(primaries) > 1:
        raise DuplicatePrimaryError([d.namespace for d in primaries])
    return primaries[0]
