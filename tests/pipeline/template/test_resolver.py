"""Tests for source descriptor resolution."""

import pytest

from mailmerge.exceptions import (
    DuplicatePrimaryError,
    MalformedReferencePathError,
    MissingPrimaryError,
    SelfJoinError,
    UnknownJoinTargetError,
)
from mailmerge.pipeline.template import (
    Cardinality,
    JoinKey,
    SourceRole,
    describe_sources,
    resolve_descriptors,
    split_reference,
)

FIELDS = "to: a@school.org\nsubject: s\nbody: b\n"


def test_resolve_descriptors_assigns_roles_and_keys(make_template):
    """Test Resolve descriptors assigns roles and keys."""
    template = make_template(
        "sources:\n"
        "  school: {}\n"
        "  classes: {join: {code: students.class_id}}\n"
        "  students: {primary: true}\n"
        "  grades: {join: {student_id: students.id, term: school.term}, many: true}\n"
        + FIELDS
    )
    descriptors = resolve_descriptors(template)
    assert [d.namespace for d in descriptors] == ["students", "school", "classes", "grades"]
    students, school, classes, grades = descriptors
    assert students.role is SourceRole.PRIMARY and students.is_primary
    assert school.is_global and school.cardinality is None
    assert classes.is_joined and classes.cardinality is Cardinality.ONE
    assert classes.keys == (JoinKey("code", "students", "class_id"),)
    assert grades.cardinality is Cardinality.MANY
    assert grades.referenced_namespaces == ("students", "school")


def test_missing_primary(make_template):
    """Test Missing primary."""
    with pytest.raises(MissingPrimaryError) as exc_info:
        resolve_descriptors(make_template("sources: {a: {}}\n" + FIELDS))
    assert exc_info.value.code == "MISSING_PRIMARY"


def test_duplicate_primary_names_sorted_namespaces(make_template):
    """Test Duplicate primary names sorted namespaces."""
    template = make_template(
        "sources: {zeta: {primary: true}, alpha: {primary: true}}\n" + FIELDS
    )
    with pytest.raises(DuplicatePrimaryError) as exc_info:
        resolve_descriptors(template)
    assert exc_info.value.namespaces == ["alpha", "zeta"]
    assert "alpha, zeta" in exc_info.value.message


@pytest.mark.parametrize(
    "ref,error",
    [
        ("students", MalformedReferencePathError),
        ("students.", MalformedReferencePathError),
        (".id", MalformedReferencePathError),
        ("classes.code", SelfJoinError),
        ("teachers.id", UnknownJoinTargetError),
    ],
)
def test_invalid_join_references(make_template, ref, error):
    """Test Invalid join references."""
    template = make_template(
        "sources:\n"
        "  students: {primary: true}\n"
        f"  classes: {{join: {{code: '{ref}'}}}}\n" + FIELDS
    )
    with pytest.raises(error) as exc_info:
        resolve_descriptors(template)
    assert exc_info.value.context["namespace"] == "classes"


def test_describe_sources_collects_every_problem(make_template):
    """Test Describe sources collects every problem."""
    template = make_template(
        "sources:\n"
        "  a: {join: {x: a.y}}\n"
        "  b: {join: {x: nowhere.y, z: bad}}\n" + FIELDS
    )
    _, problems = describe_sources(template)
    assert [p.code for p in problems] == [
        "MISSING_PRIMARY",
        "SELF_JOIN",
        "UNKNOWN_JOIN_TARGET",
        "MALFORMED_REFERENCE_PATH",
    ]


def test_many_without_join_is_global(make_template, caplog):
    """Test Many without join is global."""
    caplog.set_level("WARNING")
    template = make_template(
        "sources: {p: {primary: true}, extra: {many: true}}\n" + FIELDS
    )
    descriptors = resolve_descriptors(template)
    assert descriptors[1].is_global
    assert "treated as global" in caplog.text


def test_join_on_primary_is_ignored(make_template, caplog):
    """Test Join on primary is ignored."""
    caplog.set_level("WARNING")
    template = make_template(
        "sources: {p: {primary: true, join: {id: q.id}}, q: {}}\n" + FIELDS
    )
    descriptors = resolve_descriptors(template)
    assert descriptors[0].is_primary and descriptors[0].keys == ()
    assert "is ignored" in caplog.text


def test_split_reference():
    """Test Split reference."""
    assert split_reference("students.id") == ("students", "id")
    assert split_reference("students.address.city") == ("students", "address.city")
    assert split_reference("students") is None
