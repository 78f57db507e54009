"""Tests for the batch runner and single-entry preview."""

import logging

import pytest

from mailmerge.exceptions import UserInputError
from mailmerge.pipeline.join import ErrorPolicy
from mailmerge.pipeline.runner import configure_logging, preview_entry, run_batch
from mailmerge.pipeline.sources import form_source
from mailmerge.pipeline.validate import (
    AMBIGUOUS_JOIN,
    INVALID_ADDRESS,
    MISSING_JOIN,
    STYLESHEET_NOT_FOUND,
)

SOURCES = (
    "sources:\n"
    "  students: {primary: true}\n"
    "  classes: {join: {code: students.class_id}}\n"
    "  sender: {form: true}\n"
)
FIELDS = (
    "to: '{{students.email}}'\n"
    "subject: 'Welcome {{students.name}}'\n"
    "body: \"# Hi {{students.name}}\\n\\nRoom {{classes.room}}, {{sender.name}}\"\n"
)


@pytest.fixture
def template(make_template):
    return make_template(SOURCES + FIELDS)


@pytest.fixture
def loaded(classes):
    students = [
        {"id": i, "name": f"S{i}", "email": f"s{i}@school.org", "class_id": "ABC"[i % 3]}
        for i in range(10)
    ]
    students[3]["class_id"] = "Z"
    students[7]["email"] = "not-an-address"
    return {"students": students, "classes": classes, "sender": form_source({"name": "Eva"})}


def test_batch_isolates_broken_entries(template, loaded):
    """Test Batch isolates broken entries."""
    result = run_batch(template, loaded)
    assert result.entry_count == 10
    assert len(result.instances) == 10
    assert [e.entry_index for e in result.report.invalid_entries()] == [3, 7]
    assert result.report.entry(3).codes() == [MISSING_JOIN]
    assert result.report.entry(7).codes() == [INVALID_ADDRESS]
    assert result.instances[3] is None
    assert [i.entry_index for i in result.sendable()] == [0, 1, 2, 4, 5, 6, 8, 9]
    assert result.instances[0].subject == "Welcome S0"
    assert "Room 101, Eva" in result.instances[0].text_body


def test_lenient_batch_records_render_error_for_missing_join(template, loaded):
    """Test Lenient batch records render error for missing join."""
    result = run_batch(template, loaded, policy=ErrorPolicy.LENIENT)
    codes = result.report.entry(3).codes()
    assert MISSING_JOIN in codes
    assert "UNRESOLVED_REFERENCE" in codes
    assert result.instances[3] is None
    assert len(result.render_errors) == 1
    assert result.render_errors[0].entry_index == 3


def test_ambiguous_join_strict_and_lenient(template, loaded, classes):
    """Test Ambiguous join strict and lenient."""
    loaded["classes"] = classes + [{"code": "B", "title": "Botany", "room": 104}]
    strict = run_batch(template, loaded)
    assert strict.instances[1] is None
    assert strict.report.entry(1).codes() == [AMBIGUOUS_JOIN]

    lenient = run_batch(template, loaded, policy=ErrorPolicy.LENIENT)
    assert lenient.instances[1] is not None
    assert "Room 102" in lenient.instances[1].text_body
    assert lenient.report.entry(1).codes() == [AMBIGUOUS_JOIN]
    assert 1 not in [i.entry_index for i in lenient.sendable()]


def test_missing_stylesheet_fails_html_batch_only(make_template, loaded):
    """Test Missing stylesheet fails html batch only."""
    html = make_template(SOURCES + FIELDS + "stylesheet: gone.css\n")
    result = run_batch(html, loaded)
    assert all(STYLESHEET_NOT_FOUND in e.codes() for e in result.report.entries)
    assert result.instances[0] is not None

    text = make_template(SOURCES + FIELDS + "body_format: text\nstylesheet: gone.css\n")
    result = run_batch(text, loaded)
    assert not any(STYLESHEET_NOT_FOUND in e.codes() for e in result.report.entries)
    assert result.instances[0].html_body is None


def test_preview_entry_valid_and_broken(template, loaded):
    """Test Preview entry valid and broken."""
    preview = preview_entry(template, loaded, 0)
    assert preview.result.is_valid
    assert preview.instance.to == "s0@school.org"

    broken = preview_entry(template, loaded, 3)
    assert broken.entry_index == 3
    assert broken.instance is None
    assert MISSING_JOIN in broken.result.codes()
    assert "UNRESOLVED_REFERENCE" in broken.result.codes()


def test_preview_entry_out_of_range(template, loaded):
    """Test Preview entry out of range."""
    with pytest.raises(UserInputError):
        preview_entry(template, loaded, 10)
    with pytest.raises(UserInputError):
        preview_entry(template, loaded, -1)
    loaded["students"] = []
    with pytest.raises(UserInputError) as exc_info:
        preview_entry(template, loaded, 0)
    assert "no entries" in exc_info.value.message


def test_configure_logging_console_only():
    """Test Configure logging console only."""
    saved_handlers = logging.root.handlers[:]
    saved_level = logging.root.level
    try:
        configure_logging("debug", enable_file=False)
        assert logging.root.level == logging.DEBUG
        assert len(logging.root.handlers) == 1
        assert isinstance(logging.root.handlers[0], logging.StreamHandler)
        configure_logging("nonsense", enable_file=False)
        assert logging.root.level == logging.INFO
    finally:
        logging.root.handlers[:] = saved_handlers
        logging.root.setLevel(saved_level)


def test_lenient_root_dump_with_unmatched_join_fails_only_that_entry(make_template, loaded):
    """Test Lenient root dump with unmatched join fails only that entry."""
    template = make_template(
        SOURCES + "to: '{{students.email}}'\nsubject: s\nbody: '{{@root}} {{this}}'\n"
    )
    result = run_batch(template, loaded, policy=ErrorPolicy.LENIENT)
    assert result.entry_count == 10
    assert result.instances[3] is None
    assert "UNRESOLVED_REFERENCE" in result.report.entry(3).codes()
    assert "join 'classes' had no matching record" in result.render_errors[0].message
    assert '"title":"Algebra"' in result.instances[0].text_body
