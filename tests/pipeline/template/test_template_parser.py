"""Tests for YAML template parsing."""

from pathlib import Path

import pytest

from mailmerge.exceptions import TemplateParseError
from mailmerge.pipeline.template import (
    BodyFormat,
    SourceDeclaration,
    parse_template,
    parse_template_str,
)

BASIC = """
sources:
  students: {primary: true}
  classes:
    join: {code: students.class_id}
  grades:
    join: {student_id: students.id}
    many: true
  school: {}
to: "{{students.email}}"
subject: "Welcome to {{classes.title}}"
body: |
  # Hello {{students.name}}
"""


def test_parse_template_str_reads_sources_and_fields():
    """Test Parse template str reads sources and fields."""
    template = parse_template_str(BASIC, base_dir="/data")
    assert list(template.sources) == ["students", "classes", "grades", "school"]
    assert template.sources["students"] == SourceDeclaration(primary=True)
    assert template.sources["classes"].join == {"code": "students.class_id"}
    assert template.sources["grades"].many is True
    assert template.sources["school"] == SourceDeclaration()
    assert template.to == "{{students.email}}"
    assert template.body.startswith("# Hello")
    assert template.body_format is BodyFormat.MARKDOWN
    assert template.cc is None
    assert template.base_dir == Path("/data")


def test_text_fields_follow_render_order():
    """Test Text fields follow render order."""
    template = parse_template_str(BASIC + "cc: c@school.org\n")
    fields = template.text_fields()
    assert list(fields) == ["to", "cc", "bcc", "subject", "body", "attachments"]
    assert fields["cc"] == "c@school.org"
    assert fields["bcc"] is None


def test_parse_template_uses_file_directory_as_base_dir(tmp_path: Path):
    """Test Parse template uses file directory as base dir."""
    path = tmp_path / "invite.mailmerge.yml"
    path.write_text(BASIC + "stylesheet: mail.css\n", encoding="utf-8")
    template = parse_template(path)
    assert template.base_dir == tmp_path
    assert template.stylesheet_path() == tmp_path / "mail.css"


def test_parse_template_missing_file(tmp_path: Path):
    """Test Parse template missing file."""
    with pytest.raises(TemplateParseError) as exc_info:
        parse_template(tmp_path / "nope.mailmerge.yml")
    assert exc_info.value.code == "TEMPLATE_PARSE_ERROR"


@pytest.mark.parametrize(
    "content,needle",
    [
        ("sources: [unclosed", "YAML parse error"),
        ("- just\n- a list\n", "mapping"),
        ("sources: {}\nto: a\nsubject: s\nbody: b\n", "sources"),
        ("sources: {p: {primary: true}}\nsubject: s\nbody: b\n", "'to'"),
        ("sources: {p: {primary: true}}\nto: [a]\nsubject: s\nbody: b\n", "'to'"),
        ("sources: {p: 3}\nto: a\nsubject: s\nbody: b\n", "source 'p'"),
        ("sources: {p: {join: [x]}}\nto: a\nsubject: s\nbody: b\n", "join"),
        (
            "sources: {p: {primary: true}}\nto: a\nsubject: s\nbody: b\nbody_format: pdf\n",
            "body_format",
        ),
    ],
)
def test_parse_template_str_rejects_malformed_documents(content, needle):
    """Test Parse template str rejects malformed documents."""
    with pytest.raises(TemplateParseError) as exc_info:
        parse_template_str(content)
    assert needle in exc_info.value.message


def test_parse_template_str_accepts_numeric_scalars_and_format():
    """Test Parse template str accepts numeric scalars and format."""
    template = parse_template_str(
        "sources: {p: {primary: true}}\nto: a@b.org\nsubject: 2024\nbody: b\n"
        "body_format: TEXT\n"
    )
    assert template.subject == "2024"
    assert template.body_format is BodyFormat.TEXT


def test_parse_template_str_warns_on_unknown_keys(caplog):
    """Test Parse template str warns on unknown keys."""
    caplog.set_level("WARNING")
    parse_template_str("sources: {p: {primary: true}}\nto: a\nsubject: s\nbody: b\nfrom: x\n")
    assert "unknown keys" in caplog.text


def test_template_with_fields_applies_overrides():
    """Test Template with fields applies overrides."""
    template = parse_template_str(BASIC)
    edited = template.with_fields(subject="Changed", body_format="html")
    assert edited.subject == "Changed"
    assert edited.body_format is BodyFormat.HTML
    assert edited.sources == template.sources
    assert template.subject.startswith("Welcome")


def test_template_sources_are_read_only():
    """Test Template sources are read only."""
    template = parse_template_str(BASIC)
    with pytest.raises(TypeError):
        template.sources["extra"] = SourceDeclaration()  # type: ignore[index]
