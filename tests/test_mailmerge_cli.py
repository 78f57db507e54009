"""Tests for the mailmerge command-line interface."""

import json
import logging
from pathlib import Path

import pytest

import mailmerge.config as config
from mailmerge.cli import build_parser, main, parse_source_args
from mailmerge.exceptions import UserInputError

TEMPLATE = """\
sources:
  students: {primary: true}
  classes: {join: {code: students.class_id}}
  sender: {form: true}
to: '{{students.email}}'
subject: 'Welcome {{students.name}}'
body: |
  # Hi {{students.name}}

  Your class is {{classes.title}}. Regards, {{sender.name}}
"""


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "PROJECT_ROOT", tmp_path)
    saved_handlers = logging.root.handlers[:]
    saved_level = logging.root.level
    yield
    logging.root.handlers[:] = saved_handlers
    logging.root.setLevel(saved_level)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "invite.mailmerge.yml").write_text(TEMPLATE, encoding="utf-8")
    (tmp_path / "students.csv").write_text(
        "id;name;email;class_id\n1;Ana;ana@school.org;A\n2;Bo;bo@school.org;B\n",
        encoding="utf-8",
    )
    (tmp_path / "classes.json").write_text(
        json.dumps([{"code": "A", "title": "Algebra"}, {"code": "B", "title": "Biology"}]),
        encoding="utf-8",
    )
    return tmp_path


def data_args(workspace: Path) -> list[str]:
    return [
        str(workspace / "invite.mailmerge.yml"),
        "--source",
        f"students={workspace / 'students.csv'}",
        "-s",
        f"classes={workspace / 'classes.json'}",
        "--form",
        "sender:name=Eva",
    ]


def test_check_lists_namespaces_and_form_fields(workspace, capsys):
    """Test Check lists namespaces and form fields."""
    assert main(["check", str(workspace / "invite.mailmerge.yml")]) == 0
    out = capsys.readouterr().out
    assert "students" in out
    assert "primary" in out
    assert "sender" in out


def test_check_reports_invalid_sources(tmp_path, capsys):
    """Test Check reports invalid sources."""
    path = tmp_path / "bad.mailmerge.yml"
    path.write_text("sources: {a: {}, b: {}}\nto: x\nsubject: s\nbody: b\n", encoding="utf-8")
    assert main(["check", str(path)]) == 2


def test_validate_valid_batch(workspace, capsys):
    """Test Validate valid batch."""
    assert main(["validate", *data_args(workspace)]) == 0
    assert "2 of 2 entries valid" in capsys.readouterr().out


def test_validate_reports_invalid_entries(workspace, capsys):
    """Test Validate reports invalid entries."""
    (workspace / "students.csv").write_text(
        "id,name,email,class_id\n1,Ana,ana@school.org,A\n2,Bo,bo@school.org,Z\n",
        encoding="utf-8",
    )
    assert main(["validate", *data_args(workspace), "--json"]) == 1
    out = capsys.readouterr().out
    assert '"is_valid": false' in out
    assert "MISSING_JOIN" in out


def test_preview_valid_entry(workspace, capsys):
    """Test Preview valid entry."""
    assert main(["preview", *data_args(workspace), "--entry", "1", "--html"]) == 0
    out = capsys.readouterr().out
    assert "bo@school.org" in out
    assert "Welcome Bo" in out
    assert "Biology" in out
    assert "entry is valid" in out


def test_preview_invalid_entry(workspace, capsys):
    """Test Preview invalid entry."""
    (workspace / "students.csv").write_text(
        "id,name,email,class_id\n1,Ana,not-an-address,A\n", encoding="utf-8"
    )
    assert main(["preview", *data_args(workspace)]) == 1
    assert "INVALID_ADDRESS" in capsys.readouterr().out


@pytest.mark.parametrize(
    "extra",
    [["--entry", "5"], ["-s", "students=missing.csv"]],
)
def test_data_and_usage_errors_exit_2(workspace, capsys, extra):
    """Test Data and usage errors exit 2."""
    args = ["preview", *data_args(workspace)]
    if extra[0] == "-s":
        args[3] = extra[1]
    else:
        args.extend(extra)
    assert main(args) == 2
    assert "error" in capsys.readouterr().out


def test_missing_template_exits_2(tmp_path, capsys):
    """Test Missing template exits 2."""
    assert main(["check", str(tmp_path / "nope.mailmerge.yml")]) == 2


def test_parse_source_args():
    """Test Parse source args."""
    specs = parse_source_args(
        ["students=a.csv"], ["me:name=Ana", "me:role=Teacher"], separator=";"
    )
    assert specs[0].path == Path("a.csv")
    assert specs[0].separator == ";"
    assert specs[1].namespace == "me"
    assert dict(specs[1].form_data) == {"name": "Ana", "role": "Teacher"}


@pytest.mark.parametrize(
    ("sources", "forms"),
    [(["students"], []), (["=a.csv"], []), ([], ["me=Ana"]), ([], ["me:=Ana"])],
)
def test_parse_source_args_rejects_malformed(sources, forms):
    """Test Parse source args rejects malformed."""
    with pytest.raises(UserInputError):
        parse_source_args(sources, forms)


def test_parser_requires_command():
    """Test Parser requires command."""
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
