"""Pytest configuration for test environment setup.

- Forces ``DISABLE_FILE_LOGS=1`` to avoid writing log files during tests.
- Ensures the project root is available on ``sys.path`` for imports.
- Provides small school-themed datasets and a template factory shared by
  the stage tests.
"""

import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("DISABLE_FILE_LOGS", "1")  # Avoid creating log files during tests

# Ensure project root is on sys.path
ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from mailmerge.pipeline.template import parse_template_str  # noqa: E402


@pytest.fixture
def make_template(tmp_path: Path):
    """Return a factory parsing template YAML with ``tmp_path`` as base dir."""

    def _make(content: str):
        return parse_template_str(content, base_dir=tmp_path)

    return _make


@pytest.fixture
def students() -> list[dict]:
    return [
        {"id": 1, "name": "Ana", "email": "ana@school.org", "class_id": "A"},
        {"id": 2, "name": "Bo", "email": "bo@school.org", "class_id": "B"},
        {"id": 3, "name": "Cy", "email": "cy@school.org", "class_id": "C"},
    ]


@pytest.fixture
def classes() -> list[dict]:
    return [
        {"code": "A", "title": "Algebra", "room": 101},
        {"code": "B", "title": "Biology", "room": 102},
        {"code": "C", "title": "Chemistry", "room": 103},
    ]


@pytest.fixture
def grades() -> list[dict]:
    return [
        {"student_id": 1, "subject": "Math", "grade": "A"},
        {"student_id": 2, "subject": "Math", "grade": "B"},
        {"student_id": 1, "subject": "Art", "grade": "C"},
        {"student_id": 1, "subject": "Music", "grade": "A"},
    ]
