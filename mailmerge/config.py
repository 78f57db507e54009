"""Global configuration constants for the project.

Defines paths, filenames and rendering defaults used across the pipeline
and the command-line interface.
"""

from __future__ import annotations

import re
from pathlib import Path

# Project directories
PROJECT_ROOT: Path = Path(__file__).resolve().parents[1]
LOG_DIR: Path = PROJECT_ROOT / "logs"

# Logging
LOG_FILENAME: str = "mailmerge.log"
LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOG_LEVEL: str = "INFO"

# Template files
TEMPLATE_REQUIRED_FIELDS: tuple[str, ...] = ("to", "subject", "body")
TEMPLATE_OPTIONAL_FIELDS: tuple[str, ...] = (
    "cc",
    "bcc",
    "attachments",
    "body_format",
    "stylesheet",
    "style",
)
# Fields evaluated by the template language, in render order
TEMPLATE_TEXT_FIELDS: tuple[str, ...] = (
    "to",
    "cc",
    "bcc",
    "subject",
    "body",
    "attachments",
)
DEFAULT_BODY_FORMAT: str = "markdown"

# Markdown conversion (markdown2 extras)
MARKDOWN_EXTRAS: list[str] = [
    "tables",
    "fenced-code-blocks",
    "strike",
    "cuddled-lists",
    "link-patterns",
]
AUTOLINK_PATTERN: re.Pattern[str] = re.compile(
    r"((?:https?|ftp)://[^\s<>\"'()\[\]]+[^\s<>\"'()\[\].,;:!?])"
)

# Source loading
SUPPORTED_SOURCE_SUFFIXES: tuple[str, ...] = (".json", ".yaml", ".yml", ".toml", ".csv")
CSV_SEPARATOR_CANDIDATES: tuple[str, ...] = (",", ";", "|", "\t")
DEFAULT_CSV_ENCODING: str = "utf-8-sig"
FALLBACK_CSV_ENCODING: str = "cp1252"

# Environment variable names read by MergeSettings
ENV_LOG_LEVEL: str = "MAILMERGE_LOG_LEVEL"
ENV_POLICY: str = "MAILMERGE_POLICY"
ENV_CSV_ENCODING: str = "MAILMERGE_CSV_ENCODING"
ENV_DISABLE_FILE_LOGS: str = "DISABLE_FILE_LOGS"
