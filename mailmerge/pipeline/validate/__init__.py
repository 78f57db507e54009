"""Validation engine package."""

from .addresses import address_problem, split_addresses
from .engine import check_instance, validate
from .report import (
    AMBIGUOUS_JOIN,
    ATTACHMENT_NOT_FOUND,
    INVALID_ADDRESS,
    MISSING_JOIN,
    NOT_RENDERED,
    REQUIRED_FIELD_EMPTY,
    STYLESHEET_NOT_FOUND,
    PerEntryResult,
    ValidationIssue,
    ValidationReport,
)

__all__ = [
    "AMBIGUOUS_JOIN",
    "ATTACHMENT_NOT_FOUND",
    "INVALID_ADDRESS",
    "MISSING_JOIN",
    "NOT_RENDERED",
    "REQUIRED_FIELD_EMPTY",
    "STYLESHEET_NOT_FOUND",
    "PerEntryResult",
    "ValidationIssue",
    "ValidationReport",
    "address_problem",
    "check_instance",
    "split_addresses",
    "validate",
]
