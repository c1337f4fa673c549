"""Grading core: branch resolution, eligibility, grading, aggregation and integrity triage."""

from .branch_resolver import extract_branch
from .eligibility import resolve_eligibility
from .errors import (
    AuthorizationError,
    DuplicateSubmissionError,
    GradingError,
    NotEligibleError,
    NotFoundError,
    SubmissionClosedError,
    ValidationError,
)
from .grading_manager import AssignmentStatus, GradingManager
from .integrity_classifier import IntegrityLevel, classify_integrity

__all__ = [
    "AssignmentStatus",
    "AuthorizationError",
    "DuplicateSubmissionError",
    "GradingError",
    "GradingManager",
    "IntegrityLevel",
    "NotEligibleError",
    "NotFoundError",
    "SubmissionClosedError",
    "ValidationError",
    "classify_integrity",
    "extract_branch",
    "resolve_eligibility",
]
