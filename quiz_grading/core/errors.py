"""Domain errors raised by the grading core.

Every error propagates unmodified to the calling boundary, which decides how to
present it. Nothing in the core retries.
"""

from __future__ import annotations


class GradingError(Exception):
    """Base class for all grading domain errors."""


class ValidationError(GradingError):
    """Raised when input is malformed or missing."""


class DuplicateSubmissionError(GradingError):
    """Raised when a candidate already has a submission for an assignment."""


class SubmissionClosedError(GradingError):
    """Raised when an assignment no longer (or not yet) accepts submissions."""


class NotEligibleError(GradingError):
    """Raised when a candidate's branch is outside an assignment's subgroup."""


class NotFoundError(GradingError):
    """Raised when a quiz, class, assignment or submission does not exist."""


class AuthorizationError(GradingError):
    """Raised when the caller's role or ownership does not permit an action."""
