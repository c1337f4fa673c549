"""Append-only submission storage with a unique (assignment, candidate) index."""

from __future__ import annotations

import logging
from threading import Lock

from quiz_grading.core.errors import DuplicateSubmissionError
from quiz_grading.core.models import Submission

logger = logging.getLogger(__name__)


class SubmissionStore:
    """Keeps at most one submission per candidate and assignment.

    ``insert`` is the only write path and is atomic: two racing inserts for the
    same pair cannot both succeed, the loser gets ``DuplicateSubmissionError``.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._by_assignment: dict[str, dict[str, Submission]] = {}

    def insert(self, submission: Submission) -> Submission:
        with self._lock:
            bucket = self._by_assignment.setdefault(submission.assignment_id, {})
            if submission.candidate_id in bucket:
                logger.warning(
                    "Rejected duplicate submission by %s for assignment %s",
                    submission.candidate_id,
                    submission.assignment_id,
                )
                raise DuplicateSubmissionError("You have already submitted this quiz.")
            bucket[submission.candidate_id] = submission
            return submission

    def get(self, assignment_id: str, candidate_id: str) -> Submission | None:
        with self._lock:
            return self._by_assignment.get(assignment_id, {}).get(candidate_id)

    def has_submission(self, assignment_id: str, candidate_id: str) -> bool:
        return self.get(assignment_id, candidate_id) is not None

    def list_for_assignment(self, assignment_id: str) -> list[Submission]:
        """Return a snapshot of the assignment's submissions in arrival order."""
        with self._lock:
            return list(self._by_assignment.get(assignment_id, {}).values())

    def clear_assignment(self, assignment_id: str) -> int:
        """Drop every submission of an assignment and return how many were removed."""
        with self._lock:
            removed = self._by_assignment.pop(assignment_id, {})
            return len(removed)
