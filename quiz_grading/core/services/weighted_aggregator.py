"""Service that turns a class's submissions into personalized weighted results."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging

from quiz_grading.constants.grading_constants import (
    DISPLAY_DECIMALS,
    FAILING_GRADE,
    GRADE_BANDS,
    PASS_MARK_PERCENT,
)
from quiz_grading.core.branch_resolver import extract_branch
from quiz_grading.core.eligibility import is_eligible
from quiz_grading.core.models import Assignment, Submission
from quiz_grading.core.services.class_registry import ClassRegistry
from quiz_grading.core.services.submission_store import SubmissionStore
from quiz_grading.core.weightage import WeightageSpec

logger = logging.getLogger(__name__)


def letter_grade(overall_percentage: float) -> str:
    for lower_bound, grade in GRADE_BANDS:
        if overall_percentage >= lower_bound:
            return grade
    return FAILING_GRADE


def _present(value: float) -> float:
    return round(value, DISPLAY_DECIMALS)


@dataclass(slots=True)
class AssignmentMarks:
    """What one student earned on one assignment they were eligible for."""

    assignment_id: str
    weightage: WeightageSpec
    submitted: bool
    raw_percentage: float
    achieved: float


@dataclass(slots=True)
class StudentResult:
    """Per-student aggregate. Values keep full precision until presented."""

    student_id: str
    name: str
    registration_number: str | None
    branch: str | None
    marks: dict[str, AssignmentMarks] = field(default_factory=dict)
    personalized_max_score: float = 0.0
    total_achieved: float = 0.0
    overall_percentage: float = 0.0
    rank: int = 0

    @property
    def grade(self) -> str:
        return letter_grade(self.overall_percentage)

    def as_dict(self) -> dict[str, object]:
        return {
            "rank": self.rank,
            "student_id": self.student_id,
            "name": self.name,
            "registration_number": self.registration_number,
            "branch": self.branch,
            "marks": {
                assignment_id: {
                    "submitted": entry.submitted,
                    "percentage": _present(entry.raw_percentage),
                    "achieved": _present(entry.achieved),
                    "weightage": entry.weightage.value,
                    "weightage_type": entry.weightage.kind.value,
                }
                for assignment_id, entry in self.marks.items()
            },
            "personalized_max_score": _present(self.personalized_max_score),
            "total_achieved": _present(self.total_achieved),
            "overall_percentage": _present(self.overall_percentage),
            "grade": self.grade,
        }


@dataclass(slots=True, frozen=True)
class ClassStats:
    student_count: int
    average_percentage: float
    pass_rate: float  # fraction of students at or above the pass mark
    top_percentage: float

    def as_dict(self) -> dict[str, object]:
        return {
            "student_count": self.student_count,
            "average_percentage": _present(self.average_percentage),
            "pass_rate": _present(self.pass_rate * 100),
            "top_percentage": _present(self.top_percentage),
        }


@dataclass(slots=True, frozen=True)
class ClassResults:
    class_id: str
    ranking: list[StudentResult]
    stats: ClassStats

    def as_dict(self) -> dict[str, object]:
        return {
            "class_id": self.class_id,
            "ranking": [result.as_dict() for result in self.ranking],
            "stats": self.stats.as_dict(),
        }


class WeightedAggregator:
    """Computes ranked, personalized results for every student of a class.

    Each student is scored only against the assignments their branch made them
    eligible for. Eligible assignments without a submission count as zero.
    """

    def __init__(self, registry: ClassRegistry, store: SubmissionStore) -> None:
        self._registry = registry
        self._store = store

    def aggregate(self, class_id: str) -> ClassResults:
        classroom = self._registry.get_class_roster(class_id)
        assignments = self._registry.get_assignments(class_id)
        enrolled = classroom.student_ids
        submissions = {
            assignment.id: self._enrolled_submissions(assignment, enrolled)
            for assignment in assignments
        }

        results = [
            self._score_student(student.id, student.name, student.registration_number, assignments, submissions)
            for student in classroom.students.values()
        ]
        results.sort(key=lambda r: (-r.overall_percentage, -r.total_achieved))
        for position, result in enumerate(results, start=1):
            result.rank = position

        return ClassResults(class_id=class_id, ranking=results, stats=self._class_stats(results))

    def _enrolled_submissions(self, assignment: Assignment, enrolled: set[str]) -> dict[str, Submission]:
        """Submissions of the assignment from currently enrolled students only."""
        kept: dict[str, Submission] = {}
        for submission in self._store.list_for_assignment(assignment.id):
            if submission.candidate_id not in enrolled:
                logger.debug(
                    "Skipping stale submission by %s on assignment %s: not enrolled",
                    submission.candidate_id,
                    assignment.id,
                )
                continue
            kept[submission.candidate_id] = submission
        return kept

    @staticmethod
    def _score_student(
        student_id: str,
        name: str,
        registration_number: str | None,
        assignments: list[Assignment],
        submissions: dict[str, dict[str, Submission]],
    ) -> StudentResult:
        branch = extract_branch(registration_number)
        result = StudentResult(
            student_id=student_id,
            name=name,
            registration_number=registration_number,
            branch=branch,
        )

        for assignment in assignments:
            if not is_eligible(branch, assignment.subgroup):
                logger.debug("Student %s not eligible for assignment %s", student_id, assignment.id)
                continue

            submission = submissions[assignment.id].get(student_id)
            raw_percentage = submission.score if submission else 0.0
            achieved = assignment.weightage.compute_achieved(raw_percentage) if submission else 0.0

            result.personalized_max_score += assignment.weightage.value
            result.total_achieved += achieved
            result.marks[assignment.id] = AssignmentMarks(
                assignment_id=assignment.id,
                weightage=assignment.weightage,
                submitted=submission is not None,
                raw_percentage=raw_percentage,
                achieved=achieved,
            )

        if result.personalized_max_score > 0:
            result.overall_percentage = (result.total_achieved / result.personalized_max_score) * 100
        return result

    @staticmethod
    def _class_stats(results: list[StudentResult]) -> ClassStats:
        if not results:
            return ClassStats(student_count=0, average_percentage=0.0, pass_rate=0.0, top_percentage=0.0)

        percentages = [result.overall_percentage for result in results]
        passed = sum(1 for value in percentages if value >= PASS_MARK_PERCENT)
        return ClassStats(
            student_count=len(results),
            average_percentage=sum(percentages) / len(percentages),
            pass_rate=passed / len(percentages),
            top_percentage=max(percentages),
        )
