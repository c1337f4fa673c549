"""Business logic for grading shared between the API and any other caller."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import logging
from threading import Lock

from quiz_grading.core.branch_resolver import extract_branch
from quiz_grading.core.eligibility import is_eligible, parse_subgroup, resolve_eligibility
from quiz_grading.core.errors import (
    AuthorizationError,
    NotEligibleError,
    NotFoundError,
    SubmissionClosedError,
    ValidationError,
)
from quiz_grading.core.integrity_classifier import (
    IntegrityReport,
    IntegritySummary,
    classify_integrity,
    summarize_integrity,
)
from quiz_grading.core.models import (
    Assignment,
    Caller,
    ClassRoom,
    ClassSettings,
    IntegrityCounters,
    Quiz,
    Role,
    Student,
    Submission,
    as_utc,
    utc_now,
)
from quiz_grading.core.services.class_registry import ClassRegistry
from quiz_grading.core.services.question_analytics import QuestionAnalytics, analyze_questions
from quiz_grading.core.services.submission_grader import (
    SubmissionDetail,
    SubmissionGrader,
    build_submission_detail,
)
from quiz_grading.core.services.submission_store import SubmissionStore
from quiz_grading.core.services.weighted_aggregator import ClassResults, WeightedAggregator
from quiz_grading.core.weightage import WeightageSpec

logger = logging.getLogger(__name__)


class AssignmentStatus(str, Enum):
    DRAFT = "draft"
    OPEN = "open"
    CLOSED = "closed"
    REOPENED = "reopened"


def assignment_status(assignment: Assignment, settings: ClassSettings, now: datetime) -> AssignmentStatus:
    """Where the assignment sits in its lifecycle at ``now``."""
    if not assignment.published:
        return AssignmentStatus.DRAFT
    if now > assignment.due_date and not settings.allow_late_submissions:
        return AssignmentStatus.CLOSED
    return AssignmentStatus.REOPENED if assignment.reopened else AssignmentStatus.OPEN


@dataclass(slots=True, frozen=True)
class SubmissionReceipt:
    """What the candidate is told after submitting. Scores hidden unless the class shows results."""

    submission: Submission
    show_results: bool
    score: float | None
    correct_count: int | None
    total_questions: int | None

    @property
    def is_late_submission(self) -> bool:
        return self.submission.is_late_submission


@dataclass(slots=True, frozen=True)
class CandidateAssignmentView:
    assignment: Assignment
    status: AssignmentStatus
    has_submitted: bool
    submitted_at: datetime | None
    is_late_submission: bool
    score: float | None


@dataclass(slots=True, frozen=True)
class AssignmentSubmissions:
    """Every submission of one assignment, for its owning admin."""

    assignment: Assignment
    quiz_title: str
    class_title: str
    students: dict[str, Student]
    submissions: list[Submission]

    @property
    def total_submissions(self) -> int:
        return len(self.submissions)


class GradingManager:
    """Facade over the registry, submission store, grader and aggregator."""

    def __init__(
        self,
        registry: ClassRegistry | None = None,
        store: SubmissionStore | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._lock = Lock()
        self._clock = clock

        # Services
        self._registry = registry or ClassRegistry()
        self._store = store or SubmissionStore()
        self._grader = SubmissionGrader(self._store, clock=clock)
        self._aggregator = WeightedAggregator(self._registry, self._store)

    # --- Pure helpers ---

    @staticmethod
    def extract_branch(registration_number: str | None) -> str | None:
        return extract_branch(registration_number)

    @staticmethod
    def resolve_eligibility(student_branch: str | None, subgroup: str | None) -> bool:
        return resolve_eligibility(student_branch, subgroup)

    @staticmethod
    def classify_integrity(counters: IntegrityCounters) -> IntegrityReport:
        return classify_integrity(counters)

    # --- Quizzes and classes ---

    def add_quiz(self, quiz: Quiz) -> None:
        with self._lock:
            self._registry.add_quiz(quiz)

    def get_quiz(self, quiz_id: str) -> Quiz:
        with self._lock:
            return self._registry.get_quiz(quiz_id)

    def create_class(
        self,
        class_id: str,
        title: str,
        admin_id: str,
        students: Iterable[Student] = (),
        settings: ClassSettings | None = None,
    ) -> ClassRoom:
        classroom = ClassRoom(
            id=class_id,
            title=title,
            admin_id=admin_id,
            students={student.id: student for student in students},
            settings=settings or ClassSettings(),
        )
        with self._lock:
            self._registry.add_class(classroom)
        return classroom

    def enroll_student(self, class_id: str, student: Student) -> None:
        with self._lock:
            self._registry.enroll_student(class_id, student)

    def remove_student(self, caller: Caller, class_id: str, student_id: str) -> None:
        """Unenroll a student. Their submissions stay stored but stop counting."""
        with self._lock:
            classroom = self._registry.get_class_roster(class_id)
            self._require_class_admin(caller, classroom)
            self._registry.remove_student(class_id, student_id)

    def update_class_settings(
        self,
        caller: Caller,
        class_id: str,
        allow_late_submissions: bool | None = None,
        show_results: bool | None = None,
    ) -> ClassSettings:
        with self._lock:
            classroom = self._registry.get_class_roster(class_id)
            self._require_class_admin(caller, classroom)
            if allow_late_submissions is not None:
                classroom.settings.allow_late_submissions = allow_late_submissions
            if show_results is not None:
                classroom.settings.show_results = show_results
            return classroom.settings

    # --- Assignments ---

    def create_assignment(
        self,
        caller: Caller,
        assignment_id: str,
        quiz_id: str,
        class_id: str,
        due_date: datetime,
        time_limit: int,
        weightage: float | int | str = 0,
        weightage_type: str = "percentage",
        subgroup: str = "",
        proctoring_enabled: bool = False,
        draft: bool = False,
    ) -> Assignment:
        with self._lock:
            quiz = self._registry.get_quiz(quiz_id)
            if quiz.admin_id is not None and quiz.admin_id != caller.user_id:
                raise AuthorizationError("You are not the owner of this quiz.")
            classroom = self._registry.get_class_roster(class_id)
            self._require_class_admin(caller, classroom)

            assignment = Assignment(
                id=assignment_id,
                quiz_id=quiz_id,
                class_id=class_id,
                admin_id=caller.user_id,
                due_date=as_utc(due_date),
                time_limit=self._validate_time_limit(time_limit),
                weightage=WeightageSpec.parse(weightage, weightage_type),
                subgroup=parse_subgroup(subgroup),
                proctoring_enabled=proctoring_enabled,
                published=not draft,
            )
            self._registry.add_assignment(assignment)
            logger.info("Assignment %s created for class %s (quiz %s)", assignment_id, class_id, quiz_id)
            return assignment

    def publish_assignment(self, caller: Caller, assignment_id: str) -> Assignment:
        with self._lock:
            assignment = self._owned_assignment(caller, assignment_id)
            assignment.published = True
            return assignment

    def update_assignment(
        self,
        caller: Caller,
        assignment_id: str,
        due_date: datetime | None = None,
        time_limit: int | None = None,
        weightage: float | int | str | None = None,
        weightage_type: str | None = None,
        subgroup: str | None = None,
        proctoring_enabled: bool | None = None,
        allow_retake: bool = False,
    ) -> Assignment:
        """Edit an assignment. ``allow_retake`` wipes every existing submission."""
        with self._lock:
            assignment = self._owned_assignment(caller, assignment_id)

            # Validate everything before mutating anything
            new_weightage = assignment.weightage
            if weightage is not None or weightage_type is not None:
                new_weightage = WeightageSpec.parse(
                    assignment.weightage.value if weightage is None else weightage,
                    assignment.weightage.kind if weightage_type is None else weightage_type,
                )
            new_time_limit = assignment.time_limit if time_limit is None else self._validate_time_limit(time_limit)
            new_due_date = assignment.due_date if due_date is None else as_utc(due_date)

            if new_due_date > assignment.due_date:
                assignment.reopened = True
            assignment.due_date = new_due_date
            assignment.time_limit = new_time_limit
            assignment.weightage = new_weightage
            if subgroup is not None:
                assignment.subgroup = parse_subgroup(subgroup)
            if proctoring_enabled is not None:
                assignment.proctoring_enabled = proctoring_enabled

            if allow_retake:
                cleared = self._store.clear_assignment(assignment_id)
                assignment.reopened = True
                logger.info("Retake allowed on assignment %s: cleared %d submissions", assignment_id, cleared)

            logger.info("Assignment %s updated", assignment_id)
            return assignment

    def delete_assignment(self, caller: Caller, assignment_id: str) -> None:
        with self._lock:
            self._owned_assignment(caller, assignment_id)
            self._registry.remove_assignment(assignment_id)
            self._store.clear_assignment(assignment_id)
            logger.info("Assignment %s deleted", assignment_id)

    def get_assignment_status(self, assignment_id: str, now: datetime | None = None) -> AssignmentStatus:
        with self._lock:
            assignment = self._registry.get_assignment(assignment_id)
            classroom = self._registry.get_class_roster(assignment.class_id)
            return assignment_status(assignment, classroom.settings, self._now(now))

    # --- Grading ---

    def grade(
        self,
        assignment_id: str,
        candidate_id: str,
        answers: Mapping[str, object],
        counters: IntegrityCounters | None = None,
        now: datetime | None = None,
    ) -> SubmissionReceipt:
        """Grade and record a candidate's attempt; all or nothing."""
        if not isinstance(answers, Mapping):
            raise ValidationError("Answers must be a mapping of question id to answer.")

        with self._lock:
            assignment = self._registry.get_assignment(assignment_id)
            classroom = self._registry.get_class_roster(assignment.class_id)
            student = classroom.students.get(candidate_id)
            if student is None:
                raise AuthorizationError("You are not enrolled in this class.")
            if not assignment.published:
                raise SubmissionClosedError("This assignment is not open yet.")
            if not is_eligible(extract_branch(student.registration_number), assignment.subgroup):
                raise NotEligibleError("This assignment is restricted to another subgroup.")

            quiz = self._registry.get_quiz(assignment.quiz_id)
            submission, outcome = self._grader.grade(
                quiz,
                assignment,
                candidate_id,
                answers,
                allow_late_submissions=classroom.settings.allow_late_submissions,
                counters=counters,
                now=self._now(now),
            )

            show = classroom.settings.show_results
            return SubmissionReceipt(
                submission=submission,
                show_results=show,
                score=outcome.score if show else None,
                correct_count=outcome.correct_count if show else None,
                total_questions=outcome.total_questions if show else None,
            )

    def get_submission_detail(self, caller: Caller, assignment_id: str, candidate_id: str) -> SubmissionDetail:
        with self._lock:
            assignment = self._owned_assignment(caller, assignment_id)
            submission = self._store.get(assignment_id, candidate_id)
            if submission is None:
                raise NotFoundError("Submission not found.")
            quiz = self._registry.get_quiz(assignment.quiz_id)
            return build_submission_detail(quiz, submission)

    def list_candidate_assignments(
        self,
        caller: Caller,
        class_id: str,
        now: datetime | None = None,
    ) -> list[CandidateAssignmentView]:
        """Assignments the candidate may attempt, earliest due date first."""
        if caller.role is not Role.CANDIDATE:
            raise AuthorizationError("Only candidates can view their assignments.")

        with self._lock:
            classroom = self._registry.get_class_roster(class_id)
            student = classroom.students.get(caller.user_id)
            if student is None:
                raise NotFoundError("Class not found or you are not enrolled.")

            moment = self._now(now)
            branch = extract_branch(student.registration_number)
            views: list[CandidateAssignmentView] = []
            for assignment in self._registry.get_assignments(class_id):
                if not assignment.published or not is_eligible(branch, assignment.subgroup):
                    continue
                submission = self._store.get(assignment.id, student.id)
                show_score = classroom.settings.show_results and submission is not None
                views.append(
                    CandidateAssignmentView(
                        assignment=assignment,
                        status=assignment_status(assignment, classroom.settings, moment),
                        has_submitted=submission is not None,
                        submitted_at=submission.submitted_at if submission else None,
                        is_late_submission=submission.is_late_submission if submission else False,
                        score=submission.score if show_score else None,
                    )
                )
            return views

    # --- Results and monitoring ---

    def aggregate_class_results(self, caller: Caller, class_id: str) -> ClassResults:
        with self._lock:
            classroom = self._registry.get_class_roster(class_id)
            self._require_class_admin(caller, classroom)
            return self._aggregator.aggregate(class_id)

    def summarize_integrity(self, caller: Caller, assignment_id: str) -> IntegritySummary:
        with self._lock:
            self._owned_assignment(caller, assignment_id)
            return summarize_integrity(assignment_id, self._store.list_for_assignment(assignment_id))

    def list_submissions(self, caller: Caller, assignment_id: str) -> AssignmentSubmissions:
        with self._lock:
            assignment = self._owned_assignment(caller, assignment_id)
            classroom = self._registry.get_class_roster(assignment.class_id)
            quiz = self._registry.get_quiz(assignment.quiz_id)
            return AssignmentSubmissions(
                assignment=assignment,
                quiz_title=quiz.title,
                class_title=classroom.title,
                students=dict(classroom.students),
                submissions=self._store.list_for_assignment(assignment_id),
            )

    def question_analytics(self, caller: Caller, assignment_id: str) -> QuestionAnalytics:
        """Success rate of each attempted question, hardest first."""
        with self._lock:
            assignment = self._owned_assignment(caller, assignment_id)
            quiz = self._registry.get_quiz(assignment.quiz_id)
            return analyze_questions(assignment_id, quiz, self._store.list_for_assignment(assignment_id))

    # --- Internals ---

    def _now(self, now: datetime | None) -> datetime:
        return as_utc(now) if now is not None else self._clock()

    def _owned_assignment(self, caller: Caller, assignment_id: str) -> Assignment:
        assignment = self._registry.get_assignment(assignment_id)
        classroom = self._registry.get_class_roster(assignment.class_id)
        self._require_class_admin(caller, classroom)
        return assignment

    @staticmethod
    def _require_class_admin(caller: Caller, classroom: ClassRoom) -> None:
        if caller.role is not Role.ADMIN:
            raise AuthorizationError("Only admins can perform this action.")
        if classroom.admin_id != caller.user_id:
            raise AuthorizationError("You do not own this class.")

    @staticmethod
    def _validate_time_limit(time_limit: int) -> int:
        if isinstance(time_limit, bool) or not isinstance(time_limit, int):
            raise ValidationError("Time limit must be provided as an integer number of minutes.")
        if time_limit <= 0:
            raise ValidationError("Time limit must be a positive number.")
        return time_limit
