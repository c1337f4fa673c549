"""Domain models for the grading core."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from quiz_grading.core.eligibility import Subgroup, Unrestricted
from quiz_grading.core.errors import ValidationError
from quiz_grading.core.weightage import WeightageSpec


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class QuestionType(str, Enum):
    MCQ = "mcq"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


class Role(str, Enum):
    ADMIN = "admin"
    CANDIDATE = "candidate"


@dataclass(slots=True)
class Question:
    """A single quiz question with its answer key."""

    id: str
    text: str
    type: QuestionType
    options: list[str] = field(default_factory=list)
    answer: str = ""

    def __post_init__(self) -> None:
        try:
            self.type = QuestionType(self.type)
        except ValueError as exc:
            raise ValidationError(f"Unknown question type: {self.type!r}") from exc
        if not isinstance(self.answer, str) or not self.answer.strip():
            raise ValidationError(f"Question {self.id} has no answer.")
        if self.type is QuestionType.SHORT_ANSWER:
            if self.options:
                raise ValidationError("Short answer questions do not take options.")
        elif self.answer not in self.options:
            raise ValidationError(f"Answer of question {self.id} must be one of its options.")


@dataclass(slots=True)
class Quiz:
    id: str
    title: str
    questions: list[Question]
    admin_id: str | None = None


@dataclass(slots=True, frozen=True)
class AnswerRecord:
    """Graded answer to one question."""

    question_id: str
    selected_answer: str
    is_correct: bool


@dataclass(slots=True, frozen=True)
class ProctoringData:
    """Violation counters reported by the AI proctor."""

    suspicious_movements: int = 0
    multiple_faces_detected: int = 0
    no_face_detected: int = 0
    looking_away: int = 0
    phone_detected: int = 0
    audio_anomalies: int = 0
    tab_switching: int = 0
    total_violations: int | None = None  # None means "sum of the counters"

    def violation_total(self) -> int:
        if self.total_violations is not None:
            return self.total_violations
        return (
            self.suspicious_movements
            + self.multiple_faces_detected
            + self.no_face_detected
            + self.looking_away
            + self.phone_detected
            + self.audio_anomalies
            + self.tab_switching
        )


@dataclass(slots=True, frozen=True)
class IntegrityCounters:
    """Anti-cheat data captured by the browser while the quiz was taken."""

    tab_switch_count: int = 0
    esc_count: int = 0
    was_fullscreen: bool = False
    proctoring: ProctoringData | None = None


@dataclass(slots=True, frozen=True)
class Submission:
    """A candidate's graded attempt. Immutable once recorded."""

    assignment_id: str
    candidate_id: str
    score: float
    submitted_at: datetime
    is_late_submission: bool
    answers: tuple[AnswerRecord, ...] = ()
    counters: IntegrityCounters = field(default_factory=IntegrityCounters)


@dataclass(slots=True)
class Assignment:
    """A quiz handed to a class with a due date and a grading weight."""

    id: str
    quiz_id: str
    class_id: str
    admin_id: str
    due_date: datetime
    time_limit: int  # minutes
    weightage: WeightageSpec
    subgroup: Subgroup = field(default_factory=Unrestricted)
    proctoring_enabled: bool = False
    published: bool = True
    reopened: bool = False
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        self.due_date = as_utc(self.due_date)


@dataclass(slots=True)
class ClassSettings:
    allow_late_submissions: bool = True
    show_results: bool = True


@dataclass(slots=True, frozen=True)
class Student:
    id: str
    name: str
    registration_number: str | None = None


@dataclass(slots=True)
class ClassRoom:
    """A class, its owner, its enrolled students and its settings."""

    id: str
    title: str
    admin_id: str
    students: dict[str, Student] = field(default_factory=dict)
    settings: ClassSettings = field(default_factory=ClassSettings)

    @property
    def student_ids(self) -> set[str]:
        return set(self.students)


@dataclass(slots=True, frozen=True)
class Caller:
    """Verified identity handed over by the authentication layer."""

    user_id: str
    role: Role
