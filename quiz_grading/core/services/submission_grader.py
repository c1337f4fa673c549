"""Service that scores quiz attempts and records them as submissions."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
import logging

from quiz_grading.core.errors import DuplicateSubmissionError, SubmissionClosedError
from quiz_grading.core.models import (
    AnswerRecord,
    Assignment,
    IntegrityCounters,
    Question,
    QuestionType,
    Quiz,
    Submission,
    as_utc,
    utc_now,
)
from quiz_grading.core.services.submission_store import SubmissionStore

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class GradingOutcome:
    correct_count: int
    total_questions: int
    score: float
    answers: tuple[AnswerRecord, ...]


def is_answer_correct(question: Question, candidate_answer: str) -> bool:
    if question.type is QuestionType.SHORT_ANSWER:
        return candidate_answer.strip().lower() == question.answer.strip().lower()
    # mcq and true/false must match the stored option exactly
    return candidate_answer == question.answer


def percentage(correct_count: int, total_questions: int) -> float:
    if total_questions == 0:
        return 0.0
    return (correct_count / total_questions) * 100


def grade_answers(questions: list[Question], answers: Mapping[str, object]) -> GradingOutcome:
    """Score ``answers`` (keyed by question id) against the quiz's answer key."""
    records: list[AnswerRecord] = []
    correct_count = 0

    for question in questions:
        raw_answer = answers.get(question.id)
        if raw_answer is None or raw_answer == "":
            records.append(AnswerRecord(question_id=question.id, selected_answer="", is_correct=False))
            continue

        candidate_answer = str(raw_answer)
        is_correct = is_answer_correct(question, candidate_answer)
        if is_correct:
            correct_count += 1
        records.append(
            AnswerRecord(question_id=question.id, selected_answer=candidate_answer, is_correct=is_correct)
        )

    return GradingOutcome(
        correct_count=correct_count,
        total_questions=len(questions),
        score=percentage(correct_count, len(questions)),
        answers=tuple(records),
    )


class SubmissionGrader:
    """Grades one candidate's answers and appends the resulting submission."""

    def __init__(self, store: SubmissionStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    def grade(
        self,
        quiz: Quiz,
        assignment: Assignment,
        candidate_id: str,
        answers: Mapping[str, object],
        allow_late_submissions: bool,
        counters: IntegrityCounters | None = None,
        now: datetime | None = None,
    ) -> tuple[Submission, GradingOutcome]:
        now = as_utc(now) if now is not None else self._clock()

        # Fast rejection only; the store's insert is what enforces uniqueness.
        if self._store.has_submission(assignment.id, candidate_id):
            raise DuplicateSubmissionError("You have already submitted this quiz.")

        is_late = now > assignment.due_date
        if is_late and not allow_late_submissions:
            raise SubmissionClosedError(
                "This assignment is past due and late submissions are not allowed."
            )

        outcome = grade_answers(quiz.questions, answers)
        submission = Submission(
            assignment_id=assignment.id,
            candidate_id=candidate_id,
            score=outcome.score,
            submitted_at=now,
            is_late_submission=is_late,
            answers=outcome.answers,
            counters=counters or IntegrityCounters(),
        )
        self._store.insert(submission)
        logger.info(
            "Recorded submission by %s for assignment %s: %.2f%%%s",
            candidate_id,
            assignment.id,
            outcome.score,
            " (late)" if is_late else "",
        )
        return submission, outcome


@dataclass(slots=True, frozen=True)
class QuestionBreakdown:
    question_id: str
    text: str
    type: QuestionType
    options: list[str]
    correct_answer: str
    candidate_answer: str
    is_correct: bool


@dataclass(slots=True, frozen=True)
class SubmissionDetail:
    """Question-by-question view of a submission for reviewers."""

    assignment_id: str
    candidate_id: str
    quiz_id: str
    quiz_title: str
    submitted_at: datetime
    is_late_submission: bool
    total_questions: int
    correct_answers: int
    percentage: float
    questions: list[QuestionBreakdown]

    @property
    def incorrect_answers(self) -> int:
        return self.total_questions - self.correct_answers


def build_submission_detail(quiz: Quiz, submission: Submission) -> SubmissionDetail:
    """Break a submission down per question.

    When the submission carries its answers, the percentage is recomputed from
    them and takes precedence over the stored score. Legacy submissions without
    answers keep their stored score.
    """
    recorded = {answer.question_id: answer for answer in submission.answers}
    breakdown: list[QuestionBreakdown] = []
    for question in quiz.questions:
        answer = recorded.get(question.id)
        breakdown.append(
            QuestionBreakdown(
                question_id=question.id,
                text=question.text,
                type=question.type,
                options=list(question.options),
                correct_answer=question.answer,
                candidate_answer=answer.selected_answer if answer else "",
                is_correct=answer.is_correct if answer else False,
            )
        )

    total = len(breakdown)
    correct = sum(1 for item in breakdown if item.is_correct)
    final_score = percentage(correct, total) if submission.answers else submission.score

    return SubmissionDetail(
        assignment_id=submission.assignment_id,
        candidate_id=submission.candidate_id,
        quiz_id=quiz.id,
        quiz_title=quiz.title,
        submitted_at=submission.submitted_at,
        is_late_submission=submission.is_late_submission,
        total_questions=total,
        correct_answers=correct,
        percentage=final_score,
        questions=breakdown,
    )
