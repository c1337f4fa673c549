"""Per-question success rates over the submissions of one assignment."""

from __future__ import annotations

from dataclasses import dataclass

from quiz_grading.core.models import QuestionType, Quiz, Submission
from quiz_grading.core.services.submission_grader import percentage


@dataclass(slots=True, frozen=True)
class QuestionStats:
    question_id: str
    text: str
    type: QuestionType
    attempts: int
    correct: int

    @property
    def incorrect(self) -> int:
        return self.attempts - self.correct

    @property
    def success_rate(self) -> float:
        return percentage(self.correct, self.attempts)


@dataclass(slots=True, frozen=True)
class QuestionAnalytics:
    assignment_id: str
    quiz_id: str
    quiz_title: str
    questions: list[QuestionStats]


def analyze_questions(assignment_id: str, quiz: Quiz, submissions: list[Submission]) -> QuestionAnalytics:
    """Count attempts and correct answers per question, hardest question first.

    A question counts as attempted when a submission holds an answer record for
    it; the grader records unanswered questions too, so they show up as
    incorrect attempts. Questions nobody attempted are left out.
    """
    attempts: dict[str, int] = {}
    correct: dict[str, int] = {}
    for submission in submissions:
        for answer in submission.answers:
            attempts[answer.question_id] = attempts.get(answer.question_id, 0) + 1
            if answer.is_correct:
                correct[answer.question_id] = correct.get(answer.question_id, 0) + 1

    stats = [
        QuestionStats(
            question_id=question.id,
            text=question.text,
            type=question.type,
            attempts=attempts[question.id],
            correct=correct.get(question.id, 0),
        )
        for question in quiz.questions
        if attempts.get(question.id, 0) > 0
    ]
    stats.sort(key=lambda item: item.success_rate)

    return QuestionAnalytics(
        assignment_id=assignment_id,
        quiz_id=quiz.id,
        quiz_title=quiz.title,
        questions=stats,
    )
