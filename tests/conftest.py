from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from quiz_grading.core.grading_manager import GradingManager
from quiz_grading.core.models import (
    Caller,
    ClassSettings,
    Question,
    QuestionType,
    Quiz,
    Role,
    Student,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
ADMIN = Caller(user_id="admin-1", role=Role.ADMIN)


def candidate(user_id: str) -> Caller:
    return Caller(user_id=user_id, role=Role.CANDIDATE)


def make_quiz(quiz_id: str = "quiz-1", admin_id: str | None = "admin-1") -> Quiz:
    return Quiz(
        id=quiz_id,
        title="Networks basics",
        admin_id=admin_id,
        questions=[
            Question(id="q1", text="Layer of IP?", type=QuestionType.MCQ, options=["2", "3", "4"], answer="3"),
            Question(id="q2", text="TCP is reliable.", type=QuestionType.TRUE_FALSE, options=["True", "False"], answer="True"),
            Question(id="q3", text="Expand DNS.", type=QuestionType.SHORT_ANSWER, answer="Domain Name System"),
            Question(id="q4", text="Port of HTTPS?", type=QuestionType.MCQ, options=["80", "443", "22"], answer="443"),
        ],
    )


@pytest.fixture
def manager() -> GradingManager:
    grading = GradingManager(clock=lambda: NOW)
    grading.add_quiz(make_quiz())
    grading.create_class(
        "class-1",
        "Computer Networks",
        admin_id=ADMIN.user_id,
        students=[
            Student(id="s-bce", name="Asha", registration_number="22BCE10100"),
            Student(id="s-mim", name="Ravi", registration_number="2024MIM007"),
            Student(id="s-none", name="Kim", registration_number="12345"),
        ],
        settings=ClassSettings(allow_late_submissions=False, show_results=True),
    )
    return grading


@pytest.fixture
def open_assignment(manager: GradingManager):
    return manager.create_assignment(
        ADMIN,
        "a-1",
        quiz_id="quiz-1",
        class_id="class-1",
        due_date=NOW + timedelta(days=1),
        time_limit=30,
        weightage=20,
    )
