from datetime import timedelta
from threading import Barrier, Thread

import pytest

from conftest import ADMIN, NOW, candidate, make_quiz
from quiz_grading.core.errors import (
    AuthorizationError,
    DuplicateSubmissionError,
    NotEligibleError,
    NotFoundError,
    SubmissionClosedError,
    ValidationError,
)
from quiz_grading.core.grading_manager import AssignmentStatus, GradingManager
from quiz_grading.core.models import Caller, IntegrityCounters, Role, Student, Submission
from quiz_grading.core.services.submission_store import SubmissionStore

ALL_CORRECT = {"q1": "3", "q2": "True", "q3": "domain name system", "q4": "443"}


def test_grade_returns_receipt(manager, open_assignment):
    receipt = manager.grade("a-1", "s-bce", dict(ALL_CORRECT, q4="22"))
    assert receipt.score == pytest.approx(75.0)
    assert receipt.correct_count == 3
    assert receipt.total_questions == 4
    assert receipt.is_late_submission is False


def test_receipt_hides_score_when_results_hidden(manager, open_assignment):
    manager.update_class_settings(ADMIN, "class-1", show_results=False)
    receipt = manager.grade("a-1", "s-bce", ALL_CORRECT)
    assert receipt.score is None
    assert receipt.correct_count is None
    assert receipt.submission.score == pytest.approx(100.0)


def test_duplicate_submission(manager, open_assignment):
    manager.grade("a-1", "s-bce", ALL_CORRECT)
    with pytest.raises(DuplicateSubmissionError):
        manager.grade("a-1", "s-bce", {})


def test_past_due_submission_is_closed(manager, open_assignment):
    with pytest.raises(SubmissionClosedError):
        manager.grade("a-1", "s-bce", ALL_CORRECT, now=NOW + timedelta(days=2))
    assert manager.get_assignment_status("a-1", now=NOW + timedelta(days=2)) is AssignmentStatus.CLOSED


def test_late_submission_allowed_by_class(manager, open_assignment):
    manager.update_class_settings(ADMIN, "class-1", allow_late_submissions=True)
    receipt = manager.grade("a-1", "s-bce", ALL_CORRECT, now=NOW + timedelta(days=2))
    assert receipt.is_late_submission is True


def test_not_enrolled_candidate(manager, open_assignment):
    with pytest.raises(AuthorizationError):
        manager.grade("a-1", "stranger", ALL_CORRECT)


def test_subgroup_restriction_blocks_other_branches(manager):
    manager.create_assignment(
        ADMIN, "a-bce", "quiz-1", "class-1", due_date=NOW + timedelta(days=1), time_limit=20, subgroup="BCE"
    )
    manager.grade("a-bce", "s-bce", ALL_CORRECT)
    with pytest.raises(NotEligibleError):
        manager.grade("a-bce", "s-mim", ALL_CORRECT)
    with pytest.raises(NotEligibleError):
        manager.grade("a-bce", "s-none", ALL_CORRECT)


def test_unknown_assignment(manager):
    with pytest.raises(NotFoundError):
        manager.grade("missing", "s-bce", ALL_CORRECT)


def test_answers_must_be_a_mapping(manager, open_assignment):
    with pytest.raises(ValidationError):
        manager.grade("a-1", "s-bce", ["3", "True"])


def test_draft_assignment_does_not_accept_submissions(manager):
    manager.create_assignment(
        ADMIN, "a-draft", "quiz-1", "class-1", due_date=NOW + timedelta(days=1), time_limit=20, draft=True
    )
    assert manager.get_assignment_status("a-draft") is AssignmentStatus.DRAFT
    with pytest.raises(SubmissionClosedError):
        manager.grade("a-draft", "s-bce", ALL_CORRECT)

    manager.publish_assignment(ADMIN, "a-draft")
    assert manager.get_assignment_status("a-draft") is AssignmentStatus.OPEN
    manager.grade("a-draft", "s-bce", ALL_CORRECT)


def test_extending_due_date_reopens(manager, open_assignment):
    late = NOW + timedelta(days=2)
    assert manager.get_assignment_status("a-1", now=late) is AssignmentStatus.CLOSED
    manager.update_assignment(ADMIN, "a-1", due_date=NOW + timedelta(days=3))
    assert manager.get_assignment_status("a-1", now=late) is AssignmentStatus.REOPENED
    manager.grade("a-1", "s-bce", ALL_CORRECT, now=late)


def test_allow_retake_clears_submissions(manager, open_assignment):
    manager.grade("a-1", "s-bce", dict(ALL_CORRECT, q1="2"))
    manager.grade("a-1", "s-mim", ALL_CORRECT)
    manager.update_assignment(ADMIN, "a-1", allow_retake=True)

    assert manager.summarize_integrity(ADMIN, "a-1").total_submissions == 0
    receipt = manager.grade("a-1", "s-bce", ALL_CORRECT)
    assert receipt.score == pytest.approx(100.0)


def test_update_validates_before_mutating(manager, open_assignment):
    with pytest.raises(ValidationError):
        manager.update_assignment(ADMIN, "a-1", due_date=NOW + timedelta(days=5), weightage=150)
    assignment_status = manager.get_assignment_status("a-1")
    assert assignment_status is AssignmentStatus.OPEN
    manager.update_assignment(ADMIN, "a-1", weightage=150, weightage_type="marks")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"time_limit": 0},
        {"weightage": -5},
        {"weightage": 120},
        {"weightage_type": "points"},
        {"weightage": "inf", "weightage_type": "marks"},
    ],
)
def test_create_assignment_validation(manager, kwargs):
    params = {"due_date": NOW + timedelta(days=1), "time_limit": 10}
    params.update(kwargs)
    with pytest.raises(ValidationError):
        manager.create_assignment(ADMIN, "a-bad", "quiz-1", "class-1", **params)


def test_only_the_owning_admin_manages_assignments(manager, open_assignment):
    other_admin = Caller(user_id="admin-2", role=Role.ADMIN)
    with pytest.raises(AuthorizationError):
        manager.update_assignment(other_admin, "a-1", weightage=10)
    with pytest.raises(AuthorizationError):
        manager.aggregate_class_results(candidate("s-bce"), "class-1")
    with pytest.raises(AuthorizationError):
        manager.delete_assignment(other_admin, "a-1")


def test_quiz_owner_required(manager):
    manager.add_quiz(make_quiz("quiz-2", admin_id="admin-2"))
    with pytest.raises(AuthorizationError):
        manager.create_assignment(ADMIN, "a-2", "quiz-2", "class-1", due_date=NOW, time_limit=10)


def test_delete_assignment(manager, open_assignment):
    manager.grade("a-1", "s-bce", ALL_CORRECT)
    manager.delete_assignment(ADMIN, "a-1")
    with pytest.raises(NotFoundError):
        manager.get_assignment_status("a-1")


def test_submission_detail(manager, open_assignment):
    manager.grade("a-1", "s-bce", dict(ALL_CORRECT, q2="False"))
    detail = manager.get_submission_detail(ADMIN, "a-1", "s-bce")
    assert detail.percentage == pytest.approx(75.0)
    assert detail.questions[1].candidate_answer == "False"
    assert detail.questions[1].correct_answer == "True"
    with pytest.raises(NotFoundError):
        manager.get_submission_detail(ADMIN, "a-1", "s-mim")


def test_candidate_assignment_listing(manager, open_assignment):
    manager.create_assignment(
        ADMIN, "a-mim", "quiz-1", "class-1", due_date=NOW + timedelta(hours=2), time_limit=20, subgroup="MIM"
    )
    manager.grade("a-1", "s-bce", ALL_CORRECT)

    views = manager.list_candidate_assignments(candidate("s-bce"), "class-1")
    assert [view.assignment.id for view in views] == ["a-1"]
    assert views[0].has_submitted is True
    assert views[0].score == pytest.approx(100.0)

    ravi_views = manager.list_candidate_assignments(candidate("s-mim"), "class-1")
    assert [view.assignment.id for view in ravi_views] == ["a-mim", "a-1"]
    assert ravi_views[1].has_submitted is False

    with pytest.raises(AuthorizationError):
        manager.list_candidate_assignments(ADMIN, "class-1")
    with pytest.raises(NotFoundError):
        manager.list_candidate_assignments(candidate("stranger"), "class-1")


def test_removed_student_stops_counting(manager, open_assignment):
    manager.grade("a-1", "s-bce", ALL_CORRECT)
    manager.grade("a-1", "s-mim", dict(ALL_CORRECT, q1="2"))
    manager.remove_student(ADMIN, "class-1", "s-bce")

    results = manager.aggregate_class_results(ADMIN, "class-1")
    assert [r.student_id for r in results.ranking] == ["s-mim", "s-none"]
    assert results.stats.top_percentage == pytest.approx(75.0)


def test_aggregation_end_to_end(manager):
    manager.create_assignment(ADMIN, "A", "quiz-1", "class-1", due_date=NOW + timedelta(days=1), time_limit=20, weightage=20)
    manager.create_assignment(
        ADMIN, "B", "quiz-1", "class-1", due_date=NOW + timedelta(days=2), time_limit=20, weightage=30, subgroup="BCE"
    )
    manager.grade("A", "s-bce", {"q1": "3", "q2": "True", "q3": "wrong", "q4": "80"})  # 50%
    manager.grade("B", "s-bce", ALL_CORRECT)  # 100%
    manager.grade("A", "s-mim", ALL_CORRECT)  # 100%

    results = manager.aggregate_class_results(ADMIN, "class-1")
    by_id = {r.student_id: r for r in results.ranking}
    assert by_id["s-bce"].overall_percentage == pytest.approx(80.0)  # (10 + 30) / 50
    assert by_id["s-mim"].overall_percentage == pytest.approx(100.0)
    assert by_id["s-none"].personalized_max_score == pytest.approx(20.0)
    assert results.ranking[0].student_id == "s-mim"


def test_integrity_summary_through_manager(manager, open_assignment):
    manager.grade("a-1", "s-bce", ALL_CORRECT, counters=IntegrityCounters(tab_switch_count=3))
    manager.grade("a-1", "s-mim", ALL_CORRECT)
    summary = manager.summarize_integrity(ADMIN, "a-1")
    assert summary.flagged_count == 1
    assert summary.clean_count == 1


def test_static_helpers():
    assert GradingManager.extract_branch("BCY001") == "BCY"
    assert GradingManager.resolve_eligibility("bce", "BCE,MIM") is True
    assert GradingManager.classify_integrity(IntegrityCounters(tab_switch_count=2)).label == "Flagged"


def test_concurrent_inserts_admit_exactly_one():
    store = SubmissionStore()
    barrier = Barrier(8)
    outcomes: list[str] = []

    def submit() -> None:
        barrier.wait()
        try:
            store.insert(Submission("a-1", "s-1", 100.0, NOW, False))
            outcomes.append("ok")
        except DuplicateSubmissionError:
            outcomes.append("duplicate")

    threads = [Thread(target=submit) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("duplicate") == 7
    assert len(store.list_for_assignment("a-1")) == 1


def test_concurrent_grading_through_manager(manager, open_assignment):
    barrier = Barrier(4)
    errors: list[Exception] = []

    def submit() -> None:
        barrier.wait()
        try:
            manager.grade("a-1", "s-bce", ALL_CORRECT)
        except DuplicateSubmissionError as exc:
            errors.append(exc)

    threads = [Thread(target=submit) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(errors) == 3
    assert manager.get_submission_detail(ADMIN, "a-1", "s-bce").percentage == pytest.approx(100.0)


def test_enroll_student_after_creation(manager, open_assignment):
    manager.enroll_student("class-1", Student(id="s-new", name="Lee", registration_number="BCY001"))
    manager.grade("a-1", "s-new", ALL_CORRECT)
    results = manager.aggregate_class_results(ADMIN, "class-1")
    assert results.ranking[0].student_id == "s-new"
    assert results.ranking[0].branch == "BCY"


def test_question_analytics_hardest_first(manager, open_assignment):
    manager.grade("a-1", "s-bce", {"q1": "3", "q2": "True", "q3": "wrong", "q4": "80"})
    manager.grade("a-1", "s-mim", ALL_CORRECT)
    manager.grade("a-1", "s-none", {"q1": "3"})

    analytics = manager.question_analytics(ADMIN, "a-1")
    assert analytics.quiz_title == "Networks basics"
    assert [stats.question_id for stats in analytics.questions] == ["q3", "q4", "q2", "q1"]

    by_id = {stats.question_id: stats for stats in analytics.questions}
    assert by_id["q1"].success_rate == pytest.approx(100.0)
    assert by_id["q2"].attempts == 3
    assert by_id["q2"].correct == 2
    assert by_id["q3"].incorrect == 2
    assert by_id["q3"].success_rate == pytest.approx(100 / 3)


def test_question_analytics_skips_unattempted_questions(manager, open_assignment):
    assert manager.question_analytics(ADMIN, "a-1").questions == []
    with pytest.raises(AuthorizationError):
        manager.question_analytics(Caller(user_id="admin-2", role=Role.ADMIN), "a-1")


def test_list_submissions_for_owner(manager, open_assignment):
    manager.grade("a-1", "s-bce", ALL_CORRECT)
    manager.grade("a-1", "s-mim", {"q1": "3"})

    listing = manager.list_submissions(ADMIN, "a-1")
    assert listing.total_submissions == 2
    assert [submission.candidate_id for submission in listing.submissions] == ["s-bce", "s-mim"]
    assert listing.class_title == "Computer Networks"
    assert listing.students["s-mim"].registration_number == "2024MIM007"

    with pytest.raises(AuthorizationError):
        manager.list_submissions(candidate("s-bce"), "a-1")
    with pytest.raises(NotFoundError):
        manager.list_submissions(ADMIN, "missing")
