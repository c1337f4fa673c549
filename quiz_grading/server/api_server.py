"""FastAPI server exposing the grading core to the surrounding platform."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Thread

from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel, Field
import uvicorn

from quiz_grading.constants.grading_constants import DISPLAY_DECIMALS
from quiz_grading.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quiz_grading.core.errors import (
    AuthorizationError,
    DuplicateSubmissionError,
    GradingError,
    NotEligibleError,
    NotFoundError,
    SubmissionClosedError,
    ValidationError,
)
from quiz_grading.core.grading_manager import GradingManager
from quiz_grading.core.integrity_classifier import IntegrityReport
from quiz_grading.core.models import Caller, IntegrityCounters, ProctoringData, Role

_STATUS_BY_ERROR: dict[type[GradingError], int] = {
    ValidationError: 422,
    NotFoundError: 404,
    DuplicateSubmissionError: 409,
    SubmissionClosedError: 403,
    NotEligibleError: 403,
    AuthorizationError: 403,
}


def _to_http(exc: GradingError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), 400)
    return HTTPException(status_code=status_code, detail=str(exc))


def _iso(moment: datetime | None) -> str | None:
    if moment is None:
        return None
    return moment.astimezone(timezone.utc).isoformat()


class ProctoringPayload(BaseModel):
    """Violation counters reported by the proctoring client."""

    suspicious_movements: int = 0
    multiple_faces_detected: int = 0
    no_face_detected: int = 0
    looking_away: int = 0
    phone_detected: int = 0
    audio_anomalies: int = 0
    tab_switching: int = 0
    total_violations: int | None = None


class CountersPayload(BaseModel):
    tab_switch_count: int = 0
    esc_count: int = 0
    was_fullscreen: bool = False
    proctoring_data: ProctoringPayload | None = None

    def to_counters(self) -> IntegrityCounters:
        proctoring = None
        if self.proctoring_data is not None:
            proctoring = ProctoringData(**self.proctoring_data.model_dump())
        return IntegrityCounters(
            tab_switch_count=self.tab_switch_count,
            esc_count=self.esc_count,
            was_fullscreen=self.was_fullscreen,
            proctoring=proctoring,
        )


class SubmitPayload(CountersPayload):
    """Payload schema for a quiz submission: answers keyed by question id."""

    answers: dict[str, str] = Field(default_factory=dict)


def _report_to_dict(report: IntegrityReport) -> dict[str, object]:
    return {
        "level": report.level.value,
        "label": report.label,
        "combined_tab_switches": report.combined_tab_switches,
        "total_violations": report.total_violations,
    }


def _get_manager_dependency(manager: GradingManager):
    def dependency() -> GradingManager:
        return manager

    return dependency


def get_caller(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Caller:
    """Identity forwarded by the authentication layer in front of this service."""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="Missing caller identity.")
    try:
        role = Role(x_user_role.lower())
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Unknown caller role.") from exc
    return Caller(user_id=x_user_id, role=role)


def create_api_app(manager: GradingManager) -> FastAPI:
    """Create a FastAPI application wired to the provided grading manager."""
    app = FastAPI(title="Quiz Grading API", version="0.1.0")
    manager_dep = _get_manager_dependency(manager)

    @app.get("/branch")
    def get_branch(registration_number: str = "", grading: GradingManager = Depends(manager_dep)) -> dict[str, object]:
        return {"branch": grading.extract_branch(registration_number)}

    @app.get("/eligibility")
    def get_eligibility(
        subgroup: str = "",
        branch: str | None = None,
        grading: GradingManager = Depends(manager_dep),
    ) -> dict[str, object]:
        return {"eligible": grading.resolve_eligibility(branch, subgroup)}

    @app.post("/integrity/classify")
    def classify(payload: CountersPayload, grading: GradingManager = Depends(manager_dep)) -> dict[str, object]:
        return _report_to_dict(grading.classify_integrity(payload.to_counters()))

    @app.post("/assignments/{assignment_id}/submissions", status_code=201)
    def submit_quiz(
        assignment_id: str,
        payload: SubmitPayload,
        caller: Caller = Depends(get_caller),
        grading: GradingManager = Depends(manager_dep),
    ) -> dict[str, object]:
        if caller.role is not Role.CANDIDATE:
            raise HTTPException(status_code=403, detail="Only candidates can submit quizzes.")
        try:
            receipt = grading.grade(
                assignment_id,
                caller.user_id,
                payload.answers,
                counters=payload.to_counters(),
            )
        except GradingError as exc:
            raise _to_http(exc) from exc

        late = receipt.is_late_submission
        return {
            "message": "Late submission recorded successfully!" if late else "Quiz submitted successfully!",
            "score": receipt.score,
            "correct_count": receipt.correct_count,
            "total_questions": receipt.total_questions,
            "show_results": receipt.show_results,
            "is_late_submission": late,
            "submitted_at": _iso(receipt.submission.submitted_at),
        }

    @app.get("/assignments/{assignment_id}/submissions/{candidate_id}")
    def get_submission_detail(
        assignment_id: str,
        candidate_id: str,
        caller: Caller = Depends(get_caller),
        grading: GradingManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            detail = grading.get_submission_detail(caller, assignment_id, candidate_id)
        except GradingError as exc:
            raise _to_http(exc) from exc
        return {
            "assignment_id": detail.assignment_id,
            "candidate_id": detail.candidate_id,
            "quiz": {"id": detail.quiz_id, "title": detail.quiz_title},
            "submitted_at": _iso(detail.submitted_at),
            "is_late_submission": detail.is_late_submission,
            "score": round(detail.percentage, DISPLAY_DECIMALS),
            "statistics": {
                "total_questions": detail.total_questions,
                "correct_answers": detail.correct_answers,
                "incorrect_answers": detail.incorrect_answers,
            },
            "questions": [
                {
                    "question_id": item.question_id,
                    "question_text": item.text,
                    "question_type": item.type.value,
                    "options": item.options,
                    "correct_answer": item.correct_answer,
                    "candidate_answer": item.candidate_answer,
                    "is_correct": item.is_correct,
                }
                for item in detail.questions
            ],
        }

    @app.get("/assignments/{assignment_id}/integrity")
    def get_integrity_summary(
        assignment_id: str,
        caller: Caller = Depends(get_caller),
        grading: GradingManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            summary = grading.summarize_integrity(caller, assignment_id)
        except GradingError as exc:
            raise _to_http(exc) from exc
        return {
            "assignment_id": summary.assignment_id,
            "total_submissions": summary.total_submissions,
            "clean_submissions": summary.clean_count,
            "suspicious_submissions": summary.suspicious_count,
            "high_risk_submissions": summary.high_risk_count,
            "average_tab_switches": round(summary.average_tab_switches, 1),
            "submissions": [
                {
                    "candidate_id": entry.candidate_id,
                    "esc_count": entry.esc_count,
                    "was_fullscreen": entry.was_fullscreen,
                    **_report_to_dict(entry.report),
                }
                for entry in summary.entries
            ],
        }

    @app.get("/assignments/{assignment_id}/submissions")
    def list_submissions(
        assignment_id: str,
        caller: Caller = Depends(get_caller),
        grading: GradingManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            listing = grading.list_submissions(caller, assignment_id)
        except GradingError as exc:
            raise _to_http(exc) from exc

        rows = []
        for submission in listing.submissions:
            student = listing.students.get(submission.candidate_id)
            rows.append(
                {
                    "candidate_id": submission.candidate_id,
                    "name": student.name if student else None,
                    "registration_number": student.registration_number if student else None,
                    "score": round(submission.score, DISPLAY_DECIMALS),
                    "submitted_at": _iso(submission.submitted_at),
                    "is_late_submission": submission.is_late_submission,
                }
            )
        return {
            "assignment_id": listing.assignment.id,
            "quiz_title": listing.quiz_title,
            "class_title": listing.class_title,
            "due_date": _iso(listing.assignment.due_date),
            "time_limit": listing.assignment.time_limit,
            "total_submissions": listing.total_submissions,
            "submissions": rows,
        }

    @app.get("/assignments/{assignment_id}/analytics/questions")
    def get_question_analytics(
        assignment_id: str,
        caller: Caller = Depends(get_caller),
        grading: GradingManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            analytics = grading.question_analytics(caller, assignment_id)
        except GradingError as exc:
            raise _to_http(exc) from exc
        return {
            "assignment_id": analytics.assignment_id,
            "quiz": {"id": analytics.quiz_id, "title": analytics.quiz_title},
            "questions": [
                {
                    "question_id": stats.question_id,
                    "question_text": stats.text,
                    "question_type": stats.type.value,
                    "total_attempts": stats.attempts,
                    "correct_attempts": stats.correct,
                    "incorrect_attempts": stats.incorrect,
                    "success_rate": round(stats.success_rate, DISPLAY_DECIMALS),
                }
                for stats in analytics.questions
            ],
        }

    @app.get("/classes/{class_id}/results")
    def get_class_results(
        class_id: str,
        caller: Caller = Depends(get_caller),
        grading: GradingManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            results = grading.aggregate_class_results(caller, class_id)
        except GradingError as exc:
            raise _to_http(exc) from exc
        return results.as_dict()

    @app.get("/classes/{class_id}/assignments")
    def get_candidate_assignments(
        class_id: str,
        caller: Caller = Depends(get_caller),
        grading: GradingManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        try:
            views = grading.list_candidate_assignments(caller, class_id)
        except GradingError as exc:
            raise _to_http(exc) from exc
        return [
            {
                "assignment_id": view.assignment.id,
                "quiz_id": view.assignment.quiz_id,
                "due_date": _iso(view.assignment.due_date),
                "time_limit": view.assignment.time_limit,
                "subgroup": str(view.assignment.subgroup),
                "status": view.status.value,
                "has_submitted": view.has_submitted,
                "submitted_at": _iso(view.submitted_at),
                "is_late_submission": view.is_late_submission,
                "score": view.score,
            }
            for view in views
        ]

    return app


def start_api_server(
    manager: GradingManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="GradingApiServer", daemon=True)
    thread.start()
    return thread
