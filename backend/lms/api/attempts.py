"""
Attempts API.
  Quiz attempts:   POST /quiz-attempts (start), GET /quiz-attempts, GET/DELETE /quiz-attempts/{id},
                   POST /quiz-attempts/{id}/answers (save), /submit, /grade
  Practice tests:  same shape under /practice-test-attempts
"""
import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from lms.api.deps import get_auth_context, parse_uuid
from lms.database import get_db
from lms.models.attempt import PracticeTestAttempt, QuizAttempt
from lms.permissions import AuthContext
from lms.schemas.attempt import (
    AttemptDetail,
    ManualGradeRequest,
    PracticeTestAttemptResponse,
    QuizAttemptResponse,
    SatScoreDetails,
    SectionScore,
    StartAttemptRequest,
    SubmitAttemptRequest,
)
from lms.services import attempts as attempt_service

quiz_router = APIRouter(prefix="/quiz-attempts", tags=["quiz-attempts"])
practice_router = APIRouter(prefix="/practice-test-attempts", tags=["practice-test-attempts"])


def _common_fields(a) -> dict:
    return dict(
        id=str(a.id),
        user_id=str(a.user_id),
        module_id=str(a.module_id),
        enrollment_id=str(a.enrollment_id) if a.enrollment_id else None,
        attempt_number=a.attempt_number,
        status=a.status,
        details=[AttemptDetail(**d) for d in a.details or []],
        started_at=a.started_at,
        submitted_at=a.submitted_at,
        graded_at=a.graded_at,
    )


def _quiz_attempt_to_response(a: QuizAttempt) -> QuizAttemptResponse:
    return QuizAttemptResponse(
        **_common_fields(a),
        score=a.score or 0,
        total_points_possible=a.total_points_possible or 0,
        passed=bool(a.passed),
    )


def _practice_attempt_to_response(a: PracticeTestAttempt) -> PracticeTestAttemptResponse:
    return PracticeTestAttemptResponse(
        **_common_fields(a),
        section_scores=[SectionScore(**s) for s in a.section_scores or []],
        overall_score=a.overall_score or 0,
        overall_total_points=a.overall_total_points or 0,
        sat_score_details=SatScoreDetails(**a.sat_score_details) if a.sat_score_details else None,
    )


# --- quiz attempts ---


@quiz_router.post("", response_model=QuizAttemptResponse, status_code=status.HTTP_201_CREATED)
def start_quiz_attempt(data: StartAttemptRequest, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    attempt = attempt_service.start_quiz_attempt(db, ctx, parse_uuid(data.module_id, "module_id"))
    return _quiz_attempt_to_response(attempt)


@quiz_router.get("", response_model=list[QuizAttemptResponse])
def list_quiz_attempts(
    module_id: str | None = None,
    user_id: str | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    items = attempt_service.list_quiz_attempts(
        db, ctx, module_id=parse_uuid(module_id, "module_id"), user_id=parse_uuid(user_id, "user_id")
    )
    return [_quiz_attempt_to_response(a) for a in items]


@quiz_router.get("/{attempt_id}", response_model=QuizAttemptResponse)
def get_quiz_attempt(attempt_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return _quiz_attempt_to_response(attempt_service.get_quiz_attempt(db, ctx, attempt_id))


@quiz_router.post("/{attempt_id}/answers", response_model=QuizAttemptResponse)
def save_quiz_answers(
    attempt_id: uuid.UUID,
    data: SubmitAttemptRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return _quiz_attempt_to_response(attempt_service.save_quiz_answers(db, ctx, attempt_id, data.answers))


@quiz_router.post("/{attempt_id}/submit", response_model=QuizAttemptResponse)
def submit_quiz_attempt(
    attempt_id: uuid.UUID,
    data: SubmitAttemptRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return _quiz_attempt_to_response(attempt_service.submit_quiz_attempt(db, ctx, attempt_id, data.answers))


@quiz_router.post("/{attempt_id}/grade", response_model=QuizAttemptResponse)
def grade_quiz_attempt(
    attempt_id: uuid.UUID,
    data: ManualGradeRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    attempt = attempt_service.manual_grade_quiz_attempt(
        db, ctx, attempt_id, parse_uuid(data.question_id, "question_id"), data.points_earned, data.notes
    )
    return _quiz_attempt_to_response(attempt)


@quiz_router.delete("/{attempt_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_quiz_attempt(attempt_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    attempt_service.delete_quiz_attempt(db, ctx, attempt_id)


# --- practice tests ---


@practice_router.post("", response_model=PracticeTestAttemptResponse, status_code=status.HTTP_201_CREATED)
def start_practice_test(data: StartAttemptRequest, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    attempt = attempt_service.start_practice_test(db, ctx, parse_uuid(data.module_id, "module_id"))
    return _practice_attempt_to_response(attempt)


@practice_router.get("", response_model=list[PracticeTestAttemptResponse])
def list_practice_test_attempts(
    module_id: str | None = None,
    user_id: str | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    items = attempt_service.list_practice_test_attempts(
        db, ctx, module_id=parse_uuid(module_id, "module_id"), user_id=parse_uuid(user_id, "user_id")
    )
    return [_practice_attempt_to_response(a) for a in items]


@practice_router.get("/{attempt_id}", response_model=PracticeTestAttemptResponse)
def get_practice_test_attempt(attempt_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return _practice_attempt_to_response(attempt_service.get_practice_test_attempt(db, ctx, attempt_id))


@practice_router.post("/{attempt_id}/answers", response_model=PracticeTestAttemptResponse)
def save_practice_test_answers(
    attempt_id: uuid.UUID,
    data: SubmitAttemptRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return _practice_attempt_to_response(attempt_service.save_practice_test_answers(db, ctx, attempt_id, data.answers))


@practice_router.post("/{attempt_id}/submit", response_model=PracticeTestAttemptResponse)
def submit_practice_test(
    attempt_id: uuid.UUID,
    data: SubmitAttemptRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return _practice_attempt_to_response(attempt_service.submit_practice_test(db, ctx, attempt_id, data.answers))


@practice_router.post("/{attempt_id}/grade", response_model=PracticeTestAttemptResponse)
def grade_practice_test(
    attempt_id: uuid.UUID,
    data: ManualGradeRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    attempt = attempt_service.manual_grade_practice_test(
        db, ctx, attempt_id, parse_uuid(data.question_id, "question_id"), data.points_earned, data.notes
    )
    return _practice_attempt_to_response(attempt)


@practice_router.delete("/{attempt_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_practice_test_attempt(attempt_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    attempt_service.delete_practice_test_attempt(db, ctx, attempt_id)
