"""
Enrollments API.
  POST /enrollments (admin enroll), GET /enrollments, GET/DELETE /enrollments/{id}
  POST /enrollments/{id}/access, /progress, /reset, /complete-content, /complete-module
  PATCH /enrollments/{id}/status
"""
import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from lms.api.deps import get_auth_context, parse_uuid
from lms.database import get_db
from lms.models.enrollment import Enrollment
from lms.permissions import AuthContext
from lms.schemas.enrollment import (
    CompleteContentRequest,
    CompleteModuleRequest,
    EnrollmentResponse,
    EnrollmentStatusUpdate,
    EnrollRequest,
)
from lms.services import enrollment as enrollment_service

router = APIRouter(prefix="/enrollments", tags=["enrollments"])


def _enrollment_to_response(e: Enrollment) -> EnrollmentResponse:
    return EnrollmentResponse(
        id=str(e.id),
        user_id=str(e.user_id),
        course_id=str(e.course_id),
        status=e.status,
        enrollment_date=e.enrollment_date,
        last_accessed_at=e.last_accessed_at,
        progress_percentage=e.progress_percentage or 0,
        completed_content_ids=list(e.completed_content_ids or []),
        completed_module_ids=list(e.completed_module_ids or []),
    )


@router.post("", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
def enroll(data: EnrollRequest, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    """409 when the user is already enrolled in the course."""
    enrollment = enrollment_service.enroll(
        db, ctx, parse_uuid(data.user_id, "user_id"), parse_uuid(data.course_id, "course_id")
    )
    return _enrollment_to_response(enrollment)


@router.get("", response_model=list[EnrollmentResponse])
def list_enrollments(
    course_id: str | None = None,
    user_id: str | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Admins: every enrollment (optionally by course/user). Others: their own."""
    items = enrollment_service.list_enrollments(
        db, ctx, course_id=parse_uuid(course_id, "course_id"), user_id=parse_uuid(user_id, "user_id")
    )
    return [_enrollment_to_response(e) for e in items]


@router.get("/{enrollment_id}", response_model=EnrollmentResponse)
def get_enrollment(enrollment_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return _enrollment_to_response(enrollment_service.get_enrollment(db, ctx, enrollment_id))


@router.delete("/{enrollment_id}", status_code=status.HTTP_204_NO_CONTENT)
def unenroll(enrollment_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    enrollment_service.unenroll(db, ctx, enrollment_id)


@router.post("/{enrollment_id}/access", response_model=EnrollmentResponse)
def touch_access(enrollment_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return _enrollment_to_response(enrollment_service.touch_access(db, ctx, enrollment_id))


@router.post("/{enrollment_id}/progress", response_model=EnrollmentResponse)
def recompute_progress(enrollment_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return _enrollment_to_response(enrollment_service.recompute_progress(db, ctx, enrollment_id))


@router.post("/{enrollment_id}/reset", response_model=EnrollmentResponse)
def reset_progress(enrollment_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return _enrollment_to_response(enrollment_service.reset_progress(db, ctx, enrollment_id))


@router.post("/{enrollment_id}/complete-content", response_model=EnrollmentResponse)
def complete_content(
    enrollment_id: uuid.UUID,
    data: CompleteContentRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    content_id = parse_uuid(data.content_id, "content_id")
    return _enrollment_to_response(enrollment_service.mark_content_complete(db, ctx, enrollment_id, content_id))


@router.post("/{enrollment_id}/complete-module", response_model=EnrollmentResponse)
def complete_module(
    enrollment_id: uuid.UUID,
    data: CompleteModuleRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    module_id = parse_uuid(data.module_id, "module_id")
    return _enrollment_to_response(enrollment_service.mark_module_complete(db, ctx, enrollment_id, module_id))


@router.patch("/{enrollment_id}/status", response_model=EnrollmentResponse)
def update_status(
    enrollment_id: uuid.UUID,
    data: EnrollmentStatusUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return _enrollment_to_response(enrollment_service.update_enrollment_status(db, ctx, enrollment_id, data.status))
