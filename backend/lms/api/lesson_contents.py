"""
Lesson contents API: /lesson-contents CRUD.
"""
import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from lms.api.deps import get_auth_context
from lms.database import get_db
from lms.models.content import LessonContent
from lms.permissions import AuthContext
from lms.schemas.content import LessonContentCreate, LessonContentResponse, LessonContentUpdate
from lms.services import lesson_contents as content_service

router = APIRouter(prefix="/lesson-contents", tags=["lesson-contents"])


def _content_to_response(c: LessonContent) -> LessonContentResponse:
    return LessonContentResponse(
        id=str(c.id),
        title=c.title,
        content_type=c.content_type,
        body=c.body or "",
        created_by=str(c.created_by) if c.created_by else None,
        created_at=c.created_at,
    )


@router.get("", response_model=list[LessonContentResponse])
def list_lesson_contents(ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return [_content_to_response(c) for c in content_service.list_lesson_contents(db, ctx)]


@router.post("", response_model=LessonContentResponse, status_code=status.HTTP_201_CREATED)
def create_lesson_content(
    data: LessonContentCreate,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return _content_to_response(content_service.create_lesson_content(db, ctx, data.model_dump()))


@router.get("/{content_id}", response_model=LessonContentResponse)
def get_lesson_content(content_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return _content_to_response(content_service.get_lesson_content(db, ctx, content_id))


@router.patch("/{content_id}", response_model=LessonContentResponse)
def update_lesson_content(
    content_id: uuid.UUID,
    data: LessonContentUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    content = content_service.update_lesson_content(db, ctx, content_id, data.model_dump(exclude_unset=True))
    return _content_to_response(content)


@router.delete("/{content_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lesson_content(content_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    """409 while a lesson module still references the item."""
    content_service.delete_lesson_content(db, ctx, content_id)
