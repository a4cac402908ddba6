"""
Question bank API: /questions CRUD with type/status/tag/category filters.
"""
import uuid
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from lms.api.deps import get_auth_context, parse_uuid
from lms.database import get_db
from lms.models.content import Question
from lms.permissions import AuthContext
from lms.schemas.content import QuestionCreate, QuestionResponse, QuestionUpdate
from lms.services import questions as question_service

router = APIRouter(prefix="/questions", tags=["questions"])


def _question_to_response(q: Question) -> QuestionResponse:
    return QuestionResponse(
        id=str(q.id),
        title=q.title,
        body=q.body,
        question_type=q.question_type,
        options=q.options,
        true_false_answer=q.true_false_answer,
        text_answer=q.text_answer,
        case_sensitive=bool(q.case_sensitive),
        requires_manual_grading=bool(q.requires_manual_grading),
        feedback=q.feedback or "",
        difficulty=q.difficulty,
        tags=list(q.tags or []),
        category_id=str(q.category_id) if q.category_id else None,
        status=q.status,
        created_by=str(q.created_by) if q.created_by else None,
        created_at=q.created_at,
    )


@router.get("", response_model=list[QuestionResponse])
def list_questions(
    question_type: str | None = None,
    status_filter: str | None = Query(None, alias="status"),
    tag: str | None = None,
    category_id: str | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    items = question_service.list_questions(
        db,
        ctx,
        question_type=question_type,
        status=status_filter,
        tag=tag,
        category_id=parse_uuid(category_id, "category_id"),
    )
    return [_question_to_response(q) for q in items]


@router.post("", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
def create_question(data: QuestionCreate, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    """Answer key is validated against question_type; fields that do not apply are stored as null."""
    payload = data.model_dump()
    payload["category_id"] = parse_uuid(payload["category_id"], "category_id")
    return _question_to_response(question_service.create_question(db, ctx, payload))


@router.get("/{question_id}", response_model=QuestionResponse)
def get_question(question_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return _question_to_response(question_service.get_question(db, ctx, question_id))


@router.patch("/{question_id}", response_model=QuestionResponse)
def update_question(
    question_id: uuid.UUID,
    data: QuestionUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    payload = data.model_dump(exclude_unset=True)
    if "category_id" in payload:
        payload["category_id"] = parse_uuid(payload["category_id"], "category_id")
    return _question_to_response(question_service.update_question(db, ctx, question_id, payload))


@router.delete("/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_question(question_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    """409 while a quiz module still uses the question."""
    question_service.delete_question(db, ctx, question_id)
