"""
Modules API: lesson / quiz / test modules, quiz membership of tests, and reorder of a module's children.
  POST /modules, GET /modules, GET/PUT/DELETE /modules/{id}
  POST /modules/{id}/quizzes, DELETE /modules/{id}/quizzes/{quiz_id}
  PUT /modules/{id}/quizzes/order | /contents/order | /questions/order
"""
import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from lms.api.deps import get_auth_context, parse_uuid
from lms.database import get_db
from lms.models.module import Module
from lms.permissions import AuthContext
from lms.schemas.course import ReorderRequest, ReorderResponse
from lms.schemas.module import AttachQuizRequest, ModulePayload, ModuleResponse, QuizQuestionResponse
from lms.services import content_graph
from lms.services.ordering import SIBLING_KINDS

router = APIRouter(prefix="/modules", tags=["modules"])


def module_to_response(m: Module) -> ModuleResponse:
    course_id = m.course_id
    out = ModuleResponse(
        id=str(m.id),
        module_type=m.module_type,
        title=m.title,
        description=m.description or "",
        status=m.status,
        section_id=str(m.section_id) if m.section_id else None,
        course_id=str(course_id) if course_id else None,
        order=m.order,
        created_at=m.created_at,
        updated_at=m.updated_at,
    )
    if m.module_type == "lesson":
        out.content_ids = [str(c) for c in m.content_ids]
        out.progress_bar = m.progress_bar
    elif m.module_type == "quiz":
        out.questions = [
            QuizQuestionResponse(question_id=str(link.question_id), points=link.points, order=link.order)
            for link in m.question_links
        ]
        for attr in (
            "questions_per_page",
            "question_navigation",
            "question_shuffle",
            "shuffle_options",
            "max_attempts",
            "time_limit_minutes",
            "passing_score_percentage",
            "available_from",
            "available_until",
            "direction",
            "timer_end_behavior",
        ):
            setattr(out, attr, getattr(m, attr))
    else:
        out.quiz_module_ids = [str(q) for q in m.quiz_module_ids]
        out.is_sat = m.is_sat
    return out


def reorder_to_response(rows: list, sibling_kind: str) -> ReorderResponse:
    id_attr = SIBLING_KINDS[sibling_kind].id_attr
    return ReorderResponse(items=[{"id": str(getattr(r, id_attr)), "order": r.order} for r in rows])


def _save(db: Session, ctx: AuthContext, payload, module_id: uuid.UUID | None) -> Module:
    data = payload.model_dump()
    section_id = parse_uuid(data.pop("section_id", None), "section_id")
    return content_graph.attach_module(db, ctx, section_id, data, module_id=module_id)


@router.post("", response_model=ModuleResponse, status_code=status.HTTP_201_CREATED)
def create_module(payload: ModulePayload, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    """Create a module under section_id, or standalone when section_id is null."""
    return module_to_response(_save(db, ctx, payload, None))


@router.get("", response_model=list[ModuleResponse])
def list_modules(
    section_id: str | None = None,
    standalone: bool = False,
    module_type: str | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    modules = content_graph.list_modules(
        db, ctx, section_id=parse_uuid(section_id, "section_id"), standalone=standalone, module_type=module_type
    )
    return [module_to_response(m) for m in modules]


@router.get("/{module_id}", response_model=ModuleResponse)
def get_module(module_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return module_to_response(content_graph.get_module(db, ctx, module_id))


@router.put("/{module_id}", response_model=ModuleResponse)
def replace_module(
    module_id: uuid.UUID,
    payload: ModulePayload,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Full replace. Changing module_type clears the previous variant's fields and links."""
    return module_to_response(_save(db, ctx, payload, module_id))


@router.delete("/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_module(module_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    content_graph.delete_module(db, ctx, module_id)


@router.post("/{module_id}/quizzes", response_model=ModuleResponse)
def attach_quiz(
    module_id: uuid.UUID,
    data: AttachQuizRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    quiz_id = parse_uuid(data.quiz_module_id, "quiz_module_id")
    return module_to_response(content_graph.attach_quiz_to_test(db, ctx, module_id, quiz_id))


@router.delete("/{module_id}/quizzes/{quiz_module_id}", response_model=ModuleResponse)
def detach_quiz(
    module_id: uuid.UUID,
    quiz_module_id: uuid.UUID,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return module_to_response(content_graph.detach_quiz_from_test(db, ctx, module_id, quiz_module_id))


def _reorder(db: Session, ctx: AuthContext, module_id: uuid.UUID, kind: str, data: ReorderRequest) -> ReorderResponse:
    rows = content_graph.reorder_children(db, ctx, module_id, kind, data.ordered_ids)
    return reorder_to_response(rows, kind)


@router.put("/{module_id}/quizzes/order", response_model=ReorderResponse)
def reorder_test_quizzes(
    module_id: uuid.UUID,
    data: ReorderRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return _reorder(db, ctx, module_id, "test_quiz", data)


@router.put("/{module_id}/contents/order", response_model=ReorderResponse)
def reorder_lesson_contents(
    module_id: uuid.UUID,
    data: ReorderRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return _reorder(db, ctx, module_id, "lesson_content", data)


@router.put("/{module_id}/questions/order", response_model=ReorderResponse)
def reorder_quiz_questions(
    module_id: uuid.UUID,
    data: ReorderRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return _reorder(db, ctx, module_id, "quiz_question", data)
