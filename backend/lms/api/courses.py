"""
Courses API: course CRUD plus the course's sections.
  GET/POST /courses, GET/PATCH/DELETE /courses/{id}
  GET/POST /courses/{id}/sections, PUT /courses/{id}/sections/order
"""
import uuid
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from lms.api.deps import get_auth_context, parse_uuid
from lms.api.modules import reorder_to_response
from lms.database import get_db
from lms.models.course import Course, Section
from lms.permissions import AuthContext
from lms.schemas.course import (
    CourseCreate,
    CourseDetailResponse,
    CourseResponse,
    CourseUpdate,
    ReorderRequest,
    ReorderResponse,
    SectionCreate,
    SectionResponse,
)
from lms.services import content_graph

router = APIRouter(prefix="/courses", tags=["courses"])


def section_to_response(s: Section) -> SectionResponse:
    return SectionResponse(
        id=str(s.id),
        course_id=str(s.course_id),
        order=s.order,
        title=s.title,
        description=s.description or "",
        module_ids=[str(m.id) for m in s.modules],
    )


def _course_fields(c: Course) -> dict:
    return dict(
        id=str(c.id),
        title=c.title,
        description=c.description or "",
        difficulty=c.difficulty,
        status=c.status,
        content_type=c.content_type,
        category_id=str(c.category_id) if c.category_id else None,
        teacher_id=str(c.teacher_id) if c.teacher_id else None,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


def _course_data(data) -> dict:
    out = data.model_dump(exclude_unset=True)
    for key in ("category_id", "teacher_id"):
        if key in out:
            out[key] = parse_uuid(out[key], key)
    return out


@router.get("", response_model=list[CourseResponse])
def list_courses(
    status_filter: str | None = Query(None, alias="status"),
    category_id: str | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    courses = content_graph.list_courses(
        db, ctx, status=status_filter, category_id=parse_uuid(category_id, "category_id")
    )
    return [CourseResponse(**_course_fields(c)) for c in courses]


@router.post("", response_model=CourseResponse, status_code=status.HTTP_201_CREATED)
def create_course(data: CourseCreate, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    payload = data.model_dump()
    payload["category_id"] = parse_uuid(payload["category_id"], "category_id")
    payload["teacher_id"] = parse_uuid(payload["teacher_id"], "teacher_id")
    return CourseResponse(**_course_fields(content_graph.create_course(db, ctx, payload)))


@router.get("/{course_id}", response_model=CourseDetailResponse)
def get_course(course_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    """Course with its sections in order."""
    course = content_graph.get_course(db, ctx, course_id)
    return CourseDetailResponse(**_course_fields(course), sections=[section_to_response(s) for s in course.sections])


@router.patch("/{course_id}", response_model=CourseResponse)
def update_course(
    course_id: uuid.UUID,
    data: CourseUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return CourseResponse(**_course_fields(content_graph.update_course(db, ctx, course_id, _course_data(data))))


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_course(course_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    content_graph.delete_course(db, ctx, course_id)


@router.get("/{course_id}/sections", response_model=list[SectionResponse])
def list_sections(course_id: uuid.UUID, ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return [section_to_response(s) for s in content_graph.list_sections(db, ctx, course_id)]


@router.post("/{course_id}/sections", response_model=SectionResponse, status_code=status.HTTP_201_CREATED)
def attach_section(
    course_id: uuid.UUID,
    data: SectionCreate,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Append (order omitted) or insert at a free order; a taken order is 409."""
    return section_to_response(content_graph.attach_section(db, ctx, course_id, data.model_dump()))


@router.put("/{course_id}/sections/order", response_model=ReorderResponse)
def reorder_sections(
    course_id: uuid.UUID,
    data: ReorderRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    rows = content_graph.reorder_children(db, ctx, course_id, "section", data.ordered_ids)
    return reorder_to_response(rows, "section")
