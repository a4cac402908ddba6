"""
Lesson content CRUD. Content items are owned independently of modules; reuse rules are enforced
when a lesson module is saved (services.content_graph), not here.
"""
import logging
import uuid

from sqlalchemy.orm import Session

from lms.database import transaction
from lms.errors import CollisionError, NotFoundError
from lms.models.content import LessonContent
from lms.models.module import LessonModuleContent
from lms.permissions import AuthContext

logger = logging.getLogger(__name__)


def get_lesson_content(db: Session, ctx: AuthContext, content_id: uuid.UUID) -> LessonContent:
    ctx.require_any("lesson_content:read", "lesson_content:read:all")
    content = db.get(LessonContent, content_id)
    if not content:
        raise NotFoundError("Lesson content", content_id)
    return content


def list_lesson_contents(db: Session, ctx: AuthContext) -> list[LessonContent]:
    perm = ctx.require_any("lesson_content:read:all", "lesson_content:read")
    q = db.query(LessonContent)
    if perm == "lesson_content:read":
        q = q.filter(LessonContent.created_by == ctx.user_id)
    return q.order_by(LessonContent.created_at.desc()).all()


def create_lesson_content(db: Session, ctx: AuthContext, data: dict) -> LessonContent:
    ctx.require("lesson_content:create")
    with transaction(db):
        content = LessonContent(
            title=data["title"],
            content_type=data.get("content_type") or "text",
            body=data.get("body") or "",
            created_by=ctx.user_id,
        )
        db.add(content)
    db.refresh(content)
    return content


def update_lesson_content(db: Session, ctx: AuthContext, content_id: uuid.UUID, data: dict) -> LessonContent:
    ctx.require("lesson_content:update")
    with transaction(db):
        content = db.get(LessonContent, content_id)
        if not content:
            raise NotFoundError("Lesson content", content_id)
        for attr in ("title", "content_type", "body"):
            if data.get(attr) is not None:
                setattr(content, attr, data[attr])
    db.refresh(content)
    return content


def delete_lesson_content(db: Session, ctx: AuthContext, content_id: uuid.UUID) -> None:
    ctx.require("lesson_content:delete")
    with transaction(db):
        content = db.get(LessonContent, content_id)
        if not content:
            raise NotFoundError("Lesson content", content_id)
        in_use = db.query(LessonModuleContent.id).filter(LessonModuleContent.content_id == content_id).first()
        if in_use:
            raise CollisionError("Lesson content is used by a lesson module; remove it from the module first")
        db.delete(content)
    logger.info("Lesson content %s deleted by %s", content_id, ctx.user_id)
