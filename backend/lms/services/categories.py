"""
Category CRUD. Deleting a category leaves its courses and questions uncategorised.
"""
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lms.database import transaction
from lms.errors import CollisionError, NotFoundError, ValidationError
from lms.models.content import Question
from lms.models.course import Category, Course
from lms.permissions import AuthContext

logger = logging.getLogger(__name__)


def _get_category(db: Session, category_id: uuid.UUID) -> Category:
    category = db.get(Category, category_id)
    if not category:
        raise NotFoundError("Category", category_id)
    return category


def _clean_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required", field="name")
    return name


def list_categories(db: Session, ctx: AuthContext) -> list[Category]:
    ctx.require_any("category:read", "category:read:all")
    return db.query(Category).order_by(Category.name).all()


def get_category(db: Session, ctx: AuthContext, category_id: uuid.UUID) -> Category:
    ctx.require_any("category:read", "category:read:all")
    return _get_category(db, category_id)


def create_category(db: Session, ctx: AuthContext, name: str, description: str | None = None) -> Category:
    ctx.require("category:create")
    name = _clean_name(name)
    if db.query(Category.id).filter(Category.name == name).first():
        raise CollisionError(f"Category '{name}' already exists", field="name")
    try:
        with transaction(db):
            category = Category(name=name, description=description or "")
            db.add(category)
    except IntegrityError:
        raise CollisionError(f"Category '{name}' already exists", field="name")
    db.refresh(category)
    return category


def update_category(db: Session, ctx: AuthContext, category_id: uuid.UUID, data: dict) -> Category:
    ctx.require("category:update")
    with transaction(db):
        category = _get_category(db, category_id)
        if data.get("name") is not None:
            name = _clean_name(data["name"])
            clash = db.query(Category.id).filter(Category.name == name, Category.id != category_id).first()
            if clash:
                raise CollisionError(f"Category '{name}' already exists", field="name")
            category.name = name
        if data.get("description") is not None:
            category.description = data["description"]
    db.refresh(category)
    return category


def delete_category(db: Session, ctx: AuthContext, category_id: uuid.UUID) -> None:
    ctx.require("category:delete")
    with transaction(db):
        category = _get_category(db, category_id)
        db.query(Course).filter(Course.category_id == category_id).update(
            {Course.category_id: None}, synchronize_session=False
        )
        db.query(Question).filter(Question.category_id == category_id).update(
            {Question.category_id: None}, synchronize_session=False
        )
        db.expire(category, ["courses"])
        db.delete(category)
    logger.info("Category %s deleted by %s", category_id, ctx.user_id)
