"""
Sibling ordering: dense 1..n `order` values under one parent, append-at-end for new children,
and atomic reorder from a full list of sibling ids.

Sibling kinds map to (model, parent column, parent model):
  section        -> Section.course_id          (Course)
  module         -> Module.section_id          (Section)
  test_quiz      -> TestModuleQuiz.test_module_id  (Module), ids are quiz module ids
  lesson_content -> LessonModuleContent.module_id  (Module), ids are content ids
  quiz_question  -> QuizModuleQuestion.module_id   (Module), ids are question ids

Reorder writes in two phases (temporary values above the current maximum, then 1..n) inside the
caller's transaction so the (parent, order) unique constraint never sees a duplicate.
"""
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from lms.errors import NotFoundError, OrderMismatchError, ValidationError
from lms.models.course import Course, Section
from lms.models.module import Module, LessonModuleContent, QuizModuleQuestion, TestModuleQuiz
from lms.models.types import coerce_uuid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SiblingKind:
    model: type
    parent_model: type
    parent_attr: str
    id_attr: str  # attribute identifying a sibling in reorder requests


SIBLING_KINDS: dict[str, SiblingKind] = {
    "section": SiblingKind(Section, Course, "course_id", "id"),
    "module": SiblingKind(Module, Section, "section_id", "id"),
    "test_quiz": SiblingKind(TestModuleQuiz, Module, "test_module_id", "quiz_module_id"),
    "lesson_content": SiblingKind(LessonModuleContent, Module, "module_id", "content_id"),
    "quiz_question": SiblingKind(QuizModuleQuestion, Module, "module_id", "question_id"),
}


def _kind(sibling_kind: str) -> SiblingKind:
    try:
        return SIBLING_KINDS[sibling_kind]
    except KeyError:
        raise ValidationError(f"Unknown sibling kind '{sibling_kind}'", field="sibling_kind")


def _siblings(db: Session, kind: SiblingKind, parent_id: uuid.UUID) -> list:
    parent_col = getattr(kind.model, kind.parent_attr)
    return (
        db.query(kind.model)
        .filter(parent_col == parent_id)
        .order_by(kind.model.order)
        .all()
    )


def lock_parent(db: Session, sibling_kind: str, parent_id: uuid.UUID):
    """Load the parent row FOR UPDATE so concurrent reorders of the same parent serialize. NotFoundError if missing."""
    kind = _kind(sibling_kind)
    parent = db.execute(
        select(kind.parent_model).where(kind.parent_model.id == parent_id).with_for_update()
    ).scalar_one_or_none()
    if parent is None:
        raise NotFoundError(kind.parent_model.__name__, parent_id)
    return parent


def next_order(db: Session, sibling_kind: str, parent_id: uuid.UUID | None) -> int:
    """max(existing order) + 1, or 1 for an empty parent. Freed values are never reused."""
    kind = _kind(sibling_kind)
    parent_col = getattr(kind.model, kind.parent_attr)
    current = db.query(func.max(kind.model.order)).filter(parent_col == parent_id).scalar()
    return (current or 0) + 1


def order_taken(db: Session, sibling_kind: str, parent_id: uuid.UUID, order: int, exclude_id=None) -> bool:
    kind = _kind(sibling_kind)
    parent_col = getattr(kind.model, kind.parent_attr)
    q = db.query(kind.model.id).filter(parent_col == parent_id, kind.model.order == order)
    if exclude_id is not None:
        q = q.filter(kind.model.id != exclude_id)
    return q.first() is not None


def _write_orders(db: Session, rows: list, max_current: int) -> None:
    """Assign rows[i].order = i+1 via a temporary band above max_current."""
    offset = max(max_current, len(rows))
    for i, row in enumerate(rows):
        row.order = offset + i + 1
    db.flush()
    for i, row in enumerate(rows):
        row.order = i + 1
    db.flush()


def reorder(db: Session, parent_id: uuid.UUID, sibling_kind: str, new_ordered_ids: list) -> list:
    """
    Set order = index+1 following new_ordered_ids. The list must be a permutation of the current
    sibling ids (same length, same members), otherwise OrderMismatchError and nothing is written.
    Runs inside the caller's transaction; returns the siblings in their new order.
    """
    kind = _kind(sibling_kind)
    lock_parent(db, sibling_kind, parent_id)
    siblings = _siblings(db, kind, parent_id)
    by_id = {getattr(s, kind.id_attr): s for s in siblings}

    try:
        requested = [coerce_uuid(i) for i in new_ordered_ids]
    except ValueError:
        raise OrderMismatchError("Reorder ids must be valid UUIDs", field="ordered_ids")
    if len(requested) != len(set(requested)):
        raise OrderMismatchError("Reorder ids contain duplicates", field="ordered_ids")
    if len(requested) != len(siblings) or set(requested) != set(by_id):
        missing = sorted(str(i) for i in set(by_id) - set(requested))
        unknown = sorted(str(i) for i in set(requested) - set(by_id))
        raise OrderMismatchError(
            f"Reorder ids must be a permutation of the current {sibling_kind} ids "
            f"(missing={missing}, unknown={unknown})",
            field="ordered_ids",
        )

    rows = [by_id[i] for i in requested]
    max_current = max((s.order for s in siblings), default=0)
    _write_orders(db, rows, max_current)
    logger.info("Reordered %s %s(s) under parent %s", len(rows), sibling_kind, parent_id)
    return rows


def compact(db: Session, sibling_kind: str, parent_id: uuid.UUID | None) -> None:
    """Close gaps after a sibling was removed: keep relative order, renumber 1..n."""
    if parent_id is None:
        return
    kind = _kind(sibling_kind)
    siblings = _siblings(db, kind, parent_id)
    if all(s.order == i + 1 for i, s in enumerate(siblings)):
        return
    _write_orders(db, siblings, max((s.order for s in siblings), default=0))
