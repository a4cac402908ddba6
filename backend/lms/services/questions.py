"""
Question bank: answer-key validation per question_type and CRUD.

Exactly one answer representation is stored per question; the save path clears the others, so
switching question_type on update drops the previous type's answer key.
"""
import logging
import uuid

from sqlalchemy.orm import Session

from lms.database import transaction
from lms.errors import CollisionError, NotFoundError, ValidationError
from lms.models.content import Question, TEXT_QUESTION_TYPES, QUESTION_TYPES
from lms.models.course import Category
from lms.models.module import QuizModuleQuestion
from lms.permissions import AuthContext

logger = logging.getLogger(__name__)

ANSWER_FIELDS = ("options", "true_false_answer", "text_answer")


def normalize_answer_key(question_type: str, data: dict) -> dict:
    """
    Validate the answer payload for question_type and return {options, true_false_answer, text_answer}
    with the fields that do not apply set to None. Raises ValidationError naming the offending field.
    """
    if question_type not in QUESTION_TYPES:
        raise ValidationError(f"Invalid question type '{question_type}'", field="question_type")
    options = data.get("options")
    tf = data.get("true_false_answer")
    text = data.get("text_answer")
    manual = bool(data.get("requires_manual_grading"))

    if question_type == "multipleChoice":
        if not isinstance(options, list) or len(options) < 2:
            raise ValidationError("Multiple choice questions must have at least 2 options", field="options")
        cleaned = []
        for i, opt in enumerate(options):
            if not isinstance(opt, dict):
                raise ValidationError(f"Option {i + 1} must be an object with text and isCorrect", field="options")
            opt_text = str(opt.get("text") or "").strip()
            if not opt_text:
                raise ValidationError(f"Option {i + 1} text cannot be empty", field="options")
            cleaned.append({"text": opt_text, "isCorrect": bool(opt.get("isCorrect"))})
        if not any(o["isCorrect"] for o in cleaned):
            raise ValidationError("Multiple choice questions need at least one correct option", field="options")
        if tf is not None or text is not None:
            raise ValidationError("Multiple choice questions only use options", field="options")
        if manual:
            raise ValidationError("Multiple choice questions are always auto-graded", field="requires_manual_grading")
        return {"options": cleaned, "true_false_answer": None, "text_answer": None}

    if question_type == "trueFalse":
        if options:
            raise ValidationError("True/false questions take no options", field="options")
        if not isinstance(tf, bool):
            raise ValidationError("True/false questions require a boolean answer", field="true_false_answer")
        if text is not None:
            raise ValidationError("True/false questions only use true_false_answer", field="text_answer")
        if manual:
            raise ValidationError("True/false questions are always auto-graded", field="requires_manual_grading")
        return {"options": None, "true_false_answer": tf, "text_answer": None}

    # shortAnswer / fillInTheBlank
    if options:
        raise ValidationError(f"{question_type} questions take no options", field="options")
    if tf is not None:
        raise ValidationError(f"{question_type} questions only use text_answer", field="true_false_answer")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError(f"{question_type} questions require a non-empty answer", field="text_answer")
    return {"options": None, "true_false_answer": None, "text_answer": text.strip()}


def _check_category(db: Session, category_id):
    if category_id is not None and db.get(Category, category_id) is None:
        raise NotFoundError("Category", category_id)


def get_question(db: Session, ctx: AuthContext, question_id: uuid.UUID) -> Question:
    ctx.require_any("question:read", "question:read:all")
    q = db.get(Question, question_id)
    if not q:
        raise NotFoundError("Question", question_id)
    return q


def list_questions(
    db: Session,
    ctx: AuthContext,
    question_type: str | None = None,
    status: str | None = None,
    tag: str | None = None,
    category_id: uuid.UUID | None = None,
) -> list[Question]:
    perm = ctx.require_any("question:read:all", "question:read")
    q = db.query(Question)
    if perm == "question:read":
        q = q.filter(Question.created_by == ctx.user_id)
    if question_type:
        q = q.filter(Question.question_type == question_type)
    if status:
        q = q.filter(Question.status == status)
    if category_id:
        q = q.filter(Question.category_id == category_id)
    items = q.order_by(Question.created_at.desc()).all()
    if tag:
        # tags is a JSON list; filtered here to stay portable across SQLite and PostgreSQL
        items = [i for i in items if tag in (i.tags or [])]
    return items


def create_question(db: Session, ctx: AuthContext, data: dict) -> Question:
    ctx.require("question:create")
    question_type = data.get("question_type")
    answer = normalize_answer_key(question_type, data)
    manual = bool(data.get("requires_manual_grading")) and question_type in TEXT_QUESTION_TYPES
    with transaction(db):
        _check_category(db, data.get("category_id"))
        q = Question(
            title=data["title"],
            body=data["body"],
            question_type=question_type,
            case_sensitive=bool(data.get("case_sensitive", False)),
            requires_manual_grading=manual,
            feedback=data.get("feedback") or "",
            difficulty=data.get("difficulty") or "medium",
            tags=list(data.get("tags") or []),
            category_id=data.get("category_id"),
            status=data.get("status") or "draft",
            created_by=ctx.user_id,
            **answer,
        )
        db.add(q)
    db.refresh(q)
    logger.info("Question %s created (%s)", q.id, q.question_type)
    return q


def update_question(db: Session, ctx: AuthContext, question_id: uuid.UUID, data: dict) -> Question:
    """Partial update. Any change to type or answer fields re-validates the whole answer key."""
    ctx.require("question:update")
    q = db.get(Question, question_id)
    if not q:
        raise NotFoundError("Question", question_id)
    question_type = data.get("question_type") or q.question_type
    type_changed = question_type != q.question_type
    touches_answer = type_changed or any(k in data for k in ANSWER_FIELDS + ("requires_manual_grading",))
    with transaction(db):
        if touches_answer:
            merged = {
                "requires_manual_grading": data.get(
                    "requires_manual_grading", False if type_changed else q.requires_manual_grading
                ),
            }
            for k in ANSWER_FIELDS:
                # On a type switch only the incoming payload counts; the old representation is discarded
                merged[k] = data[k] if k in data else (None if type_changed else getattr(q, k))
            answer = normalize_answer_key(question_type, merged)
            q.question_type = question_type
            for k, v in answer.items():
                setattr(q, k, v)
            q.requires_manual_grading = bool(merged["requires_manual_grading"]) and question_type in TEXT_QUESTION_TYPES
        if "category_id" in data:
            _check_category(db, data["category_id"])
            q.category_id = data["category_id"]
        for attr in ("title", "body", "feedback", "difficulty", "status", "case_sensitive"):
            if data.get(attr) is not None:
                setattr(q, attr, data[attr])
        if data.get("tags") is not None:
            q.tags = list(data["tags"])
    db.refresh(q)
    return q


def delete_question(db: Session, ctx: AuthContext, question_id: uuid.UUID) -> None:
    ctx.require("question:delete")
    with transaction(db):
        q = db.get(Question, question_id)
        if not q:
            raise NotFoundError("Question", question_id)
        if db.query(QuizModuleQuestion.id).filter(QuizModuleQuestion.question_id == question_id).first():
            raise CollisionError("Question is used by a quiz module; remove it from the quiz first")
        db.delete(q)
