"""
Content graph: Course -> Section -> Module -> {LessonContent | Question | quiz Module}.

Every public function takes an AuthContext, checks its permission before touching the session, and
runs its writes inside one transaction: either all invariants hold and the change commits, or a typed
error is raised and nothing changes.

Invariants enforced here:
  - section order unique within a course; module order unique within a section
  - a lesson content item is used by at most one lesson module per course
  - a quiz appears at most once per test, and only published quizzes can be added
  - module variant fields: only the current module_type's fields are set
  - deleting a section unlinks its modules (standalone, order kept) instead of deleting them
  - a test keeps at least one quiz; a quiz inside a test stays a published quiz
  - a module with attempts cannot be deleted
"""
import logging
import uuid
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lms.database import transaction
from lms.errors import CollisionError, DuplicateContentError, NotFoundError, ValidationError
from lms.models.attempt import PracticeTestAttempt, QuizAttempt
from lms.models.content import LessonContent, Question
from lms.models.course import Category, Course, Section
from lms.models.module import (
    Module,
    LessonModuleContent,
    QuizModuleQuestion,
    TestModuleQuiz,
    MODULE_TYPES,
    QUESTION_NAVIGATION,
    TIMER_END_BEHAVIORS,
    UNLIMITED_ATTEMPTS,
)
from lms.models.user import User
from lms.models.types import coerce_uuid
from lms.permissions import AuthContext
from lms.services import ordering

logger = logging.getLogger(__name__)

# Defaults applied to the active variant; every other variant's columns are set to None.
VARIANT_FIELDS: dict[str, dict] = {
    "lesson": {"progress_bar": False},
    "quiz": {
        "questions_per_page": 1,
        "question_navigation": "sequence",
        "question_shuffle": False,
        "shuffle_options": False,
        "max_attempts": UNLIMITED_ATTEMPTS,
        "time_limit_minutes": None,
        "passing_score_percentage": 0,
        "available_from": None,
        "available_until": None,
        "direction": "",
        "timer_end_behavior": "auto-submit",
    },
    "test": {"is_sat": False},
}


# --- Courses ---------------------------------------------------------------


def _get_course(db: Session, course_id: uuid.UUID) -> Course:
    course = db.get(Course, course_id)
    if not course:
        raise NotFoundError("Course", course_id)
    return course


def _check_course_refs(db: Session, data: dict) -> None:
    if data.get("category_id") is not None and db.get(Category, data["category_id"]) is None:
        raise NotFoundError("Category", data["category_id"])
    if data.get("teacher_id") is not None and db.get(User, data["teacher_id"]) is None:
        raise NotFoundError("User", data["teacher_id"])


def create_course(db: Session, ctx: AuthContext, data: dict) -> Course:
    ctx.require("course:create")
    with transaction(db):
        _check_course_refs(db, data)
        course = Course(
            title=data["title"],
            description=data.get("description") or "",
            difficulty=data.get("difficulty") or "beginner",
            status=data.get("status") or "draft",
            content_type=data.get("content_type") or "course_lesson",
            category_id=data.get("category_id"),
            teacher_id=data.get("teacher_id"),
        )
        db.add(course)
    db.refresh(course)
    logger.info("Course %s created by %s", course.id, ctx.user_id)
    return course


def get_course(db: Session, ctx: AuthContext, course_id: uuid.UUID) -> Course:
    """`course:read:all` sees every course; `course:read` sees published ones and courses it teaches."""
    perm = ctx.require_any("course:read:all", "course:read")
    course = _get_course(db, course_id)
    if perm == "course:read" and course.status != "published" and course.teacher_id != ctx.user_id:
        raise NotFoundError("Course", course_id)
    return course


def list_courses(
    db: Session,
    ctx: AuthContext,
    status: str | None = None,
    category_id: uuid.UUID | None = None,
) -> list[Course]:
    perm = ctx.require_any("course:read:all", "course:read")
    q = db.query(Course)
    if perm == "course:read":
        q = q.filter((Course.status == "published") | (Course.teacher_id == ctx.user_id))
    if status:
        q = q.filter(Course.status == status)
    if category_id:
        q = q.filter(Course.category_id == category_id)
    return q.order_by(Course.created_at.desc()).all()


def update_course(db: Session, ctx: AuthContext, course_id: uuid.UUID, data: dict) -> Course:
    ctx.require("course:update")
    with transaction(db):
        course = _get_course(db, course_id)
        _check_course_refs(db, data)
        for attr in ("title", "description", "difficulty", "status", "content_type"):
            if data.get(attr) is not None:
                setattr(course, attr, data[attr])
        for attr in ("category_id", "teacher_id"):
            if attr in data:
                setattr(course, attr, data[attr])
    db.refresh(course)
    return course


def delete_course(db: Session, ctx: AuthContext, course_id: uuid.UUID) -> None:
    """Remove the course and its sections; modules become standalone, enrollments are removed."""
    ctx.require("course:delete")
    with transaction(db):
        course = _get_course(db, course_id)
        for section in list(course.sections):
            _unlink_section(db, section)
        db.expire(course, ["sections"])
        db.delete(course)
    logger.info("Course %s deleted by %s", course_id, ctx.user_id)


# --- Sections --------------------------------------------------------------


def _get_section(db: Session, section_id: uuid.UUID) -> Section:
    section = db.get(Section, section_id)
    if not section:
        raise NotFoundError("Section", section_id)
    return section


def attach_section(db: Session, ctx: AuthContext, course_id: uuid.UUID, data: dict) -> Section:
    """
    Add a section to a course. Unspecified order appends at max+1; an explicit order that an existing
    sibling already holds is a CollisionError.
    """
    ctx.require("section:create")
    try:
        with transaction(db):
            ordering.lock_parent(db, "section", course_id)
            order = data.get("order")
            if order is None:
                order = ordering.next_order(db, "section", course_id)
            elif order < 1:
                raise ValidationError("Section order must be a positive integer", field="order")
            elif ordering.order_taken(db, "section", course_id, order):
                raise CollisionError(f"Section order {order} is already used in this course", field="order")
            section = Section(
                course_id=course_id,
                order=order,
                title=data["title"],
                description=data.get("description") or "",
            )
            db.add(section)
    except IntegrityError:
        # (course_id, order) unique: a concurrent insert took this position
        logger.warning("Section order race lost in course %s", course_id)
        raise CollisionError("Another section took this position at the same time; try again", field="order")
    db.refresh(section)
    logger.info("Section %s attached to course %s at order %s", section.id, course_id, section.order)
    return section


def get_section(db: Session, ctx: AuthContext, section_id: uuid.UUID) -> Section:
    ctx.require_any("section:read", "section:read:all")
    return _get_section(db, section_id)


def list_sections(db: Session, ctx: AuthContext, course_id: uuid.UUID) -> list[Section]:
    ctx.require_any("section:read", "section:read:all")
    _get_course(db, course_id)
    return db.query(Section).filter(Section.course_id == course_id).order_by(Section.order).all()


def update_section(db: Session, ctx: AuthContext, section_id: uuid.UUID, data: dict) -> Section:
    """Title/description only; order changes go through reorder."""
    ctx.require("section:update")
    with transaction(db):
        section = _get_section(db, section_id)
        if data.get("title") is not None:
            section.title = data["title"]
        if data.get("description") is not None:
            section.description = data["description"]
    db.refresh(section)
    return section


def _unlink_section(db: Session, section: Section) -> list[Module]:
    modules = db.query(Module).filter(Module.section_id == section.id).all()
    for m in modules:
        m.section_id = None
    db.flush()
    db.delete(section)
    db.flush()
    return modules


def detach_section(db: Session, ctx: AuthContext, section_id: uuid.UUID) -> list[Module]:
    """
    Delete a section. Its modules are kept as standalone modules (section=None) with their order
    unchanged; the remaining sections of the course are renumbered 1..n.
    """
    ctx.require("section:delete")
    with transaction(db):
        section = _get_section(db, section_id)
        course_id = section.course_id
        modules = _unlink_section(db, section)
        ordering.compact(db, "section", course_id)
    logger.info("Section %s deleted; %s module(s) now standalone", section_id, len(modules))
    return modules


# --- Modules ---------------------------------------------------------------


def _get_module(db: Session, module_id: uuid.UUID) -> Module:
    module = db.get(Module, module_id)
    if not module:
        raise NotFoundError("Module", module_id)
    return module


def _as_uuid(value, field: str) -> uuid.UUID:
    try:
        return coerce_uuid(value)
    except ValueError:
        raise ValidationError(f"Invalid id '{value}'", field=field)


def validate_module_payload(module_type: str, payload: dict) -> None:
    """Type-specific required-field checks. Raises ValidationError naming the field."""
    if module_type not in MODULE_TYPES:
        raise ValidationError(f"Invalid module type '{module_type}'", field="module_type")
    if not (payload.get("title") or "").strip():
        raise ValidationError("Module title is required", field="title")
    order = payload.get("order")
    if order is not None and order < 1:
        raise ValidationError("Module order must be a positive integer", field="order")

    if module_type == "lesson":
        content_ids = payload.get("content_ids") or []
        if len(content_ids) < 1:
            raise ValidationError("Lesson modules need at least one content item", field="content_ids")
        ids = [_as_uuid(c, "content_ids") for c in content_ids]
        if len(set(ids)) != len(ids):
            raise ValidationError("A content item is listed twice in this lesson", field="content_ids")
        return

    if module_type == "quiz":
        questions = payload.get("questions") or []
        if len(questions) < 1:
            raise ValidationError("Quiz modules need at least one question", field="questions")
        ids = [_as_uuid(q.get("question_id"), "questions") for q in questions]
        if len(set(ids)) != len(ids):
            raise ValidationError("A question is listed twice in this quiz", field="questions")
        for q in questions:
            points = q.get("points", 1)
            if points is None or points < 0:
                raise ValidationError("Question points cannot be negative", field="questions")
        per_page = payload.get("questions_per_page", 1)
        if per_page is None or per_page < 1:
            raise ValidationError("questions_per_page must be at least 1", field="questions_per_page")
        passing = payload.get("passing_score_percentage", 0)
        if passing is None or not 0 <= passing <= 100:
            raise ValidationError("passing_score_percentage must be between 0 and 100", field="passing_score_percentage")
        max_attempts = payload.get("max_attempts")
        if max_attempts is not None and max_attempts != UNLIMITED_ATTEMPTS and max_attempts < 1:
            raise ValidationError("max_attempts must be -1 (unlimited) or at least 1", field="max_attempts")
        limit = payload.get("time_limit_minutes")
        if limit is not None and limit < 0:
            raise ValidationError("time_limit_minutes cannot be negative", field="time_limit_minutes")
        nav = payload.get("question_navigation")
        if nav is not None and nav not in QUESTION_NAVIGATION:
            raise ValidationError("question_navigation must be sequence or free", field="question_navigation")
        timer = payload.get("timer_end_behavior")
        if timer is not None and timer not in TIMER_END_BEHAVIORS:
            raise ValidationError("Invalid timer_end_behavior", field="timer_end_behavior")
        start, end = payload.get("available_from"), payload.get("available_until")
        if isinstance(start, datetime) and isinstance(end, datetime) and start > end:
            raise ValidationError("available_from must be before available_until", field="available_until")
        return

    quiz_ids = payload.get("quiz_module_ids") or []
    if len(quiz_ids) < 1:
        raise ValidationError("Test modules need at least one quiz module", field="quiz_module_ids")
    ids = [_as_uuid(q, "quiz_module_ids") for q in quiz_ids]
    if len(set(ids)) != len(ids):
        raise ValidationError("A quiz can appear at most once per test", field="quiz_module_ids")


def used_content_ids(db: Session, course_id: uuid.UUID, exclude_module_id: uuid.UUID | None = None) -> set[uuid.UUID]:
    """Content ids referenced by lesson modules anywhere in the course, except the excluded module."""
    used: set[uuid.UUID] = set()
    sections = db.query(Section).filter(Section.course_id == course_id).all()
    for section in sections:
        for m in section.modules:
            if m.module_type != "lesson" or m.id == exclude_module_id:
                continue
            used.update(m.content_ids)
    return used


def _check_duplicate_content(db: Session, course_id: uuid.UUID, content_ids: list[uuid.UUID], module_id) -> None:
    clash = used_content_ids(db, course_id, exclude_module_id=module_id) & set(content_ids)
    if clash:
        logger.warning("Duplicate lesson content in course %s: %s", course_id, sorted(map(str, clash)))
        raise DuplicateContentError(
            "Lesson content is already used by another lesson module in this course",
            content_ids=sorted(clash, key=str),
        )


def _check_quiz_for_test(db: Session, quiz_module_id: uuid.UUID, test_module_id=None) -> Module:
    quiz = db.get(Module, quiz_module_id)
    if not quiz:
        raise NotFoundError("Quiz module", quiz_module_id)
    if quiz.module_type != "quiz":
        raise ValidationError("Tests can only contain quiz modules", field="quiz_module_ids")
    if test_module_id is not None and quiz.id == test_module_id:
        raise ValidationError("A test cannot contain itself", field="quiz_module_ids")
    if quiz.status != "published":
        raise ValidationError(f"Quiz module {quiz.id} is not published", field="quiz_module_ids")
    return quiz


def _check_quiz_edit(db: Session, quiz: Module, new_type: str, new_status: str) -> None:
    """A quiz that belongs to a test must stay a published quiz until it is removed from the test."""
    in_tests = db.query(TestModuleQuiz.id).filter(TestModuleQuiz.quiz_module_id == quiz.id).first()
    if not in_tests:
        return
    if new_type != "quiz":
        raise CollisionError("Module is used as a quiz in a test; remove it from the test first", field="module_type")
    if new_status != "published":
        raise CollisionError("Quiz is used in a test and must stay published; remove it from the test first", field="status")


def _apply_variant(module: Module, module_type: str, payload: dict) -> None:
    for variant, defaults in VARIANT_FIELDS.items():
        for attr, default in defaults.items():
            if variant != module_type:
                setattr(module, attr, None)
                continue
            value = payload.get(attr)
            setattr(module, attr, default if value is None else value)
    if module_type == "quiz" and module.max_attempts is None:
        module.max_attempts = UNLIMITED_ATTEMPTS


def _rewrite_links(db: Session, module: Module, module_type: str, payload: dict) -> None:
    # Old links are flushed out first so the (module, order) unique constraints never see both sets
    module.content_links.clear()
    module.question_links.clear()
    module.quiz_links.clear()
    db.flush()
    if module_type == "lesson":
        for i, cid in enumerate(payload["content_ids"]):
            module.content_links.append(LessonModuleContent(content_id=_as_uuid(cid, "content_ids"), order=i + 1))
    elif module_type == "quiz":
        for i, q in enumerate(payload["questions"]):
            module.question_links.append(
                QuizModuleQuestion(question_id=_as_uuid(q["question_id"], "questions"), points=q.get("points", 1), order=i + 1)
            )
    else:
        for i, qid in enumerate(payload["quiz_module_ids"]):
            module.quiz_links.append(TestModuleQuiz(quiz_module_id=_as_uuid(qid, "quiz_module_ids"), order=i + 1))
    db.flush()


def _check_references(db: Session, module_type: str, payload: dict, module_id) -> None:
    if module_type == "lesson":
        for cid in payload["content_ids"]:
            if db.get(LessonContent, _as_uuid(cid, "content_ids")) is None:
                raise NotFoundError("Lesson content", cid)
    elif module_type == "quiz":
        for q in payload["questions"]:
            if db.get(Question, _as_uuid(q["question_id"], "questions")) is None:
                raise NotFoundError("Question", q["question_id"])
    else:
        for qid in payload["quiz_module_ids"]:
            _check_quiz_for_test(db, _as_uuid(qid, "quiz_module_ids"), test_module_id=module_id)


def attach_module(
    db: Session,
    ctx: AuthContext,
    section_id: uuid.UUID | None,
    payload: dict,
    module_id: uuid.UUID | None = None,
) -> Module:
    """
    Create (module_id=None) or fully replace a module and place it under section_id, or leave it
    standalone when section_id is None. Lesson modules are rejected with DuplicateContentError when
    any of their content is already used by another lesson module of the same course.
    """
    ctx.require("module:update" if module_id else "module:create")
    module_type = payload.get("module_type")
    validate_module_payload(module_type, payload)

    try:
        with transaction(db):
            module = _get_module(db, module_id) if module_id else None
            section = ordering.lock_parent(db, "module", section_id) if section_id else None
            _check_references(db, module_type, payload, module_id)
            if module is not None and module.module_type == "quiz":
                _check_quiz_edit(db, module, module_type, payload.get("status") or "draft")

            if module_type == "lesson" and section is not None:
                ids = [_as_uuid(c, "content_ids") for c in payload["content_ids"]]
                _check_duplicate_content(db, section.course_id, ids, module_id)

            old_section_id = module.section_id if module is not None else None
            moving = module is None or old_section_id != section_id
            order = payload.get("order")
            if section_id is not None:
                if order is None:
                    order = ordering.next_order(db, "module", section_id) if moving else module.order
                elif ordering.order_taken(db, "module", section_id, order, exclude_id=module_id):
                    raise CollisionError(f"Module order {order} is already used in this section", field="order")
            elif order is None:
                order = module.order if module is not None else 1

            if module is None:
                module = Module(module_type=module_type, title=payload["title"], order=order)
                db.add(module)
            module.module_type = module_type
            module.title = payload["title"]
            module.description = payload.get("description") or ""
            module.status = payload.get("status") or "draft"
            module.section_id = section_id
            module.order = order
            _apply_variant(module, module_type, payload)
            db.flush()
            _rewrite_links(db, module, module_type, payload)

            if module_id and old_section_id is not None and old_section_id != section_id:
                ordering.compact(db, "module", old_section_id)
    except IntegrityError:
        # (section_id, order) unique: a concurrent insert took this position
        logger.warning("Module order race lost in section %s", section_id)
        raise CollisionError("Another module took this position at the same time; try again", field="order")
    db.refresh(module)
    logger.info(
        "Module %s (%s) saved in section %s at order %s",
        module.id, module.module_type, module.section_id, module.order,
    )
    return module


def get_module(db: Session, ctx: AuthContext, module_id: uuid.UUID) -> Module:
    ctx.require_any("module:read", "module:read:all")
    return _get_module(db, module_id)


def list_modules(
    db: Session,
    ctx: AuthContext,
    section_id: uuid.UUID | None = None,
    standalone: bool = False,
    module_type: str | None = None,
) -> list[Module]:
    ctx.require_any("module:read", "module:read:all")
    q = db.query(Module)
    if section_id is not None:
        _get_section(db, section_id)
        q = q.filter(Module.section_id == section_id)
    elif standalone:
        q = q.filter(Module.section_id.is_(None))
    if module_type:
        q = q.filter(Module.module_type == module_type)
    return q.order_by(Module.section_id, Module.order, Module.created_at).all()


def delete_module(db: Session, ctx: AuthContext, module_id: uuid.UUID) -> None:
    """
    Delete a module, drop it from any test that contains it, renumber the remaining siblings.
    CollisionError when attempts exist for it, or when it is the last quiz of a test.
    """
    ctx.require("module:delete")
    with transaction(db):
        module = _get_module(db, module_id)
        section_id = module.section_id
        attempts = (
            db.query(QuizAttempt.id).filter(QuizAttempt.module_id == module_id).count()
            + db.query(PracticeTestAttempt.id).filter(PracticeTestAttempt.module_id == module_id).count()
        )
        if attempts:
            raise CollisionError(f"Module has {attempts} attempt(s); delete them before deleting the module")
        links = db.query(TestModuleQuiz).filter(TestModuleQuiz.quiz_module_id == module_id).all()
        for link in links:
            remaining = db.query(TestModuleQuiz.id).filter(TestModuleQuiz.test_module_id == link.test_module_id).count()
            if remaining <= 1:
                raise CollisionError(
                    f"Module is the only quiz of test {link.test_module_id}; add another quiz or delete the test first",
                    field="quiz_module_ids",
                )
        test_ids = {link.test_module_id for link in links}
        for link in links:
            db.delete(link)
        db.flush()
        db.delete(module)
        db.flush()
        for test_id in test_ids:
            ordering.compact(db, "test_quiz", test_id)
        ordering.compact(db, "module", section_id)
    logger.info("Module %s deleted by %s", module_id, ctx.user_id)


def _get_test_module(db: Session, test_module_id: uuid.UUID) -> Module:
    test = _get_module(db, test_module_id)
    if test.module_type != "test":
        raise ValidationError("Module is not a test module", field="module_type")
    return test


def attach_quiz_to_test(db: Session, ctx: AuthContext, test_module_id: uuid.UUID, quiz_module_id: uuid.UUID) -> Module:
    """Append a published quiz to a test. A quiz may appear at most once per test."""
    ctx.require("module:update")
    with transaction(db):
        test = _get_test_module(db, test_module_id)
        _check_quiz_for_test(db, quiz_module_id, test_module_id=test.id)
        if quiz_module_id in test.quiz_module_ids:
            raise CollisionError("Quiz is already part of this test", field="quiz_module_id")
        order = ordering.next_order(db, "test_quiz", test.id)
        db.add(TestModuleQuiz(test_module_id=test.id, quiz_module_id=quiz_module_id, order=order))
    db.refresh(test)
    return test


def detach_quiz_from_test(db: Session, ctx: AuthContext, test_module_id: uuid.UUID, quiz_module_id: uuid.UUID) -> Module:
    """Remove a quiz from a test. The test must keep at least one quiz."""
    ctx.require("module:update")
    with transaction(db):
        test = _get_test_module(db, test_module_id)
        link = (
            db.query(TestModuleQuiz)
            .filter(TestModuleQuiz.test_module_id == test.id, TestModuleQuiz.quiz_module_id == quiz_module_id)
            .first()
        )
        if not link:
            raise NotFoundError("Quiz in test", quiz_module_id)
        if len(test.quiz_links) <= 1:
            raise ValidationError("Test modules need at least one quiz module", field="quiz_module_ids")
        db.delete(link)
        db.flush()
        ordering.compact(db, "test_quiz", test.id)
    db.refresh(test)
    return test


REORDER_PERMISSIONS = {
    "section": "section:update",
    "module": "module:update",
    "test_quiz": "module:update",
    "lesson_content": "module:update",
    "quiz_question": "module:update",
}


def reorder_children(db: Session, ctx: AuthContext, parent_id: uuid.UUID, sibling_kind: str, ordered_ids: list) -> list:
    """Permission-gated, transactional wrapper around ordering.reorder."""
    ctx.require(REORDER_PERMISSIONS.get(sibling_kind, "module:update"))
    with transaction(db):
        rows = ordering.reorder(db, parent_id, sibling_kind, ordered_ids)
    return rows
