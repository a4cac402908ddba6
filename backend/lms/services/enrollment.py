"""
Enrollment tracking: (user, course) links, last-access timestamps and progress percentage.

Progress units for a course are its lesson content items (through lesson modules) plus its quiz and
test modules. progress = visited units / total units * 100, clamped to [0, 100].
"""
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lms.database import transaction
from lms.errors import AlreadyEnrolledError, NotFoundError, ValidationError
from lms.models.course import Course, Section
from lms.models.enrollment import Enrollment, ENROLLMENT_STATUSES
from lms.models.module import Module
from lms.models.user import User
from lms.permissions import AuthContext

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(dt: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


def _get_enrollment(db: Session, enrollment_id: uuid.UUID) -> Enrollment:
    enrollment = db.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFoundError("Enrollment", enrollment_id)
    return enrollment


def find_enrollment(db: Session, user_id: uuid.UUID, course_id: uuid.UUID) -> Enrollment | None:
    return (
        db.query(Enrollment)
        .filter(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
        .first()
    )


def course_units(db: Session, course_id: uuid.UUID) -> tuple[set[str], set[str]]:
    """(content unit ids, module unit ids) for the course, as strings."""
    contents: set[str] = set()
    modules: set[str] = set()
    rows = (
        db.query(Module)
        .join(Section, Module.section_id == Section.id)
        .filter(Section.course_id == course_id)
        .all()
    )
    for m in rows:
        if m.module_type == "lesson":
            contents.update(str(c) for c in m.content_ids)
        else:
            modules.add(str(m.id))
    return contents, modules


def compute_progress(db: Session, enrollment: Enrollment) -> int:
    contents, modules = course_units(db, enrollment.course_id)
    total = len(contents) + len(modules)
    if total == 0:
        return 0
    visited = len(contents & set(enrollment.completed_content_ids or [])) + len(
        modules & set(enrollment.completed_module_ids or [])
    )
    return max(0, min(100, round(visited * 100 / total)))


def apply_progress(db: Session, enrollment: Enrollment) -> int:
    """Persist the recomputed percentage on the row (caller commits) and move status along."""
    pct = compute_progress(db, enrollment)
    enrollment.progress_percentage = pct
    if enrollment.status != "dropped":
        if pct >= 100:
            enrollment.status = "completed"
        elif pct > 0:
            enrollment.status = "in-progress"
    return pct


def touch(enrollment: Enrollment, when: datetime | None = None) -> None:
    """lastAccessedAt = max(previous, now); never moves backwards."""
    when = when or _now()
    previous = _aware(enrollment.last_accessed_at)
    if previous is None or when > previous:
        enrollment.last_accessed_at = when


def mark_module_done(db: Session, enrollment: Enrollment, module_id: uuid.UUID) -> int:
    done = list(enrollment.completed_module_ids or [])
    if str(module_id) not in done:
        done.append(str(module_id))
        enrollment.completed_module_ids = done
    return apply_progress(db, enrollment)


def enroll(db: Session, ctx: AuthContext, user_id: uuid.UUID, course_id: uuid.UUID) -> Enrollment:
    """Admin enroll. Duplicate (user, course) -> AlreadyEnrolledError (precheck plus unique constraint)."""
    ctx.require("admin:enrollment:create")
    if db.get(User, user_id) is None:
        raise NotFoundError("User", user_id)
    if db.get(Course, course_id) is None:
        raise NotFoundError("Course", course_id)
    if find_enrollment(db, user_id, course_id):
        raise AlreadyEnrolledError("User is already enrolled in this course")
    try:
        with transaction(db):
            enrollment = Enrollment(user_id=user_id, course_id=course_id, status="enrolled", progress_percentage=0)
            db.add(enrollment)
    except IntegrityError:
        logger.warning("Enrollment race lost for user=%s course=%s", user_id, course_id)
        raise AlreadyEnrolledError("User is already enrolled in this course")
    db.refresh(enrollment)
    logger.info("User %s enrolled in course %s by %s", user_id, course_id, ctx.user_id)
    return enrollment


def unenroll(db: Session, ctx: AuthContext, enrollment_id: uuid.UUID) -> None:
    """Hard delete. Attempt history stays (attempts only lose their enrollment link)."""
    ctx.require("admin:enrollment:delete")
    with transaction(db):
        enrollment = _get_enrollment(db, enrollment_id)
        db.delete(enrollment)
    logger.info("Enrollment %s removed by %s", enrollment_id, ctx.user_id)


def get_enrollment(db: Session, ctx: AuthContext, enrollment_id: uuid.UUID) -> Enrollment:
    enrollment = _get_enrollment(db, enrollment_id)
    if not ctx.has("admin:enrollment:read"):
        ctx.require_owner_or_all("enrollment", "read", enrollment.user_id)
    return enrollment


def list_enrollments(
    db: Session,
    ctx: AuthContext,
    course_id: uuid.UUID | None = None,
    user_id: uuid.UUID | None = None,
) -> list[Enrollment]:
    """Admins see any enrollment; others only their own."""
    q = db.query(Enrollment)
    if ctx.has("admin:enrollment:read"):
        if user_id is not None:
            q = q.filter(Enrollment.user_id == user_id)
    else:
        ctx.require("enrollment:read")
        q = q.filter(Enrollment.user_id == ctx.user_id)
    if course_id is not None:
        q = q.filter(Enrollment.course_id == course_id)
    return q.order_by(Enrollment.enrollment_date.desc()).all()


def _require_update(ctx: AuthContext, enrollment: Enrollment) -> None:
    if ctx.has("admin:enrollment:update"):
        return
    ctx.require_owner_or_all("enrollment", "update", enrollment.user_id)


def touch_access(db: Session, ctx: AuthContext, enrollment_id: uuid.UUID) -> Enrollment:
    """Called whenever the user opens course content. Idempotent."""
    with transaction(db):
        enrollment = _get_enrollment(db, enrollment_id)
        _require_update(ctx, enrollment)
        touch(enrollment)
    db.refresh(enrollment)
    return enrollment


def recompute_progress(db: Session, ctx: AuthContext, enrollment_id: uuid.UUID) -> Enrollment:
    with transaction(db):
        enrollment = _get_enrollment(db, enrollment_id)
        _require_update(ctx, enrollment)
        apply_progress(db, enrollment)
    db.refresh(enrollment)
    return enrollment


def mark_content_complete(db: Session, ctx: AuthContext, enrollment_id: uuid.UUID, content_id: uuid.UUID) -> Enrollment:
    """Record a visited lesson content item of the enrolled course and recompute progress."""
    with transaction(db):
        enrollment = _get_enrollment(db, enrollment_id)
        _require_update(ctx, enrollment)
        contents, _ = course_units(db, enrollment.course_id)
        if str(content_id) not in contents:
            raise NotFoundError("Lesson content in course", content_id)
        done = list(enrollment.completed_content_ids or [])
        if str(content_id) not in done:
            done.append(str(content_id))
            enrollment.completed_content_ids = done
        touch(enrollment)
        apply_progress(db, enrollment)
    db.refresh(enrollment)
    return enrollment


def update_enrollment_status(db: Session, ctx: AuthContext, enrollment_id: uuid.UUID, status: str) -> Enrollment:
    ctx.require("admin:enrollment:update")
    if status not in ENROLLMENT_STATUSES:
        raise ValidationError(f"Invalid enrollment status '{status}'", field="status")
    with transaction(db):
        enrollment = _get_enrollment(db, enrollment_id)
        enrollment.status = status
    db.refresh(enrollment)
    return enrollment


def mark_module_complete(db: Session, ctx: AuthContext, enrollment_id: uuid.UUID, module_id: uuid.UUID) -> Enrollment:
    """Record a completed quiz/test module of the enrolled course and recompute progress."""
    with transaction(db):
        enrollment = _get_enrollment(db, enrollment_id)
        _require_update(ctx, enrollment)
        _, modules = course_units(db, enrollment.course_id)
        if str(module_id) not in modules:
            raise NotFoundError("Assessment module in course", module_id)
        touch(enrollment)
        mark_module_done(db, enrollment, module_id)
    db.refresh(enrollment)
    return enrollment


def reset_progress(db: Session, ctx: AuthContext, enrollment_id: uuid.UUID) -> Enrollment:
    """Start the course over: completion lists cleared, back to 'enrolled'. Attempts are kept."""
    with transaction(db):
        enrollment = _get_enrollment(db, enrollment_id)
        _require_update(ctx, enrollment)
        enrollment.completed_content_ids = []
        enrollment.completed_module_ids = []
        enrollment.progress_percentage = 0
        enrollment.status = "enrolled"
        touch(enrollment)
    db.refresh(enrollment)
    logger.info("Enrollment %s progress reset by %s", enrollment.id, ctx.user_id)
    return enrollment
