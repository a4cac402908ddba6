"""
Attempt lifecycle for quizzes and practice tests:

    in-progress --submit--> submitted --auto-grade--> graded
                                                  +-> partially-graded --manual grade (all done)--> graded

start snapshots the question plan (question ids, points, quiz module) into `details`; save records
responses while in progress; submit records the final responses and auto-grades; manual grading fills
the open-ended questions. Each operation is one transaction. Quiz attempts use `quiz_attempt:*`
permissions, practice tests `practice_test:*`.

Timed quizzes: a submit later than started_at + time_limit_minutes (plus the configured grace) is
overdue. With timer_end_behavior "auto-submit" an overdue submit grades the answers saved before the
deadline and ignores late ones; with "strict-zero-score" it scores zero and does not pass.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lms.config import settings
from lms.database import transaction
from lms.errors import (
    AttemptLimitError,
    CollisionError,
    InvalidStateError,
    NotEnrolledError,
    NotFoundError,
    ValidationError,
    WindowClosedError,
)
from lms.models.attempt import QuizAttempt, PracticeTestAttempt
from lms.models.content import Question
from lms.models.enrollment import Enrollment
from lms.models.module import Module
from lms.permissions import AuthContext
from lms.services import grading
from lms.services.enrollment import find_enrollment, mark_module_done, touch, _aware

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptKind:
    model: type
    resource: str
    module_type: str
    label: str


QUIZ = AttemptKind(QuizAttempt, "quiz_attempt", "quiz", "Quiz attempt")
PRACTICE_TEST = AttemptKind(PracticeTestAttempt, "practice_test", "test", "Practice test attempt")


def _now() -> datetime:
    return datetime.now(timezone.utc)


# --- shared helpers ---------------------------------------------------------


def _get_module_of_type(db: Session, module_id: uuid.UUID, module_type: str) -> Module:
    module = db.get(Module, module_id)
    if not module:
        raise NotFoundError("Module", module_id)
    if module.module_type != module_type:
        raise ValidationError(f"Module is not a {module_type} module", field="module_id")
    return module


def _eligible_enrollment(db: Session, ctx: AuthContext, module: Module) -> Enrollment:
    course_id = module.course_id
    if course_id is None:
        raise ValidationError("Module is not attached to a course", field="module_id")
    enrollment = find_enrollment(db, ctx.user_id, course_id)
    if not enrollment:
        raise NotEnrolledError("You are not enrolled in the course that contains this module")
    return enrollment


def check_window(module: Module, now: datetime) -> None:
    start = _aware(module.available_from)
    end = _aware(module.available_until)
    if start is not None and now < start:
        raise WindowClosedError(f"'{module.title}' opens at {start.isoformat()}")
    if end is not None and now > end:
        raise WindowClosedError(f"'{module.title}' closed at {end.isoformat()}")


def _attempt_stats(db: Session, kind: AttemptKind, user_id: uuid.UUID, module_id: uuid.UUID) -> tuple[int, int]:
    """(attempts held, highest attempt number) for user+module."""
    count, highest = (
        db.query(func.count(kind.model.id), func.max(kind.model.attempt_number))
        .filter(kind.model.user_id == user_id, kind.model.module_id == module_id)
        .one()
    )
    return count or 0, highest or 0


def _quiz_details(quiz: Module) -> list[dict]:
    return [grading.new_detail(link.question, link.points, quiz.id) for link in quiz.question_links]


def _insert_attempt(db: Session, kind: AttemptKind, attempt) -> None:
    try:
        with transaction(db):
            db.add(attempt)
    except IntegrityError:
        # Unique (user, module, attempt_number): a concurrent start took this number
        logger.warning("%s start raced for user=%s module=%s", kind.label, attempt.user_id, attempt.module_id)
        raise CollisionError("Another attempt was started at the same time; try again")
    db.refresh(attempt)


def _get_attempt(db: Session, kind: AttemptKind, attempt_id: uuid.UUID):
    attempt = db.get(kind.model, attempt_id)
    if not attempt:
        raise NotFoundError(kind.label, attempt_id)
    return attempt


def _require_submitter(ctx: AuthContext, kind: AttemptKind, attempt) -> None:
    ctx.require(f"{kind.resource}:create")
    if attempt.user_id != ctx.user_id:
        raise NotFoundError(kind.label, attempt.id)


def _check_answer_keys(details: list[dict], answers: dict) -> None:
    known = {d["question_id"] for d in details}
    unknown = [k for k in answers if str(k) not in known]
    if unknown:
        raise ValidationError(f"Answers reference questions outside this attempt: {unknown}", field="answers")


def _record_responses(details: list[dict], answers: dict) -> list[dict]:
    """Copy of details with `response` replaced for every answered question; nothing is graded."""
    _check_answer_keys(details, answers)
    responses = {str(k): v for k, v in answers.items()}
    out = []
    for d in details:
        d = dict(d)
        if d["question_id"] in responses:
            d["response"] = responses[d["question_id"]]
        out.append(d)
    return out


def _grade_responses(db: Session, details: list[dict]) -> list[dict]:
    ids = [uuid.UUID(d["question_id"]) for d in details]
    questions = {str(q.id): q for q in db.query(Question).filter(Question.id.in_(ids)).all()} if ids else {}
    return [grading.grade_detail(d, questions.get(d["question_id"]), d.get("response")) for d in details]


def quiz_deadline(quiz: Module | None, attempt) -> datetime | None:
    """started_at + time limit + grace, or None for untimed quizzes."""
    if quiz is None or not quiz.time_limit_minutes:
        return None
    return _aware(attempt.started_at) + timedelta(
        minutes=quiz.time_limit_minutes, seconds=settings.time_limit_grace_seconds
    )


def _overdue(quiz: Module | None, attempt, now: datetime) -> bool:
    deadline = quiz_deadline(quiz, attempt)
    return deadline is not None and now > deadline


def _save_answers(db: Session, ctx: AuthContext, kind: AttemptKind, attempt_id: uuid.UUID, answers: dict, now: datetime):
    with transaction(db):
        attempt = _get_attempt(db, kind, attempt_id)
        _require_submitter(ctx, kind, attempt)
        if attempt.status != "in-progress":
            raise InvalidStateError(f"Attempt is {attempt.status}; only in-progress attempts can be saved")
        if kind is QUIZ and _overdue(db.get(Module, attempt.module_id), attempt, now):
            raise WindowClosedError("The time limit for this attempt has elapsed; submit it instead")
        attempt.details = _record_responses(attempt.details or [], answers or {})
    db.refresh(attempt)
    logger.debug("%s %s saved %s answer(s)", kind.label, attempt.id, len(answers or {}))
    return attempt


def _apply_manual_grade(attempt, question_id: uuid.UUID, points_earned: int, grader_id, notes: str | None) -> None:
    details = [dict(d) for d in attempt.details or []]
    target = next((d for d in details if d["question_id"] == str(question_id)), None)
    if target is None:
        raise NotFoundError("Question in attempt", question_id)
    if not target.get("requires_manual_review"):
        raise ValidationError("Question is auto-graded and cannot be graded manually", field="question_id")
    if points_earned < 0 or points_earned > target["points_possible"]:
        raise ValidationError(
            f"points_earned must be between 0 and {target['points_possible']}", field="points_earned"
        )
    target["points_awarded"] = int(points_earned)
    target["is_correct"] = target["points_possible"] > 0 and points_earned == target["points_possible"]
    target["is_manually_graded"] = True
    target["grader_id"] = str(grader_id)
    if notes is not None:
        target["grader_notes"] = notes
    attempt.details = details


def _enrollment_of(db: Session, attempt) -> Enrollment | None:
    return db.get(Enrollment, attempt.enrollment_id) if attempt.enrollment_id else None


def _get_readable(db: Session, ctx: AuthContext, kind: AttemptKind, attempt_id: uuid.UUID):
    attempt = _get_attempt(db, kind, attempt_id)
    ctx.require_owner_or_all(kind.resource, "read", attempt.user_id)
    return attempt


def _list(db: Session, ctx: AuthContext, kind: AttemptKind, module_id=None, user_id=None) -> list:
    q = db.query(kind.model)
    if ctx.has(f"{kind.resource}:read:all"):
        if user_id is not None:
            q = q.filter(kind.model.user_id == user_id)
    else:
        ctx.require(f"{kind.resource}:read")
        q = q.filter(kind.model.user_id == ctx.user_id)
    if module_id is not None:
        q = q.filter(kind.model.module_id == module_id)
    return q.order_by(kind.model.started_at.desc(), kind.model.attempt_number.desc()).all()


def _delete(db: Session, ctx: AuthContext, kind: AttemptKind, attempt_id: uuid.UUID) -> None:
    ctx.require(f"{kind.resource}:delete")
    with transaction(db):
        attempt = _get_attempt(db, kind, attempt_id)
        db.delete(attempt)
    logger.info("%s %s deleted by %s", kind.label, attempt_id, ctx.user_id)


# --- quiz attempts ------------------------------------------------------------


def start_quiz_attempt(db: Session, ctx: AuthContext, module_id: uuid.UUID, now: datetime | None = None) -> QuizAttempt:
    """
    Open a new in-progress attempt numbered max+1 for this user and quiz.
    AttemptLimitError when max_attempts is set (not -1) and already reached;
    WindowClosedError outside [available_from, available_until].
    """
    ctx.require("quiz_attempt:create")
    now = now or _now()
    quiz = _get_module_of_type(db, module_id, "quiz")
    if quiz.status != "published":
        raise InvalidStateError("Quiz is not published")
    enrollment = _eligible_enrollment(db, ctx, quiz)
    check_window(quiz, now)
    held, highest = _attempt_stats(db, QUIZ, ctx.user_id, quiz.id)
    if not quiz.unlimited_attempts and held >= quiz.max_attempts:
        raise AttemptLimitError(f"Maximum of {quiz.max_attempts} attempt(s) reached for this quiz")

    details = _quiz_details(quiz)
    _, total = grading.aggregate(details)
    touch(enrollment, now)
    attempt = QuizAttempt(
        user_id=ctx.user_id,
        module_id=quiz.id,
        enrollment_id=enrollment.id,
        attempt_number=highest + 1,
        status="in-progress",
        details=details,
        score=0,
        total_points_possible=total,
        passed=False,
        started_at=now,
    )
    _insert_attempt(db, QUIZ, attempt)
    logger.info("Quiz attempt %s started (user=%s quiz=%s #%s)", attempt.id, ctx.user_id, quiz.id, attempt.attempt_number)
    return attempt


def _finalize_quiz(db: Session, attempt: QuizAttempt, now: datetime, forfeited: bool = False) -> None:
    quiz = db.get(Module, attempt.module_id)
    score, total = grading.aggregate(attempt.details)
    attempt.score = score
    attempt.total_points_possible = total
    attempt.passed = not forfeited and grading.quiz_passed(score, total, quiz.passing_score_percentage if quiz else 0)
    if grading.pending_manual(attempt.details):
        attempt.status = "partially-graded"
        return
    attempt.status = "graded"
    attempt.graded_at = now
    enrollment = _enrollment_of(db, attempt)
    if enrollment is not None and attempt.passed:
        mark_module_done(db, enrollment, attempt.module_id)


def save_quiz_answers(
    db: Session, ctx: AuthContext, attempt_id: uuid.UUID, answers: dict, now: datetime | None = None
) -> QuizAttempt:
    """Record responses on an in-progress attempt without grading it."""
    return _save_answers(db, ctx, QUIZ, attempt_id, answers, now or _now())


def submit_quiz_attempt(
    db: Session, ctx: AuthContext, attempt_id: uuid.UUID, answers: dict, now: datetime | None = None
) -> QuizAttempt:
    """
    in-progress -> submitted -> graded | partially-graded, synchronously.

    Questions missing from `answers` keep their saved response. An overdue submit of a timed quiz
    ignores `answers`: "auto-submit" grades the saved responses, "strict-zero-score" scores zero.
    """
    now = now or _now()
    answers = answers or {}
    with transaction(db):
        attempt = _get_attempt(db, QUIZ, attempt_id)
        _require_submitter(ctx, QUIZ, attempt)
        if attempt.status != "in-progress":
            raise InvalidStateError(f"Attempt is {attempt.status}; only in-progress attempts can be submitted")
        details = attempt.details or []
        _check_answer_keys(details, answers)
        quiz = db.get(Module, attempt.module_id)
        forfeited = False
        if _overdue(quiz, attempt, now):
            forfeited = quiz.timer_end_behavior == "strict-zero-score"
            logger.info(
                "Quiz attempt %s submitted after its time limit (%s); late answers ignored",
                attempt.id, quiz.timer_end_behavior,
            )
        else:
            details = _record_responses(details, answers)
        attempt.status = "submitted"
        attempt.submitted_at = now
        graded = _grade_responses(db, details)
        attempt.details = grading.forfeit(graded) if forfeited else graded
        _finalize_quiz(db, attempt, now, forfeited=forfeited)
    db.refresh(attempt)
    logger.info("Quiz attempt %s submitted: %s %s/%s", attempt.id, attempt.status, attempt.score, attempt.total_points_possible)
    return attempt


def manual_grade_quiz_attempt(
    db: Session,
    ctx: AuthContext,
    attempt_id: uuid.UUID,
    question_id: uuid.UUID,
    points_earned: int,
    notes: str | None = None,
) -> QuizAttempt:
    ctx.require("quiz_attempt:update")
    now = _now()
    with transaction(db):
        attempt = _get_attempt(db, QUIZ, attempt_id)
        if attempt.status != "partially-graded":
            raise InvalidStateError(f"Attempt is {attempt.status}; manual grading needs a partially-graded attempt")
        _apply_manual_grade(attempt, question_id, points_earned, ctx.user_id, notes)
        _finalize_quiz(db, attempt, now)
    db.refresh(attempt)
    logger.info("Quiz attempt %s manually graded by %s -> %s", attempt.id, ctx.user_id, attempt.status)
    return attempt


def get_quiz_attempt(db: Session, ctx: AuthContext, attempt_id: uuid.UUID) -> QuizAttempt:
    return _get_readable(db, ctx, QUIZ, attempt_id)


def list_quiz_attempts(db: Session, ctx: AuthContext, module_id=None, user_id=None) -> list[QuizAttempt]:
    return _list(db, ctx, QUIZ, module_id=module_id, user_id=user_id)


def delete_quiz_attempt(db: Session, ctx: AuthContext, attempt_id: uuid.UUID) -> None:
    _delete(db, ctx, QUIZ, attempt_id)


# --- practice tests ------------------------------------------------------------


def _test_quizzes(db: Session, attempt: PracticeTestAttempt) -> list[tuple[str, str]]:
    """(quiz module id, title) in the order snapshotted at start."""
    order: list[str] = []
    for d in attempt.details or []:
        if d["quiz_module_id"] not in order:
            order.append(d["quiz_module_id"])
    titles = {
        str(m.id): m.title
        for m in db.query(Module).filter(Module.id.in_([uuid.UUID(i) for i in order])).all()
    } if order else {}
    return [(i, titles.get(i, "")) for i in order]


def start_practice_test(db: Session, ctx: AuthContext, module_id: uuid.UUID, now: datetime | None = None) -> PracticeTestAttempt:
    """Open an in-progress attempt over every quiz of the test, in the test's order."""
    ctx.require("practice_test:create")
    now = now or _now()
    test = _get_module_of_type(db, module_id, "test")
    if test.status != "published":
        raise InvalidStateError("Practice test is not published")
    enrollment = _eligible_enrollment(db, ctx, test)
    details: list[dict] = []
    sections = []
    for link in test.quiz_links:
        quiz = link.quiz_module
        check_window(quiz, now)
        quiz_details = _quiz_details(quiz)
        details.extend(quiz_details)
        _, total = grading.aggregate(quiz_details)
        sections.append({"module_id": str(quiz.id), "title": quiz.title, "score": 0, "total_possible": total})
    _, highest = _attempt_stats(db, PRACTICE_TEST, ctx.user_id, test.id)
    touch(enrollment, now)
    attempt = PracticeTestAttempt(
        user_id=ctx.user_id,
        module_id=test.id,
        enrollment_id=enrollment.id,
        attempt_number=highest + 1,
        status="in-progress",
        details=details,
        section_scores=sections,
        overall_score=0,
        overall_total_points=sum(s["total_possible"] for s in sections),
        started_at=now,
    )
    _insert_attempt(db, PRACTICE_TEST, attempt)
    logger.info("Practice test attempt %s started (user=%s test=%s #%s)", attempt.id, ctx.user_id, test.id, attempt.attempt_number)
    return attempt


def _finalize_test(db: Session, attempt: PracticeTestAttempt, now: datetime) -> None:
    test = db.get(Module, attempt.module_id)
    quizzes = _test_quizzes(db, attempt)
    sections = grading.section_scores(attempt.details, quizzes)
    attempt.section_scores = sections
    attempt.overall_score = sum(s["score"] for s in sections)
    attempt.overall_total_points = sum(s["total_possible"] for s in sections)
    if test is not None and test.is_sat:
        attempt.sat_score_details = grading.sat_score_details(
            attempt.details, quizzes, settings.sat_min_section_score, settings.sat_max_section_score
        )
    if grading.pending_manual(attempt.details):
        attempt.status = "partially-graded"
        return
    attempt.status = "graded"
    attempt.graded_at = now
    enrollment = _enrollment_of(db, attempt)
    if enrollment is not None:
        mark_module_done(db, enrollment, attempt.module_id)


def save_practice_test_answers(db: Session, ctx: AuthContext, attempt_id: uuid.UUID, answers: dict) -> PracticeTestAttempt:
    return _save_answers(db, ctx, PRACTICE_TEST, attempt_id, answers, _now())


def submit_practice_test(db: Session, ctx: AuthContext, attempt_id: uuid.UUID, answers: dict) -> PracticeTestAttempt:
    now = _now()
    with transaction(db):
        attempt = _get_attempt(db, PRACTICE_TEST, attempt_id)
        _require_submitter(ctx, PRACTICE_TEST, attempt)
        if attempt.status != "in-progress":
            raise InvalidStateError(f"Attempt is {attempt.status}; only in-progress attempts can be submitted")
        attempt.status = "submitted"
        attempt.submitted_at = now
        attempt.details = _grade_responses(db, _record_responses(attempt.details or [], answers or {}))
        _finalize_test(db, attempt, now)
    db.refresh(attempt)
    logger.info(
        "Practice test attempt %s submitted: %s %s/%s",
        attempt.id, attempt.status, attempt.overall_score, attempt.overall_total_points,
    )
    return attempt


def manual_grade_practice_test(
    db: Session,
    ctx: AuthContext,
    attempt_id: uuid.UUID,
    question_id: uuid.UUID,
    points_earned: int,
    notes: str | None = None,
) -> PracticeTestAttempt:
    ctx.require("practice_test:update")
    now = _now()
    with transaction(db):
        attempt = _get_attempt(db, PRACTICE_TEST, attempt_id)
        if attempt.status != "partially-graded":
            raise InvalidStateError(f"Attempt is {attempt.status}; manual grading needs a partially-graded attempt")
        _apply_manual_grade(attempt, question_id, points_earned, ctx.user_id, notes)
        _finalize_test(db, attempt, now)
    db.refresh(attempt)
    logger.info("Practice test attempt %s manually graded by %s -> %s", attempt.id, ctx.user_id, attempt.status)
    return attempt


def get_practice_test_attempt(db: Session, ctx: AuthContext, attempt_id: uuid.UUID) -> PracticeTestAttempt:
    return _get_readable(db, ctx, PRACTICE_TEST, attempt_id)


def list_practice_test_attempts(db: Session, ctx: AuthContext, module_id=None, user_id=None) -> list[PracticeTestAttempt]:
    return _list(db, ctx, PRACTICE_TEST, module_id=module_id, user_id=user_id)


def delete_practice_test_attempt(db: Session, ctx: AuthContext, attempt_id: uuid.UUID) -> None:
    _delete(db, ctx, PRACTICE_TEST, attempt_id)
