"""
Attempt lifecycle: start limits and windows, submit and auto-grade, manual grading, practice tests.
"""
from datetime import datetime, timedelta, timezone

import pytest

from lms.config import settings
from lms.errors import (
    AttemptLimitError,
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    NotEnrolledError,
    ValidationError,
    WindowClosedError,
)
from lms.models.enrollment import Enrollment
from lms.services import attempts


@pytest.fixture
def course_section(factory):
    course = factory.course()
    return course, factory.section(course)


def test_two_correct_answers_score_full_and_pass(db, student, factory, course_section):
    user, ctx = student
    course, section = course_section
    q1, q2 = factory.tf_question(True), factory.mc_question(correct=2)
    quiz = factory.quiz(section, [(q1, 5), (q2, 5)], passing_score_percentage=70)
    factory.enroll(user, course)

    attempt = attempts.start_quiz_attempt(db, ctx, quiz.id)
    assert attempt.status == "in-progress"
    assert attempt.attempt_number == 1
    assert attempt.total_points_possible == 10

    attempt = attempts.submit_quiz_attempt(db, ctx, attempt.id, {str(q1.id): True, str(q2.id): [2]})

    assert attempt.status == "graded"
    assert (attempt.score, attempt.total_points_possible, attempt.passed) == (10, 10, True)
    assert attempt.graded_at is not None
    enrollment = db.query(Enrollment).filter(Enrollment.user_id == user.id).one()
    assert str(quiz.id) in enrollment.completed_module_ids


def test_failing_attempt_does_not_complete_module(db, student, factory, course_section):
    user, ctx = student
    course, section = course_section
    q = factory.tf_question(True)
    quiz = factory.quiz(section, [(q, 5)], passing_score_percentage=50)
    factory.enroll(user, course)

    attempt = attempts.start_quiz_attempt(db, ctx, quiz.id)
    attempt = attempts.submit_quiz_attempt(db, ctx, attempt.id, {str(q.id): False})

    assert (attempt.score, attempt.passed) == (0, False)
    enrollment = db.query(Enrollment).filter(Enrollment.user_id == user.id).one()
    assert enrollment.completed_module_ids == []


def test_attempt_limit(db, student, factory, course_section):
    user, ctx = student
    course, section = course_section
    quiz = factory.quiz(section, [(factory.tf_question(), 1)], max_attempts=2)
    factory.enroll(user, course)

    numbers = [attempts.start_quiz_attempt(db, ctx, quiz.id).attempt_number for _ in range(2)]
    assert numbers == [1, 2]
    with pytest.raises(AttemptLimitError):
        attempts.start_quiz_attempt(db, ctx, quiz.id)


def test_unlimited_attempts_never_hit_limit(db, student, factory, course_section):
    user, ctx = student
    course, section = course_section
    quiz = factory.quiz(section, [(factory.tf_question(), 1)], max_attempts=-1)
    factory.enroll(user, course)
    for expected in range(1, 6):
        assert attempts.start_quiz_attempt(db, ctx, quiz.id).attempt_number == expected


def test_availability_window(db, student, factory, course_section):
    user, ctx = student
    course, section = course_section
    now = datetime.now(timezone.utc)
    quiz = factory.quiz(
        section, [(factory.tf_question(), 1)],
        available_from=now + timedelta(hours=1), available_until=now + timedelta(hours=2),
    )
    factory.enroll(user, course)

    with pytest.raises(WindowClosedError):
        attempts.start_quiz_attempt(db, ctx, quiz.id, now=now)
    with pytest.raises(WindowClosedError):
        attempts.start_quiz_attempt(db, ctx, quiz.id, now=now + timedelta(hours=3))
    attempt = attempts.start_quiz_attempt(db, ctx, quiz.id, now=now + timedelta(minutes=90))
    assert attempt.status == "in-progress"


def test_start_requires_enrollment_and_published_quiz(db, student, factory, course_section):
    user, ctx = student
    course, section = course_section
    quiz = factory.quiz(section, [(factory.tf_question(), 1)])
    with pytest.raises(NotEnrolledError):
        attempts.start_quiz_attempt(db, ctx, quiz.id)

    factory.enroll(user, course)
    draft = factory.quiz(section, [(factory.tf_question(), 1)], status="draft")
    with pytest.raises(InvalidStateError):
        attempts.start_quiz_attempt(db, ctx, draft.id)


def test_start_touches_enrollment_access(db, student, factory, course_section):
    user, ctx = student
    course, section = course_section
    quiz = factory.quiz(section, [(factory.tf_question(), 1)])
    factory.enroll(user, course)
    attempts.start_quiz_attempt(db, ctx, quiz.id)
    enrollment = db.query(Enrollment).filter(Enrollment.user_id == user.id).one()
    assert enrollment.last_accessed_at is not None


def test_submit_twice_is_invalid(db, student, factory, course_section):
    user, ctx = student
    course, section = course_section
    quiz = factory.quiz(section, [(factory.tf_question(), 1)])
    factory.enroll(user, course)
    attempt = attempts.start_quiz_attempt(db, ctx, quiz.id)
    attempts.submit_quiz_attempt(db, ctx, attempt.id, {})
    with pytest.raises(InvalidStateError):
        attempts.submit_quiz_attempt(db, ctx, attempt.id, {})


def test_submit_rejects_foreign_question_ids(db, student, factory, course_section):
    user, ctx = student
    course, section = course_section
    quiz = factory.quiz(section, [(factory.tf_question(), 1)])
    stray = factory.tf_question()
    factory.enroll(user, course)
    attempt = attempts.start_quiz_attempt(db, ctx, quiz.id)
    with pytest.raises(ValidationError):
        attempts.submit_quiz_attempt(db, ctx, attempt.id, {str(stray.id): True})
    db.expire_all()
    assert attempts.get_quiz_attempt(db, ctx, attempt.id).status == "in-progress"


def test_manual_grading_flow(db, student, teacher, factory, course_section):
    user, ctx = student
    course, section = course_section
    auto = factory.tf_question(True)
    essay = factory.text_question(answer="rubric", manual=True)
    quiz = factory.quiz(section, [(auto, 2), (essay, 8)], passing_score_percentage=50)
    factory.enroll(user, course)
    attempt = attempts.start_quiz_attempt(db, ctx, quiz.id)

    attempt = attempts.submit_quiz_attempt(db, ctx, attempt.id, {str(auto.id): True, str(essay.id): "long answer"})
    assert attempt.status == "partially-graded"
    assert attempt.score == 2

    with pytest.raises(AuthorizationError):
        attempts.manual_grade_quiz_attempt(db, ctx, attempt.id, essay.id, 8)
    with pytest.raises(ValidationError):
        attempts.manual_grade_quiz_attempt(db, teacher[1], attempt.id, auto.id, 2)
    with pytest.raises(ValidationError):
        attempts.manual_grade_quiz_attempt(db, teacher[1], attempt.id, essay.id, 9)

    attempt = attempts.manual_grade_quiz_attempt(db, teacher[1], attempt.id, essay.id, 6, notes="Good")
    assert attempt.status == "graded"
    assert (attempt.score, attempt.total_points_possible, attempt.passed) == (8, 10, True)
    graded = next(d for d in attempt.details if d["question_id"] == str(essay.id))
    assert graded["is_manually_graded"] and graded["grader_notes"] == "Good"

    with pytest.raises(InvalidStateError):
        attempts.manual_grade_quiz_attempt(db, teacher[1], attempt.id, essay.id, 7)


def test_students_see_only_their_attempts(db, student, make_user, factory, course_section):
    user, ctx = student
    other, other_ctx = make_user("student")
    course, section = course_section
    quiz = factory.quiz(section, [(factory.tf_question(), 1)])
    factory.enroll(user, course)
    factory.enroll(other, course)
    mine = attempts.start_quiz_attempt(db, ctx, quiz.id)
    theirs = attempts.start_quiz_attempt(db, other_ctx, quiz.id)

    assert [a.id for a in attempts.list_quiz_attempts(db, ctx)] == [mine.id]
    with pytest.raises(AuthorizationError):
        attempts.get_quiz_attempt(db, ctx, theirs.id)
    assert len(attempts.list_quiz_attempts(db, factory.ctx, module_id=quiz.id)) == 2


def test_delete_requires_permission(db, student, factory, course_section):
    user, ctx = student
    course, section = course_section
    quiz = factory.quiz(section, [(factory.tf_question(), 1)])
    factory.enroll(user, course)
    attempt = attempts.start_quiz_attempt(db, ctx, quiz.id)
    with pytest.raises(AuthorizationError):
        attempts.delete_quiz_attempt(db, ctx, attempt.id)
    attempts.delete_quiz_attempt(db, factory.ctx, attempt.id)
    assert attempts.list_quiz_attempts(db, factory.ctx) == []


def test_practice_test_partial_then_graded(db, student, teacher, factory, course_section):
    user, ctx = student
    course, section = course_section
    rw_questions = [factory.tf_question(True) for _ in range(4)]
    reading = factory.quiz(section, [(q, 5) for q in rw_questions], title="Reading and Writing")
    mc = factory.mc_question(correct=0)
    short = factory.text_question(answer="x", manual=True)
    math = factory.quiz(section, [(mc, 10), (short, 10)], title="Math")
    test = factory.test(section, [reading, math], is_sat=True)
    factory.enroll(user, course)

    attempt = attempts.start_practice_test(db, ctx, test.id)
    assert [s["module_id"] for s in attempt.section_scores] == [str(reading.id), str(math.id)]
    assert attempt.overall_total_points == 40

    answers = {str(q.id): True for q in rw_questions}
    answers[str(mc.id)] = [0]
    answers[str(short.id)] = "work shown"
    attempt = attempts.submit_practice_test(db, ctx, attempt.id, answers)

    assert attempt.status == "partially-graded"
    assert attempt.section_scores == [
        {"module_id": str(reading.id), "title": "Reading and Writing", "score": 20, "total_possible": 20},
        {"module_id": str(math.id), "title": "Math", "score": 10, "total_possible": 20},
    ]
    assert (attempt.overall_score, attempt.overall_total_points) == (30, 40)

    attempt = attempts.manual_grade_practice_test(db, teacher[1], attempt.id, short.id, 10)
    assert attempt.status == "graded"
    assert attempt.section_scores[1]["score"] == 20
    assert attempt.overall_score == 40
    assert attempt.sat_score_details["scaled_score_reading_writing"] == 800
    assert attempt.sat_score_details["scaled_score_math"] == 800
    assert attempt.sat_score_details["total_sat_score"] == 1600
    enrollment = db.query(Enrollment).filter(Enrollment.user_id == user.id).one()
    assert str(test.id) in enrollment.completed_module_ids


def test_non_sat_test_has_no_sat_details(db, student, factory, course_section):
    user, ctx = student
    course, section = course_section
    q = factory.tf_question(True)
    quiz = factory.quiz(section, [(q, 1)], title="Reading")
    test = factory.test(section, [quiz])
    factory.enroll(user, course)
    attempt = attempts.start_practice_test(db, ctx, test.id)
    attempt = attempts.submit_practice_test(db, ctx, attempt.id, {str(q.id): True})
    assert attempt.status == "graded"
    assert attempt.sat_score_details is None


def test_saved_answers_are_kept_until_submit(db, student, factory, course_section):
    user, ctx = student
    course, section = course_section
    q1, q2 = factory.tf_question(True), factory.tf_question(False)
    quiz = factory.quiz(section, [(q1, 2), (q2, 3)])
    factory.enroll(user, course)
    attempt = attempts.start_quiz_attempt(db, ctx, quiz.id)

    attempt = attempts.save_quiz_answers(db, ctx, attempt.id, {str(q1.id): True})
    assert attempt.status == "in-progress"
    saved = {d["question_id"]: d for d in attempt.details}
    assert saved[str(q1.id)]["response"] is True
    assert saved[str(q1.id)]["points_awarded"] == 0
    assert saved[str(q2.id)]["response"] is None

    attempt = attempts.submit_quiz_attempt(db, ctx, attempt.id, {str(q2.id): False})
    assert (attempt.status, attempt.score) == ("graded", 5)


def test_save_answers_rules(db, student, make_user, factory, course_section):
    user, ctx = student
    course, section = course_section
    q = factory.tf_question()
    quiz = factory.quiz(section, [(q, 1)])
    factory.enroll(user, course)
    attempt = attempts.start_quiz_attempt(db, ctx, quiz.id)

    with pytest.raises(ValidationError):
        attempts.save_quiz_answers(db, ctx, attempt.id, {str(factory.tf_question().id): True})
    _, other_ctx = make_user("student")
    with pytest.raises(NotFoundError):
        attempts.save_quiz_answers(db, other_ctx, attempt.id, {str(q.id): True})
    attempts.submit_quiz_attempt(db, ctx, attempt.id, {})
    with pytest.raises(InvalidStateError):
        attempts.save_quiz_answers(db, ctx, attempt.id, {str(q.id): True})


def test_practice_test_saved_answers_are_graded_on_submit(db, student, factory, course_section):
    user, ctx = student
    course, section = course_section
    q = factory.tf_question(True)
    quiz = factory.quiz(section, [(q, 4)], title="Warm-up")
    test = factory.test(section, [quiz])
    factory.enroll(user, course)
    attempt = attempts.start_practice_test(db, ctx, test.id)

    attempts.save_practice_test_answers(db, ctx, attempt.id, {str(q.id): "true"})
    attempt = attempts.submit_practice_test(db, ctx, attempt.id, {})

    assert (attempt.status, attempt.overall_score) == ("graded", 4)


def _timed_attempt(db, student, factory, course_section, behavior):
    user, ctx = student
    course, section = course_section
    q1, q2 = factory.tf_question(True), factory.tf_question(True)
    quiz = factory.quiz(section, [(q1, 5), (q2, 5)], time_limit_minutes=10, timer_end_behavior=behavior)
    factory.enroll(user, course)
    started = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
    attempt = attempts.start_quiz_attempt(db, ctx, quiz.id, now=started)
    attempts.save_quiz_answers(db, ctx, attempt.id, {str(q1.id): True}, now=started + timedelta(minutes=5))
    late = started + timedelta(minutes=10, seconds=settings.time_limit_grace_seconds + 1)
    return ctx, attempt, (q1, q2), late


def test_overdue_auto_submit_grades_saved_answers_only(db, student, factory, course_section):
    ctx, attempt, (q1, q2), late = _timed_attempt(db, student, factory, course_section, "auto-submit")

    with pytest.raises(WindowClosedError):
        attempts.save_quiz_answers(db, ctx, attempt.id, {str(q2.id): True}, now=late)
    attempt = attempts.submit_quiz_attempt(db, ctx, attempt.id, {str(q2.id): True}, now=late)

    assert attempt.status == "graded"
    assert (attempt.score, attempt.total_points_possible) == (5, 10)
    late_answer = next(d for d in attempt.details if d["question_id"] == str(q2.id))
    assert late_answer["response"] is None


def test_overdue_strict_zero_score(db, student, factory, course_section):
    ctx, attempt, (q1, q2), late = _timed_attempt(db, student, factory, course_section, "strict-zero-score")

    attempt = attempts.submit_quiz_attempt(db, ctx, attempt.id, {str(q2.id): True}, now=late)

    assert attempt.status == "graded"
    assert (attempt.score, attempt.passed) == (0, False)
    assert all(d["points_awarded"] == 0 for d in attempt.details)


def test_submit_within_time_limit_counts_every_answer(db, student, factory, course_section):
    ctx, attempt, (q1, q2), late = _timed_attempt(db, student, factory, course_section, "strict-zero-score")

    on_time = late - timedelta(seconds=2)
    attempt = attempts.submit_quiz_attempt(db, ctx, attempt.id, {str(q2.id): True}, now=on_time)

    assert (attempt.score, attempt.passed) == (10, True)
