"""
Content graph: section/module placement, ordering, lesson content reuse and module variants.
"""
import uuid

import pytest

from lms.errors import (
    AuthorizationError,
    CollisionError,
    DuplicateContentError,
    NotFoundError,
    OrderMismatchError,
    ValidationError,
)
from lms.models.attempt import QuizAttempt
from lms.models.module import Module
from lms.models.course import Section
from lms.services import attempts, content_graph, ordering


def test_attach_section_appends_and_rejects_taken_order(db, admin, factory):
    _, ctx = admin
    course = factory.course()
    s1 = factory.section(course, "One")
    s2 = factory.section(course, "Two")
    assert (s1.order, s2.order) == (1, 2)

    with pytest.raises(CollisionError) as exc:
        content_graph.attach_section(db, ctx, course.id, {"title": "Dup", "order": 2})
    assert exc.value.field == "order"
    assert db.query(Section).filter(Section.course_id == course.id).count() == 2

    s5 = content_graph.attach_section(db, ctx, course.id, {"title": "Five", "order": 5})
    assert s5.order == 5
    # append continues after the highest order, gaps are not reused
    assert factory.section(course, "Six").order == 6


def test_attach_section_to_missing_course(db, admin):
    with pytest.raises(NotFoundError):
        content_graph.attach_section(db, admin[1], uuid.uuid4(), {"title": "Orphan"})


def test_student_cannot_create_course(db, student):
    with pytest.raises(AuthorizationError):
        content_graph.create_course(db, student[1], {"title": "Nope"})


def test_reorder_modules_follows_requested_sequence(db, admin, factory):
    course = factory.course()
    section = factory.section(course)
    m1 = factory.lesson(section, [factory.content("a")], title="m1")
    m2 = factory.lesson(section, [factory.content("b")], title="m2")
    m3 = factory.lesson(section, [factory.content("c")], title="m3")

    content_graph.reorder_children(db, admin[1], section.id, "module", [m3.id, m1.id, m2.id])

    orders = {m.id: m.order for m in db.query(Module).filter(Module.section_id == section.id)}
    assert orders == {m3.id: 1, m1.id: 2, m2.id: 3}


def test_reorder_rejects_non_permutation_without_writing(db, admin, factory):
    course = factory.course()
    s1 = factory.section(course, "One")
    s2 = factory.section(course, "Two")

    with pytest.raises(OrderMismatchError):
        content_graph.reorder_children(db, admin[1], course.id, "section", [s2.id])
    with pytest.raises(OrderMismatchError):
        content_graph.reorder_children(db, admin[1], course.id, "section", [s2.id, s2.id])
    with pytest.raises(OrderMismatchError):
        content_graph.reorder_children(db, admin[1], course.id, "section", [s2.id, uuid.uuid4()])

    db.expire_all()
    assert [s.order for s in (db.get(Section, s1.id), db.get(Section, s2.id))] == [1, 2]


def test_reorder_sections_compacts_to_one_based(db, admin, factory):
    course = factory.course()
    a = content_graph.attach_section(db, admin[1], course.id, {"title": "A", "order": 3})
    b = content_graph.attach_section(db, admin[1], course.id, {"title": "B", "order": 7})

    rows = content_graph.reorder_children(db, admin[1], course.id, "section", [str(b.id), str(a.id)])
    assert [(r.id, r.order) for r in rows] == [(b.id, 1), (a.id, 2)]


def test_detach_section_keeps_modules_standalone_with_order(db, admin, factory):
    course = factory.course()
    first = factory.section(course, "First")
    section = factory.section(course, "Second")
    third = factory.section(course, "Third")
    m1 = factory.lesson(section, [factory.content("a")])
    m2 = factory.lesson(section, [factory.content("b")])

    freed = content_graph.detach_section(db, admin[1], section.id)

    assert {m.id for m in freed} == {m1.id, m2.id}
    db.expire_all()
    for module, order in ((m1, 1), (m2, 2)):
        row = db.get(Module, module.id)
        assert row.section_id is None
        assert row.order == order
    assert db.get(Section, section.id) is None
    assert db.get(Section, first.id).order == 1
    assert db.get(Section, third.id).order == 2


def test_lesson_content_reuse_same_course_rejected(db, admin, factory):
    course = factory.course()
    s1 = factory.section(course, "One")
    s2 = factory.section(course, "Two")
    shared = factory.content("shared")
    factory.lesson(s1, [shared])

    with pytest.raises(DuplicateContentError) as exc:
        factory.lesson(s2, [factory.content("fresh"), shared])
    assert exc.value.content_ids == [shared.id]
    assert db.query(Module).filter(Module.section_id == s2.id).count() == 0


def test_lesson_content_reuse_across_courses_allowed(db, factory):
    shared = factory.content("shared")
    factory.lesson(factory.section(factory.course("A")), [shared])
    other = factory.lesson(factory.section(factory.course("B")), [shared])
    assert other.content_ids == [shared.id]


def test_editing_lesson_keeps_its_own_content(db, admin, factory):
    section = factory.section(factory.course())
    content = factory.content()
    lesson = factory.lesson(section, [content])

    updated = content_graph.attach_module(
        db, admin[1], section.id,
        {"module_type": "lesson", "title": "Renamed", "content_ids": [content.id]},
        module_id=lesson.id,
    )
    assert updated.title == "Renamed"
    assert updated.order == lesson.order


def test_moving_lesson_rechecks_destination_course(db, admin, factory):
    shared = factory.content("shared")
    target = factory.section(factory.course("Target"))
    factory.lesson(target, [shared])
    standalone = factory.lesson(None, [shared])

    with pytest.raises(DuplicateContentError):
        content_graph.attach_module(
            db, admin[1], target.id,
            {"module_type": "lesson", "title": "Move", "content_ids": [shared.id]},
            module_id=standalone.id,
        )


@pytest.mark.parametrize(
    "module_type, payload, field",
    [
        ("lesson", {"title": "L", "content_ids": []}, "content_ids"),
        ("quiz", {"title": "Q", "questions": []}, "questions"),
        ("quiz", {"title": "Q", "questions": [{"question_id": str(uuid.uuid4())}], "questions_per_page": 0}, "questions_per_page"),
        ("quiz", {"title": "Q", "questions": [{"question_id": str(uuid.uuid4())}], "passing_score_percentage": 101}, "passing_score_percentage"),
        ("quiz", {"title": "Q", "questions": [{"question_id": str(uuid.uuid4())}], "max_attempts": 0}, "max_attempts"),
        ("test", {"title": "T", "quiz_module_ids": []}, "quiz_module_ids"),
        ("survey", {"title": "S"}, "module_type"),
    ],
)
def test_validate_module_payload(module_type, payload, field):
    with pytest.raises(ValidationError) as exc:
        content_graph.validate_module_payload(module_type, payload)
    assert exc.value.field == field


def test_unlimited_attempts_is_valid():
    content_graph.validate_module_payload(
        "quiz", {"title": "Q", "questions": [{"question_id": str(uuid.uuid4())}], "max_attempts": -1}
    )


def test_type_switch_clears_previous_variant(db, admin, factory):
    section = factory.section(factory.course())
    quiz = factory.quiz(section, [(factory.mc_question(), 5)], max_attempts=3, passing_score_percentage=60)
    content = factory.content()

    lesson = content_graph.attach_module(
        db, admin[1], section.id,
        {"module_type": "lesson", "title": "Now a lesson", "content_ids": [content.id]},
        module_id=quiz.id,
    )
    assert lesson.module_type == "lesson"
    assert lesson.max_attempts is None
    assert lesson.passing_score_percentage is None
    assert lesson.question_links == []
    assert lesson.content_ids == [content.id]
    assert lesson.progress_bar is False


def test_attach_quiz_to_test_rules(db, admin, factory):
    section = factory.section(factory.course())
    q1 = factory.quiz(section, [(factory.mc_question(), 1)], title="Q1")
    q2 = factory.quiz(section, [(factory.tf_question(), 1)], title="Q2")
    draft = factory.quiz(section, [(factory.tf_question(), 1)], title="Draft", status="draft")
    test = factory.test(section, [q1])

    with pytest.raises(CollisionError):
        content_graph.attach_quiz_to_test(db, admin[1], test.id, q1.id)
    with pytest.raises(ValidationError):
        content_graph.attach_quiz_to_test(db, admin[1], test.id, draft.id)

    test = content_graph.attach_quiz_to_test(db, admin[1], test.id, q2.id)
    assert test.quiz_module_ids == [q1.id, q2.id]

    test = content_graph.detach_quiz_from_test(db, admin[1], test.id, q1.id)
    assert test.quiz_module_ids == [q2.id]
    assert [link.order for link in test.quiz_links] == [1]
    with pytest.raises(ValidationError):
        content_graph.detach_quiz_from_test(db, admin[1], test.id, q2.id)


def test_deleting_quiz_removes_it_from_tests(db, admin, factory):
    section = factory.section(factory.course())
    q1 = factory.quiz(section, [(factory.mc_question(), 1)], title="Q1")
    q2 = factory.quiz(section, [(factory.tf_question(), 1)], title="Q2")
    test = factory.test(section, [q1, q2])

    content_graph.delete_module(db, admin[1], q1.id)

    db.expire_all()
    test = db.get(Module, test.id)
    assert test.quiz_module_ids == [q2.id]
    assert test.quiz_links[0].order == 1
    remaining = db.query(Module).filter(Module.section_id == section.id).order_by(Module.order).all()
    assert [m.order for m in remaining] == list(range(1, len(remaining) + 1))


def test_reorder_quiz_questions(db, admin, factory):
    a, b, c = factory.mc_question("a"), factory.mc_question("b"), factory.mc_question("c")
    quiz = factory.quiz(None, [(a, 1), (b, 2), (c, 3)])

    content_graph.reorder_children(db, admin[1], quiz.id, "quiz_question", [c.id, a.id, b.id])

    db.expire_all()
    links = db.get(Module, quiz.id).question_links
    assert [(link.question_id, link.order, link.points) for link in links] == [(c.id, 1, 3), (a.id, 2, 1), (b.id, 3, 2)]


def test_delete_course_keeps_modules_standalone(db, admin, factory):
    course = factory.course()
    lesson = factory.lesson(factory.section(course), [factory.content()])

    content_graph.delete_course(db, admin[1], course.id)

    db.expire_all()
    row = db.get(Module, lesson.id)
    assert row is not None and row.section_id is None


def test_cannot_delete_last_quiz_of_a_test(db, admin, factory):
    section = factory.section(factory.course())
    quiz = factory.quiz(section, [(factory.tf_question(), 1)])
    test = factory.test(section, [quiz])

    with pytest.raises(CollisionError) as exc:
        content_graph.delete_module(db, admin[1], quiz.id)
    assert exc.value.field == "quiz_module_ids"

    db.expire_all()
    assert db.get(Module, quiz.id) is not None
    assert db.get(Module, test.id).quiz_module_ids == [quiz.id]


def test_module_with_attempts_cannot_be_deleted(db, admin, student, factory):
    user, ctx = student
    course = factory.course()
    quiz = factory.quiz(factory.section(course), [(factory.tf_question(True), 1)])
    factory.enroll(user, course)
    attempt = attempts.start_quiz_attempt(db, ctx, quiz.id)
    attempts.submit_quiz_attempt(db, ctx, attempt.id, {})

    with pytest.raises(CollisionError):
        content_graph.delete_module(db, admin[1], quiz.id)
    db.expire_all()
    assert db.get(QuizAttempt, attempt.id) is not None

    attempts.delete_quiz_attempt(db, admin[1], attempt.id)
    content_graph.delete_module(db, admin[1], quiz.id)
    assert db.get(Module, quiz.id) is None


def test_quiz_in_a_test_stays_published(db, admin, factory):
    section = factory.section(factory.course())
    question = factory.tf_question()
    quiz = factory.quiz(section, [(question, 1)], title="Q1")
    factory.test(section, [quiz])

    with pytest.raises(CollisionError) as exc:
        content_graph.attach_module(
            db, admin[1], section.id,
            {"module_type": "quiz", "title": "Q1", "status": "draft", "questions": [{"question_id": question.id, "points": 1}]},
            module_id=quiz.id,
        )
    assert exc.value.field == "status"
    db.expire_all()
    assert db.get(Module, quiz.id).status == "published"

    renamed = content_graph.attach_module(
        db, admin[1], section.id,
        {"module_type": "quiz", "title": "Q1 renamed", "status": "published", "questions": [{"question_id": question.id, "points": 1}]},
        module_id=quiz.id,
    )
    assert renamed.title == "Q1 renamed"


def test_order_taken_between_lookup_and_insert_is_a_collision(db, admin, factory, monkeypatch):
    course = factory.course()
    section = factory.section(course, "One")
    factory.lesson(section, [factory.content("a")])
    extra = factory.content("b")
    # another writer already holds the position next_order hands out
    monkeypatch.setattr(ordering, "next_order", lambda db, kind, parent_id: 1)

    with pytest.raises(CollisionError) as exc:
        content_graph.attach_section(db, admin[1], course.id, {"title": "Two"})
    assert exc.value.field == "order"
    with pytest.raises(CollisionError) as exc:
        content_graph.attach_module(
            db, admin[1], section.id, {"module_type": "lesson", "title": "L2", "content_ids": [extra.id]}
        )
    assert exc.value.field == "order"
    assert db.query(Section).filter(Section.course_id == course.id).count() == 1
    assert db.query(Module).filter(Module.section_id == section.id).count() == 1
