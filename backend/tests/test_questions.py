"""
Question bank: answer-key validation per type and CRUD rules.
"""
import pytest

from lms.errors import CollisionError, ValidationError
from lms.services import questions
from lms.services.questions import normalize_answer_key


def test_multiple_choice_requires_two_options_and_a_correct_one():
    with pytest.raises(ValidationError) as exc:
        normalize_answer_key("multipleChoice", {"options": [{"text": "only", "isCorrect": True}]})
    assert exc.value.field == "options"
    with pytest.raises(ValidationError):
        normalize_answer_key("multipleChoice", {"options": [{"text": "a"}, {"text": "b"}]})

    key = normalize_answer_key(
        "multipleChoice", {"options": [{"text": " a ", "isCorrect": True}, {"text": "b", "extra": 1}]}
    )
    assert key == {
        "options": [{"text": "a", "isCorrect": True}, {"text": "b", "isCorrect": False}],
        "true_false_answer": None,
        "text_answer": None,
    }


def test_true_false_takes_boolean_and_no_options():
    assert normalize_answer_key("trueFalse", {"true_false_answer": False})["true_false_answer"] is False
    with pytest.raises(ValidationError):
        normalize_answer_key("trueFalse", {"true_false_answer": "yes"})
    with pytest.raises(ValidationError):
        normalize_answer_key("trueFalse", {"true_false_answer": True, "options": [{"text": "x"}]})


@pytest.mark.parametrize("question_type", ["shortAnswer", "fillInTheBlank"])
def test_text_types_need_non_empty_answer(question_type):
    assert normalize_answer_key(question_type, {"text_answer": " Paris "})["text_answer"] == "Paris"
    with pytest.raises(ValidationError) as exc:
        normalize_answer_key(question_type, {"text_answer": "   "})
    assert exc.value.field == "text_answer"


def test_manual_grading_only_on_text_types():
    with pytest.raises(ValidationError) as exc:
        normalize_answer_key("trueFalse", {"true_false_answer": True, "requires_manual_grading": True})
    assert exc.value.field == "requires_manual_grading"


def test_type_switch_drops_previous_answer(db, admin, factory):
    q = factory.mc_question()
    updated = questions.update_question(
        db, admin[1], q.id, {"question_type": "shortAnswer", "text_answer": "four"}
    )
    assert updated.question_type == "shortAnswer"
    assert updated.options is None
    assert updated.text_answer == "four"


def test_list_filters(db, admin, factory):
    factory.mc_question()
    tf = factory.tf_question()
    questions.update_question(db, admin[1], tf.id, {"tags": ["science"], "status": "published"})

    assert [q.id for q in questions.list_questions(db, admin[1], question_type="trueFalse")] == [tf.id]
    assert [q.id for q in questions.list_questions(db, admin[1], tag="science")] == [tf.id]
    assert [q.id for q in questions.list_questions(db, admin[1], status="published")] == [tf.id]


def test_delete_rejected_while_used_by_quiz(db, admin, factory):
    used = factory.mc_question()
    factory.quiz(None, [(used, 1)])
    with pytest.raises(CollisionError):
        questions.delete_question(db, admin[1], used.id)

    spare = factory.tf_question()
    questions.delete_question(db, admin[1], spare.id)
