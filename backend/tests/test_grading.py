"""
Pure scoring helpers: auto-grading, aggregation and SAT conversion.
"""
import uuid

from lms.models.content import Question
from lms.services import grading


def _question(**kw) -> Question:
    return Question(**{"id": uuid.uuid4(), "title": "q", "body": "q", "case_sensitive": False, "requires_manual_grading": False, **kw})


def test_multiple_choice_needs_exact_correct_set():
    q = _question(
        question_type="multipleChoice",
        options=[{"text": "a", "isCorrect": True}, {"text": "b", "isCorrect": False}, {"text": "c", "isCorrect": True}],
    )
    assert grading.is_answer_correct(q, [0, 2])
    assert grading.is_answer_correct(q, [2, 0])
    assert not grading.is_answer_correct(q, [0])
    assert not grading.is_answer_correct(q, 0)
    assert not grading.is_answer_correct(q, None)


def test_true_false_accepts_bool_or_string():
    q = _question(question_type="trueFalse", true_false_answer=False)
    assert grading.is_answer_correct(q, False)
    assert grading.is_answer_correct(q, "false")
    assert not grading.is_answer_correct(q, True)
    for junk in ("banana", "", 0, 1, [False], {"answer": False}):
        assert not grading.is_answer_correct(q, junk)


def test_text_answer_case_handling():
    q = _question(question_type="shortAnswer", text_answer="Paris")
    assert grading.is_answer_correct(q, "  paris ")
    q.case_sensitive = True
    assert not grading.is_answer_correct(q, "paris")
    assert grading.is_answer_correct(q, "Paris")


def test_grade_detail_leaves_manual_questions_pending():
    q = _question(question_type="shortAnswer", text_answer="essay", requires_manual_grading=True)
    detail = grading.new_detail(q, 4, uuid.uuid4())
    graded = grading.grade_detail(detail, q, "my essay")
    assert graded["response"] == "my essay"
    assert graded["points_awarded"] == 0
    assert grading.pending_manual([graded]) == [graded]
    assert detail["response"] is None  # input not mutated


def test_two_correct_five_point_questions_pass():
    quiz_id = uuid.uuid4()
    details = []
    for _ in range(2):
        q = _question(question_type="trueFalse", true_false_answer=True)
        details.append(grading.grade_detail(grading.new_detail(q, 5, quiz_id), q, True))
    score, total = grading.aggregate(details)
    assert (score, total) == (10, 10)
    assert grading.quiz_passed(score, total, 70)


def test_zero_total_is_zero_percent():
    assert grading.percentage(0, 0) == 0.0
    assert grading.quiz_passed(0, 0, 0)
    assert not grading.quiz_passed(0, 0, 1)


def test_section_scores_follow_quiz_order():
    a, b = str(uuid.uuid4()), str(uuid.uuid4())
    details = [
        {"quiz_module_id": b, "points_awarded": 3, "points_possible": 5},
        {"quiz_module_id": a, "points_awarded": 2, "points_possible": 2},
    ]
    sections = grading.section_scores(details, [(a, "Reading"), (b, "Math")])
    assert sections == [
        {"module_id": a, "title": "Reading", "score": 2, "total_possible": 2},
        {"module_id": b, "title": "Math", "score": 3, "total_possible": 5},
    ]


def test_sat_buckets_and_scaling():
    assert grading.sat_bucket("Reading and Writing Module 1") == grading.SAT_READING_WRITING
    assert grading.sat_bucket("Math - No Calculator") == grading.SAT_MATH
    assert grading.sat_bucket("Warm-up") is None
    assert grading.scale_sat(0, 10) == 200
    assert grading.scale_sat(10, 10) == 800
    assert grading.scale_sat(5, 10) == 500
    assert grading.scale_sat(3, 0) == 200


def test_sat_score_details_sum_scaled_sections():
    rw, math = str(uuid.uuid4()), str(uuid.uuid4())
    details = [{"quiz_module_id": rw, "points_awarded": 1, "points_possible": 1} for _ in range(4)]
    details += [{"quiz_module_id": math, "points_awarded": 0, "points_possible": 1} for _ in range(4)]
    sat = grading.sat_score_details(details, [(rw, "Reading & Writing"), (math, "Math")])
    assert sat == {
        "raw_score_reading_writing": 4,
        "raw_score_math": 0,
        "scaled_score_reading_writing": 800,
        "scaled_score_math": 200,
        "total_sat_score": 1000,
    }
