"""
Scoring: per-question auto-grading, score aggregation, practice-test section scores and the fixed
two-bucket SAT conversion. Pure functions over attempt detail dicts; no session access.
"""
import math

from lms.models.content import Question, TEXT_QUESTION_TYPES

SAT_READING_WRITING = "reading_writing"
SAT_MATH = "math"


def new_detail(question: Question, points: int, quiz_module_id) -> dict:
    """Detail entry snapshotted when an attempt starts."""
    return {
        "question_id": str(question.id),
        "quiz_module_id": str(quiz_module_id),
        "question_type": question.question_type,
        "points_possible": int(points),
        "response": None,
        "is_correct": False,
        "points_awarded": 0,
        "requires_manual_review": question.needs_manual_grading,
        "is_manually_graded": False,
        "grader_id": None,
        "grader_notes": "",
    }


def _as_bool(value) -> bool | None:
    """True/False or the strings "true"/"false"; anything else is not an answer."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return {"true": True, "false": False}.get(value.strip().lower())
    return None


def _chosen_indices(value) -> set[int]:
    if value is None or isinstance(value, bool):
        return set()
    if isinstance(value, int):
        return {value}
    if isinstance(value, (list, tuple)):
        return {v for v in value if isinstance(v, int) and not isinstance(v, bool)}
    return set()


def is_answer_correct(question: Question, response) -> bool:
    """Auto-grade one response against the question's answer key."""
    if response is None:
        return False
    if question.question_type == "multipleChoice":
        correct = {i for i, o in enumerate(question.options or []) if o.get("isCorrect")}
        return bool(correct) and _chosen_indices(response) == correct
    if question.question_type == "trueFalse":
        return _as_bool(response) is not None and _as_bool(response) == question.true_false_answer
    if question.question_type in TEXT_QUESTION_TYPES:
        given = str(response).strip()
        expected = (question.text_answer or "").strip()
        if not question.case_sensitive:
            given, expected = given.lower(), expected.lower()
        return bool(expected) and given == expected
    return False


def grade_detail(detail: dict, question: Question | None, response) -> dict:
    """Return a new detail dict with the response recorded and auto-graded where possible."""
    out = dict(detail)
    out["response"] = response
    if question is None:
        # Question removed from the bank after the attempt started: nothing to award
        out.update(is_correct=False, points_awarded=0, requires_manual_review=False, is_manually_graded=False)
        return out
    if detail.get("requires_manual_review"):
        out.update(is_correct=False, points_awarded=0, is_manually_graded=False)
        return out
    correct = is_answer_correct(question, response)
    out["is_correct"] = correct
    out["points_awarded"] = detail["points_possible"] if correct else 0
    out["is_manually_graded"] = False
    return out


def forfeit(details: list[dict]) -> list[dict]:
    """Zero every entry and clear pending reviews; responses are kept for the record."""
    return [
        {**d, "is_correct": False, "points_awarded": 0, "requires_manual_review": False, "is_manually_graded": False}
        for d in details
    ]


def pending_manual(details: list[dict]) -> list[dict]:
    return [d for d in details if d.get("requires_manual_review") and not d.get("is_manually_graded")]


def aggregate(details: list[dict]) -> tuple[int, int]:
    """(score, total_points_possible)."""
    score = sum(int(d.get("points_awarded") or 0) for d in details)
    total = sum(int(d.get("points_possible") or 0) for d in details)
    return score, total


def percentage(score: int, total: int) -> float:
    return (score / total * 100) if total else 0.0


def quiz_passed(score: int, total: int, passing_score_percentage: int | None) -> bool:
    return percentage(score, total) >= (passing_score_percentage or 0)


def section_scores(details: list[dict], quizzes: list[tuple[str, str]]) -> list[dict]:
    """One entry per (quiz_module_id, title) in test order: {module_id, title, score, total_possible}."""
    out = []
    for module_id, title in quizzes:
        score, total = aggregate([d for d in details if d.get("quiz_module_id") == module_id])
        out.append({"module_id": module_id, "title": title, "score": score, "total_possible": total})
    return out


def sat_bucket(title: str) -> str | None:
    """Reading/writing vs math bucket from the quiz title; None when neither applies."""
    t = (title or "").lower()
    if "reading" in t or "writing" in t:
        return SAT_READING_WRITING
    if "math" in t:
        return SAT_MATH
    return None


def scale_sat(raw: int, max_raw: int, low: int = 200, high: int = 800) -> int:
    """Map a raw correct-count linearly onto [low, high] in steps of 10."""
    if max_raw <= 0:
        return low
    ratio = max(0.0, min(1.0, raw / max_raw))
    steps = math.floor(ratio * (high - low) / 10 + 0.5)
    return low + steps * 10


def sat_score_details(details: list[dict], quizzes: list[tuple[str, str]], low: int = 200, high: int = 800) -> dict:
    """
    Fixed two-bucket SAT aggregation. Raw score per bucket = number of questions with points awarded;
    scaled per bucket over [low, high]; total = sum of the two scaled scores.
    """
    raw = {SAT_READING_WRITING: 0, SAT_MATH: 0}
    max_raw = {SAT_READING_WRITING: 0, SAT_MATH: 0}
    for module_id, title in quizzes:
        bucket = sat_bucket(title)
        if bucket is None:
            continue
        entries = [d for d in details if d.get("quiz_module_id") == module_id]
        max_raw[bucket] += len(entries)
        raw[bucket] += sum(1 for d in entries if (d.get("points_awarded") or 0) > 0)
    rw = scale_sat(raw[SAT_READING_WRITING], max_raw[SAT_READING_WRITING], low, high)
    m = scale_sat(raw[SAT_MATH], max_raw[SAT_MATH], low, high)
    return {
        "raw_score_reading_writing": raw[SAT_READING_WRITING],
        "raw_score_math": raw[SAT_MATH],
        "scaled_score_reading_writing": rw,
        "scaled_score_math": m,
        "total_sat_score": rw + m,
    }
