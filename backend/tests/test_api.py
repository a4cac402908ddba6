"""
HTTP surface: Bearer auth, error bodies, and an end-to-end course -> quiz -> attempt flow.
Requests carry real JWTs signed with the test SECRET_KEY.
"""
import pytest
from fastapi.testclient import TestClient

from lms.main import app
from lms.services.auth import create_access_token


@pytest.fixture
def client():
    return TestClient(app)


def _auth(user) -> dict:
    token = create_access_token(user.id, user.email, user.role.name)
    return {"Authorization": f"Bearer {token}"}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_missing_or_bad_token_is_401(client):
    assert client.get("/courses").status_code == 401
    r = client.get("/courses", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid or expired token"


def test_me_lists_expanded_permissions(client, student):
    user, _ = student
    r = client.get("/users/me", headers=_auth(user))
    assert r.status_code == 200
    data = r.json()
    assert data["role"] == "student"
    assert "quiz_attempt:create" in data["permissions"]
    assert "course:create" not in data["permissions"]


def test_permission_catalog(client, admin, student):
    r = client.get("/permissions/catalog", headers=_auth(admin[0]))
    assert r.status_code == 200
    assert "grade_attempts" in r.json()["groups"]

    r = client.get("/permissions/catalog", headers=_auth(student[0]))
    assert r.status_code == 403
    assert r.json()["error"] == "AuthorizationError"


def test_student_cannot_create_course(client, student):
    r = client.post("/courses", json={"title": "Nope"}, headers=_auth(student[0]))
    assert r.status_code == 403


def test_sections_and_reorder(client, admin):
    headers = _auth(admin[0])
    course = client.post("/courses", json={"title": "Biology", "status": "published"}, headers=headers).json()
    first = client.post(f"/courses/{course['id']}/sections", json={"title": "Cells"}, headers=headers).json()
    second = client.post(f"/courses/{course['id']}/sections", json={"title": "Genes"}, headers=headers).json()
    assert (first["order"], second["order"]) == (1, 2)

    r = client.post(f"/courses/{course['id']}/sections", json={"title": "Taken", "order": 1}, headers=headers)
    assert r.status_code == 409
    assert r.json() == {"detail": r.json()["detail"], "error": "CollisionError", "field": "order"}

    r = client.put(
        f"/courses/{course['id']}/sections/order",
        json={"orderedIds": [second["id"], first["id"]]},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["items"] == [{"id": second["id"], "order": 1}, {"id": first["id"], "order": 2}]

    r = client.put(f"/courses/{course['id']}/sections/order", json={"ordered_ids": [first["id"]]}, headers=headers)
    assert r.status_code == 409
    assert r.json()["error"] == "OrderMismatchError"

    detail = client.get(f"/courses/{course['id']}", headers=headers).json()
    assert [s["title"] for s in detail["sections"]] == ["Genes", "Cells"]


def test_malformed_body_id_is_422(client, admin):
    r = client.post(
        "/enrollments", json={"user_id": "not-a-uuid", "course_id": "x"}, headers=_auth(admin[0])
    )
    assert r.status_code == 422
    assert r.json()["field"] == "user_id"


def test_quiz_attempt_flow(client, admin, student):
    admin_headers = _auth(admin[0])
    student_user, _ = student
    student_headers = _auth(student_user)

    course = client.post("/courses", json={"title": "Geography", "status": "published"}, headers=admin_headers).json()
    section = client.post(f"/courses/{course['id']}/sections", json={"title": "Europe"}, headers=admin_headers).json()
    q1 = client.post(
        "/questions",
        json={"title": "Paris", "body": "Is Paris in France?", "question_type": "trueFalse", "true_false_answer": True},
        headers=admin_headers,
    ).json()
    q2 = client.post(
        "/questions",
        json={
            "title": "Capital",
            "body": "Capital of Italy?",
            "question_type": "multipleChoice",
            "options": [{"text": "Rome", "isCorrect": True}, {"text": "Milan"}],
        },
        headers=admin_headers,
    ).json()
    r = client.post(
        "/modules",
        json={
            "module_type": "quiz",
            "title": "Capitals quiz",
            "status": "published",
            "section_id": section["id"],
            "questions": [{"question_id": q1["id"], "points": 5}, {"question_id": q2["id"], "points": 5}],
            "passing_score_percentage": 70,
            "max_attempts": 1,
        },
        headers=admin_headers,
    )
    assert r.status_code == 201
    quiz = r.json()
    assert quiz["course_id"] == course["id"]
    assert [q["order"] for q in quiz["questions"]] == [1, 2]

    r = client.post("/quiz-attempts", json={"module_id": quiz["id"]}, headers=student_headers)
    assert r.status_code == 403
    assert r.json()["error"] == "NotEnrolledError"

    r = client.post(
        "/enrollments", json={"user_id": str(student_user.id), "course_id": course["id"]}, headers=admin_headers
    )
    assert r.status_code == 201
    enrollment_id = r.json()["id"]

    r = client.post("/quiz-attempts", json={"module_id": quiz["id"]}, headers=student_headers)
    assert r.status_code == 201
    attempt = r.json()
    assert attempt["status"] == "in-progress"
    assert attempt["total_points_possible"] == 10

    r = client.post(f"/quiz-attempts/{attempt['id']}/answers", json={"answers": {q1["id"]: True}}, headers=student_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "in-progress"
    assert [d["response"] for d in r.json()["details"]] == [True, None]

    r = client.post(
        f"/quiz-attempts/{attempt['id']}/submit",
        json={"answers": {q2["id"]: [0]}},
        headers=student_headers,
    )
    assert r.status_code == 200
    graded = r.json()
    assert (graded["status"], graded["score"], graded["passed"]) == ("graded", 10, True)

    r = client.post("/quiz-attempts", json={"module_id": quiz["id"]}, headers=student_headers)
    assert r.status_code == 409
    assert r.json()["error"] == "AttemptLimitError"

    r = client.get(f"/enrollments/{enrollment_id}", headers=student_headers)
    assert quiz["id"] in r.json()["completed_module_ids"]
    assert r.json()["last_accessed_at"] is not None

    r = client.post(f"/enrollments/{enrollment_id}/reset", headers=student_headers)
    assert r.status_code == 200
    assert (r.json()["completed_module_ids"], r.json()["progress_percentage"]) == ([], 0)
    assert len(client.get("/quiz-attempts", headers=student_headers).json()) == 1


def test_deleting_used_question_is_409(client, admin, factory):
    question = factory.tf_question()
    factory.quiz(None, [(question, 1)])
    r = client.delete(f"/questions/{question.id}", headers=_auth(admin[0]))
    assert r.status_code == 409
    assert r.json()["error"] == "CollisionError"
