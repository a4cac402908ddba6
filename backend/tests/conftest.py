"""
Shared fixtures: a throwaway SQLite database (rebuilt per test), built-in roles, users with resolved
AuthContexts, and a small factory for catalog objects.

DATABASE_URL must be set before anything imports lms.config, so it is set at module import here.
"""
import os
import tempfile
import uuid

_DB_DIR = tempfile.mkdtemp(prefix="lms-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'lms_test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENV"] = "test"

import pytest  # noqa: E402

from lms.database import Base, SessionLocal, engine, init_sqlite_db  # noqa: E402
from lms.models.role import Role  # noqa: E402
from lms.models.user import User  # noqa: E402
from lms.services import content_graph, lesson_contents, questions  # noqa: E402
from lms.services.auth import hash_password  # noqa: E402
from lms.services.enrollment import enroll  # noqa: E402
from lms.services.roles import resolve_auth_context  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_schema():
    """Drop and recreate every table, then seed admin/teacher/student roles."""
    from lms import models  # noqa: F401
    Base.metadata.drop_all(bind=engine)
    init_sqlite_db()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _make_user(db, role_name: str):
    role = db.query(Role).filter(Role.name == role_name).one()
    user = User(
        email=f"{role_name}-{uuid.uuid4().hex[:8]}@tests.example.com",
        name=role_name.title(),
        password_hash=hash_password("testpass123"),
        role_id=role.id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user, resolve_auth_context(user)


@pytest.fixture
def admin(db):
    """(user, ctx) holding every permission group."""
    return _make_user(db, "admin")


@pytest.fixture
def teacher(db):
    return _make_user(db, "teacher")


@pytest.fixture
def student(db):
    return _make_user(db, "student")


@pytest.fixture
def make_user(db):
    return lambda role_name="student": _make_user(db, role_name)


class Factory:
    """Builds catalog objects through the service layer as the admin."""

    def __init__(self, db, ctx):
        self.db = db
        self.ctx = ctx

    def course(self, title="Algebra I", **kw):
        return content_graph.create_course(self.db, self.ctx, {"title": title, "status": "published", **kw})

    def section(self, course, title="Unit", **kw):
        return content_graph.attach_section(self.db, self.ctx, course.id, {"title": title, **kw})

    def content(self, title="Reading"):
        return lesson_contents.create_lesson_content(self.db, self.ctx, {"title": title, "body": "Text"})

    def mc_question(self, title="2+2?", correct=1):
        options = [{"text": str(i + 3), "isCorrect": i == correct} for i in range(3)]
        return questions.create_question(
            self.db, self.ctx,
            {"title": title, "body": title, "question_type": "multipleChoice", "options": options},
        )

    def tf_question(self, answer=True):
        return questions.create_question(
            self.db, self.ctx,
            {"title": "Sky is blue", "body": "True or false", "question_type": "trueFalse", "true_false_answer": answer},
        )

    def text_question(self, answer="Paris", manual=False, case_sensitive=False):
        return questions.create_question(
            self.db, self.ctx,
            {
                "title": "Capital",
                "body": "Capital of France?",
                "question_type": "shortAnswer",
                "text_answer": answer,
                "requires_manual_grading": manual,
                "case_sensitive": case_sensitive,
            },
        )

    def lesson(self, section, contents, title="Lesson", **kw):
        payload = {"module_type": "lesson", "title": title, "content_ids": [c.id for c in contents], **kw}
        return content_graph.attach_module(self.db, self.ctx, section.id if section else None, payload)

    def quiz(self, section, question_points, title="Quiz", status="published", **kw):
        """question_points: [(question, points), ...]"""
        payload = {
            "module_type": "quiz",
            "title": title,
            "status": status,
            "questions": [{"question_id": q.id, "points": p} for q, p in question_points],
            **kw,
        }
        return content_graph.attach_module(self.db, self.ctx, section.id if section else None, payload)

    def test(self, section, quizzes, title="Practice Test", status="published", **kw):
        payload = {
            "module_type": "test",
            "title": title,
            "status": status,
            "quiz_module_ids": [q.id for q in quizzes],
            **kw,
        }
        return content_graph.attach_module(self.db, self.ctx, section.id if section else None, payload)

    def enroll(self, user, course):
        return enroll(self.db, self.ctx, user.id, course.id)


@pytest.fixture
def factory(db, admin):
    return Factory(db, admin[1])
