"""
SQLAlchemy models. Import here so Alembic and app can use them.
"""
from lms.models.role import Role
from lms.models.user import User
from lms.models.course import Category, Course, Section
from lms.models.content import LessonContent, Question
from lms.models.module import Module, LessonModuleContent, QuizModuleQuestion, TestModuleQuiz
from lms.models.enrollment import Enrollment
from lms.models.attempt import QuizAttempt, PracticeTestAttempt

__all__ = [
    "Role",
    "User",
    "Category",
    "Course",
    "Section",
    "LessonContent",
    "Question",
    "Module",
    "LessonModuleContent",
    "QuizModuleQuestion",
    "TestModuleQuiz",
    "Enrollment",
    "QuizAttempt",
    "PracticeTestAttempt",
]
