"""
Module: one table, tagged by module_type (lesson | quiz | test). Each variant uses only its own columns;
columns of the other variants stay NULL (services.content_graph clears them on a type switch).

Variant children live in ordered link tables:
  lesson -> lesson_module_contents (content, order)
  quiz   -> quiz_module_questions (question, points, order)
  test   -> test_module_quizzes (quiz module, order)
"""
import uuid
from datetime import datetime
from sqlalchemy import String, Text, Integer, Boolean, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from lms.database import Base
from lms.models.types import UuidType

MODULE_TYPES = ("lesson", "quiz", "test")
QUESTION_NAVIGATION = ("sequence", "free")
TIMER_END_BEHAVIORS = ("auto-submit", "strict-zero-score")
UNLIMITED_ATTEMPTS = -1


class Module(Base):
    __tablename__ = "modules"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    module_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    section_id: Mapped[uuid.UUID | None] = mapped_column(
        UuidType(), ForeignKey("sections.id", ondelete="SET NULL"), nullable=True, index=True
    )  # NULL = standalone
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")

    # lesson
    progress_bar: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # quiz
    questions_per_page: Mapped[int | None] = mapped_column(Integer, nullable=True)
    question_navigation: Mapped[str | None] = mapped_column(String(20), nullable=True)
    question_shuffle: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    shuffle_options: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    max_attempts: Mapped[int | None] = mapped_column(Integer, nullable=True)  # -1 = unlimited
    time_limit_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)  # NULL = unlimited
    passing_score_percentage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    available_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    available_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    direction: Mapped[str | None] = mapped_column(Text, nullable=True)
    timer_end_behavior: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # test
    is_sat: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("module_type IN ('lesson', 'quiz', 'test')", name="modules_type_check"),
        CheckConstraint("status IN ('draft', 'published', 'archived')", name="modules_status_check"),
        CheckConstraint('"order" >= 1', name="modules_order_positive"),
        UniqueConstraint("section_id", "order", name="uq_modules_section_order"),
    )

    section = relationship("Section", back_populates="modules")
    content_links = relationship(
        "LessonModuleContent", back_populates="module", cascade="all, delete-orphan",
        order_by="LessonModuleContent.order",
    )
    question_links = relationship(
        "QuizModuleQuestion", back_populates="module", cascade="all, delete-orphan",
        order_by="QuizModuleQuestion.order",
    )
    quiz_links = relationship(
        "TestModuleQuiz", back_populates="test_module", cascade="all, delete-orphan",
        foreign_keys="TestModuleQuiz.test_module_id", order_by="TestModuleQuiz.order",
    )

    @property
    def course_id(self) -> uuid.UUID | None:
        return self.section.course_id if self.section is not None else None

    @property
    def content_ids(self) -> list[uuid.UUID]:
        return [link.content_id for link in self.content_links]

    @property
    def quiz_module_ids(self) -> list[uuid.UUID]:
        return [link.quiz_module_id for link in self.quiz_links]

    @property
    def unlimited_attempts(self) -> bool:
        return self.max_attempts is None or self.max_attempts == UNLIMITED_ATTEMPTS


class LessonModuleContent(Base):
    __tablename__ = "lesson_module_contents"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    module_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("lesson_contents.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("module_id", "content_id", name="uq_lesson_module_content"),
        UniqueConstraint("module_id", "order", name="uq_lesson_module_content_order"),
    )

    module = relationship("Module", back_populates="content_links")
    content = relationship("LessonContent")


class QuizModuleQuestion(Base):
    __tablename__ = "quiz_module_questions"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    module_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("questions.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    order: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("points >= 0", name="quiz_module_questions_points_check"),
        UniqueConstraint("module_id", "question_id", name="uq_quiz_module_question"),
        UniqueConstraint("module_id", "order", name="uq_quiz_module_question_order"),
    )

    module = relationship("Module", back_populates="question_links")
    question = relationship("Question")


class TestModuleQuiz(Base):
    __tablename__ = "test_module_quizzes"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    test_module_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quiz_module_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("test_module_id", "quiz_module_id", name="uq_test_module_quiz"),
        UniqueConstraint("test_module_id", "order", name="uq_test_module_quiz_order"),
    )

    test_module = relationship("Module", back_populates="quiz_links", foreign_keys=[test_module_id])
    quiz_module = relationship("Module", foreign_keys=[quiz_module_id])
