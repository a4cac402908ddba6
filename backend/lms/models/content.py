"""
LessonContent and Question: shared building blocks referenced by lesson and quiz modules.

A lesson content item may be reused across courses but by at most one lesson module per course.
A question stores exactly one answer representation, chosen by question_type:
  multipleChoice -> options [{"text", "isCorrect"}]
  trueFalse      -> true_false_answer
  shortAnswer / fillInTheBlank -> text_answer
"""
import uuid
from datetime import datetime
from sqlalchemy import String, Text, Boolean, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from lms.database import Base
from lms.models.types import UuidType

LESSON_CONTENT_TYPES = ("text", "html", "video", "file")
QUESTION_TYPES = ("multipleChoice", "trueFalse", "shortAnswer", "fillInTheBlank")
TEXT_QUESTION_TYPES = ("shortAnswer", "fillInTheBlank")
QUESTION_DIFFICULTIES = ("easy", "medium", "hard")


class LessonContent(Base):
    __tablename__ = "lesson_contents"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    content_type: Mapped[str] = mapped_column(String(20), nullable=False, default="text")
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UuidType(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("content_type IN ('text', 'html', 'video', 'file')", name="lesson_contents_type_check"),
    )


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    options: Mapped[list | None] = mapped_column(JSON, nullable=True)  # multipleChoice only
    true_false_answer: Mapped[bool | None] = mapped_column(Boolean, nullable=True)  # trueFalse only
    text_answer: Mapped[str | None] = mapped_column(Text, nullable=True)  # shortAnswer / fillInTheBlank only
    case_sensitive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requires_manual_grading: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    feedback: Mapped[str] = mapped_column(Text, nullable=False, default="")
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        UuidType(), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UuidType(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "question_type IN ('multipleChoice', 'trueFalse', 'shortAnswer', 'fillInTheBlank')",
            name="questions_type_check",
        ),
        CheckConstraint("difficulty IN ('easy', 'medium', 'hard')", name="questions_difficulty_check"),
        CheckConstraint("status IN ('draft', 'published', 'archived')", name="questions_status_check"),
    )

    category = relationship("Category")

    @property
    def needs_manual_grading(self) -> bool:
        return self.question_type in TEXT_QUESTION_TYPES and bool(self.requires_manual_grading)
