"""
QuizAttempt and PracticeTestAttempt.

Both keep a `details` JSON list, one entry per question, snapshotted at start:
  {question_id, quiz_module_id, question_type, points_possible, response, is_correct,
   points_awarded, requires_manual_review, is_manually_graded, grader_id, grader_notes}
Scores are derived from details by services.grading; the JSON list is replaced, never mutated in place.
"""
import uuid
from datetime import datetime
from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from lms.database import Base
from lms.models.types import UuidType

ATTEMPT_STATUSES = ("in-progress", "submitted", "partially-graded", "graded")
TERMINAL_STATUSES = ("partially-graded", "graded")

_STATUS_CHECK = "status IN ('in-progress', 'submitted', 'partially-graded', 'graded')"


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    module_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("modules.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    enrollment_id: Mapped[uuid.UUID | None] = mapped_column(
        UuidType(), ForeignKey("enrollments.id", ondelete="SET NULL"), nullable=True
    )
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="in-progress", index=True)
    details: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_points_possible: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    graded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(_STATUS_CHECK, name="quiz_attempts_status_check"),
        CheckConstraint("attempt_number >= 1", name="quiz_attempts_number_positive"),
        UniqueConstraint("user_id", "module_id", "attempt_number", name="uq_quiz_attempts_user_module_number"),
    )

    module = relationship("Module")


class PracticeTestAttempt(Base):
    __tablename__ = "practice_test_attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    module_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("modules.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    enrollment_id: Mapped[uuid.UUID | None] = mapped_column(
        UuidType(), ForeignKey("enrollments.id", ondelete="SET NULL"), nullable=True
    )
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="in-progress", index=True)
    details: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    section_scores: Mapped[list] = mapped_column(JSON, nullable=False, default=list)  # [{module_id, title, score, total_possible}]
    overall_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overall_total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sat_score_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    graded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(_STATUS_CHECK, name="practice_test_attempts_status_check"),
        CheckConstraint("attempt_number >= 1", name="practice_test_attempts_number_positive"),
        UniqueConstraint("user_id", "module_id", "attempt_number", name="uq_practice_attempts_user_module_number"),
    )

    module = relationship("Module")
