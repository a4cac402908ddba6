"""
Enrollment: one row per (user, course). Progress is a cached percentage recomputed by services.enrollment.
"""
import uuid
from datetime import datetime
from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from lms.database import Base
from lms.models.types import UuidType

ENROLLMENT_STATUSES = ("enrolled", "in-progress", "completed", "dropped")


class Enrollment(Base):
    __tablename__ = "enrollments"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="enrolled")
    enrollment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    last_accessed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    progress_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_content_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)  # str UUIDs
    completed_module_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)  # str UUIDs

    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_enrollments_user_course"),
        CheckConstraint("progress_percentage >= 0 AND progress_percentage <= 100", name="enrollments_progress_range"),
        CheckConstraint(
            "status IN ('enrolled', 'in-progress', 'completed', 'dropped')", name="enrollments_status_check"
        ),
    )

    user = relationship("User", back_populates="enrollments")
    course = relationship("Course", back_populates="enrollments")
