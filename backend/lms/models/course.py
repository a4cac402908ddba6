"""
Category, Course and Section. A course owns its sections; sections are ordered 1..n within the course.
Deleting a section unlinks its modules instead of deleting them (see services.content_graph.detach_section).
"""
import uuid
from datetime import datetime
from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from lms.database import Base
from lms.models.types import UuidType

COURSE_DIFFICULTIES = ("beginner", "intermediate", "advanced")
PUBLISH_STATUSES = ("draft", "published", "archived")
COURSE_CONTENT_TYPES = ("course_lesson", "practice_test")


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    courses = relationship("Course", back_populates="category")


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False, default="beginner")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft", index=True)
    content_type: Mapped[str] = mapped_column(String(20), nullable=False, default="course_lesson")
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        UuidType(), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    teacher_id: Mapped[uuid.UUID | None] = mapped_column(
        UuidType(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("difficulty IN ('beginner', 'intermediate', 'advanced')", name="courses_difficulty_check"),
        CheckConstraint("status IN ('draft', 'published', 'archived')", name="courses_status_check"),
        CheckConstraint("content_type IN ('course_lesson', 'practice_test')", name="courses_content_type_check"),
    )

    category = relationship("Category", back_populates="courses")
    sections = relationship("Section", back_populates="course", order_by="Section.order")
    enrollments = relationship("Enrollment", back_populates="course", cascade="all, delete-orphan")


class Section(Base):
    __tablename__ = "sections"

    id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), primary_key=True, default=uuid.uuid4
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('"order" >= 1', name="sections_order_positive"),
        UniqueConstraint("course_id", "order", name="uq_sections_course_order"),
    )

    course = relationship("Course", back_populates="sections")
    modules = relationship("Module", back_populates="section", order_by="Module.order")
