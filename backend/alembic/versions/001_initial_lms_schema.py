"""Initial LMS schema: roles, users, catalog, modules and link tables, enrollments, attempts.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Ids are stored as 36-char strings (lms.models.types.UuidType)
_ID = sa.String(36)
_STATUS_CHECK = "status IN ('draft', 'published', 'archived')"
_ATTEMPT_STATUS_CHECK = "status IN ('in-progress', 'submitted', 'partially-graded', 'graded')"


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "roles",
        sa.Column("id", _ID, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("permission_groups", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_roles_name", "roles", ["name"], unique=True)

    op.create_table(
        "users",
        sa.Column("id", _ID, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role_id", _ID, nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role_id", "users", ["role_id"], unique=False)

    op.create_table(
        "categories",
        sa.Column("id", _ID, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "courses",
        sa.Column("id", _ID, nullable=False),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("difficulty", sa.String(20), nullable=False, server_default="beginner"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("content_type", sa.String(20), nullable=False, server_default="course_lesson"),
        sa.Column("category_id", _ID, nullable=True),
        sa.Column("teacher_id", _ID, nullable=True),
        *_timestamps(),
        sa.CheckConstraint("difficulty IN ('beginner', 'intermediate', 'advanced')", name="courses_difficulty_check"),
        sa.CheckConstraint(_STATUS_CHECK, name="courses_status_check"),
        sa.CheckConstraint("content_type IN ('course_lesson', 'practice_test')", name="courses_content_type_check"),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["teacher_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_courses_status", "courses", ["status"], unique=False)
    op.create_index("ix_courses_category_id", "courses", ["category_id"], unique=False)
    op.create_index("ix_courses_teacher_id", "courses", ["teacher_id"], unique=False)

    op.create_table(
        "sections",
        sa.Column("id", _ID, nullable=False),
        sa.Column("course_id", _ID, nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        *_timestamps(),
        sa.CheckConstraint('"order" >= 1', name="sections_order_positive"),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("course_id", "order", name="uq_sections_course_order"),
    )
    op.create_index("ix_sections_course_id", "sections", ["course_id"], unique=False)

    op.create_table(
        "lesson_contents",
        sa.Column("id", _ID, nullable=False),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("content_type", sa.String(20), nullable=False, server_default="text"),
        sa.Column("body", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_by", _ID, nullable=True),
        *_timestamps(),
        sa.CheckConstraint("content_type IN ('text', 'html', 'video', 'file')", name="lesson_contents_type_check"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "questions",
        sa.Column("id", _ID, nullable=False),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("question_type", sa.String(30), nullable=False),
        sa.Column("options", sa.JSON(), nullable=True),
        sa.Column("true_false_answer", sa.Boolean(), nullable=True),
        sa.Column("text_answer", sa.Text(), nullable=True),
        sa.Column("case_sensitive", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("requires_manual_grading", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("feedback", sa.Text(), nullable=False, server_default=""),
        sa.Column("difficulty", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("category_id", _ID, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("created_by", _ID, nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "question_type IN ('multipleChoice', 'trueFalse', 'shortAnswer', 'fillInTheBlank')",
            name="questions_type_check",
        ),
        sa.CheckConstraint("difficulty IN ('easy', 'medium', 'hard')", name="questions_difficulty_check"),
        sa.CheckConstraint(_STATUS_CHECK, name="questions_status_check"),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_questions_question_type", "questions", ["question_type"], unique=False)
    op.create_index("ix_questions_category_id", "questions", ["category_id"], unique=False)

    op.create_table(
        "modules",
        sa.Column("id", _ID, nullable=False),
        sa.Column("module_type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("section_id", _ID, nullable=True),
        sa.Column("order", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("progress_bar", sa.Boolean(), nullable=True),
        sa.Column("questions_per_page", sa.Integer(), nullable=True),
        sa.Column("question_navigation", sa.String(20), nullable=True),
        sa.Column("question_shuffle", sa.Boolean(), nullable=True),
        sa.Column("shuffle_options", sa.Boolean(), nullable=True),
        sa.Column("max_attempts", sa.Integer(), nullable=True),
        sa.Column("time_limit_minutes", sa.Integer(), nullable=True),
        sa.Column("passing_score_percentage", sa.Integer(), nullable=True),
        sa.Column("available_from", sa.DateTime(timezone=True), nullable=True),
        sa.Column("available_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("direction", sa.Text(), nullable=True),
        sa.Column("timer_end_behavior", sa.String(30), nullable=True),
        sa.Column("is_sat", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("module_type IN ('lesson', 'quiz', 'test')", name="modules_type_check"),
        sa.CheckConstraint(_STATUS_CHECK, name="modules_status_check"),
        sa.CheckConstraint('"order" >= 1', name="modules_order_positive"),
        sa.ForeignKeyConstraint(["section_id"], ["sections.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("section_id", "order", name="uq_modules_section_order"),
    )
    op.create_index("ix_modules_module_type", "modules", ["module_type"], unique=False)
    op.create_index("ix_modules_section_id", "modules", ["section_id"], unique=False)

    op.create_table(
        "lesson_module_contents",
        sa.Column("id", _ID, nullable=False),
        sa.Column("module_id", _ID, nullable=False),
        sa.Column("content_id", _ID, nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["module_id"], ["modules.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["content_id"], ["lesson_contents.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("module_id", "content_id", name="uq_lesson_module_content"),
        sa.UniqueConstraint("module_id", "order", name="uq_lesson_module_content_order"),
    )
    op.create_index("ix_lesson_module_contents_module_id", "lesson_module_contents", ["module_id"], unique=False)
    op.create_index("ix_lesson_module_contents_content_id", "lesson_module_contents", ["content_id"], unique=False)

    op.create_table(
        "quiz_module_questions",
        sa.Column("id", _ID, nullable=False),
        sa.Column("module_id", _ID, nullable=False),
        sa.Column("question_id", _ID, nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.CheckConstraint("points >= 0", name="quiz_module_questions_points_check"),
        sa.ForeignKeyConstraint(["module_id"], ["modules.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["question_id"], ["questions.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("module_id", "question_id", name="uq_quiz_module_question"),
        sa.UniqueConstraint("module_id", "order", name="uq_quiz_module_question_order"),
    )
    op.create_index("ix_quiz_module_questions_module_id", "quiz_module_questions", ["module_id"], unique=False)
    op.create_index("ix_quiz_module_questions_question_id", "quiz_module_questions", ["question_id"], unique=False)

    op.create_table(
        "test_module_quizzes",
        sa.Column("id", _ID, nullable=False),
        sa.Column("test_module_id", _ID, nullable=False),
        sa.Column("quiz_module_id", _ID, nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["test_module_id"], ["modules.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["quiz_module_id"], ["modules.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("test_module_id", "quiz_module_id", name="uq_test_module_quiz"),
        sa.UniqueConstraint("test_module_id", "order", name="uq_test_module_quiz_order"),
    )
    op.create_index("ix_test_module_quizzes_test_module_id", "test_module_quizzes", ["test_module_id"], unique=False)
    op.create_index("ix_test_module_quizzes_quiz_module_id", "test_module_quizzes", ["quiz_module_id"], unique=False)

    op.create_table(
        "enrollments",
        sa.Column("id", _ID, nullable=False),
        sa.Column("user_id", _ID, nullable=False),
        sa.Column("course_id", _ID, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="enrolled"),
        sa.Column("enrollment_date", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_accessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("progress_percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_content_ids", sa.JSON(), nullable=False),
        sa.Column("completed_module_ids", sa.JSON(), nullable=False),
        sa.CheckConstraint("progress_percentage >= 0 AND progress_percentage <= 100", name="enrollments_progress_range"),
        sa.CheckConstraint("status IN ('enrolled', 'in-progress', 'completed', 'dropped')", name="enrollments_status_check"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "course_id", name="uq_enrollments_user_course"),
    )
    op.create_index("ix_enrollments_user_id", "enrollments", ["user_id"], unique=False)
    op.create_index("ix_enrollments_course_id", "enrollments", ["course_id"], unique=False)

    op.create_table(
        "quiz_attempts",
        sa.Column("id", _ID, nullable=False),
        sa.Column("user_id", _ID, nullable=False),
        sa.Column("module_id", _ID, nullable=False),
        sa.Column("enrollment_id", _ID, nullable=True),
        sa.Column("attempt_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="in-progress"),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_points_possible", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("passed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("graded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(_ATTEMPT_STATUS_CHECK, name="quiz_attempts_status_check"),
        sa.CheckConstraint("attempt_number >= 1", name="quiz_attempts_number_positive"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["module_id"], ["modules.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["enrollment_id"], ["enrollments.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "module_id", "attempt_number", name="uq_quiz_attempts_user_module_number"),
    )
    op.create_index("ix_quiz_attempts_user_id", "quiz_attempts", ["user_id"], unique=False)
    op.create_index("ix_quiz_attempts_module_id", "quiz_attempts", ["module_id"], unique=False)
    op.create_index("ix_quiz_attempts_status", "quiz_attempts", ["status"], unique=False)

    op.create_table(
        "practice_test_attempts",
        sa.Column("id", _ID, nullable=False),
        sa.Column("user_id", _ID, nullable=False),
        sa.Column("module_id", _ID, nullable=False),
        sa.Column("enrollment_id", _ID, nullable=True),
        sa.Column("attempt_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="in-progress"),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("section_scores", sa.JSON(), nullable=False),
        sa.Column("overall_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("overall_total_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sat_score_details", sa.JSON(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("graded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(_ATTEMPT_STATUS_CHECK, name="practice_test_attempts_status_check"),
        sa.CheckConstraint("attempt_number >= 1", name="practice_test_attempts_number_positive"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["module_id"], ["modules.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["enrollment_id"], ["enrollments.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "module_id", "attempt_number", name="uq_practice_attempts_user_module_number"),
    )
    op.create_index("ix_practice_test_attempts_user_id", "practice_test_attempts", ["user_id"], unique=False)
    op.create_index("ix_practice_test_attempts_module_id", "practice_test_attempts", ["module_id"], unique=False)
    op.create_index("ix_practice_test_attempts_status", "practice_test_attempts", ["status"], unique=False)


def downgrade() -> None:
    op.drop_table("practice_test_attempts")
    op.drop_table("quiz_attempts")
    op.drop_table("enrollments")
    op.drop_table("test_module_quizzes")
    op.drop_table("quiz_module_questions")
    op.drop_table("lesson_module_contents")
    op.drop_table("modules")
    op.drop_table("questions")
    op.drop_table("lesson_contents")
    op.drop_table("sections")
    op.drop_table("courses")
    op.drop_table("categories")
    op.drop_table("users")
    op.drop_table("roles")
