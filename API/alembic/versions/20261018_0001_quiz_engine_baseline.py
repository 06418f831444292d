"""quiz engine baseline: students, assignments, content, submissions, completions

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:30:00
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "students",
        sa.Column("id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("class_code", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "quiz_assignments",
        sa.Column("id", sa.String(length=128), nullable=False),
        sa.Column("class_code", sa.String(length=64), nullable=False),
        sa.Column("subject_code", sa.String(length=64), nullable=False),
        sa.Column("chapter_id", sa.String(length=128), nullable=False),
        sa.Column("subtopic_id", sa.String(length=128), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_quiz_assignments_class_code", "quiz_assignments", ["class_code"], unique=False)

    op.create_table(
        "subtopic_contents",
        sa.Column("subject_code", sa.String(length=64), nullable=False),
        sa.Column("chapter_id", sa.String(length=128), nullable=False),
        sa.Column("subtopic_id", sa.String(length=128), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("subject_code", "chapter_id", "subtopic_id"),
    )

    op.create_table(
        "quiz_submissions",
        sa.Column("assignment_id", sa.String(length=128), nullable=False),
        sa.Column("student_id", sa.String(length=128), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("correct_answers", sa.Integer(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("analytics", sa.JSON(), nullable=False),
        sa.Column("answers", sa.JSON(), nullable=False),
        sa.Column("session_context", sa.JSON(), nullable=False),
        sa.Column("analysis", sa.JSON(), nullable=True),
        sa.Column("last_attempted", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("assignment_id", "student_id"),
    )

    op.create_table(
        "student_submission_summaries",
        sa.Column("student_id", sa.String(length=128), nullable=False),
        sa.Column("assignment_id", sa.String(length=128), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("subject_code", sa.String(length=64), nullable=False),
        sa.Column("chapter_id", sa.String(length=128), nullable=False),
        sa.Column("subtopic_id", sa.String(length=128), nullable=False),
        sa.Column("last_attempted", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("student_id", "assignment_id"),
    )
    op.create_index(
        "idx_submission_summaries_student_chapter",
        "student_submission_summaries",
        ["student_id", "subject_code", "chapter_id"],
        unique=False,
    )

    op.create_table(
        "assignment_completions",
        sa.Column("assignment_id", sa.String(length=128), nullable=False),
        sa.Column("student_id", sa.String(length=128), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["assignment_id"], ["quiz_assignments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("assignment_id", "student_id"),
    )


def downgrade() -> None:
    op.drop_table("assignment_completions")
    op.drop_index("idx_submission_summaries_student_chapter", table_name="student_submission_summaries")
    op.drop_table("student_submission_summaries")
    op.drop_table("quiz_submissions")
    op.drop_table("subtopic_contents")
    op.drop_index("idx_quiz_assignments_class_code", table_name="quiz_assignments")
    op.drop_table("quiz_assignments")
    op.drop_table("students")
