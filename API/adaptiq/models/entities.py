from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from adaptiq.models.base import Base


class Student(Base):
    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    class_code: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class QuizAssignment(Base):
    __tablename__ = "quiz_assignments"
    __table_args__ = (Index("idx_quiz_assignments_class_code", "class_code"),)

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    class_code: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_code: Mapped[str] = mapped_column(String(64), nullable=False)
    chapter_id: Mapped[str] = mapped_column(String(128), nullable=False)
    subtopic_id: Mapped[str] = mapped_column(String(128), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SubtopicContent(Base):
    __tablename__ = "subtopic_contents"

    subject_code: Mapped[str] = mapped_column(String(64), primary_key=True)
    chapter_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    subtopic_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")


class QuizSubmission(Base):
    """Full-detail report for one student's session on one assignment."""

    __tablename__ = "quiz_submissions"

    assignment_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    analytics: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    answers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    session_context: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    analysis: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    last_attempted: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class StudentSubmissionSummary(Base):
    """Compact per-student record used for analytics rollups and chapter history lookups."""

    __tablename__ = "student_submission_summaries"
    __table_args__ = (
        Index("idx_submission_summaries_student_chapter", "student_id", "subject_code", "chapter_id"),
    )

    student_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    assignment_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    subject_code: Mapped[str] = mapped_column(String(64), nullable=False)
    chapter_id: Mapped[str] = mapped_column(String(128), nullable=False)
    subtopic_id: Mapped[str] = mapped_column(String(128), nullable=False)
    last_attempted: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class AssignmentCompletion(Base):
    __tablename__ = "assignment_completions"

    assignment_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("quiz_assignments.id", ondelete="CASCADE"), primary_key=True
    )
    student_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
