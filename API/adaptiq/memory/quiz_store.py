import logging

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adaptiq.core.errors import EntityNotFoundError
from adaptiq.models.entities import (
    QuizAssignment,
    QuizSubmission,
    Student,
    StudentSubmissionSummary,
    SubtopicContent,
)
from adaptiq.schemas.quiz import (
    Answer,
    AssignmentInfo,
    PreviousPerformance,
    SessionState,
    StudentProfile,
    TextbookContent,
)

logger = logging.getLogger(__name__)


async def load_session_state(db: AsyncSession, student_id: str, assignment_id: str) -> SessionState:
    student = await db.get(Student, student_id)
    if student is None:
        raise EntityNotFoundError("Student", student_id)
    if not student.class_code:
        raise EntityNotFoundError("Class code for student", student_id)

    assignment = (
        await db.execute(
            select(QuizAssignment).where(
                QuizAssignment.id == assignment_id,
                QuizAssignment.class_code == student.class_code,
            )
        )
    ).scalar_one_or_none()
    if assignment is None:
        raise EntityNotFoundError("Quiz assignment", assignment_id)

    content = await db.get(
        SubtopicContent,
        (assignment.subject_code, assignment.chapter_id, assignment.subtopic_id),
    )
    if content is None:
        raise EntityNotFoundError(
            "Subtopic content",
            f"{assignment.subject_code}/{assignment.chapter_id}/{assignment.subtopic_id}",
        )

    previous = await db.get(QuizSubmission, (assignment_id, student_id))
    previous_performance = None
    if previous is not None:
        stored = previous.analytics or {}
        previous_performance = PreviousPerformance(
            score=previous.score,
            attempts=previous.attempts,
            summary=previous.summary,
            strengths=list(stored.get("strengths", [])),
            weaknesses=list(stored.get("weaknesses", [])),
        )

    return SessionState(
        student=StudentProfile(student_id=student.id, name=student.name, class_code=student.class_code),
        assignment=AssignmentInfo(
            assignment_id=assignment.id,
            subject_code=assignment.subject_code,
            chapter_id=assignment.chapter_id,
            subtopic_id=assignment.subtopic_id,
            title=assignment.title,
        ),
        textbook_content=TextbookContent(title=content.title, content=content.content),
        previous_performance=previous_performance,
    )


async def load_chapter_history(
    db: AsyncSession,
    student_id: str,
    subject_code: str,
    chapter_id: str,
) -> list[Answer]:
    """All answers from the student's earlier submissions on this chapter, oldest first."""
    rows = (
        await db.execute(
            select(QuizSubmission.answers)
            .join(
                StudentSubmissionSummary,
                (StudentSubmissionSummary.assignment_id == QuizSubmission.assignment_id)
                & (StudentSubmissionSummary.student_id == QuizSubmission.student_id),
            )
            .where(
                StudentSubmissionSummary.student_id == student_id,
                StudentSubmissionSummary.subject_code == subject_code,
                StudentSubmissionSummary.chapter_id == chapter_id,
            )
            .order_by(StudentSubmissionSummary.last_attempted.asc())
        )
    ).scalars().all()

    history: list[Answer] = []
    skipped = 0
    for stored_answers in rows:
        for raw in stored_answers or []:
            try:
                history.append(Answer.model_validate(raw))
            except ValidationError:
                skipped += 1
    if skipped:
        logger.warning("Skipped %s malformed stored answers for student=%s chapter=%s", skipped, student_id, chapter_id)
    return history
