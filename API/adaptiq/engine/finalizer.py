"""
Session finalizer: aggregate a completed session's answers and persist them as one unit.

Three records are written in a single transaction:
  * the full-detail submission (assignment + student),
  * the student's compact summary used for rollups and chapter history,
  * the completion marker on the assignment.
Either all three commit or none do. The engine does not deduplicate repeated finalize calls;
a repeat overwrites the same three records with whatever the caller sends.
"""
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from adaptiq.core.errors import FinalizationError
from adaptiq.core.logging import DOMAIN_ANALYTICS, get_domain_logger, log_event
from adaptiq.engine.skill_profiler import CognitiveLabel, build_skill_profile, parse_label
from adaptiq.models.entities import AssignmentCompletion, QuizAssignment, QuizSubmission, StudentSubmissionSummary
from adaptiq.schemas.quiz import Answer, QuizAnalysis, SessionAnalytics, SessionState, SkillBucket

logger = get_domain_logger(__name__, DOMAIN_ANALYTICS)

STRENGTH_RATE = 0.7
WEAKNESS_RATE = 0.5


def cognitive_averages(answers: Sequence[Answer]) -> dict[str, float]:
    """Mean recorded weight per canonical cognitive label; alias spellings share one entry."""
    totals: dict[CognitiveLabel, list[float]] = {}
    for answer in answers:
        for label, weight in answer.cognitive_analysis.items():
            parsed = parse_label(label)
            # Unknown labels are already counted as unclassified by the skill profile.
            if parsed is not None:
                totals.setdefault(parsed, []).append(weight)
    return {label.value: round(sum(values) / len(values), 4) for label, values in totals.items()}


def _narrative(score: float, correct: int, total: int, averages: dict[str, float], strengths, weaknesses) -> str:
    parts = [f"Scored {score:.1f}% ({correct}/{total} correct)."]
    if averages:
        ranked = sorted(averages.items(), key=lambda item: item[1], reverse=True)
        parts.append(f"Strongest cognitive signal: {ranked[0][0]} ({ranked[0][1]:.2f}).")
        if len(ranked) > 1 and ranked[-1][1] < ranked[0][1]:
            parts.append(f"Weakest cognitive signal: {ranked[-1][0]} ({ranked[-1][1]:.2f}).")
    if strengths:
        parts.append(f"Strengths: {', '.join(strengths)}.")
    if weaknesses:
        parts.append(f"Needs practice: {', '.join(weaknesses)}.")
    return " ".join(parts)


def compute_session_analytics(
    student_id: str,
    assignment_id: str,
    session_state: SessionState,
    answers: Sequence[Answer],
    now: datetime | None = None,
) -> SessionAnalytics | None:
    """Aggregate answers into analytics; None for an empty session."""
    if not answers:
        return None

    total = len(answers)
    correct = sum(1 for a in answers if a.is_correct)
    score = round(100.0 * correct / total, 1)
    profile = build_skill_profile(answers)
    averages = cognitive_averages(answers)

    strengths, weaknesses = [], []
    for bucket in SkillBucket:
        rate = profile.tally(bucket).correct_rate
        if rate is None:
            continue
        if rate >= STRENGTH_RATE:
            strengths.append(bucket.value)
        elif rate < WEAKNESS_RATE:
            weaknesses.append(bucket.value)

    previous = session_state.previous_performance
    assignment = session_state.assignment
    return SessionAnalytics(
        student_id=student_id,
        assignment_id=assignment_id,
        subject_code=assignment.subject_code,
        chapter_id=assignment.chapter_id,
        subtopic_id=assignment.subtopic_id,
        total_questions=total,
        correct_answers=correct,
        score=score,
        cognitive_averages=averages,
        skill_profile=profile,
        strengths=strengths,
        weaknesses=weaknesses,
        summary=_narrative(score, correct, total, averages, strengths, weaknesses),
        total_time=round(sum(a.response_time for a in answers), 3),
        difficulty_progression=[a.difficulty for a in answers],
        attempts=(previous.attempts if previous else 0) + 1,
        last_attempted=now or datetime.now(timezone.utc),
        answers=list(answers),
    )


async def persist_session_analytics(
    db: AsyncSession,
    session_state: SessionState,
    analytics: SessionAnalytics,
) -> None:
    assignment_id, student_id = analytics.assignment_id, analytics.student_id
    try:
        assignment = await db.get(QuizAssignment, assignment_id)
        if assignment is None:
            raise FinalizationError(f"Quiz assignment {assignment_id} no longer exists; nothing was saved")

        submission = await db.get(QuizSubmission, (assignment_id, student_id))
        if submission is None:
            submission = QuizSubmission(assignment_id=assignment_id, student_id=student_id)
            db.add(submission)
        submission.score = analytics.score
        submission.total_questions = analytics.total_questions
        submission.correct_answers = analytics.correct_answers
        submission.attempts = analytics.attempts
        submission.summary = analytics.summary
        submission.analytics = analytics.model_dump(mode="json", exclude={"answers"})
        submission.answers = [a.model_dump(mode="json") for a in analytics.answers]
        submission.session_context = session_state.model_dump(mode="json")
        submission.last_attempted = analytics.last_attempted

        summary = await db.get(StudentSubmissionSummary, (student_id, assignment_id))
        if summary is None:
            summary = StudentSubmissionSummary(student_id=student_id, assignment_id=assignment_id)
            db.add(summary)
        summary.score = analytics.score
        summary.subject_code = analytics.subject_code
        summary.chapter_id = analytics.chapter_id
        summary.subtopic_id = analytics.subtopic_id
        summary.last_attempted = analytics.last_attempted

        completion = await db.get(AssignmentCompletion, (assignment_id, student_id))
        if completion is None:
            db.add(
                AssignmentCompletion(
                    assignment_id=assignment_id,
                    student_id=student_id,
                    completed_at=analytics.last_attempted,
                )
            )
        else:
            completion.completed_at = analytics.last_attempted

        await db.commit()
    except FinalizationError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        raise FinalizationError(f"Could not save quiz results: {exc.__class__.__name__}") from exc
    except Exception:
        await db.rollback()
        raise


async def finalize_session(
    db: AsyncSession,
    student_id: str,
    assignment_id: str,
    session_state: SessionState,
    answers: Sequence[Answer],
) -> dict:
    """Compute and atomically persist session analytics. Returns {} without writing for no answers."""
    analytics = compute_session_analytics(student_id, assignment_id, session_state, answers)
    if analytics is None:
        log_event(logger, "finalize_skipped", reason="no_answers", student_id=student_id, assignment_id=assignment_id)
        return {}

    await persist_session_analytics(db, session_state, analytics)
    log_event(
        logger,
        "session_finalized",
        student_id=student_id,
        assignment_id=assignment_id,
        score=analytics.score,
        total_questions=analytics.total_questions,
        attempts=analytics.attempts,
    )
    return analytics.model_dump(mode="json")


async def attach_quiz_analysis(
    db: AsyncSession,
    assignment_id: str,
    student_id: str,
    analysis: QuizAnalysis,
) -> bool:
    """Merge the whole-session analysis into an existing submission. Best effort."""
    try:
        submission = await db.get(QuizSubmission, (assignment_id, student_id))
        if submission is None:
            return False
        submission.analysis = analysis.model_dump()
        await db.commit()
        return True
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning("Could not store quiz analysis for %s/%s: %s", assignment_id, student_id, exc)
        return False
