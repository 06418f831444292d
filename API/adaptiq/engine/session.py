"""
The four operations the UI layer drives a quiz through:

    initialize -> next_question / evaluate (repeated) -> finalize

Every function is stateless. The caller keeps the session state and the growing answer list
and passes them back on each call.
"""
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from adaptiq.agents.question_generation import GenerationResult, QuestionGenerationAgent
from adaptiq.core.logging import DOMAIN_SESSION, get_domain_logger, log_event
from adaptiq.engine.context_builder import build_question_context
from adaptiq.engine.difficulty import calculate_difficulty
from adaptiq.engine.evaluator import evaluate_answer
from adaptiq.engine.finalizer import finalize_session
from adaptiq.engine.prompt_composer import MAX_QUESTIONS_PER_SESSION, ChapterHistoryLookup, compose_generation_prompt
from adaptiq.memory import quiz_store
from adaptiq.schemas.quiz import Answer, EvaluationResult, QuestionSpec, SessionState

logger = get_domain_logger(__name__, DOMAIN_SESSION)


def session_complete(question_number: int) -> bool:
    return int(question_number) > MAX_QUESTIONS_PER_SESSION


async def initialize(db: AsyncSession, student_id: str, assignment_id: str) -> SessionState:
    """Load identity and learning content. Raises EntityNotFoundError for missing records."""
    state = await quiz_store.load_session_state(db, student_id, assignment_id)
    log_event(
        logger,
        "session_initialized",
        student_id=student_id,
        assignment_id=assignment_id,
        subject_code=state.assignment.subject_code,
        chapter_id=state.assignment.chapter_id,
        subtopic_id=state.assignment.subtopic_id,
        previous_attempts=state.previous_performance.attempts if state.previous_performance else 0,
    )
    return state


async def generate_question(
    session_state: SessionState,
    question_number: int,
    previous_answers: Sequence[Answer],
    *,
    history_lookup: ChapterHistoryLookup,
    agent: QuestionGenerationAgent,
) -> GenerationResult:
    try:
        context = build_question_context(session_state, question_number, previous_answers)
        difficulty = calculate_difficulty(context)
        prompt = await compose_generation_prompt(
            context, difficulty, session_state.student.student_id, history_lookup
        )
    except Exception as exc:
        return agent.fallback(f"prompt_assembly_failed: {type(exc).__name__}: {exc}")

    result = await agent.generate(prompt)
    log_event(
        logger,
        "question_generated",
        student_id=session_state.student.student_id,
        assignment_id=session_state.assignment.assignment_id,
        question_number=context.question_number,
        difficulty=difficulty,
        skill_profile=context.skill_profile.as_dict(),
        source=result.source,
    )
    return result


async def next_question(
    session_state: SessionState,
    question_number: int,
    previous_answers: Sequence[Answer],
    *,
    history_lookup: ChapterHistoryLookup,
    agent: QuestionGenerationAgent,
) -> QuestionSpec:
    """Never raises: any failure along the way produces the fallback question."""
    result = await generate_question(
        session_state,
        question_number,
        previous_answers,
        history_lookup=history_lookup,
        agent=agent,
    )
    return result.question


def evaluate(question: QuestionSpec, student_answer: str) -> EvaluationResult:
    return evaluate_answer(question, student_answer)


async def finalize(
    db: AsyncSession,
    student_id: str,
    assignment_id: str,
    session_state: SessionState,
    answers: Sequence[Answer],
) -> dict:
    """Raises FinalizationError when the atomic write fails; {} and no writes for no answers."""
    return await finalize_session(db, student_id, assignment_id, session_state, answers)
