from functools import partial

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from adaptiq.agents.question_generation import QuestionGenerationAgent
from adaptiq.agents.quiz_analysis import QuizAnalysisAgent
from adaptiq.core.logging import DOMAIN_SESSION, get_domain_logger, log_event
from adaptiq.engine import session as quiz_engine
from adaptiq.engine.context_builder import build_question_context
from adaptiq.engine.finalizer import attach_quiz_analysis
from adaptiq.memory import session_store
from adaptiq.memory.database import get_db
from adaptiq.memory.quiz_store import load_chapter_history
from adaptiq.schemas.quiz import SessionState
from adaptiq.schemas.session import (
    CompleteSessionRequest,
    CompleteSessionResponse,
    EvaluateAnswerRequest,
    EvaluateAnswerResponse,
    InitializeSessionRequest,
    InitializeSessionResponse,
    NextQuestionRequest,
    NextQuestionResponse,
)

router = APIRouter(prefix="/quiz-session", tags=["quiz-session"])
logger = get_domain_logger(__name__, DOMAIN_SESSION)

question_agent = QuestionGenerationAgent()
analysis_agent = QuizAnalysisAgent()


async def _resolve_session_state(student_id: str, assigned_quiz_id: str, supplied: SessionState | None) -> SessionState:
    if supplied is not None:
        return supplied
    cached = await session_store.load_session_state(student_id, assigned_quiz_id)
    if cached is None:
        raise HTTPException(status_code=404, detail="Quiz session not found or expired. Start the quiz again.")
    return cached


@router.post("/initialize", response_model=InitializeSessionResponse)
async def initialize_session(payload: InitializeSessionRequest, db: AsyncSession = Depends(get_db)):
    state = await quiz_engine.initialize(db, payload.student_id, payload.assigned_quiz_id)
    await session_store.save_session_state(state)
    result = await quiz_engine.generate_question(
        state,
        1,
        [],
        history_lookup=partial(load_chapter_history, db),
        agent=question_agent,
    )
    return InitializeSessionResponse(
        session_state=state,
        question=result.question,
        question_number=1,
        question_source=result.source,
    )


@router.post("/next", response_model=NextQuestionResponse)
async def next_question(payload: NextQuestionRequest, db: AsyncSession = Depends(get_db)):
    state = await _resolve_session_state(payload.student_id, payload.assigned_quiz_id, payload.session_state)
    if quiz_engine.session_complete(payload.question_number):
        return NextQuestionResponse(question=None, question_number=payload.question_number, quiz_complete=True)

    result = await quiz_engine.generate_question(
        state,
        payload.question_number,
        payload.previous_answers,
        history_lookup=partial(load_chapter_history, db),
        agent=question_agent,
    )
    return NextQuestionResponse(
        question=result.question,
        question_number=payload.question_number,
        question_source=result.source,
    )


@router.post("/evaluate", response_model=EvaluateAnswerResponse)
def evaluate_answer(payload: EvaluateAnswerRequest):
    return EvaluateAnswerResponse(evaluation=quiz_engine.evaluate(payload.question, payload.student_answer))


@router.post("/complete", response_model=CompleteSessionResponse)
async def complete_session(payload: CompleteSessionRequest, db: AsyncSession = Depends(get_db)):
    state = await _resolve_session_state(payload.student_id, payload.assigned_quiz_id, payload.session_state)
    analytics = await quiz_engine.finalize(db, payload.student_id, payload.assigned_quiz_id, state, payload.answers)
    if not analytics:
        return CompleteSessionResponse(message="No answers were recorded; nothing was saved.", analytics={})

    analysis = None
    if payload.include_analysis:
        timestamps = [a.timestamp for a in payload.answers]
        quiz_seconds = (max(timestamps) - min(timestamps)).total_seconds()
        context = build_question_context(state, len(payload.answers), payload.answers)
        analysis = await analysis_agent.analyze(context, payload.answers, quiz_seconds)
        stored = await attach_quiz_analysis(db, payload.assigned_quiz_id, payload.student_id, analysis)
        log_event(
            logger,
            "quiz_analysis",
            student_id=payload.student_id,
            assignment_id=payload.assigned_quiz_id,
            source=analysis.source,
            stored=stored,
        )

    await session_store.clear_session_state(payload.student_id, payload.assigned_quiz_id)
    return CompleteSessionResponse(
        message="Quiz completed and analytics saved successfully.",
        analytics=analytics,
        analysis=analysis,
    )
