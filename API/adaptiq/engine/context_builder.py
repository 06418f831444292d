from collections.abc import Sequence

from adaptiq.engine.skill_profiler import build_skill_profile
from adaptiq.schemas.quiz import Answer, AnswerSummary, QuestionContext, SessionState


def build_question_context(
    session_state: SessionState,
    question_number: int,
    previous_answers: Sequence[Answer] = (),
) -> QuestionContext:
    """
    Assemble the per-call generation context from loaded session state and in-memory answers.

    Prior answers are reduced to correctness plus cognitive weights; question and response
    text never leave the session.
    """
    summaries = [
        AnswerSummary(is_correct=answer.is_correct, cognitive_analysis=dict(answer.cognitive_analysis))
        for answer in previous_answers
    ]
    assignment = session_state.assignment
    return QuestionContext(
        student_id=session_state.student.student_id,
        subject_code=assignment.subject_code,
        chapter_id=assignment.chapter_id,
        subtopic_id=assignment.subtopic_id,
        subtopic_title=session_state.textbook_content.title,
        question_number=max(1, int(question_number)),
        learning_content=session_state.textbook_content.content,
        previous_answers=summaries,
        skill_profile=build_skill_profile(summaries),
    )
