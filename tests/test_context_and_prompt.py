from __future__ import annotations

import pytest
from pydantic import ValidationError

from adaptiq.engine.context_builder import build_question_context
from adaptiq.engine.prompt_composer import (
    MAX_QUESTIONS_PER_SESSION,
    SYSTEM_PROMPT,
    compose_generation_prompt,
)


def test_context_carries_ids_content_and_summaries_only(session_state, make_answer):
    answers = [make_answer(True, question="What is 2x if x = 3?", answer="6")]
    context = build_question_context(session_state, 2, answers)

    assert context.student_id == "stu-1"
    assert (context.subject_code, context.chapter_id, context.subtopic_id) == ("MATH", "algebra", "linear-equations")
    assert context.question_number == 2
    assert context.learning_content.startswith("A linear equation")
    assert len(context.previous_answers) == 1
    dumped = context.model_dump_json()
    assert "What is 2x" not in dumped
    assert context.previous_answers[0].is_correct is True
    assert context.previous_answers[0].cognitive_analysis == {"problem_solving": 0.8, "memory_retrieval": 0.3}


def test_context_is_frozen(session_state):
    context = build_question_context(session_state, 1)
    with pytest.raises(ValidationError):
        context.question_number = 7


@pytest.mark.asyncio
async def test_prompt_contains_difficulty_content_and_history(session_state, make_answer):
    calls = []

    async def history_lookup(student_id, subject_code, chapter_id):
        calls.append((student_id, subject_code, chapter_id))
        return [make_answer(False, {"memory_retrieval": 0.9}), make_answer(True, {"memory_retrieval": 0.8})]

    answers = [make_answer(True, {"problem_solving": 0.9}) for _ in range(3)]
    context = build_question_context(session_state, 4, answers)
    prompt = await compose_generation_prompt(context, 0.6, "stu-1", history_lookup)

    assert calls == [("stu-1", "MATH", "algebra")]
    assert prompt.system_prompt == SYSTEM_PROMPT
    assert "exactly ONE question" in prompt.system_prompt
    assert str(MAX_QUESTIONS_PER_SESSION) in prompt.system_prompt
    assert "Target difficulty: 0.6" in prompt.user_prompt
    assert "isolating the variable" in prompt.user_prompt
    assert "reasoning: this session 3/3 correct (100%)" in prompt.user_prompt
    assert "recall: this session 0/0 correct; previous sessions 1/2 correct (50%)" in prompt.user_prompt
    # Untested skills come before the partially mastered one.
    assert "Suggested skill priority: conceptual, reasoning, recall" in prompt.user_prompt


@pytest.mark.asyncio
async def test_prompt_with_empty_history(session_state):
    async def history_lookup(student_id, subject_code, chapter_id):
        return []

    context = build_question_context(session_state, 1)
    prompt = await compose_generation_prompt(context, 0.3, "stu-1", history_lookup)
    assert "Target difficulty: 0.3" in prompt.user_prompt
    assert "Question number: 1 of at most 15" in prompt.user_prompt
