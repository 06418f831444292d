"""
Turns a question context and difficulty into the two-part generation request.

The instruction block is fixed; the context block changes per call. Nothing here talks to the
provider: the caller dispatches the returned prompts.
"""
from collections.abc import Awaitable, Callable, Sequence

from adaptiq.engine.skill_profiler import build_skill_profile
from adaptiq.schemas.quiz import Answer, GenerationPrompt, QuestionContext, SkillBucket, SkillProfile

MAX_QUESTIONS_PER_SESSION = 15
MIN_COGNITIVE_SCORE = 0.1
MAX_COGNITIVE_SCORE = 1.0

ChapterHistoryLookup = Callable[[str, str, str], Awaitable[Sequence[Answer]]]

SYSTEM_PROMPT = f"""You are an adaptive quiz engine for school students.

Rules you must follow on every call:
1. Return exactly ONE question as a single JSON object. Never return a list or a batch.
2. Cycle across three cognitive skills: recall (memory_retrieval), conceptual (conceptual_understanding)
   and reasoning (problem_solving). Weight your choice toward the skills with the lowest historical
   correct rate.
3. Never repeat a question already asked in this session.
4. A session has at most {MAX_QUESTIONS_PER_SESSION} questions.
5. Ground the question strictly in the learning content provided.
6. Output fields:
   - "type": "mcq" or "short_answer"
   - "question": the prompt text
   - for "mcq": "options" (4 strings) and "correct_answer" (exactly equal to one option)
   - for "short_answer": "answer_pattern" (a case-insensitive regular expression) and/or
     "expected_keywords" (list of strings)
   - "difficulty": number between 0 and 1
   - "explanation": why the correct answer is correct
   - "cognitive_analysis": object mapping memory_retrieval, conceptual_understanding and
     problem_solving to scores greater than {MIN_COGNITIVE_SCORE} and at most {MAX_COGNITIVE_SCORE}
7. Respond with the JSON object only. No prose, no markdown fences.
"""


def _rate_text(tally) -> str:
    rate = tally.correct_rate
    pct = f" ({round(rate * 100)}%)" if rate is not None else ""
    return f"{tally.correct}/{tally.count} correct{pct}"


def _priority_order(history: SkillProfile) -> list[SkillBucket]:
    # Untested skills first, then lowest historical correct rate.
    def key(bucket: SkillBucket):
        rate = history.tally(bucket).correct_rate
        return (rate is not None, rate if rate is not None else 0.0)

    return sorted(SkillBucket, key=key)


def summarize_skill_profiles(current: SkillProfile, history: SkillProfile) -> str:
    lines = []
    for bucket in SkillBucket:
        lines.append(
            f"- {bucket.value}: this session {_rate_text(current.tally(bucket))}; "
            f"previous sessions {_rate_text(history.tally(bucket))}"
        )
    priority = ", ".join(bucket.value for bucket in _priority_order(history))
    lines.append(f"Suggested skill priority: {priority}")
    return "\n".join(lines)


def build_user_prompt(context: QuestionContext, difficulty: float, history: SkillProfile) -> str:
    subtopic = f"{context.subtopic_id} ({context.subtopic_title})" if context.subtopic_title else context.subtopic_id
    return (
        f"Subject: {context.subject_code}\n"
        f"Chapter: {context.chapter_id}\n"
        f"Subtopic: {subtopic}\n"
        f"Question number: {context.question_number} of at most {MAX_QUESTIONS_PER_SESSION}\n"
        f"Target difficulty: {difficulty:.1f}\n\n"
        f"Skill profile:\n{summarize_skill_profiles(context.skill_profile, history)}\n\n"
        f"Learning content:\n{context.learning_content}\n"
    )


async def compose_generation_prompt(
    context: QuestionContext,
    difficulty: float,
    student_id: str,
    history_lookup: ChapterHistoryLookup,
) -> GenerationPrompt:
    """Fetch the student's chapter history, profile it, and build the system/user prompt pair."""
    prior_answers = await history_lookup(student_id, context.subject_code, context.chapter_id)
    history = build_skill_profile(prior_answers)
    return GenerationPrompt(
        system_prompt=SYSTEM_PROMPT,
        user_prompt=build_user_prompt(context, difficulty, history),
    )
