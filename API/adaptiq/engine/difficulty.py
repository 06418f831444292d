from adaptiq.schemas.quiz import QuestionContext

BASE_DIFFICULTY = 0.3
DIFFICULTY_STEP = 0.1
MAX_DIFFICULTY = 0.9


def difficulty_for_correct_count(correct_count: int) -> float:
    """0.3 plus 0.1 per correct answer, saturating at 0.9 after six correct answers."""
    raw = BASE_DIFFICULTY + DIFFICULTY_STEP * max(0, int(correct_count))
    return round(min(MAX_DIFFICULTY, raw), 1)


def calculate_difficulty(context: QuestionContext) -> float:
    # Depends only on how many answers were correct, not on skill or recency.
    if not context.previous_answers:
        return BASE_DIFFICULTY
    correct = sum(1 for answer in context.previous_answers if answer.is_correct)
    return difficulty_for_correct_count(correct)
