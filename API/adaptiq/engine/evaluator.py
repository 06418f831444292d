import regex

from adaptiq.core.logging import DOMAIN_SESSION, get_domain_logger
from adaptiq.schemas.quiz import EvaluationResult, QuestionSpec, QuestionType

logger = get_domain_logger(__name__, DOMAIN_SESSION)

CORRECT_FEEDBACK = "Correct! Well done."
INCORRECT_MCQ_FEEDBACK = "Not quite. The correct answer is: {answer}"
INCORRECT_SHORT_FEEDBACK = "Not quite. Review the explanation to see what was expected."

# Limits for untrusted patterns and submissions.
MAX_PATTERN_CHARS = 200
MAX_ANSWER_CHARS = 2000
PATTERN_TIMEOUT_SECONDS = 0.05


def _keyword_match(keywords: list[str], submitted: str) -> bool:
    lowered = submitted.lower()
    return any(keyword.lower() in lowered for keyword in keywords if keyword.strip())


def _short_answer_match(question: QuestionSpec, submitted: str) -> bool:
    submitted = submitted[:MAX_ANSWER_CHARS]
    pattern_text = question.answer_pattern
    if not pattern_text:
        return _keyword_match(question.expected_keywords, submitted)
    if len(pattern_text) > MAX_PATTERN_CHARS:
        logger.warning("Answer pattern of %s chars exceeds limit; grading by keywords", len(pattern_text))
        return _keyword_match(question.expected_keywords, submitted)
    try:
        pattern = regex.compile(pattern_text, regex.IGNORECASE)
        return pattern.search(submitted, timeout=PATTERN_TIMEOUT_SECONDS) is not None
    except regex.error:
        # Invalid expression; keywords decide instead.
        return _keyword_match(question.expected_keywords, submitted)
    except TimeoutError:
        logger.warning("Answer pattern %r timed out; grading by keywords", pattern_text)
        return _keyword_match(question.expected_keywords, submitted)


def evaluate_answer(question: QuestionSpec, student_answer: str) -> EvaluationResult:
    """Grade a submission against the question's declared answer shape. Never raises."""
    submitted = "" if student_answer is None else str(student_answer)

    if question.type == QuestionType.MCQ:
        # Exact, case-sensitive match against the declared option.
        is_correct = question.correct_answer is not None and submitted == question.correct_answer
        incorrect = INCORRECT_MCQ_FEEDBACK.format(answer=question.correct_answer or "")
    else:
        is_correct = _short_answer_match(question, submitted)
        incorrect = INCORRECT_SHORT_FEEDBACK

    return EvaluationResult(
        is_correct=is_correct,
        feedback=CORRECT_FEEDBACK if is_correct else incorrect,
        explanation=question.explanation,
        cognitive_analysis=dict(question.cognitive_analysis),
    )
