from __future__ import annotations

import time

from adaptiq.engine import evaluator
from adaptiq.engine.evaluator import CORRECT_FEEDBACK, MAX_PATTERN_CHARS, evaluate_answer
from adaptiq.schemas.quiz import QuestionSpec, QuestionType


def _mcq(options=("Berlin", "Madrid", "Paris", "Rome"), correct="Paris"):
    return QuestionSpec(
        type=QuestionType.MCQ,
        question="What is the capital of France?",
        options=list(options),
        correct_answer=correct,
        explanation="Paris is the capital.",
        cognitive_analysis={"memory_retrieval": 0.9},
    )


def test_mcq_exact_match_is_correct():
    result = evaluate_answer(_mcq(), "Paris")
    assert result.is_correct is True
    assert result.feedback == CORRECT_FEEDBACK
    assert result.explanation == "Paris is the capital."
    assert result.cognitive_analysis == {"memory_retrieval": 0.9}


def test_mcq_is_case_sensitive():
    result = evaluate_answer(_mcq(), "paris")
    assert result.is_correct is False
    assert "Paris" in result.feedback


def test_mcq_correct_option_is_accepted_in_any_position():
    options = ["Berlin", "Madrid", "Paris", "Rome"]
    for shift in range(len(options)):
        rotated = options[shift:] + options[:shift]
        assert evaluate_answer(_mcq(rotated), "Paris").is_correct is True
        assert evaluate_answer(_mcq(rotated), "Rome").is_correct is False


def test_short_answer_pattern_is_case_insensitive_search():
    question = QuestionSpec(type="short_answer", question="Capital of France?", answer_pattern="paris")
    assert evaluate_answer(question, "Paris is the capital").is_correct is True
    assert evaluate_answer(question, "Lyon").is_correct is False


def test_invalid_pattern_falls_back_to_keywords():
    question = QuestionSpec(
        type="short_answer",
        question="What do plants release?",
        answer_pattern="(unclosed",
        expected_keywords=["Oxygen"],
    )
    assert evaluate_answer(question, "they release oxygen").is_correct is True
    assert evaluate_answer(question, "carbon dioxide").is_correct is False


def test_keywords_only_short_answer():
    question = QuestionSpec(type="short_answer", question="Name the pigment.", expectedKeywords=["chlorophyll"])
    assert evaluate_answer(question, "It is CHLOROPHYLL").is_correct is True
    assert evaluate_answer(question, "").is_correct is False


def test_short_answer_without_any_rule_is_incorrect():
    question = QuestionSpec(type="short_answer", question="Anything?")
    assert evaluate_answer(question, "something").is_correct is False


def test_catastrophic_pattern_returns_promptly():
    question = QuestionSpec(
        type="short_answer",
        question="Type the letters.",
        answer_pattern="^(a+)+$",
        expected_keywords=["zzz"],
    )
    started = time.perf_counter()
    result = evaluate_answer(question, "a" * 40 + "b")
    assert time.perf_counter() - started < 2.0
    assert result.is_correct is False


def test_timed_out_match_is_graded_by_keywords(monkeypatch):
    class _SlowPattern:
        def search(self, text, timeout=None):
            assert timeout == evaluator.PATTERN_TIMEOUT_SECONDS
            raise TimeoutError("regex timed out")

    monkeypatch.setattr(evaluator.regex, "compile", lambda pattern, flags=0: _SlowPattern())
    question = QuestionSpec(
        type="short_answer",
        question="What do plants release?",
        answer_pattern="oxy(gen)+",
        expected_keywords=["oxygen"],
    )
    assert evaluate_answer(question, "They release oxygen").is_correct is True
    assert evaluate_answer(question, "nitrogen").is_correct is False


def test_overlong_pattern_is_ignored_in_favour_of_keywords():
    question = QuestionSpec(
        type="short_answer",
        question="What do plants release?",
        answer_pattern="x" * (MAX_PATTERN_CHARS + 1),
        expected_keywords=["oxygen"],
    )
    assert evaluate_answer(question, "Oxygen").is_correct is True
    assert evaluate_answer(question, "x" * (MAX_PATTERN_CHARS + 1)).is_correct is False
