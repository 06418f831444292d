import asyncio
import json
from collections.abc import Sequence

from adaptiq.agents.base import BaseAgent
from adaptiq.core.json_parser import parse_llm_json
from adaptiq.core.llm_provider import BaseLLMProvider, get_llm_provider
from adaptiq.core.logging import DOMAIN_ANALYTICS, get_domain_logger
from adaptiq.core.settings import settings
from adaptiq.engine.skill_profiler import build_skill_profile, classify_answer
from adaptiq.schemas.quiz import Answer, QuestionContext, QuizAnalysis

logger = get_domain_logger(__name__, DOMAIN_ANALYTICS)

# Seconds per question above which a student counts as slow.
SLOW_RESPONSE_SECONDS = 30.0

ANALYSIS_SYSTEM_PROMPT = """You analyse a student's completed adaptive quiz.
Return ONE JSON object with exactly these fields:
  "conceptualUnderstanding": "Strong" | "Moderate" | "Weak"
  "reasoningSkill": "Logical" | "Superficial" | "Guesswork"
  "confidenceScore": "High" | "Medium" | "Low"
  "timeEfficiency": "Fast & Accurate" | "Slow & Accurate" | "Fast & Inaccurate" | "Slow & Inaccurate"
  "errorPatterns": list of short strings
  "summary": two or three sentences for the teacher
Respond with the JSON object only.
"""

_FIELD_KEYS = {
    "conceptual_understanding": ("conceptualUnderstanding", "conceptual_understanding"),
    "reasoning_skill": ("reasoningSkill", "reasoning_skill"),
    "confidence_score": ("confidenceScore", "confidence_score"),
    "time_efficiency": ("timeEfficiency", "time_efficiency"),
    "error_patterns": ("errorPatterns", "error_patterns"),
    "summary": ("summary",),
}


def _band(rate: float, labels: tuple[str, str, str]) -> str:
    if rate >= 0.85:
        return labels[0]
    if rate >= 0.6:
        return labels[1]
    return labels[2]


def heuristic_analysis(answers: Sequence[Answer], quiz_seconds: float | None = None) -> QuizAnalysis:
    total = len(answers)
    correct = sum(1 for a in answers if a.is_correct)
    rate = correct / total if total else 0.0

    profile = build_skill_profile(answers)
    reasoning_rate = profile.reasoning.correct_rate
    avg_time = (sum(a.response_time for a in answers) / total) if total else 0.0
    if avg_time <= 0.0 and quiz_seconds and total:
        avg_time = quiz_seconds / total
    speed = "Slow" if avg_time > SLOW_RESPONSE_SECONDS else "Fast"
    accuracy = "Accurate" if rate >= 0.6 else "Inaccurate"

    misses: dict[str, int] = {}
    for answer in answers:
        if answer.is_correct:
            continue
        bucket = classify_answer(answer.cognitive_analysis)
        key = f"{bucket.value} errors" if bucket else "unclassified errors"
        misses[key] = misses.get(key, 0) + 1
    patterns = [key for key, _ in sorted(misses.items(), key=lambda item: item[1], reverse=True)]

    return QuizAnalysis(
        conceptual_understanding=_band(rate, ("Strong", "Moderate", "Weak")),
        reasoning_skill=_band(reasoning_rate if reasoning_rate is not None else rate, ("Logical", "Superficial", "Guesswork")),
        confidence_score=_band(rate, ("High", "Medium", "Low")),
        time_efficiency=f"{speed} & {accuracy}",
        error_patterns=patterns,
        summary=f"Answered {correct} of {total} questions correctly ({round(rate * 100)}%).",
        source="heuristic",
    )


def _coerce_analysis(raw: dict, fallback: QuizAnalysis) -> QuizAnalysis:
    values = fallback.model_dump()
    for field, keys in _FIELD_KEYS.items():
        for key in keys:
            if key in raw and raw[key] not in (None, ""):
                values[field] = raw[key]
                break
    if not isinstance(values["error_patterns"], list):
        values["error_patterns"] = [str(values["error_patterns"])]
    values["error_patterns"] = [str(p) for p in values["error_patterns"]]
    for field in ("conceptual_understanding", "reasoning_skill", "confidence_score", "time_efficiency", "summary"):
        values[field] = str(values[field])
    values["source"] = "llm"
    return QuizAnalysis(**values)


class QuizAnalysisAgent(BaseAgent):
    """Optional whole-session analysis; degrades to a heuristic reading of the answers."""

    def __init__(self, provider: BaseLLMProvider | None = None):
        self.provider = provider or get_llm_provider()

    @staticmethod
    def _user_prompt(context: QuestionContext, answers: Sequence[Answer], quiz_seconds: float | None) -> str:
        rows = [
            {
                "question": a.question,
                "answer": a.answer,
                "isCorrect": a.is_correct,
                "responseTime": a.response_time,
                "difficulty": a.difficulty,
                "cognitiveAnalysis": a.cognitive_analysis,
            }
            for a in answers
        ]
        return (
            f"Subject: {context.subject_code}\nChapter: {context.chapter_id}\nSubtopic: {context.subtopic_id}\n"
            f"Total quiz time (seconds): {round(quiz_seconds or 0.0, 1)}\n"
            f"Skill profile: {json.dumps(context.skill_profile.as_dict())}\n"
            f"Answers:\n{json.dumps(rows, indent=2, default=str)}\n"
        )

    async def analyze(
        self,
        context: QuestionContext,
        answers: Sequence[Answer],
        quiz_seconds: float | None = None,
    ) -> QuizAnalysis:
        baseline = heuristic_analysis(answers, quiz_seconds)
        if not answers:
            return baseline
        try:
            text, usage = await asyncio.wait_for(
                self.provider.generate(ANALYSIS_SYSTEM_PROMPT, self._user_prompt(context, answers, quiz_seconds)),
                timeout=settings.llm_timeout_seconds * max(1, settings.llm_max_retries) + 5.0,
            )
        except Exception as exc:
            logger.warning("Quiz analysis provider call failed, using heuristic analysis: %s", exc)
            return baseline
        parsed = parse_llm_json(text or "")
        if isinstance(parsed, list):
            parsed = parsed[0] if parsed else {}
        if not isinstance(parsed, dict) or not parsed:
            logger.warning("Quiz analysis output unusable (%s), using heuristic analysis", usage.get("reason", "unparsable"))
            return baseline
        return _coerce_analysis(parsed, baseline)

    async def run(self, input_data: dict) -> dict:
        analysis = await self.analyze(
            input_data["context"],
            input_data.get("answers", []),
            input_data.get("quiz_seconds"),
        )
        return analysis.model_dump()
