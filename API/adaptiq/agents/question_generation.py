"""
Question generation agent: dispatches a composed prompt to the LLM provider and parses exactly
one question out of the reply.

Any provider or parse failure yields the fixed fallback question so the student-facing flow
never blocks on the provider. The real cause is logged.
"""
import asyncio
import logging

from pydantic import BaseModel, Field, ValidationError

from adaptiq.agents.base import BaseAgent
from adaptiq.core.json_parser import extract_question_object
from adaptiq.core.llm_provider import BaseLLMProvider, get_llm_provider
from adaptiq.core.logging import DOMAIN_GENERATION, get_domain_logger, log_event
from adaptiq.core.settings import settings
from adaptiq.schemas.quiz import GenerationPrompt, QuestionSpec, QuestionType

logger = get_domain_logger(__name__, DOMAIN_GENERATION)

FALLBACK_FEEDBACK = "The AI is currently unavailable, providing a fallback question."


def fallback_question() -> QuestionSpec:
    return QuestionSpec(
        type=QuestionType.MCQ,
        question="What is the capital of France?",
        options=["Berlin", "Madrid", "Paris", "Rome"],
        correct_answer="Paris",
        explanation="Paris is the capital of France. This is a fallback question because the AI service failed.",
        cognitive_analysis={},
        feedback=FALLBACK_FEEDBACK,
    )


class GenerationResult(BaseModel):
    question: QuestionSpec
    source: str = "llm"
    reason: str | None = None
    usage: dict = Field(default_factory=dict)

    @property
    def used_fallback(self) -> bool:
        return self.source == "fallback"


class QuestionGenerationAgent(BaseAgent):
    def __init__(self, provider: BaseLLMProvider | None = None):
        self.provider = provider or get_llm_provider()

    def _deadline_seconds(self) -> float:
        # Covers every bounded retry plus backoff sleeps.
        return settings.llm_timeout_seconds * max(1, settings.llm_max_retries) + 5.0

    @staticmethod
    def fallback(reason: str, usage: dict | None = None) -> GenerationResult:
        log_event(logger, "question_fallback", logging.WARNING, reason=reason)
        return GenerationResult(question=fallback_question(), source="fallback", reason=reason, usage=usage or {})

    async def generate(self, prompt: GenerationPrompt) -> GenerationResult:
        try:
            text, usage = await asyncio.wait_for(
                self.provider.generate(prompt.system_prompt, prompt.user_prompt),
                timeout=self._deadline_seconds(),
            )
        except Exception as exc:
            return self.fallback(f"provider_error: {type(exc).__name__}: {exc}")

        if not text:
            return self.fallback(f"provider_returned_nothing: {usage.get('reason', 'empty')}", usage)

        raw = extract_question_object(text)
        if raw is None:
            logger.warning("No question object found in provider output: %s", text[:500])
            return self.fallback("unparsable_output", usage)

        try:
            question = QuestionSpec.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Provider question failed validation: %s", exc.errors())
            return self.fallback("invalid_question", usage)

        if question.type == QuestionType.MCQ and (
            len(question.options) < 2 or question.correct_answer not in question.options
        ):
            return self.fallback("mcq_answer_not_in_options", usage)

        log_event(logger, "llm_usage", agent="question_generation", usage=usage)
        return GenerationResult(question=question, source="llm", usage=usage)

    async def run(self, input_data: dict) -> dict:
        prompt = input_data["prompt"]
        if isinstance(prompt, dict):
            prompt = GenerationPrompt.model_validate(prompt)
        result = await self.generate(prompt)
        return result.model_dump(mode="json")
