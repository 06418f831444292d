from abc import ABC, abstractmethod

import httpx

from adaptiq.core.resilience import call_with_breaker
from adaptiq.core.settings import settings


class LLMUnavailableError(RuntimeError):
    """The provider answered but produced no usable message content."""


def _estimate_tokens(text: str) -> int:
    # Rough count for observability only.
    return max(1, len((text or "").strip()) // 4)


def _usage(provider: str, model: str, system_prompt: str, user_prompt: str, text: str) -> dict:
    prompt_tokens = _estimate_tokens(system_prompt) + _estimate_tokens(user_prompt)
    completion_tokens = _estimate_tokens(text)
    return {
        "provider": provider,
        "model": model,
        "prompt_tokens_estimate": prompt_tokens,
        "completion_tokens_estimate": completion_tokens,
        "total_tokens_estimate": prompt_tokens + completion_tokens,
    }


class BaseLLMProvider(ABC):
    provider_name: str
    model_name: str = ""

    @property
    def breaker_name(self) -> str:
        return f"llm:{self.provider_name}:{self.model_name}"

    @abstractmethod
    async def generate(self, system_prompt: str, user_prompt: str) -> tuple[str | None, dict]:
        raise NotImplementedError


class MistralLLMProvider(BaseLLMProvider):
    provider_name = "mistral"

    def __init__(self, model_name: str | None = None):
        self.model_name = model_name or settings.llm_model

    async def generate(self, system_prompt: str, user_prompt: str) -> tuple[str | None, dict]:
        if not settings.mistral_api_key:
            return None, {"provider": self.provider_name, "model": self.model_name, "reason": "missing_api_key"}

        payload = {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": settings.llm_temperature,
            "max_tokens": settings.llm_max_tokens,
        }

        async def _call():
            async with httpx.AsyncClient(timeout=settings.llm_timeout_seconds) as client:
                response = await client.post(
                    settings.mistral_api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {settings.mistral_api_key}"},
                )
                response.raise_for_status()
                return response.json()

        body = await call_with_breaker(self.breaker_name, _call, max_retries=settings.llm_max_retries)

        choices = body.get("choices") or []
        text = ""
        if choices and isinstance(choices[0], dict):
            text = ((choices[0].get("message") or {}).get("content") or "").strip()
        if not text:
            raise LLMUnavailableError("provider response had no message content")
        return text, _usage(self.provider_name, self.model_name, system_prompt, user_prompt, text)


class OllamaLLMProvider(BaseLLMProvider):
    provider_name = "ollama"

    def __init__(self, model_name: str | None = None):
        self.model_name = model_name or settings.ollama_model

    async def generate(self, system_prompt: str, user_prompt: str) -> tuple[str | None, dict]:
        async def _call():
            async with httpx.AsyncClient(timeout=settings.llm_timeout_seconds) as client:
                response = await client.post(
                    f"{settings.ollama_base_url.rstrip('/')}/api/chat",
                    json={
                        "model": self.model_name,
                        "messages": [
                            {"role": "system", "content": system_prompt},
                            {"role": "user", "content": user_prompt},
                        ],
                        "stream": False,
                        "options": {"temperature": settings.llm_temperature},
                    },
                )
                response.raise_for_status()
                return response.json()

        body = await call_with_breaker(self.breaker_name, _call, max_retries=settings.llm_max_retries)

        text = ((body.get("message") or {}).get("content") or "").strip()
        if not text:
            raise LLMUnavailableError("provider response had no message content")
        return text, _usage(self.provider_name, self.model_name, system_prompt, user_prompt, text)


class NullLLMProvider(BaseLLMProvider):
    provider_name = "none"

    async def generate(self, system_prompt: str, user_prompt: str) -> tuple[str | None, dict]:
        return None, {
            "provider": self.provider_name,
            "model": "none",
            "prompt_tokens_estimate": _estimate_tokens(system_prompt) + _estimate_tokens(user_prompt),
            "completion_tokens_estimate": 0,
            "reason": "unsupported_provider",
        }


def get_llm_provider() -> BaseLLMProvider:
    provider = (settings.llm_provider or "").lower()
    if provider == "mistral":
        return MistralLLMProvider(model_name=settings.llm_model)
    if provider == "ollama":
        return OllamaLLMProvider(model_name=settings.ollama_model)
    return NullLLMProvider()
