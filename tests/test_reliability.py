from __future__ import annotations

import httpx
import pytest

from adaptiq.core import resilience
from adaptiq.core.llm_provider import MistralLLMProvider, get_llm_provider
from adaptiq.core.logging import redact_secrets
from adaptiq.core.resilience import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
    call_with_breaker,
    get_breaker,
    reset_breakers,
    retry_with_backoff,
)
from adaptiq.core.settings import settings
from adaptiq.memory import session_store


@pytest.fixture(autouse=True)
def _fresh_breakers():
    reset_breakers()
    yield
    reset_breakers()


@pytest.mark.asyncio
async def test_retry_stops_after_bounded_attempts():
    calls = 0

    async def flaky():
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("refused")

    with pytest.raises(httpx.ConnectError):
        await retry_with_backoff(flaky, max_retries=3, base_delay_seconds=0)
    assert calls == 3


@pytest.mark.asyncio
async def test_retry_does_not_repeat_non_transient_errors():
    calls = 0

    async def bad_payload():
        nonlocal calls
        calls += 1
        raise ValueError("not json")

    with pytest.raises(ValueError):
        await retry_with_backoff(bad_payload, max_retries=3, base_delay_seconds=0)
    assert calls == 1


def test_circuit_opens_then_allows_one_probe(monkeypatch):
    clock = [100.0]
    monkeypatch.setattr(resilience.time, "monotonic", lambda: clock[0])
    breaker = CircuitBreaker(name="llm:test", failure_threshold=2, recovery_timeout_seconds=10)

    breaker.record_failure()
    assert breaker.can_execute() is True
    breaker.record_failure()
    assert breaker.state == CircuitState.OPEN
    assert breaker.can_execute() is False

    clock[0] += 11
    assert breaker.can_execute() is True
    assert breaker.can_execute() is False
    breaker.record_success()
    assert breaker.state == CircuitState.CLOSED


def test_breaker_registry_reports_status():
    get_breaker("llm:mistral:test").record_failure()
    status = resilience.get_breakers_status()
    assert status["llm:mistral:test"]["failure_count"] == 1


@pytest.mark.asyncio
async def test_mistral_without_key_returns_nothing(monkeypatch):
    monkeypatch.setattr(settings, "mistral_api_key", "")
    text, usage = await MistralLLMProvider(model_name="mistral-small").generate("sys", "user")
    assert text is None
    assert usage["reason"] == "missing_api_key"


def test_provider_selection(monkeypatch):
    monkeypatch.setattr(settings, "llm_provider", "ollama")
    assert get_llm_provider().provider_name == "ollama"
    monkeypatch.setattr(settings, "llm_provider", "something-else")
    assert get_llm_provider().provider_name == "none"


def test_secrets_are_redacted_from_log_lines():
    line = redact_secrets("calling provider with api_key=abc123 and Authorization: Bearer sk-verysecretvalue")
    assert "abc123" not in line
    assert "sk-verysecretvalue" not in line
    assert "[REDACTED]" in line


@pytest.mark.asyncio
async def test_session_cache_round_trip_in_memory(session_state):
    await session_store.save_session_state(session_state)
    loaded = await session_store.load_session_state("stu-1", "quiz-1")
    assert loaded == session_state

    await session_store.clear_session_state("stu-1", "quiz-1")
    assert await session_store.load_session_state("stu-1", "quiz-1") is None


@pytest.mark.asyncio
async def test_call_with_breaker_opens_after_repeated_failures():
    calls = 0

    async def down():
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("refused")

    breaker = get_breaker("llm:flaky:model")
    for _ in range(breaker.failure_threshold):
        with pytest.raises(httpx.ConnectError):
            await call_with_breaker("llm:flaky:model", down, max_retries=1, base_delay_seconds=0)
    assert breaker.state == CircuitState.OPEN

    with pytest.raises(CircuitOpenError):
        await call_with_breaker("llm:flaky:model", down, max_retries=1)
    assert calls == breaker.failure_threshold


def test_connection_strings_are_redacted():
    line = redact_secrets("connecting to postgresql+asyncpg://adaptiq:s3cret@db:5432/adaptiq")
    assert "s3cret" not in line
    assert "adaptiq:[REDACTED]@db" in line


class _FakeRedis:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.store: dict[str, str] = {}

    async def set(self, key, value, ex=None):
        if self.fail:
            raise ConnectionError("redis down")
        self.store[key] = value

    async def get(self, key):
        if self.fail:
            raise ConnectionError("redis down")
        return self.store.get(key)

    async def delete(self, key):
        if self.fail:
            raise ConnectionError("redis down")
        self.store.pop(key, None)


@pytest.mark.asyncio
async def test_memory_session_cache_honours_ttl(monkeypatch, session_state):
    clock = [1000.0]
    monkeypatch.setattr(session_store, "_degraded_session_cache", {})
    monkeypatch.setattr(session_store, "monotonic", lambda: clock[0])
    monkeypatch.setattr(settings, "session_ttl_seconds", 60)

    await session_store.save_session_state(session_state)
    clock[0] += 59
    assert await session_store.load_session_state("stu-1", "quiz-1") == session_state

    clock[0] += 2
    assert await session_store.load_session_state("stu-1", "quiz-1") is None
    assert session_store._degraded_session_cache == {}


@pytest.mark.asyncio
async def test_redis_miss_is_not_answered_from_process_memory(monkeypatch, session_state):
    fake = _FakeRedis()
    monkeypatch.setattr(session_store, "_degraded_session_cache", {})
    monkeypatch.setattr(session_store, "_client", lambda: fake)

    await session_store.save_session_state(session_state)
    assert session_store._degraded_session_cache == {}
    assert await session_store.load_session_state("stu-1", "quiz-1") == session_state

    # Redis expired the key; nothing else may resurrect it.
    fake.store.clear()
    assert await session_store.load_session_state("stu-1", "quiz-1") is None


@pytest.mark.asyncio
async def test_redis_outage_uses_degraded_copy(monkeypatch, session_state):
    fake = _FakeRedis(fail=True)
    monkeypatch.setattr(session_store, "_degraded_session_cache", {})
    monkeypatch.setattr(session_store, "_client", lambda: fake)

    await session_store.save_session_state(session_state)
    assert await session_store.load_session_state("stu-1", "quiz-1") == session_state

    await session_store.clear_session_state("stu-1", "quiz-1")
    assert await session_store.load_session_state("stu-1", "quiz-1") is None
