from __future__ import annotations

from time import monotonic

import redis.asyncio as redis
from pydantic import ValidationError

from adaptiq.core.logging import DOMAIN_SESSION, get_domain_logger
from adaptiq.core.settings import settings
from adaptiq.schemas.quiz import SessionState

logger = get_domain_logger(__name__, DOMAIN_SESSION)

# key -> (monotonic expiry, payload); serves the memory backend and Redis outages.
_degraded_session_cache: dict[str, tuple[float, str]] = {}
_redis_client: redis.Redis | None = None


def session_key(student_id: str, assignment_id: str) -> str:
    return f"quiz_session:{student_id}:{assignment_id}"


def _client() -> redis.Redis | None:
    global _redis_client
    if (settings.session_cache_backend or "").lower() != "redis":
        return None
    if _redis_client is None:
        _redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    return _redis_client


def _prune_degraded(now: float) -> None:
    for key in [k for k, (expires_at, _) in _degraded_session_cache.items() if expires_at <= now]:
        del _degraded_session_cache[key]


def _remember(key: str, payload: str) -> None:
    now = monotonic()
    _prune_degraded(now)
    _degraded_session_cache[key] = (now + settings.session_ttl_seconds, payload)


def _recall(key: str) -> str | None:
    _prune_degraded(monotonic())
    entry = _degraded_session_cache.get(key)
    return entry[1] if entry else None


async def save_session_state(state: SessionState) -> None:
    key = session_key(state.student.student_id, state.assignment.assignment_id)
    payload = state.model_dump_json()
    client = _client()
    if client is None:
        _remember(key, payload)
        return
    try:
        await client.set(key, payload, ex=settings.session_ttl_seconds)
    except Exception as exc:
        logger.warning("Redis unavailable for session persist. Using degraded cache: %s", exc)
        _remember(key, payload)
        return
    # Redis now holds the newest copy.
    _degraded_session_cache.pop(key, None)


async def load_session_state(student_id: str, assignment_id: str) -> SessionState | None:
    key = session_key(student_id, assignment_id)
    client = _client()
    if client is None:
        raw = _recall(key)
    else:
        try:
            raw = await client.get(key)
        except Exception as exc:
            logger.warning("Redis unavailable for session load. Falling back to degraded cache: %s", exc)
            raw = _recall(key)
    if raw is None:
        return None
    try:
        return SessionState.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("Discarding unreadable cached session %s: %s", key, exc)
        return None


async def clear_session_state(student_id: str, assignment_id: str) -> None:
    key = session_key(student_id, assignment_id)
    _degraded_session_cache.pop(key, None)
    client = _client()
    if client is None:
        return
    try:
        await client.delete(key)
    except Exception as exc:
        logger.warning("Redis unavailable for session clear: %s", exc)
