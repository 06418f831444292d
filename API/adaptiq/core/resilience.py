import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock

import httpx

# Only transport-level failures are worth another attempt; a 4xx/5xx body or bad JSON is not.
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    TimeoutError,
    ConnectionError,
    asyncio.TimeoutError,
    httpx.TimeoutException,
    httpx.TransportError,
)


async def retry_with_backoff(
    async_func,
    *,
    max_retries: int = 2,
    base_delay_seconds: float = 0.5,
    retryable_errors: tuple[type[Exception], ...] = TRANSIENT_ERRORS,
):
    attempts = max(1, int(max_retries))
    for attempt in range(attempts):
        try:
            return await async_func()
        except retryable_errors:  # type: ignore[misc]
            if attempt == attempts - 1:
                raise
            await asyncio.sleep(base_delay_seconds * (2**attempt))


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """Stops calling a provider that keeps failing so the quiz falls back immediately."""

    name: str
    failure_threshold: int = 4
    recovery_timeout_seconds: float = 30.0
    state: CircuitState = field(default=CircuitState.CLOSED)
    failure_count: int = field(default=0)
    opened_at: float = field(default=0.0)
    probe_in_flight: bool = field(default=False)
    _lock: Lock = field(default_factory=Lock)

    def can_execute(self) -> bool:
        with self._lock:
            if self.state == CircuitState.CLOSED:
                return True
            if self.state == CircuitState.OPEN:
                if time.monotonic() - self.opened_at < self.recovery_timeout_seconds:
                    return False
                self.state = CircuitState.HALF_OPEN
                self.probe_in_flight = False
            # Half-open lets a single probe through.
            if self.probe_in_flight:
                return False
            self.probe_in_flight = True
            return True

    def record_success(self) -> None:
        with self._lock:
            self.state = CircuitState.CLOSED
            self.failure_count = 0
            self.probe_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            self.failure_count += 1
            self.probe_in_flight = False
            if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
                self.state = CircuitState.OPEN
                self.opened_at = time.monotonic()

    def status(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
        }


_registry: dict[str, CircuitBreaker] = {}
_registry_lock = Lock()


def get_breaker(name: str) -> CircuitBreaker:
    with _registry_lock:
        if name not in _registry:
            _registry[name] = CircuitBreaker(name=name)
        return _registry[name]


class CircuitOpenError(RuntimeError):
    """Raised instead of calling a dependency whose breaker is open."""


async def call_with_breaker(name: str, async_func, *, max_retries: int = 2, base_delay_seconds: float = 0.5):
    """Run ``async_func`` with bounded retries behind the named breaker."""
    breaker = get_breaker(name)
    if not breaker.can_execute():
        raise CircuitOpenError(f"circuit open for {name}")
    try:
        result = await retry_with_backoff(async_func, max_retries=max_retries, base_delay_seconds=base_delay_seconds)
    except (Exception, asyncio.CancelledError):
        # A cancelled half-open probe must release the probe slot too.
        breaker.record_failure()
        raise
    breaker.record_success()
    return result


def get_breakers_status() -> dict[str, dict]:
    with _registry_lock:
        return {name: breaker.status() for name, breaker in _registry.items()}


def reset_breakers() -> None:
    with _registry_lock:
        _registry.clear()
