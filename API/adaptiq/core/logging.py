import json
import logging
import re
import sys
from contextvars import ContextVar

# Domains: quiz session lifecycle, question generation, scoring and analytics.
DOMAIN_SESSION = "quiz_session"
DOMAIN_GENERATION = "generation"
DOMAIN_ANALYTICS = "analytics"

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


def get_domain_logger(name: str, domain: str) -> logging.LoggerAdapter[logging.Logger]:
    """Logger whose records carry ``domain`` so output can be filtered per engine area."""
    return logging.LoggerAdapter(logging.getLogger(name), {"domain": domain})


def log_event(logger: logging.LoggerAdapter | logging.Logger, event_type: str, level: int = logging.INFO, **fields) -> None:
    """Emit one engine decision as a single-line JSON object: {"type": event_type, ...fields}."""
    logger.log(level, json.dumps({"type": event_type, **fields}, default=str))


class RecordContextFilter(logging.Filter):
    """Fill ``domain`` and ``request_id`` so the format string never fails on third-party records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "domain"):
            record.domain = "app"  # type: ignore[attr-defined]
        record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        return True


_SECRET_PATTERNS = [
    re.compile(r"(?i)(api[_-]?key\s*[=:]\s*)([^\s,;\"']+)"),
    re.compile(r"(?i)(authorization\s*[=:]\s*bearer\s+)([^\s,;\"']+)"),
    re.compile(r"(?i)(bearer\s+)([A-Za-z0-9._\-]{12,})"),
    re.compile(r"(?i)(redis://[^:/\s]*:)([^@\s]+)(?=@)"),
    re.compile(r"(?i)(postgresql(?:\+asyncpg)?://[^:/\s]*:)([^@\s]+)(?=@)"),
]


def redact_secrets(message: str) -> str:
    text = str(message or "")
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(r"\1[REDACTED]", text)
    return text


class SecretRedactionFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact_secrets(record.getMessage())
        record.args = ()
        return True


class SuppressHealthCheckFilter(logging.Filter):
    """Drop successful GET /health access lines."""

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        return not ("/health" in msg and " 200" in msg)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | [%(domain)s] | rid=%(request_id)s | %(name)s | %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    context_filter = RecordContextFilter()
    redaction_filter = SecretRedactionFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(context_filter)
        handler.addFilter(redaction_filter)
    # Provider request URLs are noisy at INFO and may carry keys.
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").addFilter(SuppressHealthCheckFilter())
