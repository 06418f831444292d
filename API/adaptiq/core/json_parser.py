import json
import re

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def parse_llm_json(text: str):
    """Best-effort decode of a JSON value from model output; returns {} when nothing parses."""
    if not text:
        return {}
    candidate = _FENCE_RE.sub("", text).strip()
    try:
        return json.loads(candidate)
    except Exception:
        pass

    # Model wrapped the payload in prose.
    match = re.search(r"(\{.*\}|\[.*\])", candidate, re.DOTALL)
    if not match:
        return {}
    snippet = _TRAILING_COMMA_RE.sub(r"\1", match.group(1))
    try:
        return json.loads(snippet)
    except Exception:
        return {}


def _is_question(obj) -> bool:
    return isinstance(obj, dict) and bool(obj.get("type")) and bool(obj.get("question"))


def _first_question(parsed) -> dict | None:
    if isinstance(parsed, list):
        parsed = parsed[0] if parsed else None
    if not isinstance(parsed, dict):
        return None
    batch = parsed.get("questions")
    if isinstance(batch, list) and batch and isinstance(batch[0], dict):
        return batch[0]
    if parsed.get("question"):
        return parsed
    return None


def extract_question_object(text: str) -> dict | None:
    """
    Pull a single question object out of provider text.

    Accepts a bare object, a one-element array, or a {"questions": [...]} batch (first item wins).
    Falls back to scanning for brace-delimited blocks with trailing commas removed. A missing
    ``type`` is inferred from the presence of options.
    """
    if not text:
        return None
    cleaned = _FENCE_RE.sub("", text).strip()

    found = None
    try:
        found = _first_question(json.loads(cleaned))
    except Exception:
        found = None

    if found is None:
        for block in _OBJECT_RE.findall(cleaned):
            try:
                obj = json.loads(_TRAILING_COMMA_RE.sub(r"\1", block))
            except Exception:
                continue
            found = _first_question(obj)
            if found is not None:
                break

    if found is None:
        return None
    if not found.get("type"):
        found["type"] = "mcq" if found.get("options") else "short_answer"
    return found if _is_question(found) else None
