"""
Skill profiler: reduce answered questions into per-skill attempt/correct tallies.

Each answer is attributed to the single cognitive label carrying the highest weight in its
analysis map (first label wins a tie). The label is then folded into one of three buckets:
recall, conceptual or reasoning.
"""
import logging
import re
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Protocol

from adaptiq.core.logging import DOMAIN_ANALYTICS, get_domain_logger, log_event
from adaptiq.schemas.quiz import SkillBucket, SkillProfile, SkillTally

logger = get_domain_logger(__name__, DOMAIN_ANALYTICS)


class CognitiveLabel(str, Enum):
    MEMORY_RETRIEVAL = "memory_retrieval"
    PROBLEM_SOLVING = "problem_solving"
    CONCEPTUAL_UNDERSTANDING = "conceptual_understanding"
    LEARNING_STYLE_VISUAL = "learning_style_visual"
    LEARNING_STYLE_VERBAL = "learning_style_verbal"


# Spellings seen from providers and older stored analytics.
_LABEL_ALIASES: dict[str, CognitiveLabel] = {
    "memory_power": CognitiveLabel.MEMORY_RETRIEVAL,
    "memory": CognitiveLabel.MEMORY_RETRIEVAL,
    "recall": CognitiveLabel.MEMORY_RETRIEVAL,
    "reasoning": CognitiveLabel.PROBLEM_SOLVING,
    "conceptual": CognitiveLabel.CONCEPTUAL_UNDERSTANDING,
    "concept_understanding": CognitiveLabel.CONCEPTUAL_UNDERSTANDING,
    "visual": CognitiveLabel.LEARNING_STYLE_VISUAL,
    "verbal": CognitiveLabel.LEARNING_STYLE_VERBAL,
}

LABEL_BUCKETS: dict[CognitiveLabel, SkillBucket] = {
    CognitiveLabel.MEMORY_RETRIEVAL: SkillBucket.RECALL,
    CognitiveLabel.PROBLEM_SOLVING: SkillBucket.REASONING,
    CognitiveLabel.CONCEPTUAL_UNDERSTANDING: SkillBucket.CONCEPTUAL,
    CognitiveLabel.LEARNING_STYLE_VISUAL: SkillBucket.CONCEPTUAL,
    CognitiveLabel.LEARNING_STYLE_VERBAL: SkillBucket.CONCEPTUAL,
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


class ScoredAnswer(Protocol):
    is_correct: bool
    cognitive_analysis: Mapping[str, float]


def normalize_label(raw: str) -> str:
    """memoryPower, memory-power and 'Memory Power' all become memory_power."""
    text = _CAMEL_BOUNDARY.sub("_", str(raw or "").strip())
    return re.sub(r"[\s\-]+", "_", text).lower()


def parse_label(raw: str) -> CognitiveLabel | None:
    key = normalize_label(raw)
    try:
        return CognitiveLabel(key)
    except ValueError:
        return _LABEL_ALIASES.get(key)


def dominant_label(weights: Mapping[str, float]) -> str | None:
    best_label = None
    best_weight = None
    for label, weight in weights.items():
        if best_weight is None or weight > best_weight:
            best_label, best_weight = label, weight
    return best_label


def classify_answer(weights: Mapping[str, float]) -> SkillBucket | None:
    label = dominant_label(weights)
    if label is None:
        return None
    parsed = parse_label(label)
    return LABEL_BUCKETS[parsed] if parsed is not None else None


def build_skill_profile(answers: Iterable[ScoredAnswer]) -> SkillProfile:
    counts = {bucket: [0, 0] for bucket in SkillBucket}
    unclassified = 0
    unknown_labels: list[str] = []

    for answer in answers:
        weights = answer.cognitive_analysis or {}
        if not weights:
            continue
        bucket = classify_answer(weights)
        if bucket is None:
            unclassified += 1
            unknown_labels.append(str(dominant_label(weights)))
            continue
        counts[bucket][0] += 1
        if answer.is_correct:
            counts[bucket][1] += 1

    if unknown_labels:
        log_event(
            logger,
            "unclassified_cognitive_labels",
            logging.WARNING,
            labels=sorted(set(unknown_labels)),
            answers=unclassified,
        )

    return SkillProfile(
        **{bucket.value: SkillTally(count=c, correct=k) for bucket, (c, k) in counts.items()},
        unclassified=unclassified,
    )
