from __future__ import annotations

import random

from adaptiq.engine.skill_profiler import (
    CognitiveLabel,
    build_skill_profile,
    classify_answer,
    dominant_label,
    normalize_label,
    parse_label,
)
from adaptiq.schemas.quiz import SkillBucket


def test_empty_answer_list_yields_zero_buckets():
    profile = build_skill_profile([])
    assert profile.as_dict() == {
        "recall": {"count": 0, "correct": 0},
        "conceptual": {"count": 0, "correct": 0},
        "reasoning": {"count": 0, "correct": 0},
    }
    assert profile.unclassified == 0


def test_problem_solving_dominant_answers_land_in_reasoning(make_answer):
    answers = [make_answer(True, {"problem_solving": 0.9, "memory_retrieval": 0.2}) for _ in range(3)]
    profile = build_skill_profile(answers)
    assert profile.reasoning.count == 3
    assert profile.reasoning.correct == 3
    assert profile.recall.count == 0 and profile.recall.correct == 0
    assert profile.conceptual.count == 0 and profile.conceptual.correct == 0


def test_correct_only_counted_for_correct_answers(make_answer):
    answers = [
        make_answer(True, {"memory_retrieval": 0.7}),
        make_answer(False, {"memory_retrieval": 0.6, "conceptual_understanding": 0.4}),
        make_answer(False, {"conceptual_understanding": 0.9}),
    ]
    profile = build_skill_profile(answers)
    assert profile.recall.count == 2
    assert profile.recall.correct == 1
    assert profile.conceptual.count == 1
    assert profile.conceptual.correct == 0


def test_tie_goes_to_first_label_in_mapping():
    assert dominant_label({"memory_retrieval": 0.5, "problem_solving": 0.5}) == "memory_retrieval"
    assert classify_answer({"problem_solving": 0.5, "memory_retrieval": 0.5}) == SkillBucket.REASONING


def test_answers_without_analysis_are_skipped(make_answer):
    profile = build_skill_profile([make_answer(True, {}), make_answer(False, {})])
    assert sum(t["count"] for t in profile.as_dict().values()) == 0
    assert profile.unclassified == 0


def test_camel_case_and_legacy_labels_are_recognized():
    assert normalize_label("memoryPower") == "memory_power"
    assert normalize_label("Problem-Solving") == "problem_solving"
    assert parse_label("memoryPower") == CognitiveLabel.MEMORY_RETRIEVAL
    assert parse_label("problemSolving") == CognitiveLabel.PROBLEM_SOLVING
    assert classify_answer({"learningStyleVisual": 0.8}) == SkillBucket.CONCEPTUAL
    assert classify_answer({"learning_style_verbal": 0.8}) == SkillBucket.CONCEPTUAL


def test_unrecognized_label_feeds_no_bucket_but_is_counted(make_answer):
    profile = build_skill_profile([make_answer(True, {"creativity": 0.9, "problem_solving": 0.2})])
    assert profile.reasoning.count == 0
    assert profile.recall.count == 0
    assert profile.conceptual.count == 0
    assert profile.unclassified == 1


def test_counts_never_exceed_inputs(make_answer):
    rng = random.Random(7)
    labels = ["memory_retrieval", "problem_solving", "conceptual_understanding", "mystery"]
    for _ in range(25):
        answers = []
        for _ in range(rng.randint(0, 20)):
            weights = {label: round(rng.uniform(0.11, 1.0), 2) for label in rng.sample(labels, rng.randint(0, 3))}
            answers.append(make_answer(rng.random() < 0.5, weights))
        profile = build_skill_profile(answers)
        total = sum(profile.tally(bucket).count for bucket in SkillBucket)
        assert total + profile.unclassified <= len(answers)
        for bucket in SkillBucket:
            tally = profile.tally(bucket)
            assert 0 <= tally.correct <= tally.count
