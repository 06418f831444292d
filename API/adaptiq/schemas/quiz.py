from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class SkillBucket(str, Enum):
    RECALL = "recall"
    CONCEPTUAL = "conceptual"
    REASONING = "reasoning"


class QuestionType(str, Enum):
    MCQ = "mcq"
    SHORT_ANSWER = "short_answer"


_QUESTION_TYPE_ALIASES = {
    "mcq": QuestionType.MCQ,
    "multiple_choice": QuestionType.MCQ,
    "multiplechoice": QuestionType.MCQ,
    "short_answer": QuestionType.SHORT_ANSWER,
    "shortanswer": QuestionType.SHORT_ANSWER,
    "short": QuestionType.SHORT_ANSWER,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sanitize_cognitive_weights(raw: Any) -> dict[str, float]:
    """Keep numeric weights in (0, 1]; values above 1 are clamped, everything else is dropped."""
    if not isinstance(raw, dict):
        return {}
    clean: dict[str, float] = {}
    for label, value in raw.items():
        if isinstance(value, bool):
            continue
        try:
            weight = float(value)
        except (TypeError, ValueError):
            continue
        if weight != weight or weight <= 0.0:
            continue
        clean[str(label)] = min(1.0, weight)
    return clean


class Answer(BaseModel):
    """One recorded response. Appended to a session's answer list and never edited."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    question: str = ""
    answer: str = ""
    is_correct: bool = Field(default=False, validation_alias=AliasChoices("is_correct", "isCorrect"))
    cognitive_analysis: dict[str, float] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("cognitive_analysis", "cognitiveAnalysis"),
    )
    timestamp: datetime = Field(default_factory=_utcnow)
    response_time: float = Field(default=0.0, validation_alias=AliasChoices("response_time", "responseTime"))
    difficulty: float | str | None = None

    @field_validator("cognitive_analysis", mode="before")
    @classmethod
    def _clean_weights(cls, value):
        return sanitize_cognitive_weights(value)

    @field_validator("timestamp")
    @classmethod
    def _aware_timestamp(cls, value: datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    @field_validator("response_time", mode="before")
    @classmethod
    def _non_negative_time(cls, value):
        try:
            return max(0.0, float(value or 0.0))
        except (TypeError, ValueError):
            return 0.0


class QuestionSpec(BaseModel):
    """A generated question. Provider output, so every field is coerced defensively."""

    model_config = ConfigDict(populate_by_name=True)

    type: QuestionType
    question: str
    options: list[str] = Field(default_factory=list)
    correct_answer: str | None = Field(default=None, validation_alias=AliasChoices("correct_answer", "correctAnswer"))
    answer_pattern: str | None = Field(default=None, validation_alias=AliasChoices("answer_pattern", "answerPattern"))
    expected_keywords: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("expected_keywords", "expectedKeywords"),
    )
    difficulty: float | str | None = None
    explanation: str = ""
    cognitive_analysis: dict[str, float] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("cognitive_analysis", "cognitiveAnalysis"),
    )
    feedback: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        if isinstance(value, QuestionType):
            return value
        key = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        if key in _QUESTION_TYPE_ALIASES:
            return _QUESTION_TYPE_ALIASES[key]
        raise ValueError(f"unsupported question type: {value!r}")

    @field_validator("options", "expected_keywords", mode="before")
    @classmethod
    def _string_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(v) for v in value if v is not None and str(v).strip()]

    @field_validator("correct_answer", "answer_pattern", mode="before")
    @classmethod
    def _optional_text(cls, value):
        if value is None:
            return None
        text = str(value)
        return text if text.strip() else None

    @field_validator("explanation", mode="before")
    @classmethod
    def _text(cls, value):
        return "" if value is None else str(value)

    @field_validator("cognitive_analysis", mode="before")
    @classmethod
    def _clean_weights(cls, value):
        return sanitize_cognitive_weights(value)


class TextbookContent(BaseModel):
    title: str = ""
    content: str = ""


class StudentProfile(BaseModel):
    student_id: str
    name: str = ""
    class_code: str = ""


class AssignmentInfo(BaseModel):
    assignment_id: str
    subject_code: str
    chapter_id: str
    subtopic_id: str
    title: str = ""


class PreviousPerformance(BaseModel):
    score: float = 0.0
    attempts: int = 0
    summary: str = ""
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)


class SessionState(BaseModel):
    """Identity and content loaded once at quiz start; the caller carries it between calls."""

    student: StudentProfile
    assignment: AssignmentInfo
    textbook_content: TextbookContent
    previous_performance: PreviousPerformance | None = None


class SkillTally(BaseModel):
    count: int = 0
    correct: int = 0

    @property
    def correct_rate(self) -> float | None:
        return (self.correct / self.count) if self.count else None


class SkillProfile(BaseModel):
    recall: SkillTally = Field(default_factory=SkillTally)
    conceptual: SkillTally = Field(default_factory=SkillTally)
    reasoning: SkillTally = Field(default_factory=SkillTally)
    # Answers whose dominant label matched no bucket.
    unclassified: int = 0

    def tally(self, bucket: SkillBucket) -> SkillTally:
        return getattr(self, bucket.value)

    def as_dict(self) -> dict[str, dict[str, int]]:
        return {bucket.value: self.tally(bucket).model_dump() for bucket in SkillBucket}


class AnswerSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_correct: bool
    cognitive_analysis: dict[str, float] = Field(default_factory=dict)


class QuestionContext(BaseModel):
    """Per-call input to question generation; rebuilt for every request and never stored."""

    model_config = ConfigDict(frozen=True)

    student_id: str
    subject_code: str
    chapter_id: str
    subtopic_id: str
    subtopic_title: str = ""
    question_number: int
    learning_content: str = ""
    previous_answers: list[AnswerSummary] = Field(default_factory=list)
    skill_profile: SkillProfile = Field(default_factory=SkillProfile)


class GenerationPrompt(BaseModel):
    system_prompt: str
    user_prompt: str


class EvaluationResult(BaseModel):
    is_correct: bool
    feedback: str
    explanation: str = ""
    cognitive_analysis: dict[str, float] = Field(default_factory=dict)


class SessionAnalytics(BaseModel):
    model_config = ConfigDict(frozen=True)

    student_id: str
    assignment_id: str
    subject_code: str
    chapter_id: str
    subtopic_id: str
    total_questions: int
    correct_answers: int
    score: float
    cognitive_averages: dict[str, float] = Field(default_factory=dict)
    skill_profile: SkillProfile = Field(default_factory=SkillProfile)
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    summary: str = ""
    total_time: float = 0.0
    difficulty_progression: list[float | str | None] = Field(default_factory=list)
    attempts: int = 1
    last_attempted: datetime = Field(default_factory=_utcnow)
    answers: list[Answer] = Field(default_factory=list)


class QuizAnalysis(BaseModel):
    conceptual_understanding: str = "Moderate"
    reasoning_skill: str = "Superficial"
    confidence_score: str = "Medium"
    time_efficiency: str = ""
    error_patterns: list[str] = Field(default_factory=list)
    summary: str = ""
    source: str = "heuristic"
