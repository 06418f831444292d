from pydantic import BaseModel, Field

from adaptiq.schemas.quiz import Answer, EvaluationResult, QuestionSpec, QuizAnalysis, SessionState


class InitializeSessionRequest(BaseModel):
    student_id: str = Field(..., min_length=1)
    assigned_quiz_id: str = Field(..., min_length=1)


class InitializeSessionResponse(BaseModel):
    session_state: SessionState
    question: QuestionSpec
    question_number: int = 1
    question_source: str


class NextQuestionRequest(BaseModel):
    student_id: str = Field(..., min_length=1)
    assigned_quiz_id: str = Field(..., min_length=1)
    question_number: int = Field(..., ge=1)
    previous_answers: list[Answer] = Field(default_factory=list)
    session_state: SessionState | None = None


class NextQuestionResponse(BaseModel):
    question: QuestionSpec | None
    question_number: int
    question_source: str | None = None
    quiz_complete: bool = False


class EvaluateAnswerRequest(BaseModel):
    question: QuestionSpec
    student_answer: str = Field(..., max_length=4000)


class EvaluateAnswerResponse(BaseModel):
    evaluation: EvaluationResult


class CompleteSessionRequest(BaseModel):
    student_id: str = Field(..., min_length=1)
    assigned_quiz_id: str = Field(..., min_length=1)
    answers: list[Answer] = Field(default_factory=list)
    session_state: SessionState | None = None
    include_analysis: bool = True


class CompleteSessionResponse(BaseModel):
    message: str
    analytics: dict
    analysis: QuizAnalysis | None = None
