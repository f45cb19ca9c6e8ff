from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from assessments.models.session import SessionKind, SessionStatus


class FeedbackScores(BaseModel):
    model_config = ConfigDict(frozen=True)

    clarity: float = Field(ge=0, le=100)
    confidence: float = Field(ge=0, le=100)
    structure: float = Field(ge=0, le=100)
    relevance: float = Field(ge=0, le=100)
    technical_accuracy: float | None = Field(default=None, ge=0, le=100)
    overall: float = Field(ge=0, le=100)


class FeedbackResult(BaseModel):
    """Validated analysis of one interview answer."""

    model_config = ConfigDict(frozen=True)

    question_id: str
    scores: FeedbackScores
    suggestions: tuple[str, ...] = ()
    strengths: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()


class QuizOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_id: str
    # None means the answer needs qualitative review and is not auto-graded.
    is_correct: bool | None
    explanation: str


class ResultStatus(str, enum.Enum):
    graded = "graded"
    unanswered = "unanswered"
    needs_review = "needs_review"
    ungraded = "ungraded"


class QuestionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_id: str
    status: ResultStatus
    answer: str | None = None
    outcome: QuizOutcome | None = None
    feedback: FeedbackResult | None = None
    error_code: str | None = None
    error_message: str | None = None

    @property
    def score(self) -> float | None:
        if self.feedback is not None:
            return self.feedback.scores.overall
        if self.status == ResultStatus.unanswered:
            return 0.0
        return None


class SessionReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    kind: SessionKind
    user_id: str | None = None
    ended_as: SessionStatus
    results: tuple[QuestionResult, ...]
    # None when no answer could be graded because of generation failures.
    overall_score: Annotated[float, Field(ge=0, le=100)] | None
    passing_score: float
    passed: bool | None
    correct_count: int = 0
    gradable_count: int = 0
    time_spent_seconds: int = Field(ge=0)
    flagged: tuple[str, ...] = ()
    strengths: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()
    narrative: str | None = None
    created_at: datetime

    @property
    def ungraded_ids(self) -> list[str]:
        return [r.question_id for r in self.results if r.status == ResultStatus.ungraded]
