from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from assessments.models.question import Question, QuestionKind
from assessments.models.result import FeedbackResult
from assessments.models.session import InterviewConfig


class InterviewQuestionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    text: str = Field(min_length=1)
    type: QuestionKind
    difficulty: str | None = None
    expected_duration: int | None = Field(default=None, alias="expectedDuration", ge=1, le=3600)
    follow_ups: list[str] = Field(default_factory=list, alias="followUps")
    evaluation_criteria: list[str] = Field(default_factory=list, alias="evaluationCriteria")

    def to_question(self) -> Question:
        return Question(
            id=self.id,
            text=self.text,
            kind=self.type,
            difficulty=self.difficulty,
            expected_duration_seconds=self.expected_duration,
            follow_ups=tuple(self.follow_ups),
            evaluation_criteria=tuple(self.evaluation_criteria),
        )


class InterviewConfigIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str = Field(min_length=1)
    level: str = Field(min_length=1)
    type: str = "mixed"

    def to_config(self) -> InterviewConfig:
        return InterviewConfig(role=self.role, level=self.level, interview_type=self.type)


class InterviewSessionIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    config: InterviewConfigIn
    questions: list[InterviewQuestionIn]


class AnswerFeedbackIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    overall_score: float | None = Field(default=None, alias="overallScore", ge=0, le=100)


class AnsweredQuestionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    question_id: str | None = Field(default=None, alias="questionId")
    answer: str
    feedback: AnswerFeedbackIn | None = None


class AnalyzeAnswerRequest(BaseModel):
    action: Literal["analyze_answer"]
    answer: str
    question: InterviewQuestionIn
    role: str = Field(min_length=1)
    level: str = Field(min_length=1)


class GenerateQuestionsRequest(BaseModel):
    action: Literal["generate_questions"]
    role: str = Field(min_length=1)
    level: str = Field(min_length=1)
    type: str = "mixed"
    difficulty: str = "intermediate"
    count: int = Field(default=5, ge=1, le=20)


class GenerateFeedbackRequest(BaseModel):
    action: Literal["generate_feedback"]
    session: InterviewSessionIn
    answers: list[AnsweredQuestionIn]


InterviewRequest = Annotated[
    Union[AnalyzeAnswerRequest, GenerateQuestionsRequest, GenerateFeedbackRequest],
    Field(discriminator="action"),
]

INTERVIEW_ACTIONS = frozenset({"analyze_answer", "generate_questions", "generate_feedback"})


class AnalyzeAnswerResponse(BaseModel):
    feedback: FeedbackResult


class GenerateQuestionsResponse(BaseModel):
    questions: list[Question]


class GenerateFeedbackResponse(BaseModel):
    feedback: str
