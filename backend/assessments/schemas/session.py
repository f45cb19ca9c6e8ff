from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from assessments.models.question import Question, QuestionKind
from assessments.models.session import Session, SessionKind, SessionStatus
from assessments.services import answers


class SessionStartRequest(BaseModel):
    kind: SessionKind
    questions: list[Question] | None = None
    time_limit_seconds: int | None = Field(default=None, gt=0)

    # Interview sessions: used for analysis prompts and, when no questions are given, for generation.
    role: str | None = None
    level: str | None = None
    interview_type: str = "mixed"
    difficulty: str = "intermediate"
    count: int = Field(default=5, ge=1, le=20)

    shuffle: bool = False


class QuestionPublic(BaseModel):
    id: str
    text: str
    kind: QuestionKind
    options: list[str] | None = None
    expected_duration_seconds: int | None = None
    evaluation_criteria: list[str] = []
    difficulty: str | None = None


class SessionStateResponse(BaseModel):
    id: str
    kind: SessionKind
    status: SessionStatus
    time_limit_seconds: int
    remaining_seconds: int
    current_index: int
    question_count: int
    answered_count: int
    flagged: list[str]
    answers: dict[str, str]
    questions: list[QuestionPublic]

    @classmethod
    def from_session(cls, session: Session) -> "SessionStateResponse":
        return cls(
            id=session.id,
            kind=session.kind,
            status=session.status,
            time_limit_seconds=session.time_limit_seconds,
            remaining_seconds=session.remaining_seconds,
            current_index=session.current_index,
            question_count=session.question_count,
            answered_count=answers.answered_count(session),
            flagged=[qid for qid in session.question_ids if qid in session.flagged],
            answers={qid: rec.raw_answer for qid, rec in session.answers.items()},
            questions=[
                QuestionPublic(
                    id=q.id,
                    text=q.text,
                    kind=q.kind,
                    options=list(q.options) if q.options is not None else None,
                    expected_duration_seconds=q.expected_duration_seconds,
                    evaluation_criteria=list(q.evaluation_criteria),
                    difficulty=q.difficulty,
                )
                for q in session.questions
            ],
        )


class AnswerRequest(BaseModel):
    value: str


class NavigateRequest(BaseModel):
    action: Literal["goto", "next", "previous"]
    index: int | None = None


class FlagResponse(BaseModel):
    question_id: str | None
    flagged: bool
    flagged_ids: list[str]


class QuizSubmitRequest(BaseModel):
    answers: dict[str, str] = {}
    flagged: list[str] = []
    time_spent_seconds: int | None = None
