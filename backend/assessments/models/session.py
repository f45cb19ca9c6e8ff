from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel, ConfigDict

from assessments.core.errors import SessionStateError
from assessments.models.question import Question


class SessionKind(str, enum.Enum):
    quiz = "quiz"
    interview = "interview"


class SessionStatus(str, enum.Enum):
    in_progress = "in_progress"
    timed_out = "timed_out"
    submitted = "submitted"
    scored = "scored"


# Forward-only lifecycle.
ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.in_progress: frozenset({SessionStatus.timed_out, SessionStatus.submitted}),
    SessionStatus.timed_out: frozenset({SessionStatus.scored}),
    SessionStatus.submitted: frozenset({SessionStatus.scored}),
    SessionStatus.scored: frozenset(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnswerRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_id: str
    raw_answer: str
    submitted_at: datetime


@dataclass
class InterviewConfig:
    role: str
    level: str
    interview_type: str = "mixed"
    difficulty: str = "intermediate"


@dataclass
class Session:
    kind: SessionKind
    questions: tuple[Question, ...]
    time_limit_seconds: int
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str | None = None
    interview: InterviewConfig | None = None

    started_at: datetime = field(default_factory=utcnow)
    remaining_seconds: int = 0
    current_index: int = 0
    answers: dict[str, AnswerRecord] = field(default_factory=dict)
    flagged: set[str] = field(default_factory=set)
    status: SessionStatus = SessionStatus.in_progress

    snapshot: Mapping[str, AnswerRecord] | None = None
    closed_at: datetime | None = None
    time_spent_seconds: int | None = None
    abandoned: bool = False

    def __post_init__(self) -> None:
        self._index_by_id = {q.id: i for i, q in enumerate(self.questions)}

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def question_ids(self) -> list[str]:
        return [q.id for q in self.questions]

    def has_question(self, question_id: str) -> bool:
        return question_id in self._index_by_id

    def question(self, question_id: str) -> Question:
        return self.questions[self._index_by_id[question_id]]

    def advance(self, new_status: SessionStatus) -> None:
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise SessionStateError(
                "session already completed"
                if self.status != SessionStatus.in_progress
                else f"cannot move session from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    def freeze_answers(self) -> Mapping[str, AnswerRecord]:
        # AnswerRecord is frozen, so a shallow copy behind a read-only view is a full snapshot.
        self.snapshot = MappingProxyType(dict(self.answers))
        self.closed_at = utcnow()
        return self.snapshot
