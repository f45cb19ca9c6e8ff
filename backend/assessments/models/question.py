from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field


class QuestionKind(str, enum.Enum):
    multiple_choice = "multiple_choice"
    true_false = "true_false"
    short_answer = "short_answer"
    behavioral = "behavioral"
    technical = "technical"
    situational = "situational"
    case_study = "case_study"


# Kinds with a single exact answer the deterministic grader can check.
EXACT_MATCH_KINDS = frozenset({QuestionKind.multiple_choice, QuestionKind.true_false})

INTERVIEW_KINDS = frozenset(
    {
        QuestionKind.behavioral,
        QuestionKind.technical,
        QuestionKind.situational,
        QuestionKind.case_study,
    }
)


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    text: str = Field(min_length=1)
    kind: QuestionKind
    options: tuple[str, ...] | None = None
    correct_answer: str | None = None
    expected_duration_seconds: int | None = Field(default=None, ge=1, le=3600)
    evaluation_criteria: tuple[str, ...] = ()
    difficulty: str | None = None
    follow_ups: tuple[str, ...] = ()
    explanation: str | None = None

    @property
    def is_exact_match(self) -> bool:
        return self.kind in EXACT_MATCH_KINDS
