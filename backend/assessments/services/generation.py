from __future__ import annotations

import asyncio
import json
import logging
import random
from typing import Callable, Literal, Protocol, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator

from assessments.core.config import settings
from assessments.core.errors import GenerationContractViolation, GenerationError, GenerationTimeout, ValidationError
from assessments.models.question import Question, QuestionKind
from assessments.models.result import FeedbackResult, FeedbackScores, QuestionResult
from assessments.models.session import InterviewConfig, Session
from assessments.services import question_bank
from assessments.services.llm_client import ChatCompletionsClient, extract_json

log = logging.getLogger(__name__)

MAX_GENERATED_QUESTIONS = 20


class TextGenerator(Protocol):
    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str: ...


class GeneratedQuestion(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(min_length=1)
    text: str = Field(min_length=1)
    type: Literal["behavioral", "technical", "situational", "case_study"]
    difficulty: str
    expected_duration: int = Field(alias="expectedDuration", ge=10, le=3600)
    follow_ups: list[str] = Field(default_factory=list, alias="followUps")
    evaluation_criteria: list[str] = Field(alias="evaluationCriteria", min_length=1)

    @field_validator("evaluation_criteria")
    @classmethod
    def _criteria_not_blank(cls, v: list[str]) -> list[str]:
        if any(not str(c).strip() for c in v):
            raise ValueError("evaluation criteria must be non-empty strings")
        return v


class GeneratedQuestionSet(BaseModel):
    questions: list[GeneratedQuestion]


class GeneratedFeedback(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    clarity: float = Field(ge=0, le=100)
    confidence: float = Field(ge=0, le=100)
    structure: float = Field(ge=0, le=100)
    relevance: float = Field(ge=0, le=100)
    technical_accuracy: float | None = Field(default=None, alias="technicalAccuracy", ge=0, le=100)
    overall_score: float = Field(alias="overallScore", ge=0, le=100)
    suggestions: list[str]
    strengths: list[str]
    improvements: list[str]


class _ContractCheckFailed(Exception):
    pass


M = TypeVar("M", bound=BaseModel)


_JSON_SYSTEM = "You are a strict JSON generator. Output a single JSON object and nothing else."

_STRICT_SYSTEM = (
    "You are a strict JSON generator. Your previous answer was rejected by a validator. "
    "Output ONLY one JSON object, no Markdown, no commentary. Every required field must be present, "
    "every number must lie inside its stated bounds and every enum must use one of the listed values."
)

_NARRATIVE_SYSTEM = "You are an experienced interview coach. Write clear, constructive, specific feedback."


def _summarize_validation_error(e: PydanticValidationError, *, limit: int = 6) -> str:
    parts: list[str] = []
    for err in e.errors()[:limit]:
        loc = ".".join(str(x) for x in err.get("loc") or ()) or "<root>"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def _reiteration(schema: type[BaseModel], reason: str) -> str:
    return (
        "\n\nYour previous output was rejected: "
        f"{reason}.\n"
        "Return ONLY a JSON object that validates against this JSON Schema:\n"
        f"{json.dumps(schema.model_json_schema(by_alias=True), ensure_ascii=False)}"
    )


class StructuredGenerationGateway:
    """Turns generation tasks into schema-validated values.

    Each machine-consumed output is validated with pydantic. A rejected output is
    retried once with a stricter reiteration of the instructions; the second
    rejection raises ``GenerationContractViolation``. Timeouts are not retried.
    """

    def __init__(
        self,
        generator: TextGenerator | None,
        *,
        timeout_seconds: float | None = None,
        rng: random.Random | None = None,
    ):
        self.generator = generator
        self.timeout_seconds = (
            float(timeout_seconds) if timeout_seconds is not None else float(settings.generation_timeout_seconds)
        )
        self.rng = rng if rng is not None else random.Random()

    async def _call(self, *, system: str, prompt: str, json_mode: bool, max_tokens: int | None = None) -> str:
        if self.generator is None:
            raise GenerationError("generative provider is disabled")
        try:
            return await asyncio.wait_for(
                self.generator.complete(system=system, prompt=prompt, max_tokens=max_tokens, json_mode=json_mode),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise GenerationTimeout(f"generation exceeded {self.timeout_seconds:g}s") from e

    async def _generate_validated(
        self,
        schema: type[M],
        *,
        prompt: str,
        operation: str,
        check: Callable[[M], None] | None = None,
    ) -> M:
        reason = ""
        for attempt in (1, 2):
            if attempt == 1:
                raw = await self._call(system=_JSON_SYSTEM, prompt=prompt, json_mode=True)
            else:
                raw = await self._call(system=_STRICT_SYSTEM, prompt=prompt + _reiteration(schema, reason), json_mode=True)

            obj = extract_json(raw)
            if obj is None:
                reason = "output was not a JSON object"
            else:
                try:
                    parsed = schema.model_validate(obj)
                    if check is not None:
                        check(parsed)
                    return parsed
                except PydanticValidationError as e:
                    reason = _summarize_validation_error(e)
                except _ContractCheckFailed as e:
                    reason = str(e)

            log.warning("%s output rejected attempt=%s reason=%s", operation, attempt, reason)

        raise GenerationContractViolation(f"{operation}: {reason}")

    async def generate_questions(
        self,
        *,
        role: str,
        level: str,
        type: str,
        difficulty: str,
        count: int = 5,
    ) -> list[Question]:
        role = (role or "").strip()
        level = (level or "").strip()
        if not role or not level:
            raise ValidationError("role and level are required")
        if not 1 <= int(count) <= MAX_GENERATED_QUESTIONS:
            raise ValidationError(f"count must be between 1 and {MAX_GENERATED_QUESTIONS}")

        if self.generator is None:
            return question_bank.interview_questions(
                interview_type=type,
                difficulty=difficulty,
                count=int(count),
                rng=self.rng,
            )

        prompt = (
            f"Generate {int(count)} interview questions for a {role} position at {level} level.\n"
            f"Interview type: {type}\n"
            f"Difficulty: {difficulty}\n\n"
            "For each question, provide:\n"
            "- id: unique string\n"
            "- text: the question\n"
            "- type: one of behavioral, technical, situational, case_study\n"
            "- difficulty: difficulty level\n"
            "- expectedDuration: expected answer duration in seconds (10-3600)\n"
            "- followUps: optional follow-up questions\n"
            "- evaluationCriteria: non-empty list of what to look for in answers\n\n"
            "Make questions relevant to the role and appropriate for the experience level.\n"
            'Return JSON: {"questions": [ ... ]}'
        )

        def _check(parsed: GeneratedQuestionSet) -> None:
            if len(parsed.questions) != int(count):
                raise _ContractCheckFailed(f"expected {int(count)} questions, got {len(parsed.questions)}")
            ids = [q.id for q in parsed.questions]
            if len(set(ids)) != len(ids):
                raise _ContractCheckFailed("question ids must be unique")

        parsed = await self._generate_validated(
            GeneratedQuestionSet,
            prompt=prompt,
            operation="generate_questions",
            check=_check,
        )
        return [
            Question(
                id=q.id,
                text=q.text,
                kind=QuestionKind(q.type),
                difficulty=q.difficulty,
                expected_duration_seconds=q.expected_duration,
                follow_ups=tuple(q.follow_ups),
                evaluation_criteria=tuple(q.evaluation_criteria),
            )
            for q in parsed.questions
        ]

    async def analyze_answer(self, *, answer: str, question: Question, role: str, level: str) -> FeedbackResult:
        if not isinstance(answer, str) or not answer.strip():
            raise ValidationError("answer must be a non-empty string", question_id=question.id)

        technical = question.kind == QuestionKind.technical
        prompt = (
            f"Analyze this interview answer for a {role} position at {level} level:\n\n"
            f"Question: {question.text}\n"
            f"Question Type: {question.kind.value}\n"
            f"Answer: {answer}\n\n"
            "Provide detailed feedback on:\n"
            "1. clarity: clarity of communication (0-100)\n"
            "2. confidence: confidence level (0-100)\n"
            "3. structure: answer structure (0-100)\n"
            "4. relevance: relevance to question (0-100)\n"
            + ("5. technicalAccuracy: technical accuracy (0-100)\n" if technical else "")
            + "overallScore: overall score (0-100)\n\n"
            "Also provide:\n"
            "- suggestions: 3 specific suggestions for improvement\n"
            "- strengths: 3 strengths demonstrated\n"
            "- improvements: 3 areas for improvement\n\n"
            "Be constructive and specific in your feedback."
        )
        if question.evaluation_criteria:
            prompt += "\nEvaluation criteria: " + ", ".join(question.evaluation_criteria)

        parsed = await self._generate_validated(GeneratedFeedback, prompt=prompt, operation="analyze_answer")
        return FeedbackResult(
            question_id=question.id,
            scores=FeedbackScores(
                clarity=parsed.clarity,
                confidence=parsed.confidence,
                structure=parsed.structure,
                relevance=parsed.relevance,
                technical_accuracy=parsed.technical_accuracy,
                overall=parsed.overall_score,
            ),
            suggestions=tuple(parsed.suggestions),
            strengths=tuple(parsed.strengths),
            improvements=tuple(parsed.improvements),
        )

    async def narrate(self, *, config: InterviewConfig, transcript: Sequence[tuple[str, str, float | None]]) -> str:
        """Free-form session summary. Presentation prose only, so it is not schema-validated."""
        lines: list[str] = []
        for i, (question_text, answer, score) in enumerate(transcript, start=1):
            lines.append(f"Q{i}: {question_text}")
            lines.append(f"A{i}: {answer}")
            lines.append(f"Score: {score:g}%" if score is not None else "Score: ungraded")
            lines.append("")

        prompt = (
            "Provide comprehensive feedback for this interview session:\n\n"
            f"Role: {config.role}\n"
            f"Level: {config.level}\n"
            f"Type: {config.interview_type}\n\n"
            "Questions and Answers:\n"
            + "\n".join(lines)
            + "\nProvide:\n"
            "1. Overall performance summary\n"
            "2. Key strengths across all answers\n"
            "3. Main areas for improvement\n"
            "4. Specific recommendations for skill development\n"
            "5. Suggested next steps and resources"
        )
        text = await self._call(
            system=_NARRATIVE_SYSTEM,
            prompt=prompt,
            json_mode=False,
            max_tokens=int(settings.llm_narrative_max_tokens),
        )
        text = (text or "").strip()
        if not text:
            raise GenerationError("provider returned an empty narrative")
        return text

    async def synthesize_session_feedback(self, session: Session, results: Sequence[QuestionResult]) -> str:
        if session.interview is None:
            raise ValidationError("narrative feedback is only available for interview sessions")

        by_id = {r.question_id: r for r in results}
        transcript: list[tuple[str, str, float | None]] = []
        for q in session.questions:
            r = by_id.get(q.id)
            if r is None:
                continue
            transcript.append((q.text, r.answer or "(no answer)", r.score))
        return await self.narrate(config=session.interview, transcript=transcript)


def get_gateway() -> StructuredGenerationGateway:
    generator = ChatCompletionsClient() if settings.llm_enabled else None
    return StructuredGenerationGateway(generator)
