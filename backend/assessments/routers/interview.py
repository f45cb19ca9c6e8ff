from __future__ import annotations

import logging
from typing import Any, assert_never

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from assessments.core.deps import get_gateway
from assessments.core.errors import ValidationError
from assessments.core.rate_limit import rate_limit
from assessments.core.security import get_current_user_id
from assessments.schemas.interview import (
    INTERVIEW_ACTIONS,
    AnalyzeAnswerRequest,
    AnalyzeAnswerResponse,
    GenerateFeedbackRequest,
    GenerateFeedbackResponse,
    GenerateQuestionsRequest,
    GenerateQuestionsResponse,
    InterviewRequest,
)
from assessments.services.generation import StructuredGenerationGateway

log = logging.getLogger(__name__)

router = APIRouter(prefix="/ai-interview", tags=["ai-interview"])

_request_adapter: TypeAdapter[InterviewRequest] = TypeAdapter(InterviewRequest)


def parse_interview_request(payload: Any) -> InterviewRequest:
    action = payload.get("action") if isinstance(payload, dict) else None
    if action not in INTERVIEW_ACTIONS:
        raise HTTPException(status_code=400, detail="invalid action")
    try:
        return _request_adapter.validate_python(payload)
    except PydanticValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        loc = ".".join(str(x) for x in (first.get("loc") or ())[1:]) or "body"
        raise ValidationError(f"{loc}: {first.get('msg') or 'invalid request'}") from e


async def dispatch(
    req: InterviewRequest,
    gateway: StructuredGenerationGateway,
) -> AnalyzeAnswerResponse | GenerateQuestionsResponse | GenerateFeedbackResponse:
    if isinstance(req, AnalyzeAnswerRequest):
        feedback = await gateway.analyze_answer(
            answer=req.answer,
            question=req.question.to_question(),
            role=req.role,
            level=req.level,
        )
        return AnalyzeAnswerResponse(feedback=feedback)

    if isinstance(req, GenerateQuestionsRequest):
        questions = await gateway.generate_questions(
            role=req.role,
            level=req.level,
            type=req.type,
            difficulty=req.difficulty,
            count=req.count,
        )
        return GenerateQuestionsResponse(questions=questions)

    if isinstance(req, GenerateFeedbackRequest):
        texts = {q.id: q.text for q in req.session.questions}
        transcript: list[tuple[str, str, float | None]] = []
        for i, ans in enumerate(req.answers):
            if ans.question_id and ans.question_id in texts:
                text = texts[ans.question_id]
            elif i < len(req.session.questions):
                text = req.session.questions[i].text
            else:
                raise ValidationError(f"answers.{i}: no matching question")
            score = ans.feedback.overall_score if ans.feedback is not None else None
            transcript.append((text, ans.answer, score))

        narrative = await gateway.narrate(config=req.session.config.to_config(), transcript=transcript)
        return GenerateFeedbackResponse(feedback=narrative)

    assert_never(req)


@router.post("")
async def ai_interview(
    payload: Any = Body(...),
    gateway: StructuredGenerationGateway = Depends(get_gateway),
    _user_id: str = Depends(get_current_user_id),
    _: object = rate_limit(key_prefix="ai_interview", limit=30, window_seconds=60),
):
    req = parse_interview_request(payload)
    log.info("ai-interview action=%s", req.action)
    return await dispatch(req, gateway)
