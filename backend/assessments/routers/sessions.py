from __future__ import annotations

from fastapi import APIRouter, Depends

from assessments.core.deps import get_registry
from assessments.core.errors import SessionNotFound, ValidationError
from assessments.core.rate_limit import rate_limit
from assessments.core.security import get_current_user_id
from assessments.models.result import SessionReport
from assessments.models.session import InterviewConfig, SessionKind
from assessments.schemas.session import (
    AnswerRequest,
    FlagResponse,
    NavigateRequest,
    QuizSubmitRequest,
    SessionStartRequest,
    SessionStateResponse,
)
from assessments.services import answers, clock, question_bank
from assessments.services.sessions import SessionRegistry

router = APIRouter(tags=["sessions"])


@router.post("/sessions", response_model=SessionStateResponse)
async def start_session(
    body: SessionStartRequest,
    registry: SessionRegistry = Depends(get_registry),
    user_id: str = Depends(get_current_user_id),
    _: object = rate_limit(key_prefix="session_start", limit=30, window_seconds=60),
):
    interview: InterviewConfig | None = None
    if body.kind == SessionKind.interview:
        role = (body.role or "").strip()
        level = (body.level or "").strip()
        if not role or not level:
            raise ValidationError("interview sessions need a role and level")
        interview = InterviewConfig(
            role=role,
            level=level,
            interview_type=body.interview_type,
            difficulty=body.difficulty,
        )

    questions = list(body.questions or [])
    if not questions:
        if interview is not None:
            questions = await registry.gateway.generate_questions(
                role=interview.role,
                level=interview.level,
                type=interview.interview_type,
                difficulty=interview.difficulty,
                count=body.count,
            )
        else:
            questions = question_bank.quiz_questions(rng=registry.gateway.rng, shuffle=body.shuffle)
    elif body.shuffle:
        registry.gateway.rng.shuffle(questions)

    session = registry.start_session(
        kind=body.kind,
        questions=questions,
        time_limit_seconds=body.time_limit_seconds,
        user_id=user_id,
        interview=interview,
    )
    return SessionStateResponse.from_session(session)


@router.get("/sessions/{session_id}", response_model=SessionStateResponse)
async def get_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
    user_id: str = Depends(get_current_user_id),
):
    return SessionStateResponse.from_session(registry.get(session_id, user_id=user_id))


@router.put("/sessions/{session_id}/answers/{question_id}", response_model=SessionStateResponse)
async def put_answer(
    session_id: str,
    question_id: str,
    body: AnswerRequest,
    registry: SessionRegistry = Depends(get_registry),
    user_id: str = Depends(get_current_user_id),
):
    session = registry.get(session_id, user_id=user_id)
    answers.set_answer(session, question_id, body.value)
    return SessionStateResponse.from_session(session)


@router.post("/sessions/{session_id}/navigate", response_model=SessionStateResponse)
async def navigate(
    session_id: str,
    body: NavigateRequest,
    registry: SessionRegistry = Depends(get_registry),
    user_id: str = Depends(get_current_user_id),
):
    session = registry.get(session_id, user_id=user_id)
    if body.action == "goto":
        if body.index is None:
            raise ValidationError("goto needs an index")
        clock.goto(session, body.index)
    elif body.action == "next":
        clock.next_question(session)
    else:
        clock.previous_question(session)
    return SessionStateResponse.from_session(session)


@router.post("/sessions/{session_id}/flags/{index}", response_model=FlagResponse)
async def toggle_flag(
    session_id: str,
    index: int,
    registry: SessionRegistry = Depends(get_registry),
    user_id: str = Depends(get_current_user_id),
):
    session = registry.get(session_id, user_id=user_id)
    flagged = clock.toggle_flag(session, index)
    qid = session.questions[index].id if 0 <= index < session.question_count else None
    return FlagResponse(
        question_id=qid,
        flagged=flagged,
        flagged_ids=[q for q in session.question_ids if q in session.flagged],
    )


@router.post("/sessions/{session_id}/submit", response_model=SessionReport)
async def submit_session(
    session_id: str,
    narrative: bool = False,
    registry: SessionRegistry = Depends(get_registry),
    user_id: str = Depends(get_current_user_id),
    _: object = rate_limit(key_prefix="session_submit", limit=20, window_seconds=60),
):
    registry.get(session_id, user_id=user_id)
    return await registry.submit_and_score(session_id, narrative=narrative)


@router.post("/sessions/{session_id}/quiz-submit", response_model=SessionReport)
async def submit_quiz(
    session_id: str,
    body: QuizSubmitRequest,
    registry: SessionRegistry = Depends(get_registry),
    user_id: str = Depends(get_current_user_id),
    _: object = rate_limit(key_prefix="session_submit", limit=20, window_seconds=60),
):
    registry.get(session_id, user_id=user_id)
    return await registry.submit_quiz(
        session_id,
        answers_by_id=body.answers,
        flagged=body.flagged,
        time_spent_seconds=body.time_spent_seconds,
    )


@router.delete("/sessions/{session_id}")
async def abandon_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
    user_id: str = Depends(get_current_user_id),
):
    registry.get(session_id, user_id=user_id)
    registry.abandon(session_id)
    return {"ok": True, "session_id": session_id, "abandoned": True}


@router.get("/reports/{session_id}", response_model=SessionReport)
async def get_report(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
    user_id: str = Depends(get_current_user_id),
):
    report = registry.report(session_id)
    if report is None:
        raise SessionNotFound(f"no report for session {session_id}")
    if report.user_id is not None and report.user_id != user_id:
        raise SessionNotFound(f"no report for session {session_id}")
    return report
