from __future__ import annotations

from typing import Mapping

from assessments.core.errors import SessionStateError, ValidationError
from assessments.models.session import AnswerRecord, Session, SessionStatus, utcnow


def set_answer(session: Session, question_id: str, value: str) -> AnswerRecord:
    if session.status != SessionStatus.in_progress or session.abandoned:
        raise SessionStateError(question_id=question_id)
    if not session.has_question(question_id):
        raise ValidationError(f"unknown question id: {question_id}", question_id=question_id)
    if not isinstance(value, str):
        raise ValidationError("answer must be a string", question_id=question_id)

    record = AnswerRecord(question_id=question_id, raw_answer=value, submitted_at=utcnow())
    session.answers[question_id] = record
    return record


def get_answer(session: Session, question_id: str) -> AnswerRecord | None:
    return session.answers.get(question_id)


def answered_count(session: Session) -> int:
    return sum(1 for rec in session.answers.values() if rec.raw_answer.strip())


def snapshot(session: Session) -> Mapping[str, AnswerRecord]:
    """Answers as of submit time. Graders read this, never the live map."""
    if session.snapshot is None:
        raise SessionStateError("session has not been submitted")
    return session.snapshot
