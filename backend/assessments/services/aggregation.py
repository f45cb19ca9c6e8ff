from __future__ import annotations

from typing import Iterable, Sequence

from assessments.models.result import FeedbackResult, QuestionResult, QuizOutcome, ResultStatus, SessionReport
from assessments.models.session import Session, SessionKind, SessionStatus, utcnow
from assessments.services import grading


def merge_unique(lists: Iterable[Sequence[str]], *, limit: int | None = None) -> tuple[str, ...]:
    """Ordered union, de-duplicated by exact string match."""
    out: list[str] = []
    seen: set[str] = set()
    for items in lists:
        for item in items:
            if item in seen:
                continue
            seen.add(item)
            out.append(item)
    if limit is not None:
        out = out[: max(0, int(limit))]
    return tuple(out)


def quiz_results(session: Session, outcomes: Sequence[QuizOutcome]) -> list[QuestionResult]:
    answers = session.snapshot or {}
    results: list[QuestionResult] = []
    for o in outcomes:
        rec = answers.get(o.question_id)
        answer = rec.raw_answer if rec is not None else None
        if answer is None or not answer.strip():
            status = ResultStatus.unanswered
        elif o.is_correct is None:
            status = ResultStatus.needs_review
        else:
            status = ResultStatus.graded
        results.append(QuestionResult(question_id=o.question_id, status=status, answer=answer, outcome=o))
    return results


def _ended_as(session: Session) -> SessionStatus:
    if session.status in {SessionStatus.timed_out, SessionStatus.submitted}:
        return session.status
    return SessionStatus.submitted


def aggregate_quiz(
    session: Session,
    outcomes: Sequence[QuizOutcome],
    *,
    passing_score: float,
    time_spent_seconds: int,
) -> SessionReport:
    score, correct, gradable = grading.correctness_score(outcomes)
    return SessionReport(
        session_id=session.id,
        kind=SessionKind.quiz,
        user_id=session.user_id,
        ended_as=_ended_as(session),
        results=tuple(quiz_results(session, outcomes)),
        overall_score=score,
        passing_score=float(passing_score),
        passed=grading.is_passing(score, passing_score),
        correct_count=correct,
        gradable_count=gradable,
        time_spent_seconds=max(0, int(time_spent_seconds)),
        flagged=tuple(q for q in session.question_ids if q in session.flagged),
        created_at=utcnow(),
    )


def interview_score(results: Sequence[QuestionResult]) -> tuple[float | None, int]:
    """Mean of per-question overall scores.

    Unanswered questions count as 0; ungraded questions (system failures) are
    left out so a provider error never turns into a zero. When answers were
    given but none could be graded there is no score at all.
    """
    graded = any(r.status == ResultStatus.graded for r in results)
    if not graded and any(r.status == ResultStatus.ungraded for r in results):
        return None, 0
    scores = [r.score for r in results if r.status in {ResultStatus.graded, ResultStatus.unanswered}]
    scores = [s for s in scores if s is not None]
    if not scores:
        return 0.0, 0
    return round(sum(scores) / len(scores), 2), len(scores)


def aggregate_interview(
    session: Session,
    results: Sequence[QuestionResult],
    *,
    passing_score: float,
    time_spent_seconds: int,
    highlights_limit: int | None = None,
    narrative: str | None = None,
) -> SessionReport:
    score, counted = interview_score(results)
    feedback: list[FeedbackResult] = [r.feedback for r in results if r.feedback is not None]
    return SessionReport(
        session_id=session.id,
        kind=SessionKind.interview,
        user_id=session.user_id,
        ended_as=_ended_as(session),
        results=tuple(results),
        overall_score=score,
        passing_score=float(passing_score),
        passed=grading.is_passing(score, passing_score) if score is not None else None,
        gradable_count=counted,
        time_spent_seconds=max(0, int(time_spent_seconds)),
        flagged=tuple(q for q in session.question_ids if q in session.flagged),
        strengths=merge_unique((f.strengths for f in feedback), limit=highlights_limit),
        improvements=merge_unique((f.improvements for f in feedback), limit=highlights_limit),
        narrative=narrative,
        created_at=utcnow(),
    )
