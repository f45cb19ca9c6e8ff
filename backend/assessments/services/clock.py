from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from assessments.models.session import Session, SessionStatus

log = logging.getLogger(__name__)


def start(session: Session) -> None:
    session.remaining_seconds = max(0, int(session.time_limit_seconds))
    session.current_index = 0


def tick(session: Session) -> bool:
    """Advance the countdown by one second.

    Returns True only on the tick that expires the session; that tick also
    takes the submission snapshot. Every later tick is a no-op.
    """
    if session.status != SessionStatus.in_progress or session.abandoned:
        return False

    if session.remaining_seconds > 0:
        session.remaining_seconds -= 1
    if session.remaining_seconds > 0:
        return False

    session.advance(SessionStatus.timed_out)
    session.freeze_answers()
    session.time_spent_seconds = int(session.time_limit_seconds)
    log.info("session %s timed out with %s answers", session.id, len(session.snapshot or {}))
    return True


def elapsed_seconds(session: Session) -> int:
    return max(0, int(session.time_limit_seconds) - int(session.remaining_seconds))


def goto(session: Session, index: int) -> int:
    if 0 <= int(index) < session.question_count:
        session.current_index = int(index)
    return session.current_index


def next_question(session: Session) -> int:
    return goto(session, session.current_index + 1)


def previous_question(session: Session) -> int:
    return goto(session, session.current_index - 1)


def toggle_flag(session: Session, index: int) -> bool:
    """Bookmark or un-bookmark the question at ``index``. Returns the new flag state."""
    if not 0 <= int(index) < session.question_count:
        return False
    qid = session.questions[int(index)].id
    if qid in session.flagged:
        session.flagged.discard(qid)
        return False
    session.flagged.add(qid)
    return True


async def run_countdown(
    session: Session,
    on_timeout: Callable[[Session], Awaitable[None]],
    *,
    interval_seconds: float = 1.0,
) -> None:
    """Drive ``tick`` once per interval until the session leaves ``in_progress``.

    Cancelling the task is how a session is abandoned: the status stays
    ``in_progress`` and nothing is scored.
    """
    while session.status == SessionStatus.in_progress and not session.abandoned:
        await asyncio.sleep(interval_seconds)
        if tick(session):
            await on_timeout(session)
            return
