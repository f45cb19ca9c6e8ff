from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Mapping

from assessments.core.config import settings
from assessments.core.errors import AssessmentError, SessionNotFound, SessionStateError, ValidationError
from assessments.models.question import Question
from assessments.models.result import QuestionResult, ResultStatus, SessionReport
from assessments.models.session import AnswerRecord, InterviewConfig, Session, SessionKind, SessionStatus, utcnow
from assessments.services import aggregation, answers, clock, grading, reports
from assessments.services.generation import StructuredGenerationGateway

log = logging.getLogger(__name__)


def _validate_questions(questions: Iterable[Question]) -> tuple[Question, ...]:
    items = tuple(questions or ())
    if not items:
        raise ValidationError("a session needs at least one question")
    ids = [q.id for q in items]
    if len(set(ids)) != len(ids):
        raise ValidationError("question ids must be unique within a session")
    return items


class SessionRegistry:
    """Sessions addressed by id.

    The clock, answer store, grader and aggregator are plain functions over the
    ``Session`` objects held here. All mutation happens on one event loop.
    """

    def __init__(
        self,
        gateway: StructuredGenerationGateway,
        *,
        passing_score: float | None = None,
        clock_enabled: bool | None = None,
        highlights_limit: int | None = None,
        persist_reports: bool = True,
    ):
        self.gateway = gateway
        self.passing_score = float(passing_score) if passing_score is not None else float(settings.passing_score)
        self.clock_enabled = bool(settings.session_clock_enabled) if clock_enabled is None else bool(clock_enabled)
        self.highlights_limit = (
            int(highlights_limit) if highlights_limit is not None else int(settings.report_highlights_limit)
        )
        self.persist_reports = persist_reports

        self._sessions: dict[str, Session] = {}
        self._countdowns: dict[str, asyncio.Task] = {}
        self._tasks: dict[str, set[asyncio.Task]] = {}
        self._scoring: set[str] = set()
        self._reports: dict[str, SessionReport] = {}

    # -- lifecycle -----------------------------------------------------------------

    def start_session(
        self,
        *,
        kind: SessionKind,
        questions: Iterable[Question],
        time_limit_seconds: int | None = None,
        user_id: str | None = None,
        interview: InterviewConfig | None = None,
    ) -> Session:
        items = _validate_questions(questions)
        if time_limit_seconds is None:
            time_limit_seconds = (
                settings.interview_default_time_limit_seconds
                if kind == SessionKind.interview
                else settings.quiz_default_time_limit_seconds
            )
        if int(time_limit_seconds) <= 0:
            raise ValidationError("time limit must be positive")
        if kind == SessionKind.interview and interview is None:
            raise ValidationError("interview sessions need a role and level")

        session = Session(
            kind=kind,
            questions=items,
            time_limit_seconds=int(time_limit_seconds),
            user_id=user_id,
            interview=interview,
        )
        clock.start(session)
        self._sessions[session.id] = session

        if self.clock_enabled:
            task = self._spawn(session, clock.run_countdown(session, self._on_timeout))
            if task is not None:
                self._countdowns[session.id] = task

        log.info("session %s started kind=%s questions=%s limit=%ss", session.id, kind.value, len(items), session.time_limit_seconds)
        return session

    def get(self, session_id: str, *, user_id: str | None = None) -> Session:
        session = self._sessions.get(session_id)
        if session is None and self.persist_reports:
            done = reports.load_report(session_id)
            if done is not None and (user_id is None or done.user_id in (None, user_id)):
                raise SessionStateError()
        if session is None or session.abandoned:
            raise SessionNotFound(f"session {session_id} not found")
        if user_id is not None and session.user_id is not None and session.user_id != user_id:
            raise SessionNotFound(f"session {session_id} not found")
        return session

    def abandon(self, session_id: str) -> None:
        """Stop the clock and drop in-flight generation. The session is never scored."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        session.abandoned = True
        countdown = self._countdowns.pop(session_id, None)
        if countdown is not None:
            countdown.cancel()
        for task in self._tasks.pop(session_id, set()):
            task.cancel()
        log.info("session %s abandoned status=%s", session_id, session.status.value)

    async def tick(self, session_id: str, seconds: int = 1) -> Session:
        """Advance the countdown by hand; a tick that expires the session scores it."""
        session = self.get(session_id)
        for _ in range(max(0, int(seconds))):
            if clock.tick(session):
                await self._on_timeout(session)
                break
        return session

    def submit(self, session_id: str) -> Session:
        session = self.get(session_id)
        session.advance(SessionStatus.submitted)
        session.freeze_answers()
        session.time_spent_seconds = self._elapsed(session)
        self._cancel_countdown(session_id)
        log.info("session %s submitted answered=%s", session_id, answers.answered_count(session))
        return session

    async def score(self, session_id: str, *, narrative: bool = False) -> SessionReport:
        session = self.get(session_id)
        if session.status == SessionStatus.in_progress:
            raise SessionStateError("session has not been submitted")
        if session.status == SessionStatus.scored or session_id in self._scoring:
            raise SessionStateError()

        self._scoring.add(session_id)
        try:
            snapshot = answers.snapshot(session)
            time_spent = session.time_spent_seconds if session.time_spent_seconds is not None else self._elapsed(session)
            if session.kind == SessionKind.quiz:
                outcomes = grading.grade_all(session.questions, snapshot)
                report = aggregation.aggregate_quiz(
                    session,
                    outcomes,
                    passing_score=self.passing_score,
                    time_spent_seconds=time_spent,
                )
            else:
                results = await self._analyze_all(session, snapshot)
                text = await self._narrative(session, results) if narrative else None
                report = aggregation.aggregate_interview(
                    session,
                    results,
                    passing_score=self.passing_score,
                    time_spent_seconds=time_spent,
                    highlights_limit=self.highlights_limit,
                    narrative=text,
                )

            if session.abandoned:
                log.info("discarding result for abandoned session %s", session_id)
                raise SessionNotFound(f"session {session_id} not found")

            session.advance(SessionStatus.scored)
            self._countdowns.pop(session_id, None)
            if report.overall_score is None:
                log.warning("session %s has no gradable answers: %s", session_id, ", ".join(report.ungraded_ids))
            if self.persist_reports:
                reports.save_report(report)
                # Scored sessions live on only as their stored report.
                self._sessions.pop(session_id, None)
                self._tasks.pop(session_id, None)
            else:
                self._reports[session_id] = report
            return report
        finally:
            self._scoring.discard(session_id)

    def report(self, session_id: str) -> SessionReport | None:
        report = self._reports.get(session_id)
        if report is None and self.persist_reports:
            report = reports.load_report(session_id)
        return report

    async def submit_and_score(self, session_id: str, *, narrative: bool = False) -> SessionReport:
        self.submit(session_id)
        return await self.score(session_id, narrative=narrative)

    async def submit_quiz(
        self,
        session_id: str,
        *,
        answers_by_id: Mapping[str, str],
        flagged: Iterable[str] = (),
        time_spent_seconds: int | None = None,
    ) -> SessionReport:
        """Apply a whole answer sheet, submit and grade it in one step."""
        session = self.get(session_id)
        if session.kind != SessionKind.quiz:
            raise ValidationError("not a quiz session")
        if session.status != SessionStatus.in_progress:
            raise SessionStateError()

        flagged_ids = set(flagged or ())
        unknown = sorted((set(answers_by_id) | flagged_ids) - set(session.question_ids))
        if unknown:
            raise ValidationError(f"unknown question ids: {', '.join(unknown)}")
        if any(not isinstance(v, str) for v in answers_by_id.values()):
            raise ValidationError("answers must be strings")
        if time_spent_seconds is not None and int(time_spent_seconds) < 0:
            raise ValidationError("time spent must not be negative")

        for qid, value in answers_by_id.items():
            answers.set_answer(session, qid, value)
        session.flagged = flagged_ids

        self.submit(session_id)
        if time_spent_seconds is not None:
            session.time_spent_seconds = min(int(time_spent_seconds), int(session.time_limit_seconds))
        return await self.score(session_id)

    def shutdown(self) -> None:
        for session_id in list(self._sessions):
            self.abandon(session_id)

    # -- internals -----------------------------------------------------------------

    def _spawn(self, session: Session, coro) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            log.debug("no running loop for session %s; drive the clock with tick()", session.id)
            return None
        task = loop.create_task(coro)
        bucket = self._tasks.setdefault(session.id, set())
        bucket.add(task)
        task.add_done_callback(bucket.discard)
        return task

    def _cancel_countdown(self, session_id: str) -> None:
        task = self._countdowns.pop(session_id, None)
        if task is None:
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    @staticmethod
    def _elapsed(session: Session) -> int:
        wall = int((utcnow() - session.started_at).total_seconds())
        return min(int(session.time_limit_seconds), max(clock.elapsed_seconds(session), wall))

    async def _on_timeout(self, session: Session) -> None:
        try:
            await self.score(session.id)
        except AssessmentError as e:
            log.warning("scoring timed-out session %s failed: %s", session.id, e.message)

    async def _analyze_one(self, session: Session, question: Question, record: AnswerRecord | None) -> QuestionResult:
        if record is None or not record.raw_answer.strip():
            return QuestionResult(question_id=question.id, status=ResultStatus.unanswered)

        config = session.interview
        try:
            feedback = await self.gateway.analyze_answer(
                answer=record.raw_answer,
                question=question,
                role=config.role,
                level=config.level,
            )
        except AssessmentError as e:
            log.warning("question %s of session %s left ungraded: %s", question.id, session.id, e.message)
            return QuestionResult(
                question_id=question.id,
                status=ResultStatus.ungraded,
                answer=record.raw_answer,
                error_code=e.error_code,
                error_message=e.message,
            )
        return QuestionResult(
            question_id=question.id,
            status=ResultStatus.graded,
            answer=record.raw_answer,
            feedback=feedback,
        )

    async def _analyze_all(self, session: Session, snapshot: Mapping[str, AnswerRecord]) -> list[QuestionResult]:
        tasks = []
        for q in session.questions:
            task = self._spawn(session, self._analyze_one(session, q, snapshot.get(q.id)))
            tasks.append(task)

        done = await asyncio.gather(*tasks, return_exceptions=True)
        if session.abandoned:
            raise SessionNotFound(f"session {session.id} not found")

        results: list[QuestionResult] = []
        for item in done:
            if isinstance(item, BaseException):
                raise item
            results.append(item)
        return results

    async def _narrative(self, session: Session, results: list[QuestionResult]) -> str | None:
        try:
            return await self.gateway.synthesize_session_feedback(session, results)
        except AssessmentError as e:
            log.warning("narrative for session %s unavailable: %s", session.id, e.message)
            return None
