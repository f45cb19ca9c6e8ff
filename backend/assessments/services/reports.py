from __future__ import annotations

import logging

from assessments.core.config import settings
from assessments.core.errors import SessionStateError
from assessments.core.redis_client import get_redis
from assessments.models.result import SessionReport

log = logging.getLogger(__name__)


def _report_key(session_id: str) -> str:
    return f"session_report:{session_id}"


def save_report(report: SessionReport) -> None:
    """Persist a finished report. A report is written once and never replaced."""
    r = get_redis()
    ttl = settings.report_ttl_seconds
    ok = r.set(
        _report_key(report.session_id),
        report.model_dump_json(),
        nx=True,
        ex=int(ttl) if ttl else None,
    )
    if not ok:
        raise SessionStateError(f"report for session {report.session_id} already exists")
    log.info("stored report session=%s score=%s passed=%s", report.session_id, report.overall_score, report.passed)


def load_report(session_id: str) -> SessionReport | None:
    raw = get_redis().get(_report_key(session_id))
    if raw is None:
        return None
    return SessionReport.model_validate_json(raw)
