"""Persistence helpers for interview sessions.

Every update is conditional on the row's ``version`` column so a writer that
read stale state loses instead of overwriting a newer transition.
"""
from __future__ import annotations

import datetime as dt
from typing import Any, Optional
from uuid import uuid4

from interview_session.errors import ConcurrentUpdateError, NotFoundError

from .models import InterviewSession, SessionStatus, row_dict
from .sqlite import get_conn, now_iso, to_iso

_UPDATABLE = {
    "status",
    "has_started",
    "warning_count",
    "malpractice_count",
    "is_interrupted",
    "is_flagged",
    "start_time",
    "end_time",
    "overall_score",
}


def _encode(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, dt.datetime):
        return to_iso(value)
    return value


def create_if_absent(
    candidate_user_id: str,
    job_id: str,
    *,
    status: SessionStatus = "ONGOING",
    has_started: bool = True,
    start_time: Optional[dt.datetime] = None,
) -> tuple[InterviewSession, bool]:
    """Insert the (user, job) session unless one exists.

    Returns the stored row and whether this call created it.
    """

    with get_conn() as conn:
        cur = conn.execute(
            """INSERT OR IGNORE INTO interview_sessions
               (session_id, candidate_user_id, job_id, status, has_started, start_time, version, created_at)
               VALUES (?, ?, ?, ?, ?, ?, 0, ?)""",
            (uuid4().hex, candidate_user_id, job_id, status, int(has_started), to_iso(start_time), now_iso()),
        )
        created = cur.rowcount > 0
        row = conn.execute(
            "SELECT * FROM interview_sessions WHERE candidate_user_id = ? AND job_id = ?",
            (candidate_user_id, job_id),
        ).fetchone()
    return InterviewSession.model_validate(row_dict(row)), created


def get_session(session_id: str) -> Optional[InterviewSession]:
    with get_conn() as conn:
        row = conn.execute("SELECT * FROM interview_sessions WHERE session_id = ?", (session_id,)).fetchone()
    return InterviewSession.model_validate(row_dict(row)) if row else None


def find_session(candidate_user_id: str, job_id: str) -> Optional[InterviewSession]:
    with get_conn() as conn:
        row = conn.execute(
            "SELECT * FROM interview_sessions WHERE candidate_user_id = ? AND job_id = ?",
            (candidate_user_id, job_id),
        ).fetchone()
    return InterviewSession.model_validate(row_dict(row)) if row else None


def has_ongoing_session_for_email(job_id: str, email: str) -> bool:
    with get_conn() as conn:
        row = conn.execute(
            """SELECT 1 FROM interview_sessions s JOIN users u ON u.user_id = s.candidate_user_id
               WHERE s.job_id = ? AND u.email = ? AND s.status = 'ONGOING' LIMIT 1""",
            (job_id, email),
        ).fetchone()
    return row is not None


def update_session(session_id: str, expected_version: int, **fields: Any) -> InterviewSession:
    """Apply ``fields`` if the row is still at ``expected_version``."""

    unknown = set(fields) - _UPDATABLE
    if unknown:
        raise ValueError(f"Unsupported session fields: {sorted(unknown)}")
    assignments = ", ".join([f"{name} = ?" for name in fields] + ["version = version + 1"])
    values = [_encode(value) for value in fields.values()]
    with get_conn() as conn:
        cur = conn.execute(
            f"UPDATE interview_sessions SET {assignments} WHERE session_id = ? AND version = ?",
            (*values, session_id, expected_version),
        )
        row = conn.execute("SELECT * FROM interview_sessions WHERE session_id = ?", (session_id,)).fetchone()
    if row is None:
        raise NotFoundError(f"Session {session_id} not found")
    if cur.rowcount == 0:
        raise ConcurrentUpdateError(
            f"Session {session_id} changed concurrently (expected version {expected_version}, found {row['version']})"
        )
    return InterviewSession.model_validate(row_dict(row))


def delete_sessions_for_email(job_id: str, email: str) -> int:
    """Remove every session of ``email`` for ``job_id``; dependants cascade."""

    with get_conn() as conn:
        cur = conn.execute(
            """DELETE FROM interview_sessions
               WHERE job_id = ? AND candidate_user_id IN (SELECT user_id FROM users WHERE email = ?)""",
            (job_id, email),
        )
        return cur.rowcount


def list_sessions(limit: int = 20) -> list[InterviewSession]:
    with get_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM interview_sessions ORDER BY datetime(created_at) DESC LIMIT ?",
            (limit,),
        ).fetchall()
    return [InterviewSession.model_validate(row_dict(row)) for row in rows]
