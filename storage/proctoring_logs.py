"""Persistence helpers for proctoring events."""
from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel

from .models import ProctoringLog, Severity, row_dict
from .sqlite import get_conn, now_iso


class ProctoringLogPayload(BaseModel):
    session_id: str
    event_type: str
    severity: Severity


def insert_proctoring_log(**data: Any) -> ProctoringLog:
    """Append a proctoring event and return the stored row."""

    payload = ProctoringLogPayload(**data)
    timestamp = now_iso()
    with get_conn() as conn:
        cur = conn.cursor()
        cur.execute(
            "INSERT INTO proctoring_logs (session_id, event_type, severity, timestamp) VALUES (?, ?, ?, ?)",
            (payload.session_id, payload.event_type, payload.severity, timestamp),
        )
        log_id = int(cur.lastrowid)
    return ProctoringLog(
        log_id=log_id,
        session_id=payload.session_id,
        event_type=payload.event_type,
        severity=payload.severity,
        timestamp=timestamp,
    )


def list_proctoring_logs(session_id: Optional[str] = None, limit: Optional[int] = None) -> List[ProctoringLog]:
    """Logs for one session in insertion order, or the latest across all sessions."""

    with get_conn() as conn:
        if session_id is not None:
            rows = conn.execute(
                "SELECT * FROM proctoring_logs WHERE session_id = ? ORDER BY log_id",
                (session_id,),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM proctoring_logs ORDER BY log_id DESC LIMIT ?",
                (limit or 20,),
            ).fetchall()
    return [ProctoringLog.model_validate(row_dict(row)) for row in rows]
