"""Persistence helpers for candidate invitations."""
from __future__ import annotations

import datetime as dt
import secrets
from typing import Any, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .models import CandidateRecord, CandidateStatus, row_dict
from .sqlite import get_conn, now_iso, to_iso

_UPDATABLE = {"status", "interview_start", "interview_end", "is_reinterviewed", "resume_text", "name"}


class CandidatePayload(BaseModel):
    candidate_id: str = Field(default_factory=lambda: uuid4().hex)
    job_id: str
    email: str
    name: str = ""
    status: CandidateStatus = "INVITED"
    interview_start: Optional[dt.datetime] = None
    interview_end: Optional[dt.datetime] = None
    is_reinterviewed: bool = False
    resume_text: Optional[str] = None
    interview_token: str = Field(default_factory=lambda: secrets.token_urlsafe(24))


def insert_candidate(**data: Any) -> str:
    """Insert a candidate row and return its id."""

    payload = CandidatePayload(**data)
    timestamp = now_iso()
    with get_conn() as conn:
        conn.execute(
            """INSERT INTO candidates
               (candidate_id, job_id, email, name, status, interview_start, interview_end,
                is_reinterviewed, resume_text, interview_token, invited_at, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                payload.candidate_id,
                payload.job_id,
                payload.email,
                payload.name,
                payload.status,
                to_iso(payload.interview_start),
                to_iso(payload.interview_end),
                int(payload.is_reinterviewed),
                payload.resume_text,
                payload.interview_token,
                timestamp,
                timestamp,
            ),
        )
    return payload.candidate_id


def get_candidate(candidate_id: str) -> Optional[CandidateRecord]:
    with get_conn() as conn:
        row = conn.execute("SELECT * FROM candidates WHERE candidate_id = ?", (candidate_id,)).fetchone()
    return CandidateRecord.model_validate(row_dict(row)) if row else None


def get_candidate_by_token(token: str) -> Optional[CandidateRecord]:
    with get_conn() as conn:
        row = conn.execute("SELECT * FROM candidates WHERE interview_token = ?", (token,)).fetchone()
    return CandidateRecord.model_validate(row_dict(row)) if row else None


def find_candidate(job_id: str, email: str) -> Optional[CandidateRecord]:
    with get_conn() as conn:
        row = conn.execute(
            "SELECT * FROM candidates WHERE job_id = ? AND email = ?",
            (job_id, email),
        ).fetchone()
    return CandidateRecord.model_validate(row_dict(row)) if row else None


def list_candidates_by_email(email: str) -> List[CandidateRecord]:
    with get_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM candidates WHERE email = ? ORDER BY datetime(created_at) DESC, candidate_id DESC",
            (email,),
        ).fetchall()
    return [CandidateRecord.model_validate(row_dict(row)) for row in rows]


def update_candidate(candidate_id: str, **fields: Any) -> None:
    unknown = set(fields) - _UPDATABLE
    if unknown:
        raise ValueError(f"Unsupported candidate fields: {sorted(unknown)}")
    if not fields:
        return
    values = [to_iso(v) if isinstance(v, dt.datetime) else (int(v) if isinstance(v, bool) else v) for v in fields.values()]
    assignments = ", ".join(f"{name} = ?" for name in fields)
    with get_conn() as conn:
        conn.execute(f"UPDATE candidates SET {assignments} WHERE candidate_id = ?", (*values, candidate_id))


def expire_if_invited(candidate_id: str) -> bool:
    """Mark an INVITED candidate EXPIRED; returns whether a row changed."""

    with get_conn() as conn:
        cur = conn.execute(
            "UPDATE candidates SET status = 'EXPIRED' WHERE candidate_id = ? AND status = 'INVITED'",
            (candidate_id,),
        )
        return cur.rowcount > 0
