"""Persistence helpers for interview turns."""
from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel

from .models import InterviewResponse, row_dict
from .sqlite import get_conn, now_iso


class InterviewResponsePayload(BaseModel):
    session_id: str
    question_text: str
    candidate_answer: str
    ai_acknowledgment: Optional[str] = None
    tech_score: Optional[int] = None
    comm_score: Optional[int] = None
    overfit_score: Optional[int] = None
    ai_flagged: bool = False
    turn_feedback: Optional[str] = None


def insert_response(**data: Any) -> int:
    """Append a turn and return its primary key."""

    payload = InterviewResponsePayload(**data)
    with get_conn() as conn:
        cur = conn.cursor()
        cur.execute(
            """INSERT INTO interview_responses
               (session_id, question_text, candidate_answer, ai_acknowledgment, tech_score,
                comm_score, overfit_score, ai_flagged, turn_feedback, timestamp)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                payload.session_id,
                payload.question_text,
                payload.candidate_answer,
                payload.ai_acknowledgment,
                payload.tech_score,
                payload.comm_score,
                payload.overfit_score,
                int(payload.ai_flagged),
                payload.turn_feedback,
                now_iso(),
            ),
        )
        return int(cur.lastrowid)


def list_responses(session_id: str) -> List[InterviewResponse]:
    with get_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM interview_responses WHERE session_id = ? ORDER BY response_id",
            (session_id,),
        ).fetchall()
    return [InterviewResponse.model_validate(row_dict(row)) for row in rows]
