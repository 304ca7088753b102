"""Persistence helpers for final evaluations."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from .models import FinalEvaluation, row_dict
from .sqlite import get_conn, now_iso


def upsert_evaluation(
    session_id: str,
    *,
    overall_score: int,
    is_fit: bool,
    reasoning: str,
    behavioral_note: str,
    metrics: List[Dict[str, Any]],
) -> FinalEvaluation:
    """Insert or replace the single evaluation kept per session."""

    timestamp = now_iso()
    with get_conn() as conn:
        conn.execute(
            """INSERT INTO final_evaluations
               (session_id, overall_score, is_fit, reasoning, behavioral_note, metrics, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(session_id) DO UPDATE SET
                 overall_score = excluded.overall_score,
                 is_fit = excluded.is_fit,
                 reasoning = excluded.reasoning,
                 behavioral_note = excluded.behavioral_note,
                 metrics = excluded.metrics,
                 updated_at = excluded.updated_at""",
            (session_id, overall_score, int(is_fit), reasoning, behavioral_note, json.dumps(metrics), timestamp, timestamp),
        )
        row = conn.execute("SELECT * FROM final_evaluations WHERE session_id = ?", (session_id,)).fetchone()
    return FinalEvaluation.model_validate(row_dict(row))


def get_evaluation(session_id: str) -> Optional[FinalEvaluation]:
    with get_conn() as conn:
        row = conn.execute("SELECT * FROM final_evaluations WHERE session_id = ?", (session_id,)).fetchone()
    return FinalEvaluation.model_validate(row_dict(row)) if row else None
