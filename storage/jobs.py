"""Persistence helpers for jobs."""
from __future__ import annotations

import datetime as dt
import json
from typing import Any, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .models import JobRecord, Plan, row_dict
from .sqlite import get_conn, now_iso, to_iso


class JobPayload(BaseModel):
    job_id: str = Field(default_factory=lambda: uuid4().hex)
    company_id: str
    title: str
    role_category: str = ""
    description: str = ""
    interview_start: dt.datetime
    interview_end: dt.datetime
    tab_tracking: bool = True
    eye_tracking: bool = False
    multi_face_detection: bool = False
    full_screen_mode: bool = False
    no_text_typing: bool = False
    plan_at_creation: Plan = "FREE"
    custom_questions: List[str] = Field(default_factory=list)
    ai_requirements: Optional[str] = None
    timezone: str = "UTC"


def insert_job(**data: Any) -> str:
    """Insert a job row and return its id."""

    payload = JobPayload(**data)
    with get_conn() as conn:
        conn.execute(
            """INSERT INTO jobs
               (job_id, company_id, title, role_category, description, interview_start, interview_end,
                tab_tracking, eye_tracking, multi_face_detection, full_screen_mode, no_text_typing,
                plan_at_creation, custom_questions, ai_requirements, timezone, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                payload.job_id,
                payload.company_id,
                payload.title,
                payload.role_category,
                payload.description,
                to_iso(payload.interview_start),
                to_iso(payload.interview_end),
                int(payload.tab_tracking),
                int(payload.eye_tracking),
                int(payload.multi_face_detection),
                int(payload.full_screen_mode),
                int(payload.no_text_typing),
                payload.plan_at_creation,
                json.dumps(payload.custom_questions),
                payload.ai_requirements,
                payload.timezone,
                now_iso(),
            ),
        )
    return payload.job_id


def get_job(job_id: str) -> Optional[JobRecord]:
    with get_conn() as conn:
        row = conn.execute("SELECT * FROM jobs WHERE job_id = ?", (job_id,)).fetchone()
    return JobRecord.model_validate(row_dict(row)) if row else None
