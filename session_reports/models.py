from __future__ import annotations  # Session report domain models

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field

from storage.models import FinalEvaluation, InterviewResponse, ProctoringLog, SessionStatus


class SessionSummary(BaseModel):  # Session header shown at the top of a report
    session_id: str
    status: SessionStatus
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    overall_score: Optional[int] = None
    is_flagged: bool = False
    warning_count: int = 0
    malpractice_count: int = 0


class JobSummary(BaseModel):  # Job the session belongs to
    job_id: str
    title: str
    description: str = ""
    role_category: str = ""
    company_id: str
    company_name: Optional[str] = None


class CandidateSummary(BaseModel):  # Candidate identity for the report
    name: str
    email: str


class SessionReport(BaseModel):  # Full review package for one session
    session: SessionSummary
    job: JobSummary
    candidate: Optional[CandidateSummary] = None
    responses: List[InterviewResponse] = Field(default_factory=list)
    evaluation: Optional[FinalEvaluation] = None
    proctoring_logs: List[ProctoringLog] = Field(default_factory=list)
    generated_at: dt.datetime


__all__ = ["CandidateSummary", "JobSummary", "SessionReport", "SessionSummary"]
