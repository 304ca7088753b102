"""Record models for the interview persistence layer."""
from __future__ import annotations

import datetime as dt
import json
import sqlite3
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

CandidateStatus = Literal[
    "PENDING",
    "INVITED",
    "REVIEW",
    "COMPLETED",
    "EXPIRED",
    "REJECTED",
    "CONSIDERED",
    "SHORTLISTED",
]
Plan = Literal["FREE", "PRO", "ULTRA"]
SessionStatus = Literal["ONGOING", "PAUSED", "COMPLETED", "FAILED"]
Severity = Literal["low", "medium", "high"]
Role = Literal["CANDIDATE", "COMPANY", "ADMIN"]

# Candidate statuses meaning the interview already ran to the end.
FINISHED_CANDIDATE_STATUSES = ("REVIEW", "COMPLETED", "REJECTED", "CONSIDERED", "SHORTLISTED")


def _json_list(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value) if value else []
    if value is None:
        return []
    return value


def row_dict(row: sqlite3.Row) -> Dict[str, Any]:
    return {key: row[key] for key in row.keys()}


class UserRecord(BaseModel):  # Identity mirror used for ownership and profile checks
    user_id: str
    email: str
    name: str = ""
    role: Role = "CANDIDATE"
    is_profile_complete: bool = False


class ProctoringFeatures(BaseModel):  # Client-side monitors a job enables
    tab_tracking: bool = True
    eye_tracking: bool = False
    multi_face_detection: bool = False
    full_screen_mode: bool = False
    no_text_typing: bool = False


class JobRecord(BaseModel):  # Job with its default interview window
    job_id: str
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
    created_at: Optional[dt.datetime] = None

    @field_validator("custom_questions", mode="before")
    @classmethod
    def parse_questions(cls, value: Any) -> Any:
        return _json_list(value)

    @property
    def features(self) -> ProctoringFeatures:
        return ProctoringFeatures(
            tab_tracking=self.tab_tracking,
            eye_tracking=self.eye_tracking,
            multi_face_detection=self.multi_face_detection,
            full_screen_mode=self.full_screen_mode,
            no_text_typing=self.no_text_typing,
        )


class CandidateRecord(BaseModel):  # Invitation of one email to one job
    candidate_id: str
    job_id: str
    email: str
    name: str = ""
    status: CandidateStatus = "PENDING"
    interview_start: Optional[dt.datetime] = None
    interview_end: Optional[dt.datetime] = None
    is_reinterviewed: bool = False
    resume_text: Optional[str] = None
    interview_token: str
    invited_at: Optional[dt.datetime] = None
    created_at: Optional[dt.datetime] = None


class InterviewSession(BaseModel):  # Live or finished interview attempt
    session_id: str
    candidate_user_id: str
    job_id: str
    status: SessionStatus = "ONGOING"
    has_started: bool = False
    warning_count: int = 0
    malpractice_count: int = 0
    is_interrupted: bool = False
    is_flagged: bool = False
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    overall_score: Optional[int] = None
    version: int = 0
    created_at: Optional[dt.datetime] = None


class InterviewResponse(BaseModel):  # Stored question/answer turn
    response_id: int
    session_id: str
    question_text: str
    candidate_answer: str
    ai_acknowledgment: Optional[str] = None
    tech_score: Optional[int] = None
    comm_score: Optional[int] = None
    overfit_score: Optional[int] = None
    ai_flagged: bool = False
    turn_feedback: Optional[str] = None
    timestamp: dt.datetime


class ProctoringLog(BaseModel):  # Stored proctoring event
    log_id: int
    session_id: str
    event_type: str
    severity: Severity
    timestamp: dt.datetime


class EvaluationMetric(BaseModel):
    name: str
    score: int
    feedback: str = ""


class FinalEvaluation(BaseModel):  # Stored whole-interview verdict
    session_id: str
    overall_score: int
    is_fit: bool
    reasoning: str
    behavioral_note: str = ""
    metrics: List[EvaluationMetric] = Field(default_factory=list)
    created_at: dt.datetime
    updated_at: dt.datetime

    @field_validator("metrics", mode="before")
    @classmethod
    def parse_metrics(cls, value: Any) -> Any:
        return _json_list(value)


class Notification(BaseModel):  # Company-facing notification row
    notification_id: int
    company_id: str
    title: str
    message: str
    created_at: dt.datetime


__all__ = [
    "CandidateRecord",
    "CandidateStatus",
    "EvaluationMetric",
    "FINISHED_CANDIDATE_STATUSES",
    "FinalEvaluation",
    "InterviewResponse",
    "InterviewSession",
    "JobRecord",
    "Notification",
    "Plan",
    "ProctoringFeatures",
    "ProctoringLog",
    "Role",
    "SessionStatus",
    "Severity",
    "UserRecord",
    "row_dict",
]
