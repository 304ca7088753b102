"""Pydantic schemas for the interview session API."""
from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field

from storage.models import Severity


class StartReq(BaseModel):
    resume_text: Optional[str] = None


class RespondReq(BaseModel):
    answer: str = Field(min_length=1)
    question: Optional[str] = None


class RespondResp(BaseModel):
    reply: str


class TranscriptReq(BaseModel):
    question_text: str = Field(min_length=1)
    candidate_answer: str = Field(min_length=1)
    ai_acknowledgment: Optional[str] = None


class TranscriptResp(BaseModel):
    response_id: int


class ProctoringReq(BaseModel):
    event_type: str = Field(min_length=1)
    severity: Severity


class PauseReq(BaseModel):
    reason: str = Field(min_length=1)


class ReinterviewReq(BaseModel):
    start: Optional[dt.datetime] = None


class QuestionsResp(BaseModel):
    session_id: str
    questions: list[str]
