from __future__ import annotations  # Assemble session reports from storage

import datetime as dt
from typing import Optional

from interview_session.errors import NotFoundError
from storage.candidates import find_candidate
from storage.evaluations import get_evaluation
from storage.jobs import get_job
from storage.proctoring_logs import list_proctoring_logs
from storage.responses import list_responses
from storage.sessions import get_session
from storage.users import get_user

from .models import CandidateSummary, JobSummary, SessionReport, SessionSummary


def build_session_report(session_id: str) -> SessionReport:
    """Collect header, transcript, verdict and proctoring trail for a session."""

    session = get_session(session_id)
    if session is None:
        raise NotFoundError(f"Session {session_id} not found")
    job = get_job(session.job_id)
    if job is None:
        raise NotFoundError(f"Job {session.job_id} not found")
    company = get_user(job.company_id)
    return SessionReport(
        session=SessionSummary(
            session_id=session.session_id,
            status=session.status,
            start_time=session.start_time,
            end_time=session.end_time,
            overall_score=session.overall_score,
            is_flagged=session.is_flagged,
            warning_count=session.warning_count,
            malpractice_count=session.malpractice_count,
        ),
        job=JobSummary(
            job_id=job.job_id,
            title=job.title,
            description=job.description,
            role_category=job.role_category,
            company_id=job.company_id,
            company_name=company.name if company else None,
        ),
        candidate=_candidate_summary(session.candidate_user_id, job.job_id),
        responses=list_responses(session_id),
        evaluation=get_evaluation(session_id),
        proctoring_logs=list_proctoring_logs(session_id),
        generated_at=dt.datetime.now(dt.timezone.utc),
    )


def _candidate_summary(user_id: str, job_id: str) -> Optional[CandidateSummary]:
    user = get_user(user_id)
    if user is None:
        return None
    candidate = find_candidate(job_id, user.email)
    name = (candidate.name if candidate and candidate.name else "") or user.name
    return CandidateSummary(name=name, email=user.email)
