from __future__ import annotations  # Session report package exports

from .models import CandidateSummary, JobSummary, SessionReport, SessionSummary
from .pdf import generate_session_report_pdf
from .report import build_session_report

__all__ = [
    "CandidateSummary",
    "JobSummary",
    "SessionReport",
    "SessionSummary",
    "build_session_report",
    "generate_session_report_pdf",
]
