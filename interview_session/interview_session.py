from __future__ import annotations  # Interview session lifecycle engine

import datetime as dt
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from contextlib import closing
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel

from assessment import (
    JobContext,
    TranscriptTurn,
    TurnRating,
    evaluate_interview,
    generate_questions,
    rate_turn,
    stream_turn,
)
from config.plans import get_plan
from config.settings import settings
from observability import log_event, span
from proctoring import can_self_acknowledge, decide
from session_reports import SessionReport, build_session_report
from storage import candidates as candidate_store
from storage import evaluations as evaluation_store
from storage import jobs as job_store
from storage import proctoring_logs as proctoring_store
from storage import responses as response_store
from storage import sessions as session_store
from storage import users as user_store
from storage.models import (
    FINISHED_CANDIDATE_STATUSES,
    CandidateRecord,
    FinalEvaluation,
    InterviewSession,
    JobRecord,
    ProctoringFeatures,
    ProctoringLog,
)
from time_window import TimeWindow, calculate_time_window, utcnow

from .collaborators import Notifier, ProfileGate, StoredNotifier, StoredProfileGate
from .errors import (
    ALREADY_COMPLETED,
    FLAGGED_REQUIRES_COMPANY,
    INVITATION_NOT_ACCEPTED,
    NOT_ONGOING,
    NOT_SESSION_OWNER,
    PAUSED_FOR_MALPRACTICE,
    PROFILE_INCOMPLETE,
    TOO_EARLY,
    WINDOW_EXPIRED,
    ConcurrentUpdateError,
    ForbiddenError,
    NotFoundError,
)
from .locks import session_lock


logger = logging.getLogger(__name__)

EXPIRED_MESSAGE = "Interview window has expired. Please contact the company for a re-interview."
COMPLETED_MESSAGE = "Interview already completed"
PAUSED_MESSAGE = "Interview is paused due to malpractice. Please contact the company to resume."
NOT_ACCEPTED_MESSAGE = "You must accept the interview invitation before starting"
PROFILE_MESSAGE = "Please complete your profile before starting the interview"
DEFAULT_QUESTION = "Initial Question"
AI_DETECTION_EVENT = "AI_DETECTION"
FINISHED_SESSION_STATUSES = ("COMPLETED", "FAILED")


class JobInfo(BaseModel):  # Job details exposed to the candidate before starting
    job_id: str
    title: str
    role_category: str
    description: str
    company_id: str
    company_name: Optional[str] = None
    plan: str
    timezone: str
    features: ProctoringFeatures


class SessionInfo(BaseModel):  # Session state visible alongside an invitation
    session_id: str
    status: str
    has_started: bool
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None


class InterviewOverview(BaseModel):  # Token lookup result
    candidate_id: str
    name: str
    email: str
    status: str
    is_reinterviewed: bool
    window: Dict[str, object]
    job: JobInfo
    session: Optional[SessionInfo] = None


class Invitation(BaseModel):  # Candidate-facing invitation entry
    candidate_id: str
    interview_token: str
    status: str
    current_status: str
    is_reinterviewed: bool
    interview_start: Optional[dt.datetime] = None
    interview_end: Optional[dt.datetime] = None
    job: JobInfo
    session: Optional[SessionInfo] = None


class ProctoringOutcome(BaseModel):  # Result of logging a proctoring event
    log: ProctoringLog
    status: str
    warning_count: int
    session: InterviewSession


class InterviewEngine:
    """State machine over interview sessions.

    Transitions run under :func:`session_lock` and persist with a conditional
    update on the session version. Model failures are absorbed by the
    assessment layer; storage errors propagate.
    """

    def __init__(
        self,
        *,
        profile_gate: Optional[ProfileGate] = None,
        notifier: Optional[Notifier] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        clock: Optional[Callable[[], dt.datetime]] = None,
        warning_budget: Optional[int] = None,
    ) -> None:
        self.profile_gate = profile_gate or StoredProfileGate()
        self.notifier = notifier or StoredNotifier()
        self.clock = clock or utcnow
        self.warning_budget = settings.WARNING_BUDGET if warning_budget is None else warning_budget
        self._executor = executor or ThreadPoolExecutor(
            max_workers=settings.BACKGROUND_WORKERS,
            thread_name_prefix="turn-save",
        )
        self._pending: Dict[str, List[Future]] = {}
        self._pending_guard = threading.Lock()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------ reads

    def get_interview_by_token(self, token: str) -> InterviewOverview:
        candidate = candidate_store.get_candidate_by_token(token)
        if candidate is None:
            raise NotFoundError("Interview not found")
        job = self._job(candidate.job_id)
        window = self._window(candidate, job)
        status = candidate.status
        if (
            status == "INVITED"
            and window.is_expired
            and not session_store.has_ongoing_session_for_email(job.job_id, candidate.email)
        ):
            if candidate_store.expire_if_invited(candidate.candidate_id):
                log_event("candidate_expired", "-", candidate_id=candidate.candidate_id, job_id=job.job_id)
            status = "EXPIRED"
        user = user_store.get_user_by_email(candidate.email)
        session = session_store.find_session(user.user_id, job.job_id) if user else None
        return InterviewOverview(
            candidate_id=candidate.candidate_id,
            name=candidate.name,
            email=candidate.email,
            status=status,
            is_reinterviewed=candidate.is_reinterviewed,
            window=window.as_dict(),
            job=self._job_info(job),
            session=_session_info(session),
        )

    def list_invitations(self, email: str) -> List[Invitation]:
        user = user_store.get_user_by_email(email)
        invitations: List[Invitation] = []
        for candidate in candidate_store.list_candidates_by_email(email):
            job = job_store.get_job(candidate.job_id)
            if job is None:
                continue
            session = session_store.find_session(user.user_id, job.job_id) if user else None
            invitations.append(
                Invitation(
                    candidate_id=candidate.candidate_id,
                    interview_token=candidate.interview_token,
                    status=candidate.status,
                    current_status=_current_status(candidate, session),
                    is_reinterviewed=candidate.is_reinterviewed,
                    interview_start=candidate.interview_start,
                    interview_end=candidate.interview_end,
                    job=self._job_info(job),
                    session=_session_info(session),
                )
            )
        return invitations

    def get_session(self, session_id: str) -> InterviewSession:
        return self._session(session_id)

    def get_evaluation(self, session_id: str) -> FinalEvaluation:
        self._session(session_id)
        evaluation = evaluation_store.get_evaluation(session_id)
        if evaluation is None:
            raise NotFoundError("Evaluation not found")
        return evaluation

    def get_session_report(self, session_id: str) -> SessionReport:
        return build_session_report(session_id)

    # ------------------------------------------------------------ transitions

    def start_interview(self, token: str, user_id: str, resume_text: Optional[str] = None) -> InterviewSession:
        candidate = candidate_store.get_candidate_by_token(token)
        if candidate is None:
            raise NotFoundError("Interview not found")
        job = self._job(candidate.job_id)
        with session_lock(f"start:{user_id}:{job.job_id}"):
            if not self.profile_gate.is_profile_complete(user_id):
                raise ForbiddenError(PROFILE_INCOMPLETE, PROFILE_MESSAGE)
            window = self._window(candidate, job)
            if window.is_before_start:
                raise ForbiddenError(
                    TOO_EARLY,
                    f"Interview has not started yet. It will begin at {window.start.isoformat()}",
                )
            if window.is_expired:
                raise ForbiddenError(WINDOW_EXPIRED, EXPIRED_MESSAGE)

            existing = session_store.find_session(user_id, job.job_id)
            if existing is not None and existing.has_started:
                return self._resume_existing(existing)

            candidate = candidate_store.get_candidate(candidate.candidate_id) or candidate
            if candidate.status in FINISHED_CANDIDATE_STATUSES:
                raise ForbiddenError(ALREADY_COMPLETED, COMPLETED_MESSAGE)
            if candidate.status == "EXPIRED":
                raise ForbiddenError(WINDOW_EXPIRED, EXPIRED_MESSAGE)
            if candidate.status != "INVITED":
                raise ForbiddenError(INVITATION_NOT_ACCEPTED, NOT_ACCEPTED_MESSAGE)

            now = self.clock()
            if existing is None:
                session, created = session_store.create_if_absent(
                    user_id,
                    job.job_id,
                    status="ONGOING",
                    has_started=True,
                    start_time=now,
                )
                if not created and session.has_started:
                    return self._resume_existing(session)
                existing = session if not created else None
            if existing is not None:
                with session_lock(existing.session_id):
                    session = session_store.update_session(
                        existing.session_id,
                        existing.version,
                        status="ONGOING",
                        has_started=True,
                        is_interrupted=False,
                        start_time=now,
                    )

            updates: Dict[str, object] = {"status": "REVIEW"}
            if resume_text:
                updates["resume_text"] = resume_text
            candidate_store.update_candidate(candidate.candidate_id, **updates)
            log_event("interview_started", session.session_id, status=session.status, job_id=job.job_id)
            return session

    def pause_interview(self, session_id: str, reason: str) -> InterviewSession:
        with session_lock(session_id):
            session = self._session(session_id)
            self._require_unfinished(session)
            updated = session_store.update_session(
                session_id,
                session.version,
                status="PAUSED",
                is_interrupted=True,
                malpractice_count=session.malpractice_count + 1,
            )
        log_event("interview_paused", session_id, status=updated.status, outcome=reason)
        job = self._job(session.job_id)
        self._notify(
            job.company_id,
            "Interview Paused - Malpractice Detected",
            f"Candidate session {session_id} paused. Reason: {reason}",
            session_id,
        )
        return updated

    def resume_interview(self, session_id: str, company_user_id: str) -> InterviewSession:
        with session_lock(session_id):
            session = self._session(session_id)
            job = self._job(session.job_id)
            if job.company_id != company_user_id and not self._is_admin(company_user_id):
                raise ForbiddenError(NOT_SESSION_OWNER, "Only the owning company can resume this interview")
            self._require_unfinished(session)
            if session.status != "PAUSED":
                return session
            updated = session_store.update_session(
                session_id,
                session.version,
                status="ONGOING",
                is_interrupted=False,
            )
        log_event("interview_resumed", session_id, status=updated.status, outcome="company")
        return updated

    def acknowledge_warning(self, session_id: str, user_id: str) -> InterviewSession:
        with session_lock(session_id):
            session = self._session(session_id)
            if session.candidate_user_id != user_id:
                raise ForbiddenError(NOT_SESSION_OWNER, "Only the interviewing candidate can acknowledge warnings")
            if session.status != "PAUSED" or not session.is_interrupted:
                return session
            if not can_self_acknowledge(session):
                raise ForbiddenError(
                    FLAGGED_REQUIRES_COMPANY,
                    "This interview has been flagged. Please contact the company to resume.",
                )
            updated = session_store.update_session(
                session_id,
                session.version,
                status="ONGOING",
                is_interrupted=False,
            )
        log_event("warning_acknowledged", session_id, status=updated.status, warning_count=updated.warning_count)
        return updated

    def log_proctoring_event(self, session_id: str, event_type: str, severity: str) -> ProctoringOutcome:
        with session_lock(session_id):
            session = self._session(session_id)
            log = proctoring_store.insert_proctoring_log(
                session_id=session_id,
                event_type=event_type,
                severity=severity,
            )
            decision = decide(severity, session.warning_count, warning_budget=self.warning_budget)
            if not decision.pauses or session.status in FINISHED_SESSION_STATUSES:
                return ProctoringOutcome(log=log, status="LOGGED", warning_count=session.warning_count, session=session)
            fields: Dict[str, object] = {
                "warning_count": decision.next_warning_count,
                "status": "PAUSED",
                "is_interrupted": True,
            }
            if decision.flags:
                fields["is_flagged"] = True
            updated = session_store.update_session(session_id, session.version, **fields)
        status = "FLAGGED" if decision.flags else "WARNING"
        log_event(
            "proctoring_escalation",
            session_id,
            event_type=event_type,
            severity=severity,
            directive=decision.directive,
            warning_count=updated.warning_count,
        )
        if decision.flags:
            job = self._job(session.job_id)
            self._notify(
                job.company_id,
                "Interview Flagged - Repeated Violations",
                f"Candidate session {session_id} was flagged after {updated.warning_count} warnings ({event_type}).",
                session_id,
            )
        return ProctoringOutcome(log=log, status=status, warning_count=updated.warning_count, session=updated)

    def complete_interview(self, session_id: str) -> FinalEvaluation:
        self._await_pending(session_id)
        with session_lock(session_id):
            session = self._session(session_id)
            job = self._job(session.job_id)
            user = user_store.get_user(session.candidate_user_id)
            candidate = candidate_store.find_candidate(job.job_id, user.email) if user else None
            transcript = [
                TranscriptTurn(
                    question=row.question_text,
                    answer=row.candidate_answer,
                    tech_score=row.tech_score,
                    comm_score=row.comm_score,
                    overfit_score=row.overfit_score,
                    ai_flagged=row.ai_flagged,
                )
                for row in response_store.list_responses(session_id)
            ]
            with span(session_id, "evaluate_interview", turns=len(transcript)):
                result = evaluate_interview(
                    _job_context(job, candidate),
                    transcript,
                    job.ai_requirements,
                )
            evaluation = evaluation_store.upsert_evaluation(
                session_id,
                overall_score=result.overall_score,
                is_fit=result.is_fit,
                reasoning=result.reasoning,
                behavioral_note=result.behavioral_note,
                metrics=[metric.model_dump() for metric in result.metrics],
            )
            session_store.update_session(
                session_id,
                session.version,
                status="COMPLETED",
                end_time=self.clock(),
                overall_score=result.overall_score,
            )
            if candidate is not None:
                candidate_store.update_candidate(candidate.candidate_id, status="COMPLETED")
        log_event("interview_completed", session_id, status="COMPLETED", outcome="fit" if result.is_fit else "unfit")
        name = (candidate.name if candidate and candidate.name else None) or (user.name if user else "Unknown")
        self._notify(
            job.company_id,
            "Interview Completed",
            f"Candidate {name} has completed the interview for {job.title}. "
            f"Result: {'Fit' if result.is_fit else 'Unfit'} ({result.overall_score}%)",
            session_id,
        )
        return evaluation

    def reinterview_candidate(
        self,
        candidate_id: str,
        company_user_id: str,
        start: Optional[dt.datetime] = None,
    ) -> CandidateRecord:
        candidate = candidate_store.get_candidate(candidate_id)
        if candidate is None:
            raise NotFoundError("Candidate not found")
        job = self._job(candidate.job_id)
        if job.company_id != company_user_id and not self._is_admin(company_user_id):
            raise ForbiddenError(NOT_SESSION_OWNER, "Only the owning company can schedule a re-interview")
        begin = start or self.clock()
        end = begin + dt.timedelta(hours=settings.REINTERVIEW_WINDOW_HOURS)
        user = user_store.get_user_by_email(candidate.email)
        lock_key = f"start:{user.user_id}:{job.job_id}" if user else f"candidate:{candidate_id}"
        with session_lock(lock_key):
            removed = session_store.delete_sessions_for_email(job.job_id, candidate.email)
            candidate_store.update_candidate(
                candidate_id,
                status="INVITED",
                interview_start=begin,
                interview_end=end,
                is_reinterviewed=True,
            )
        log_event("candidate_reinterviewed", "-", candidate_id=candidate_id, job_id=job.job_id, outcome=f"removed={removed}")
        refreshed = candidate_store.get_candidate(candidate_id)
        if refreshed is None:
            raise NotFoundError("Candidate not found")
        return refreshed

    # ------------------------------------------------------------------ turns

    def get_initial_questions(self, session_id: str) -> List[str]:
        session = self._session(session_id)
        job, candidate = self._job_and_candidate(session)
        plan = get_plan(job.plan_at_creation)
        resume_text = (candidate.resume_text if candidate else None) or ""
        with span(session_id, "generate_questions", count=plan.initial_question_count):
            return generate_questions(
                _job_context(job, candidate),
                resume_text,
                job.custom_questions,
                job.ai_requirements,
                plan.initial_question_count,
            )

    def respond_stream(self, session_id: str, answer: str, question: Optional[str] = None) -> Iterator[str]:
        """Validate the turn, then return a generator relaying the reply.

        The turn is persisted in the background only after the caller drains
        the generator; closing it early persists nothing.
        """

        session, job, candidate, history, question_text = self._prepare_turn(session_id, question)
        plan = get_plan(job.plan_at_creation)
        context = _job_context(job, candidate)

        def _relay() -> Iterator[str]:
            chunks: List[str] = []
            with closing(stream_turn(context, history, answer)) as replies:
                for chunk in replies:
                    chunks.append(chunk)
                    yield chunk
            self._submit_turn(session_id, question_text, answer, "".join(chunks), plan.rate_streamed_turns)

        return _relay()

    def respond_sync(self, session_id: str, answer: str, question: Optional[str] = None) -> Dict[str, str]:
        session, job, candidate, history, question_text = self._prepare_turn(session_id, question)
        plan = get_plan(job.plan_at_creation)
        with closing(stream_turn(_job_context(job, candidate), history, answer)) as replies:
            reply = "".join(replies)
        self._save_turn(session_id, question_text, answer, reply, plan.rate_streamed_turns)
        return {"reply": reply}

    def save_transcript(
        self,
        session_id: str,
        question: str,
        answer: str,
        acknowledgment: Optional[str] = None,
    ) -> int:
        self._require_ongoing(self._session(session_id))
        rating = rate_turn(question, answer)
        response_id = self._store_turn(session_id, question, answer, acknowledgment, rating)
        if rating.ai_flagged:
            self.log_proctoring_event(session_id, AI_DETECTION_EVENT, "high")
        return response_id

    # ---------------------------------------------------------------- helpers

    def _prepare_turn(
        self,
        session_id: str,
        question: Optional[str],
    ) -> Tuple[InterviewSession, JobRecord, Optional[CandidateRecord], List[TranscriptTurn], str]:
        session = self._session(session_id)
        self._require_ongoing(session)
        self._await_pending(session_id)
        job, candidate = self._job_and_candidate(session)
        rows = response_store.list_responses(session_id)
        history = [TranscriptTurn(question=row.question_text, answer=row.candidate_answer) for row in rows]
        question_text = (question or "").strip() or (rows[-1].question_text if rows else DEFAULT_QUESTION)
        return session, job, candidate, history, question_text

    def _submit_turn(self, session_id: str, question: str, answer: str, reply: str, rate: bool) -> None:
        future = self._executor.submit(self._save_turn_logged, session_id, question, answer, reply, rate)
        with self._pending_guard:
            self._pending.setdefault(session_id, []).append(future)
        future.add_done_callback(lambda done: self._clear_pending(session_id, done))

    def _clear_pending(self, session_id: str, future: Future) -> None:
        with self._pending_guard:
            futures = self._pending.get(session_id, [])
            if future in futures:
                futures.remove(future)
            if not futures:
                self._pending.pop(session_id, None)

    def _await_pending(self, session_id: str) -> None:  # Every background save of the session must land first
        with self._pending_guard:
            futures = list(self._pending.get(session_id, []))
        if not futures:
            return
        _, not_done = wait(futures, timeout=settings.PENDING_TURN_TIMEOUT_S)
        if not_done:
            logger.warning("Pending turn saves still running session=%s count=%d", session_id, len(not_done))
            raise ConcurrentUpdateError(f"Session {session_id} still has a turn being saved")

    def _save_turn_logged(self, session_id: str, question: str, answer: str, reply: str, rate: bool) -> None:
        try:
            self._save_turn(session_id, question, answer, reply, rate)
        except Exception:  # noqa: BLE001
            logger.exception("Background turn save failed session=%s", session_id)

    def _save_turn(self, session_id: str, question: str, answer: str, reply: str, rate: bool) -> None:
        rating = rate_turn(question, answer) if rate else None
        acknowledgment = reply.split("?")[0] if reply else ""
        self._store_turn(session_id, question, answer, acknowledgment, rating)
        if rating is not None and rating.ai_flagged:
            self.log_proctoring_event(session_id, AI_DETECTION_EVENT, "high")

    def _store_turn(
        self,
        session_id: str,
        question: str,
        answer: str,
        acknowledgment: Optional[str],
        rating: Optional[TurnRating],
    ) -> int:
        response_id = response_store.insert_response(
            session_id=session_id,
            question_text=question,
            candidate_answer=answer,
            ai_acknowledgment=acknowledgment,
            tech_score=rating.tech_score if rating else None,
            comm_score=rating.comm_score if rating else None,
            overfit_score=rating.overfit_score if rating else None,
            ai_flagged=rating.ai_flagged if rating else False,
            turn_feedback=rating.feedback if rating else None,
        )
        log_event("turn_saved", session_id, outcome="rated" if rating else "unrated")
        return response_id

    def _resume_existing(self, session: InterviewSession) -> InterviewSession:  # Started session found on start
        if session.status == "ONGOING":
            return session
        if session.status == "PAUSED":
            raise ForbiddenError(PAUSED_FOR_MALPRACTICE, PAUSED_MESSAGE)
        raise ForbiddenError(ALREADY_COMPLETED, COMPLETED_MESSAGE)

    def _require_unfinished(self, session: InterviewSession) -> None:  # COMPLETED and FAILED are terminal
        if session.status in FINISHED_SESSION_STATUSES:
            raise ForbiddenError(ALREADY_COMPLETED, COMPLETED_MESSAGE)

    def _require_ongoing(self, session: InterviewSession) -> None:
        if session.status != "ONGOING":
            raise ForbiddenError(NOT_ONGOING, "Interview is not active")

    def _session(self, session_id: str) -> InterviewSession:
        session = session_store.get_session(session_id)
        if session is None:
            raise NotFoundError("Session not found")
        return session

    def _job(self, job_id: str) -> JobRecord:
        job = job_store.get_job(job_id)
        if job is None:
            raise NotFoundError("Job not found")
        return job

    def _is_admin(self, user_id: str) -> bool:
        caller = user_store.get_user(user_id)
        return caller is not None and caller.role == "ADMIN"

    def _job_and_candidate(self, session: InterviewSession) -> Tuple[JobRecord, Optional[CandidateRecord]]:
        job = self._job(session.job_id)
        user = user_store.get_user(session.candidate_user_id)
        candidate = candidate_store.find_candidate(job.job_id, user.email) if user else None
        return job, candidate

    def _window(self, candidate: CandidateRecord, job: JobRecord) -> TimeWindow:
        return calculate_time_window(
            candidate.interview_start,
            candidate.interview_end,
            job.interview_start,
            job.interview_end,
            candidate.is_reinterviewed,
            now=self.clock(),
        )

    def _job_info(self, job: JobRecord) -> JobInfo:
        company = user_store.get_user(job.company_id)
        return JobInfo(
            job_id=job.job_id,
            title=job.title,
            role_category=job.role_category,
            description=job.description,
            company_id=job.company_id,
            company_name=company.name if company else None,
            plan=job.plan_at_creation,
            timezone=job.timezone,
            features=job.features,
        )

    def _notify(self, company_id: str, title: str, message: str, session_id: str) -> None:
        try:
            self.notifier.notify(company_id, title, message, session_id=session_id)
        except Exception:  # noqa: BLE001
            logger.exception("Company notification failed session=%s title=%s", session_id, title)


def _job_context(job: JobRecord, candidate: Optional[CandidateRecord]) -> JobContext:
    return JobContext(
        title=job.title,
        role_category=job.role_category,
        description=job.description,
        resume_text=(candidate.resume_text if candidate else None) or "",
    )


def _session_info(session: Optional[InterviewSession]) -> Optional[SessionInfo]:
    if session is None:
        return None
    return SessionInfo(
        session_id=session.session_id,
        status=session.status,
        has_started=session.has_started,
        start_time=session.start_time,
        end_time=session.end_time,
    )


def _current_status(candidate: CandidateRecord, session: Optional[InterviewSession]) -> str:  # Invitation badge
    if session is None:
        return candidate.status
    if session.status == "COMPLETED":
        return "COMPLETED"
    if session.has_started:
        return "ONGOING"
    return session.status


__all__ = [
    "InterviewEngine",
    "InterviewOverview",
    "Invitation",
    "JobInfo",
    "ProctoringOutcome",
    "SessionInfo",
]
