"""FastAPI routes for interview session control."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response
from fastapi.responses import StreamingResponse

from api.schemas import (
    PauseReq,
    ProctoringReq,
    QuestionsResp,
    ReinterviewReq,
    RespondReq,
    RespondResp,
    StartReq,
    TranscriptReq,
    TranscriptResp,
)
from interview_session.errors import ConcurrentUpdateError, ForbiddenError, NotFoundError
from interview_session.interview_session import InterviewEngine, InterviewOverview, Invitation, ProctoringOutcome
from session_reports import SessionReport, generate_session_report_pdf
from storage.models import CandidateRecord, FinalEvaluation, InterviewSession


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/interviews")

_engine: Optional[InterviewEngine] = None


def get_engine() -> InterviewEngine:
    global _engine
    if _engine is None:
        _engine = InterviewEngine()
    return _engine


def shutdown_engine() -> None:
    global _engine
    if _engine is not None:
        _engine.shutdown()
        _engine = None


def _caller(x_user_id: Optional[str] = Header(default=None, alias="X-User-Id")) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="missing caller identity")
    return x_user_id


@contextmanager
def _domain_errors() -> Iterator[None]:  # Map engine errors onto HTTP statuses
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ForbiddenError as exc:
        raise HTTPException(status_code=403, detail={"reason": exc.reason, "message": exc.message}) from exc
    except ConcurrentUpdateError as exc:
        logger.warning("Concurrent session update rejected: %s", exc)
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.get("/token/{token}", response_model=InterviewOverview)
@router.get("/token/{token}/status", response_model=InterviewOverview)
def interview_by_token(token: str, engine: InterviewEngine = Depends(get_engine)) -> InterviewOverview:
    with _domain_errors():
        return engine.get_interview_by_token(token)


@router.get("/invitations", response_model=List[Invitation])
def invitations(email: str = Query(..., min_length=3), engine: InterviewEngine = Depends(get_engine)) -> List[Invitation]:
    return engine.list_invitations(email)


@router.post("/candidates/{candidate_id}/reinterview", response_model=CandidateRecord)
def reinterview(
    candidate_id: str,
    req: ReinterviewReq,
    caller: str = Depends(_caller),
    engine: InterviewEngine = Depends(get_engine),
) -> CandidateRecord:
    with _domain_errors():
        return engine.reinterview_candidate(candidate_id, caller, start=req.start)


@router.post("/{token}/start", response_model=InterviewSession)
def start(
    token: str,
    req: StartReq,
    caller: str = Depends(_caller),
    engine: InterviewEngine = Depends(get_engine),
) -> InterviewSession:
    with _domain_errors():
        return engine.start_interview(token, caller, resume_text=req.resume_text)


@router.get("/{session_id}", response_model=InterviewSession)
def session(session_id: str, engine: InterviewEngine = Depends(get_engine)) -> InterviewSession:
    with _domain_errors():
        return engine.get_session(session_id)


@router.get("/{session_id}/initial-questions", response_model=QuestionsResp)
def initial_questions(session_id: str, engine: InterviewEngine = Depends(get_engine)) -> QuestionsResp:
    with _domain_errors():
        questions = engine.get_initial_questions(session_id)
    return QuestionsResp(session_id=session_id, questions=questions)


@router.post("/{session_id}/respond")
def respond(session_id: str, req: RespondReq, engine: InterviewEngine = Depends(get_engine)) -> StreamingResponse:
    with _domain_errors():
        chunks = engine.respond_stream(session_id, req.answer, question=req.question)
    return StreamingResponse(chunks, media_type="text/plain; charset=utf-8")


@router.post("/{session_id}/respond-sync", response_model=RespondResp)
def respond_sync(session_id: str, req: RespondReq, engine: InterviewEngine = Depends(get_engine)) -> RespondResp:
    with _domain_errors():
        result = engine.respond_sync(session_id, req.answer, question=req.question)
    return RespondResp(reply=result["reply"])


@router.post("/{session_id}/transcript", response_model=TranscriptResp)
def transcript(session_id: str, req: TranscriptReq, engine: InterviewEngine = Depends(get_engine)) -> TranscriptResp:
    with _domain_errors():
        response_id = engine.save_transcript(
            session_id,
            req.question_text,
            req.candidate_answer,
            req.ai_acknowledgment,
        )
    return TranscriptResp(response_id=response_id)


@router.post("/{session_id}/proctoring", response_model=ProctoringOutcome)
def proctoring(session_id: str, req: ProctoringReq, engine: InterviewEngine = Depends(get_engine)) -> ProctoringOutcome:
    with _domain_errors():
        return engine.log_proctoring_event(session_id, req.event_type, req.severity)


@router.post("/{session_id}/pause", response_model=InterviewSession)
def pause(session_id: str, req: PauseReq, engine: InterviewEngine = Depends(get_engine)) -> InterviewSession:
    with _domain_errors():
        return engine.pause_interview(session_id, req.reason)


@router.post("/{session_id}/resume", response_model=InterviewSession)
def resume(
    session_id: str,
    caller: str = Depends(_caller),
    engine: InterviewEngine = Depends(get_engine),
) -> InterviewSession:
    with _domain_errors():
        return engine.resume_interview(session_id, caller)


@router.post("/{session_id}/acknowledge-warning", response_model=InterviewSession)
def acknowledge_warning(
    session_id: str,
    caller: str = Depends(_caller),
    engine: InterviewEngine = Depends(get_engine),
) -> InterviewSession:
    with _domain_errors():
        return engine.acknowledge_warning(session_id, caller)


@router.post("/{session_id}/complete", response_model=FinalEvaluation)
def complete(session_id: str, engine: InterviewEngine = Depends(get_engine)) -> FinalEvaluation:
    with _domain_errors():
        return engine.complete_interview(session_id)


@router.get("/{session_id}/evaluation", response_model=FinalEvaluation)
def evaluation(session_id: str, engine: InterviewEngine = Depends(get_engine)) -> FinalEvaluation:
    with _domain_errors():
        return engine.get_evaluation(session_id)


@router.get("/{session_id}/report", response_model=SessionReport)
def report(session_id: str, engine: InterviewEngine = Depends(get_engine)) -> SessionReport:
    with _domain_errors():
        return engine.get_session_report(session_id)


@router.get("/{session_id}/report.pdf")
def report_pdf(session_id: str, engine: InterviewEngine = Depends(get_engine)) -> Response:
    with _domain_errors():
        built = engine.get_session_report(session_id)
    payload = generate_session_report_pdf(built)
    return Response(
        content=payload,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="interview-{session_id}.pdf"'},
    )
