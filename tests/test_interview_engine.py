import datetime as dt
import threading

import pytest

import assessment.assessment as assessment_mod
from assessment import FALLBACK_REPLY
from config.settings import settings
from conftest import T0
from interview_session.errors import (
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
from interview_session.interview_session import InterviewEngine
from storage.candidates import get_candidate, insert_candidate, update_candidate
from storage.jobs import insert_job
from storage.notifications import list_notifications
from storage.proctoring_logs import list_proctoring_logs
from storage.responses import list_responses
from storage.sessions import get_session
from storage.users import insert_user, set_profile_complete


def _reason(excinfo):
    return excinfo.value.reason


def test_start_opens_session_and_moves_candidate_to_review(engine, seeded, clock):
    session = engine.start_interview(seeded.token, seeded.user_id, resume_text="Ten years of Python.")
    assert session.status == "ONGOING"
    assert session.has_started is True
    assert session.start_time == clock.now
    candidate = get_candidate(seeded.candidate_id)
    assert candidate.status == "REVIEW"
    assert candidate.resume_text == "Ten years of Python."


def test_start_is_idempotent_while_ongoing(engine, seeded):
    first = engine.start_interview(seeded.token, seeded.user_id)
    second = engine.start_interview(seeded.token, seeded.user_id)
    assert second.session_id == first.session_id
    assert second.version == first.version


def test_start_before_window(engine, seeded, clock):
    clock.now = T0 - dt.timedelta(minutes=5)
    with pytest.raises(ForbiddenError) as excinfo:
        engine.start_interview(seeded.token, seeded.user_id)
    assert _reason(excinfo) == TOO_EARLY
    assert T0.isoformat() in excinfo.value.message


def test_start_at_window_end_is_expired(engine, seeded, clock):
    clock.now = T0 + dt.timedelta(minutes=30)
    with pytest.raises(ForbiddenError) as excinfo:
        engine.start_interview(seeded.token, seeded.user_id)
    assert _reason(excinfo) == WINDOW_EXPIRED


def test_start_requires_complete_profile(engine, seeded):
    set_profile_complete(seeded.user_id, False)
    with pytest.raises(ForbiddenError) as excinfo:
        engine.start_interview(seeded.token, seeded.user_id)
    assert _reason(excinfo) == PROFILE_INCOMPLETE


def test_start_requires_accepted_invitation(engine, seeded):
    update_candidate(seeded.candidate_id, status="PENDING")
    with pytest.raises(ForbiddenError) as excinfo:
        engine.start_interview(seeded.token, seeded.user_id)
    assert _reason(excinfo) == INVITATION_NOT_ACCEPTED


def test_unknown_token(engine):
    with pytest.raises(NotFoundError):
        engine.start_interview("nope", "user")
    with pytest.raises(NotFoundError):
        engine.get_interview_by_token("nope")


def test_warning_ladder_ends_in_flag(engine, seeded):
    session = engine.start_interview(seeded.token, seeded.user_id)
    for expected in (1, 2, 3):
        outcome = engine.log_proctoring_event(session.session_id, "TAB_SWITCH", "high")
        assert outcome.status == "WARNING"
        assert outcome.warning_count == expected
        assert outcome.session.status == "PAUSED"
        assert engine.acknowledge_warning(session.session_id, seeded.user_id).status == "ONGOING"

    outcome = engine.log_proctoring_event(session.session_id, "MULTIPLE_FACES", "high")
    assert outcome.status == "FLAGGED"
    assert outcome.warning_count == 4
    assert outcome.session.is_flagged is True

    with pytest.raises(ForbiddenError) as excinfo:
        engine.acknowledge_warning(session.session_id, seeded.user_id)
    assert _reason(excinfo) == FLAGGED_REQUIRES_COMPANY

    titles = [n.title for n in list_notifications(seeded.company_id)]
    assert titles == ["Interview Flagged - Repeated Violations"]

    resumed = engine.resume_interview(session.session_id, seeded.company_id)
    assert resumed.status == "ONGOING"
    assert resumed.is_flagged is True
    assert len(list_proctoring_logs(session.session_id)) == 4


def test_low_and_medium_events_are_only_logged(engine, seeded):
    session = engine.start_interview(seeded.token, seeded.user_id)
    for severity in ("low", "medium"):
        outcome = engine.log_proctoring_event(session.session_id, "LOOK_AWAY", severity)
        assert outcome.status == "LOGGED"
        assert outcome.warning_count == 0
    assert get_session(session.session_id).status == "ONGOING"


def test_acknowledge_without_pause_is_noop(engine, seeded):
    session = engine.start_interview(seeded.token, seeded.user_id)
    same = engine.acknowledge_warning(session.session_id, seeded.user_id)
    assert same.version == session.version
    with pytest.raises(ForbiddenError) as excinfo:
        engine.acknowledge_warning(session.session_id, seeded.company_id)
    assert _reason(excinfo) == NOT_SESSION_OWNER


def test_pause_blocks_turns_and_restart(engine, seeded):
    session = engine.start_interview(seeded.token, seeded.user_id)
    paused = engine.pause_interview(session.session_id, "Phone detected")
    assert paused.status == "PAUSED"
    assert paused.malpractice_count == 1
    assert list_notifications(seeded.company_id)[0].title == "Interview Paused - Malpractice Detected"

    with pytest.raises(ForbiddenError) as excinfo:
        engine.start_interview(seeded.token, seeded.user_id)
    assert _reason(excinfo) == PAUSED_FOR_MALPRACTICE
    with pytest.raises(ForbiddenError) as excinfo:
        engine.respond_sync(session.session_id, "answer")
    assert _reason(excinfo) == NOT_ONGOING
    with pytest.raises(ForbiddenError) as excinfo:
        engine.resume_interview(session.session_id, seeded.user_id)
    assert _reason(excinfo) == NOT_SESSION_OWNER


def test_admin_may_resume(engine, seeded):
    admin_id = insert_user(email="ops@platform.test", name="Ops", role="ADMIN", is_profile_complete=True)
    session = engine.start_interview(seeded.token, seeded.user_id)
    engine.pause_interview(session.session_id, "Phone detected")
    assert engine.resume_interview(session.session_id, admin_id).status == "ONGOING"


def test_complete_with_model_down_requires_manual_review(engine, seeded):
    session = engine.start_interview(seeded.token, seeded.user_id)
    engine.save_transcript(session.session_id, "Describe a service you scaled.", "A sharded queue.")
    evaluation = engine.complete_interview(session.session_id)
    assert evaluation.overall_score == 0
    assert evaluation.is_fit is False
    assert "Manual review" in evaluation.reasoning
    assert len(evaluation.metrics) == 4

    stored = get_session(session.session_id)
    assert stored.status == "COMPLETED"
    assert stored.overall_score == 0
    assert stored.end_time is not None
    assert get_candidate(seeded.candidate_id).status == "COMPLETED"
    assert engine.get_evaluation(session.session_id).reasoning == evaluation.reasoning

    message = list_notifications(seeded.company_id)[-1].message
    assert message == "Candidate Ada Lovelace has completed the interview for Backend Engineer. Result: Unfit (0%)"

    with pytest.raises(ForbiddenError) as excinfo:
        engine.start_interview(seeded.token, seeded.user_id)
    assert _reason(excinfo) == ALREADY_COMPLETED
    assert engine.log_proctoring_event(session.session_id, "TAB_SWITCH", "high").status == "LOGGED"


def test_complete_uses_model_verdict(engine, seeded, monkeypatch):
    monkeypatch.setattr(
        assessment_mod,
        "call_json",
        lambda *_, **__: {"overall_score": 82, "is_fit": True, "reasoning": "Strong.", "metrics": []},
    )
    session = engine.start_interview(seeded.token, seeded.user_id)
    evaluation = engine.complete_interview(session.session_id)
    assert (evaluation.overall_score, evaluation.is_fit) == (82, True)
    assert list_notifications(seeded.company_id)[-1].message.endswith("Result: Fit (82%)")


def test_streamed_turn_persists_only_after_drain(engine, seeded):
    session = engine.start_interview(seeded.token, seeded.user_id)

    abandoned = engine.respond_stream(session.session_id, "I built a queue.", question="Describe a service you scaled.")
    assert next(abandoned) == FALLBACK_REPLY
    abandoned.close()
    assert list_responses(session.session_id) == []

    replies = engine.respond_stream(session.session_id, "I built a queue.", question="Describe a service you scaled.")
    assert "".join(replies) == FALLBACK_REPLY
    engine.shutdown()

    (turn,) = list_responses(session.session_id)
    assert turn.question_text == "Describe a service you scaled."
    assert turn.ai_acknowledgment == FALLBACK_REPLY.split("?")[0]
    assert turn.tech_score == 50


def test_sync_turn_reuses_last_question(engine, seeded):
    session = engine.start_interview(seeded.token, seeded.user_id)
    assert engine.respond_sync(session.session_id, "First answer.")["reply"] == FALLBACK_REPLY
    engine.respond_sync(session.session_id, "Second answer.")
    turns = list_responses(session.session_id)
    assert [t.question_text for t in turns] == ["Initial Question", "Initial Question"]


def test_flagged_transcript_raises_ai_detection(engine, seeded, monkeypatch):
    monkeypatch.setattr(
        assessment_mod,
        "call_json",
        lambda *_, **__: {"tech_score": 90, "comm_score": 90, "overfit_score": 95, "ai_flagged": True},
    )
    session = engine.start_interview(seeded.token, seeded.user_id)
    engine.save_transcript(session.session_id, "What is a mutex?", "According to the documentation...")
    logs = list_proctoring_logs(session.session_id)
    assert [(log.event_type, log.severity) for log in logs] == [("AI_DETECTION", "high")]
    stored = get_session(session.session_id)
    assert stored.status == "PAUSED"
    assert stored.warning_count == 1
    assert list_responses(session.session_id)[0].overfit_score == 95


def test_initial_questions_follow_plan(engine, seeded, monkeypatch):
    session = engine.start_interview(seeded.token, seeded.user_id)
    assert engine.get_initial_questions(session.session_id) == ["Describe a service you scaled."]

    free_job = insert_job(
        company_id=seeded.company_id,
        title="Data Analyst",
        interview_start=T0,
        interview_end=T0 + dt.timedelta(hours=1),
        plan_at_creation="FREE",
    )
    insert_candidate(job_id=free_job, email="ada@example.com", name="Ada Lovelace", interview_token="tok-free")
    free_session = engine.start_interview("tok-free", seeded.user_id)
    monkeypatch.setattr(assessment_mod, "call_json", lambda *_, **__: [f"Question {n}" for n in range(15)])
    questions = engine.get_initial_questions(free_session.session_id)
    assert len(questions) == 12


def test_window_expiry_marks_invited_candidate(engine, seeded, clock):
    clock.now = T0 + dt.timedelta(minutes=31)
    overview = engine.get_interview_by_token(seeded.token)
    assert overview.status == "EXPIRED"
    assert overview.window["is_expired"] is True
    assert get_candidate(seeded.candidate_id).status == "EXPIRED"
    with pytest.raises(ForbiddenError) as excinfo:
        engine.start_interview(seeded.token, seeded.user_id)
    assert _reason(excinfo) == WINDOW_EXPIRED


def test_expiry_skips_candidate_with_ongoing_session(engine, seeded, clock):
    engine.start_interview(seeded.token, seeded.user_id)
    update_candidate(seeded.candidate_id, status="INVITED")
    clock.now = T0 + dt.timedelta(minutes=45)
    overview = engine.get_interview_by_token(seeded.token)
    assert overview.status == "INVITED"
    assert overview.session.status == "ONGOING"


def test_reinterview_opens_fresh_window(engine, seeded, clock):
    session = engine.start_interview(seeded.token, seeded.user_id)
    engine.complete_interview(session.session_id)

    with pytest.raises(ForbiddenError):
        engine.reinterview_candidate(seeded.candidate_id, seeded.user_id)
    candidate = engine.reinterview_candidate(seeded.candidate_id, seeded.company_id)
    assert candidate.status == "INVITED"
    assert candidate.is_reinterviewed is True
    assert candidate.interview_start == clock.now
    assert candidate.interview_end == clock.now + dt.timedelta(hours=2)
    assert get_session(session.session_id) is None

    clock.now = T0 + dt.timedelta(hours=3)
    fresh = engine.start_interview(seeded.token, seeded.user_id)
    assert fresh.session_id != session.session_id
    assert fresh.status == "ONGOING"


def test_invitations_report_session_progress(engine, seeded):
    (invitation,) = engine.list_invitations("ada@example.com")
    assert invitation.current_status == "INVITED"
    assert invitation.session is None
    engine.start_interview(seeded.token, seeded.user_id)
    (invitation,) = engine.list_invitations("ada@example.com")
    assert invitation.current_status == "ONGOING"
    assert invitation.job.company_name == "Acme Corp"
    assert invitation.job.features.tab_tracking is True


def test_notification_failure_does_not_block_completion(seeded, clock):
    class BrokenNotifier:
        def notify(self, company_id, title, message, *, session_id=None):
            raise RuntimeError("mail relay down")

    engine = InterviewEngine(notifier=BrokenNotifier(), clock=clock)
    try:
        session = engine.start_interview(seeded.token, seeded.user_id)
        assert engine.complete_interview(session.session_id).overall_score == 0
    finally:
        engine.shutdown()


def test_finished_session_cannot_be_paused_or_resumed(engine, seeded):
    session = engine.start_interview(seeded.token, seeded.user_id)
    engine.complete_interview(session.session_id)

    with pytest.raises(ForbiddenError) as excinfo:
        engine.pause_interview(session.session_id, "Phone detected")
    assert _reason(excinfo) == ALREADY_COMPLETED
    with pytest.raises(ForbiddenError) as excinfo:
        engine.resume_interview(session.session_id, seeded.company_id)
    assert _reason(excinfo) == ALREADY_COMPLETED

    stored = get_session(session.session_id)
    assert stored.status == "COMPLETED"
    assert stored.malpractice_count == 0


def test_resume_of_ongoing_session_is_noop(engine, seeded):
    session = engine.start_interview(seeded.token, seeded.user_id)
    resumed = engine.resume_interview(session.session_id, seeded.company_id)
    assert resumed.status == "ONGOING"
    assert resumed.version == session.version


def _hold_background_saves(engine, monkeypatch, release):
    save = engine._save_turn_logged

    def _held(*args):
        release.wait(5)
        save(*args)

    monkeypatch.setattr(engine, "_save_turn_logged", _held)


def test_next_turn_refused_while_previous_save_is_stuck(engine, seeded, monkeypatch):
    release = threading.Event()
    _hold_background_saves(engine, monkeypatch, release)
    monkeypatch.setattr(settings, "PENDING_TURN_TIMEOUT_S", 0.05)
    session = engine.start_interview(seeded.token, seeded.user_id)
    try:
        assert "".join(engine.respond_stream(session.session_id, "First answer.")) == FALLBACK_REPLY
        with pytest.raises(ConcurrentUpdateError):
            engine.respond_sync(session.session_id, "Second answer.")
        with pytest.raises(ConcurrentUpdateError):
            engine.complete_interview(session.session_id)
    finally:
        release.set()
    engine.shutdown()

    assert [turn.candidate_answer for turn in list_responses(session.session_id)] == ["First answer."]
    assert get_session(session.session_id).status == "ONGOING"


def test_overlapping_streams_are_all_saved_before_completion(engine, seeded, monkeypatch):
    release = threading.Event()
    _hold_background_saves(engine, monkeypatch, release)
    session = engine.start_interview(seeded.token, seeded.user_id)

    first = engine.respond_stream(session.session_id, "First answer.", question="Q1")
    second = engine.respond_stream(session.session_id, "Second answer.", question="Q2")
    "".join(first)
    "".join(second)
    assert len(engine._pending[session.session_id]) == 2

    release.set()
    engine.complete_interview(session.session_id)
    engine.shutdown()
    assert session.session_id not in engine._pending
    answers = sorted(turn.candidate_answer for turn in list_responses(session.session_id))
    assert answers == ["First answer.", "Second answer."]
