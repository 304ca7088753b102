import pytest

from interview_session.errors import NotFoundError
from session_reports import build_session_report, generate_session_report_pdf
from storage.evaluations import upsert_evaluation
from storage.proctoring_logs import insert_proctoring_log
from storage.responses import insert_response
from storage.sessions import create_if_absent


def _populated_session(seeded):
    session, _ = create_if_absent(seeded.user_id, seeded.job_id)
    insert_response(
        session_id=session.session_id,
        question_text="Describe a service you scaled.",
        candidate_answer="I sharded a Postgres-backed queue → twice.",
        ai_acknowledgment="Thanks for the detail",
        tech_score=78,
        comm_score=81,
        overfit_score=12,
    )
    insert_proctoring_log(session_id=session.session_id, event_type="TAB_SWITCH", severity="high")
    upsert_evaluation(
        session.session_id,
        overall_score=74,
        is_fit=True,
        reasoning="Solid systems knowledge.",
        behavioral_note="One tab switch.",
        metrics=[{"name": "Technical Skills", "score": 78, "feedback": "Good depth"}],
    )
    return session


def test_report_collects_session_material(seeded):
    session = _populated_session(seeded)
    report = build_session_report(session.session_id)
    assert report.job.title == "Backend Engineer"
    assert report.job.company_name == "Acme Corp"
    assert report.candidate.name == "Ada Lovelace"
    assert report.candidate.email == "ada@example.com"
    assert [r.tech_score for r in report.responses] == [78]
    assert report.evaluation.overall_score == 74
    assert [log.event_type for log in report.proctoring_logs] == ["TAB_SWITCH"]


def test_report_for_unknown_session():
    with pytest.raises(NotFoundError):
        build_session_report("missing")


def test_pdf_renders(seeded):
    session = _populated_session(seeded)
    pdf = generate_session_report_pdf(build_session_report(session.session_id))
    assert isinstance(pdf, bytes)
    assert pdf.startswith(b"%PDF")


def test_pdf_renders_without_evaluation(seeded):
    session, _ = create_if_absent(seeded.user_id, seeded.job_id)
    pdf = generate_session_report_pdf(build_session_report(session.session_id))
    assert pdf.startswith(b"%PDF")
