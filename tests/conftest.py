import datetime as dt
import os
import sys
import tempfile
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("ENABLE_FILE_LOGS", "0")

import assessment.assessment as assessment_mod
from config.settings import settings
from interview_session.interview_session import InterviewEngine
from llm_gateway import LlmGatewayError
from storage.candidates import insert_candidate
from storage.jobs import insert_job
from storage.migrate import migrate
from storage.users import insert_user

T0 = dt.datetime(2026, 3, 2, 9, 0, tzinfo=dt.timezone.utc)


class Clock:
    def __init__(self, now: dt.datetime) -> None:
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield
    finally:
        td.cleanup()


@pytest.fixture(autouse=True)
def offline_models(monkeypatch):
    def _fail_json(*_, **__):
        raise LlmGatewayError("model offline")

    def _fail_stream(*_, **__):
        raise LlmGatewayError("model offline")

    monkeypatch.setattr(assessment_mod, "call_json", _fail_json)
    monkeypatch.setattr(assessment_mod, "stream", _fail_stream)


@pytest.fixture
def clock():
    return Clock(T0 + dt.timedelta(minutes=10))


@pytest.fixture
def engine(clock):
    eng = InterviewEngine(clock=clock)
    try:
        yield eng
    finally:
        eng.shutdown()


@pytest.fixture
def seeded():
    company_id = insert_user(email="hiring@acme.test", name="Acme Corp", role="COMPANY", is_profile_complete=True)
    user_id = insert_user(email="ada@example.com", name="Ada", role="CANDIDATE", is_profile_complete=True)
    job_id = insert_job(
        company_id=company_id,
        title="Backend Engineer",
        role_category="Engineering",
        description="Build and operate Python APIs.",
        interview_start=T0,
        interview_end=T0 + dt.timedelta(minutes=30),
        plan_at_creation="PRO",
        custom_questions=["Describe a service you scaled."],
        ai_requirements="Focus on concurrency.",
    )
    candidate_id = insert_candidate(
        job_id=job_id,
        email="ada@example.com",
        name="Ada Lovelace",
        status="INVITED",
        interview_token="tok-ada",
    )
    return SimpleNamespace(
        company_id=company_id,
        user_id=user_id,
        job_id=job_id,
        candidate_id=candidate_id,
        token="tok-ada",
    )
