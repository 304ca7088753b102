import pytest

import assessment.assessment as assessment_mod
from assessment import (
    FALLBACK_QUESTIONS,
    FALLBACK_REPLY,
    JobContext,
    METRIC_NAMES,
    TranscriptTurn,
    evaluate_interview,
    generate_questions,
    rate_turn,
    stream_turn,
)
from assessment.assessment import FALLBACK_REASONING, PENDING_FEEDBACK
from config import LlmRoute
from llm_gateway import LlmAuthError, LlmGatewayError


ROUTE = LlmRoute(name="test-route", base_url="http://llm.test", model="test-model")
JOB = JobContext(title="Backend Engineer", role_category="Engineering", description="Python APIs")


def _answer_with(monkeypatch, value):
    captured = {}

    def fake_call_json(prompt, *, cfg, temperature, shape="object", client=None):
        captured.update(prompt=prompt, temperature=temperature, shape=shape)
        return value

    monkeypatch.setattr(assessment_mod, "call_json", fake_call_json)
    return captured


def test_question_fallback_puts_custom_questions_first():
    questions = generate_questions(JOB, "", ["Why us?"], None, 3, route=ROUTE)
    assert questions == ["Why us?", FALLBACK_QUESTIONS[0], FALLBACK_QUESTIONS[1]]


def test_question_fallback_is_truncated_to_count():
    assert generate_questions(JOB, "", [], None, 1, route=ROUTE) == [FALLBACK_QUESTIONS[0]]
    assert generate_questions(JOB, "", ["a", "b"], None, 0, route=ROUTE) == []


def test_generated_questions_fit_requested_count(monkeypatch):
    captured = _answer_with(monkeypatch, ["Describe a service you scaled.", "What is a mutex?", 7, "  "])
    questions = generate_questions(
        JOB, "Ten years of Python.", ["Describe a service you scaled."], "Focus on concurrency.", 5, route=ROUTE
    )
    assert len(questions) == 5
    assert questions[:2] == ["Describe a service you scaled.", "What is a mutex?"]
    assert captured["shape"] == "array"
    assert captured["temperature"] == 0.7
    assert "MANDATORY QUESTIONS" in captured["prompt"]
    assert "Focus on concurrency." in captured["prompt"]


def test_generated_questions_are_truncated(monkeypatch):
    _answer_with(monkeypatch, [f"Question {n}" for n in range(8)])
    assert generate_questions(JOB, "", [], None, 3, route=ROUTE) == ["Question 0", "Question 1", "Question 2"]


def test_rate_turn_clamps_scores(monkeypatch):
    _answer_with(
        monkeypatch,
        {"tech_score": 140, "comm_score": "72.6", "overfit_score": -5, "ai_flagged": "yes", "feedback": "Solid"},
    )
    rating = rate_turn("What is a mutex?", "A lock.", route=ROUTE)
    assert (rating.tech_score, rating.comm_score, rating.overfit_score) == (100, 73, 0)
    assert rating.ai_flagged is False
    assert rating.feedback == "Solid"


def test_rate_turn_falls_back_to_neutral_rating():
    rating = rate_turn("What is a mutex?", "A lock.", route=ROUTE)
    assert (rating.tech_score, rating.comm_score, rating.overfit_score) == (50, 50, 0)
    assert rating.ai_flagged is False


def test_rate_turn_auth_failure_is_not_fatal(monkeypatch):
    def rejected(*_, **__):
        raise LlmAuthError("bad key")

    monkeypatch.setattr(assessment_mod, "call_json", rejected)
    assert rate_turn("q", "a", route=ROUTE).feedback == assessment_mod.FALLBACK_FEEDBACK


@pytest.mark.parametrize(
    "score, model_fit, expected",
    [(85, True, True), (69, True, False), (90, False, False)],
)
def test_is_fit_requires_threshold_and_model_verdict(monkeypatch, score, model_fit, expected):
    _answer_with(
        monkeypatch,
        {
            "overall_score": score,
            "is_fit": model_fit,
            "reasoning": "Clear answers.",
            "metrics": [{"name": "Technical Skills", "score": 80, "feedback": "good"}, {"score": 3}],
        },
    )
    transcript = [TranscriptTurn(question="q", answer="a", tech_score=80, comm_score=70, overfit_score=10)]
    result = evaluate_interview(JOB, transcript, None, route=ROUTE)
    assert result.overall_score == score
    assert result.is_fit is expected
    assert [m.name for m in result.metrics] == list(METRIC_NAMES)


def test_evaluation_metrics_are_the_fixed_set(monkeypatch):
    _answer_with(
        monkeypatch,
        {
            "overall_score": 75,
            "is_fit": True,
            "reasoning": "Solid.",
            "metrics": [
                {"name": "Vibes", "score": 100, "feedback": "great"},
                {"name": " problem solving ", "score": 140, "feedback": "Methodical"},
            ],
        },
    )
    result = evaluate_interview(JOB, [], None, route=ROUTE)
    assert [m.name for m in result.metrics] == list(METRIC_NAMES)
    by_name = {m.name: m for m in result.metrics}
    assert (by_name["Problem Solving"].score, by_name["Problem Solving"].feedback) == (100, "Methodical")
    for name in ("Technical Skills", "Communication", "Professional Integrity"):
        assert (by_name[name].score, by_name[name].feedback) == (0, PENDING_FEEDBACK)


def test_evaluation_failure_requires_manual_review():
    result = evaluate_interview(JOB, [], "Focus on concurrency.", route=ROUTE)
    assert result.overall_score == 0
    assert result.is_fit is False
    assert result.reasoning == FALLBACK_REASONING
    assert [m.name for m in result.metrics] == list(METRIC_NAMES)
    assert all(m.score == 0 for m in result.metrics)


def test_stream_turn_passes_model_chunks(monkeypatch):
    def fake_stream(prompt, *, cfg, temperature, client=None):
        assert "Latest Answer from Candidate:\nI used asyncio." in prompt
        yield "Great. "
        yield "How did you test it?"

    monkeypatch.setattr(assessment_mod, "stream", fake_stream)
    history = [TranscriptTurn(question="Describe a service you scaled.", answer="A queue worker.")]
    assert list(stream_turn(JOB, history, "I used asyncio.", route=ROUTE)) == ["Great. ", "How did you test it?"]


def test_stream_turn_falls_back_when_model_fails():
    assert list(stream_turn(JOB, [], "answer", route=ROUTE)) == [FALLBACK_REPLY]


def test_stream_turn_falls_back_after_partial_output(monkeypatch):
    def flaky_stream(*_, **__):
        yield "Thanks. "
        raise LlmGatewayError("connection reset")

    monkeypatch.setattr(assessment_mod, "stream", flaky_stream)
    assert list(stream_turn(JOB, [], "answer", route=ROUTE)) == ["Thanks. ", FALLBACK_REPLY]


def test_stream_turn_falls_back_on_empty_output(monkeypatch):
    monkeypatch.setattr(assessment_mod, "stream", lambda *_, **__: iter(()))
    assert list(stream_turn(JOB, [], "answer", route=ROUTE)) == [FALLBACK_REPLY]
