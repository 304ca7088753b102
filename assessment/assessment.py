from __future__ import annotations  # Generative assessment of interview turns

import logging
from pathlib import Path
from textwrap import dedent
from typing import Any, Dict, Iterator, List, Optional, Sequence

from pydantic import BaseModel, Field

from config import LlmRoute, load_app_registry
from config.settings import settings
from llm_gateway import LlmAuthError, call_json, stream


logger = logging.getLogger(__name__)

GENERATE_KEY = "assessment.generate_questions"
STREAM_KEY = "assessment.stream_turn"
RATE_KEY = "assessment.rate_turn"
EVALUATE_KEY = "assessment.evaluate_interview"
ROUTE_KEYS = (GENERATE_KEY, STREAM_KEY, RATE_KEY, EVALUATE_KEY)

GENERATE_TEMPERATURE = 0.7
STREAM_TEMPERATURE = 0.8
RATE_TEMPERATURE = 0.3
EVALUATE_TEMPERATURE = 0.2

FIT_THRESHOLD = 70
METRIC_NAMES = ("Technical Skills", "Communication", "Problem Solving", "Professional Integrity")

FALLBACK_QUESTIONS: List[str] = [
    "Can you walk me through your most relevant project experience?",
    "How do you approach solving complex technical problems?",
    "Tell me about a time you had to learn a new technology quickly.",
    "How do you handle disagreements with team members?",
    "Where do you see yourself professionally in 2-3 years?",
]
FALLBACK_REPLY = "Thank you for your answer. Could you tell me more about your experience with this technology?"
FALLBACK_FEEDBACK = "Unable to rate this response automatically."
FALLBACK_REASONING = "Evaluation failed due to technical error. Manual review required."
FALLBACK_BEHAVIORAL_NOTE = "Unable to assess automatically"
PENDING_FEEDBACK = "Evaluation pending"

ROOT = Path(__file__).resolve().parents[1]


class JobContext(BaseModel):  # Job and candidate background fed into prompts
    title: str
    role_category: str = ""
    description: str = ""
    resume_text: str = ""


class TranscriptTurn(BaseModel):  # One answered question, with any per-turn rating
    question: str
    answer: str
    tech_score: Optional[int] = None
    comm_score: Optional[int] = None
    overfit_score: Optional[int] = None
    ai_flagged: bool = False


class TurnRating(BaseModel):  # Per-turn rating
    tech_score: int = Field(ge=0, le=100)
    comm_score: int = Field(ge=0, le=100)
    overfit_score: int = Field(ge=0, le=100)
    ai_flagged: bool = False
    feedback: str = ""


class MetricScore(BaseModel):  # Named evaluation metric
    name: str
    score: int = Field(ge=0, le=100)
    feedback: str = ""


class EvaluationResult(BaseModel):  # Whole-interview verdict
    overall_score: int = Field(ge=0, le=100)
    is_fit: bool
    reasoning: str
    behavioral_note: str = ""
    metrics: List[MetricScore] = Field(default_factory=list)


def fallback_rating() -> TurnRating:
    return TurnRating(tech_score=50, comm_score=50, overfit_score=0, ai_flagged=False, feedback=FALLBACK_FEEDBACK)


def fallback_evaluation() -> EvaluationResult:
    return EvaluationResult(
        overall_score=0,
        is_fit=False,
        reasoning=FALLBACK_REASONING,
        behavioral_note=FALLBACK_BEHAVIORAL_NOTE,
        metrics=[MetricScore(name=name, score=0, feedback=PENDING_FEEDBACK) for name in METRIC_NAMES],
    )


def resolve_route(key: str, *, config_path: Optional[Path] = None) -> LlmRoute:  # Look up one registry key
    path = config_path or _config_path()
    return load_app_registry(path, [key])[key]


def generate_questions(
    job: JobContext,
    resume_text: str,
    custom_questions: Sequence[str],
    requirement_notes: Optional[str],
    count: int,
    *,
    route: Optional[LlmRoute] = None,
) -> List[str]:
    """Return exactly ``count`` questions when enough material exists.

    Mandatory custom questions are requested verbatim from the model. When the
    model fails, the custom questions come first, topped up from the fixed
    fallback list.
    """

    custom = [q.strip() for q in custom_questions if q and q.strip()]
    if count <= 0:
        return []
    try:
        cfg = route or resolve_route(GENERATE_KEY)
        task = _build_questions_task(job, resume_text, custom, requirement_notes, count)
        raw = call_json(task, cfg=cfg, temperature=GENERATE_TEMPERATURE, shape="array")
    except LlmAuthError:
        logger.error("Question generation rejected by model credentials; using fallback questions")
        return (custom + FALLBACK_QUESTIONS)[:count]
    except Exception as exc:  # noqa: BLE001
        logger.warning("Question generation failed, using fallback questions: %s", exc)
        return (custom + FALLBACK_QUESTIONS)[:count]
    generated = [str(item).strip() for item in raw if isinstance(item, str) and item.strip()]
    return _fit_to_count(generated, custom, count)


def stream_turn(
    job: JobContext,
    history: Sequence[TranscriptTurn],
    latest_answer: str,
    *,
    route: Optional[LlmRoute] = None,
) -> Iterator[str]:
    """Stream the interviewer's acknowledgment plus next question.

    Never raises: a failure at any point yields :data:`FALLBACK_REPLY`.
    """

    produced = False
    try:
        cfg = route or resolve_route(STREAM_KEY)
        task = _build_turn_task(job, history, latest_answer)
        for chunk in stream(task, cfg=cfg, temperature=STREAM_TEMPERATURE):
            produced = True
            yield chunk
    except LlmAuthError:
        logger.error("Turn stream rejected by model credentials; sending fallback reply")
        yield FALLBACK_REPLY
        return
    except Exception as exc:  # noqa: BLE001
        logger.warning("Turn stream failed, sending fallback reply: %s", exc)
        yield FALLBACK_REPLY
        return
    if not produced:
        logger.warning("Turn stream produced no text, sending fallback reply")
        yield FALLBACK_REPLY


def rate_turn(question: str, answer: str, *, route: Optional[LlmRoute] = None) -> TurnRating:
    try:
        cfg = route or resolve_route(RATE_KEY)
        data = call_json(_build_rating_task(question, answer), cfg=cfg, temperature=RATE_TEMPERATURE)
    except LlmAuthError:
        logger.error("Turn rating rejected by model credentials; using neutral rating")
        return fallback_rating()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Turn rating failed, using neutral rating: %s", exc)
        return fallback_rating()
    return TurnRating(
        tech_score=_clamp_score(data.get("tech_score"), 50),
        comm_score=_clamp_score(data.get("comm_score"), 50),
        overfit_score=_clamp_score(data.get("overfit_score"), 0),
        ai_flagged=data.get("ai_flagged") is True,
        feedback=str(data.get("feedback") or ""),
    )


def evaluate_interview(
    job: JobContext,
    transcript: Sequence[TranscriptTurn],
    requirement_notes: Optional[str],
    *,
    route: Optional[LlmRoute] = None,
) -> EvaluationResult:
    try:
        cfg = route or resolve_route(EVALUATE_KEY)
        task = _build_evaluation_task(job, transcript, requirement_notes)
        data = call_json(task, cfg=cfg, temperature=EVALUATE_TEMPERATURE)
    except LlmAuthError:
        logger.error("Interview evaluation rejected by model credentials; manual review required")
        return fallback_evaluation()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Interview evaluation failed, manual review required: %s", exc)
        return fallback_evaluation()
    overall = _clamp_score(data.get("overall_score"), 0)
    return EvaluationResult(
        overall_score=overall,
        is_fit=data.get("is_fit") is True and overall >= FIT_THRESHOLD,
        reasoning=str(data.get("reasoning") or ""),
        behavioral_note=str(data.get("behavioral_note") or ""),
        metrics=_metrics(data.get("metrics")),
    )


def _config_path() -> Path:
    path = Path(settings.APP_CONFIG_PATH)
    return path if path.is_absolute() else ROOT / path


def _fit_to_count(generated: List[str], custom: List[str], count: int) -> List[str]:  # Truncate or pad to count
    result = generated[:count]
    for item in custom + FALLBACK_QUESTIONS:
        if len(result) >= count:
            break
        if item not in result:
            result.append(item)
    return result


def _clamp_score(value: Any, default: int) -> int:
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return default
    return max(0, min(100, score))


def _metrics(raw: Any) -> List[MetricScore]:  # Always the four named metrics, in order
    scored: Dict[str, Dict[str, Any]] = {}
    for item in raw if isinstance(raw, list) else []:
        if isinstance(item, dict) and item.get("name"):
            scored.setdefault(str(item["name"]).strip().lower(), item)
    metrics: List[MetricScore] = []
    for name in METRIC_NAMES:
        item = scored.get(name.lower())
        if item is None:
            metrics.append(MetricScore(name=name, score=0, feedback=PENDING_FEEDBACK))
            continue
        metrics.append(
            MetricScore(
                name=name,
                score=_clamp_score(item.get("score"), 0),
                feedback=str(item.get("feedback") or ""),
            )
        )
    return metrics


def _format_history(history: Sequence[TranscriptTurn]) -> str:
    if not history:
        return "(no previous questions)"
    return "\n\n".join(
        f"Q{index}: {turn.question}\nA{index}: {turn.answer}" for index, turn in enumerate(history, start=1)
    )


def _build_questions_task(
    job: JobContext,
    resume_text: str,
    custom: List[str],
    requirement_notes: Optional[str],
    count: int,
) -> str:  # Compose question generation prompt
    sections: List[str] = [
        f'You are an expert technical interviewer for a {job.role_category or "general"} role titled "{job.title}".',
        f"Job Description:\n{job.description or 'Not provided'}",
    ]
    if requirement_notes:
        sections.append(f"SPECIFIC REQUIREMENTS TO FOCUS ON:\n{requirement_notes}")
    if custom:
        numbered = "\n".join(f"{index}. {question}" for index, question in enumerate(custom, start=1))
        sections.append(f"MANDATORY QUESTIONS (include every one verbatim):\n{numbered}")
    sections.append(f"Candidate Resume:\n{resume_text or 'Not provided'}")
    if custom:
        extra = max(0, count - len(custom))
        sections.append(
            f"Return all {len(custom)} mandatory questions plus {extra} additional technical or behavioral "
            f"questions based on the job requirements. Total questions to return: {count}."
        )
    else:
        sections.append(f"Generate {count} distinct interview questions mixing technical and behavioral topics.")
    sections.append(
        dedent(
            """
            Return ONLY a JSON array of strings. No markdown, no explanation.
            Example format: ["Question 1", "Question 2"]
            """
        ).strip()
    )
    return "\n\n".join(sections)


def _build_turn_task(job: JobContext, history: Sequence[TranscriptTurn], latest_answer: str) -> str:  # Compose turn prompt
    return "\n\n".join(
        [
            f'You are an AI interviewer for the position "{job.title}".',
            f"Job Context: {job.description or 'Not provided'}",
            f"Candidate Resume: {job.resume_text or 'Not provided'}",
            f"Interview History:\n{_format_history(history)}",
            f"Latest Answer from Candidate:\n{latest_answer}",
            dedent(
                """
                Your task:
                1. Briefly acknowledge the answer in one sentence.
                2. Ask ONE follow-up or next interview question.
                3. Keep it conversational and professional.
                Respond naturally as an interviewer would, in plain text.
                """
            ).strip(),
        ]
    )


def _build_rating_task(question: str, answer: str) -> str:  # Compose per-turn rating prompt
    return "\n\n".join(
        [
            "You are a strict technical interviewer evaluating a candidate's response.",
            f"Question: {question}\nAnswer: {answer}",
            dedent(
                """
                Rate the answer on three dimensions, each 0-100:
                - tech_score: how technically sound and detailed the answer is.
                - comm_score: how clear and well articulated the answer is.
                - overfit_score: how scripted, robotic or keyword-stuffed it reads (80+ is highly suspicious).
                Set ai_flagged to true only when the answer is clearly read from an external source,
                contains forbidden content, or shows extreme malpractice.
                Vague or incomplete answers should score 40-60.

                Return ONLY a JSON object:
                {"tech_score": <number>, "comm_score": <number>, "overfit_score": <number>, "ai_flagged": <boolean>, "feedback": "<brief critique>"}
                """
            ).strip(),
        ]
    )


def _build_evaluation_task(
    job: JobContext,
    transcript: Sequence[TranscriptTurn],
    requirement_notes: Optional[str],
) -> str:  # Compose final evaluation prompt
    lines: List[str] = []
    for index, turn in enumerate(transcript, start=1):
        lines.append(f"Q{index}: {turn.question}\nA{index}: {turn.answer}")
        if turn.tech_score is not None:
            lines.append(
                f"(turn rating: tech={turn.tech_score} comm={turn.comm_score} "
                f"overfit={turn.overfit_score} ai_flagged={str(turn.ai_flagged).lower()})"
            )
    metric_lines = "\n".join(
        f'    {{"name": "{name}", "score": <0-100>, "feedback": "<critique>"}},' for name in METRIC_NAMES
    ).rstrip(",")
    sections: List[str] = [
        "You are an elite hiring auditor conducting a critical evaluation.",
        f"Job Details:\n- Title: {job.title}\n- Category: {job.role_category or 'general'}\n- Description: {job.description or 'Not provided'}",
    ]
    if requirement_notes:
        sections.append(f"SPECIFIC REQUIREMENTS TO EVALUATE AGAINST:\n{requirement_notes}")
    sections.append(f"Candidate Resume:\n{job.resume_text or 'No resume provided'}")
    sections.append("Interview Transcript:\n" + ("\n".join(lines) if lines else "(no answers recorded)"))
    sections.append(
        dedent(
            f"""
            Evaluation guidelines:
            - Be strict. Scores of 90+ are rare and reserved for exceptional candidates.
            - Deduct heavily for ai_flagged turns or a high overfit score across responses.
            - is_fit is true only if overall_score >= {FIT_THRESHOLD} and there are no critical behavioral flags.
            """
        ).strip()
    )
    sections.append(
        "Return ONLY a JSON object:\n"
        "{\n"
        '  "overall_score": <0-100>,\n'
        '  "is_fit": <boolean>,\n'
        '  "reasoning": "<1-2 sentence critical summary>",\n'
        '  "behavioral_note": "<concerns about professionalism or suspected cheating>",\n'
        '  "metrics": [\n'
        f"{metric_lines}\n"
        "  ]\n"
        "}"
    )
    return "\n\n".join(sections)
