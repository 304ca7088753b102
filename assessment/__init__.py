from __future__ import annotations  # Re-export assessment public API

from .assessment import (
    FALLBACK_QUESTIONS,
    FALLBACK_REPLY,
    METRIC_NAMES,
    ROUTE_KEYS,
    EvaluationResult,
    JobContext,
    MetricScore,
    TranscriptTurn,
    TurnRating,
    evaluate_interview,
    fallback_evaluation,
    fallback_rating,
    generate_questions,
    rate_turn,
    resolve_route,
    stream_turn,
)

__all__ = [
    "FALLBACK_QUESTIONS",
    "FALLBACK_REPLY",
    "METRIC_NAMES",
    "ROUTE_KEYS",
    "EvaluationResult",
    "JobContext",
    "MetricScore",
    "TranscriptTurn",
    "TurnRating",
    "evaluate_interview",
    "fallback_evaluation",
    "fallback_rating",
    "generate_questions",
    "rate_turn",
    "resolve_route",
    "stream_turn",
]
