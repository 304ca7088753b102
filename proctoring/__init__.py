from __future__ import annotations  # Re-export proctoring public API

from .escalation import (
    DEFAULT_WARNING_BUDGET,
    FLAG_AND_PAUSE,
    LOG_ONLY,
    SEVERITIES,
    WARN_AND_PAUSE,
    EscalationDecision,
    can_self_acknowledge,
    decide,
)

__all__ = [
    "DEFAULT_WARNING_BUDGET",
    "FLAG_AND_PAUSE",
    "LOG_ONLY",
    "SEVERITIES",
    "WARN_AND_PAUSE",
    "EscalationDecision",
    "can_self_acknowledge",
    "decide",
]
