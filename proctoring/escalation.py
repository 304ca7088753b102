from __future__ import annotations  # Warning escalation for proctoring violations

from dataclasses import dataclass
from typing import Any

LOG_ONLY = "LOG_ONLY"
WARN_AND_PAUSE = "WARN_AND_PAUSE"
FLAG_AND_PAUSE = "FLAG_AND_PAUSE"

DEFAULT_WARNING_BUDGET = 3
SEVERITIES = ("low", "medium", "high")


@dataclass(frozen=True)
class EscalationDecision:  # Counter after the event and the action to apply
    next_warning_count: int
    directive: str

    @property
    def pauses(self) -> bool:
        return self.directive != LOG_ONLY

    @property
    def flags(self) -> bool:
        return self.directive == FLAG_AND_PAUSE


def decide(severity: str, current_warning_count: int, *, warning_budget: int = DEFAULT_WARNING_BUDGET) -> EscalationDecision:
    """Map one proctoring event onto the escalation ladder.

    Only ``high`` events count. The first ``warning_budget`` of them pause with
    a warning the candidate may acknowledge; every one after that flags.
    """

    if severity not in SEVERITIES:
        raise ValueError(f"Unknown severity: {severity}")
    if severity != "high":
        return EscalationDecision(next_warning_count=current_warning_count, directive=LOG_ONLY)
    count = current_warning_count + 1
    directive = WARN_AND_PAUSE if count <= warning_budget else FLAG_AND_PAUSE
    return EscalationDecision(next_warning_count=count, directive=directive)


def can_self_acknowledge(session: Any) -> bool:  # Candidate may clear a warning pause, never a flag
    return session.status == "PAUSED" and bool(session.is_interrupted) and not session.is_flagged
