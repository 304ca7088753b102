from types import SimpleNamespace

import pytest

from proctoring import FLAG_AND_PAUSE, LOG_ONLY, WARN_AND_PAUSE, can_self_acknowledge, decide


def test_low_and_medium_only_log():
    for severity in ("low", "medium"):
        decision = decide(severity, 2)
        assert decision.directive == LOG_ONLY
        assert decision.next_warning_count == 2
        assert not decision.pauses


def test_high_events_walk_the_ladder():
    count = 0
    directives = []
    for _ in range(5):
        decision = decide("high", count)
        count = decision.next_warning_count
        directives.append(decision.directive)
    assert directives == [WARN_AND_PAUSE, WARN_AND_PAUSE, WARN_AND_PAUSE, FLAG_AND_PAUSE, FLAG_AND_PAUSE]
    assert count == 5


def test_budget_is_configurable():
    assert decide("high", 0, warning_budget=1).directive == WARN_AND_PAUSE
    assert decide("high", 1, warning_budget=1).directive == FLAG_AND_PAUSE
    assert decide("high", 0, warning_budget=0).flags


def test_unknown_severity_rejected():
    with pytest.raises(ValueError):
        decide("critical", 0)


def test_self_acknowledge_requires_unflagged_pause():
    paused = SimpleNamespace(status="PAUSED", is_interrupted=True, is_flagged=False)
    flagged = SimpleNamespace(status="PAUSED", is_interrupted=True, is_flagged=True)
    ongoing = SimpleNamespace(status="ONGOING", is_interrupted=False, is_flagged=False)
    assert can_self_acknowledge(paused)
    assert not can_self_acknowledge(flagged)
    assert not can_self_acknowledge(ongoing)
