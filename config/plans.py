"""YAML-driven subscription plan limits for interview behaviour."""
from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Dict, Optional

from config.settings import settings

DEFAULT_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "plans.yaml")
PLAN_NAMES = ("FREE", "PRO", "ULTRA")

# FREE jobs get the full question list upfront and no per-turn rating on the
# streaming path; paid plans run interactively from a single opener.
DEFAULT_PLANS: dict = {
    "FREE": {"initial_question_count": 12, "rate_streamed_turns": False},
    "PRO": {"initial_question_count": 1, "rate_streamed_turns": True},
    "ULTRA": {"initial_question_count": 1, "rate_streamed_turns": True},
}


@dataclass(frozen=True)
class PlanLimits:
    """Behaviour switches attached to a job's plan snapshot."""

    name: str
    initial_question_count: int
    rate_streamed_turns: bool


def _load_yaml(path: str) -> dict:
    import yaml  # local import to avoid mandatory dependency until used

    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


class PlanCatalog:
    """Plan table loaded from YAML and reloaded when the file changes."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or settings.PLANS_PATH or DEFAULT_PATH
        self._mtime = 0.0
        self._plans: Dict[str, PlanLimits] = {}
        self.reload_if_changed(force=True)

    def reload_if_changed(self, force: bool = False) -> None:
        try:
            stat = os.stat(self.path)
            if not force and stat.st_mtime <= self._mtime:
                return
            raw = _load_yaml(self.path).get("plans", {})
            self._mtime = stat.st_mtime
        except FileNotFoundError:
            raw = {}
            self._mtime = time.time()

        plans: Dict[str, PlanLimits] = {}
        for name in PLAN_NAMES:
            values = dict(DEFAULT_PLANS[name])
            values.update(raw.get(name) or {})
            plans[name] = PlanLimits(name=name, **values)
        self._plans = plans

    def get(self, plan: str) -> PlanLimits:
        self.reload_if_changed()
        key = (plan or "FREE").upper()
        if key not in self._plans:
            raise KeyError(f"Unknown plan: {plan}")
        return self._plans[key]


_catalog: Optional[PlanCatalog] = None


def plan_catalog() -> PlanCatalog:
    global _catalog
    if _catalog is None:
        _catalog = PlanCatalog()
    return _catalog


def get_plan(plan: str) -> PlanLimits:
    """Return limits for ``plan`` from the current catalog."""

    return plan_catalog().get(plan)


__all__ = ["PLAN_NAMES", "PlanCatalog", "PlanLimits", "get_plan", "plan_catalog"]
