import os

import pytest

from config.plans import PlanCatalog


def test_missing_file_uses_default_plans(tmp_path):
    catalog = PlanCatalog(str(tmp_path / "absent.yaml"))
    free = catalog.get("FREE")
    assert free.initial_question_count == 12
    assert free.rate_streamed_turns is False
    assert catalog.get("pro").initial_question_count == 1
    assert catalog.get("ULTRA").rate_streamed_turns is True


def test_yaml_overrides_defaults_and_reloads(tmp_path):
    path = tmp_path / "plans.yaml"
    path.write_text("plans:\n  PRO:\n    initial_question_count: 3\n", encoding="utf-8")
    catalog = PlanCatalog(str(path))
    assert catalog.get("PRO").initial_question_count == 3
    assert catalog.get("PRO").rate_streamed_turns is True

    path.write_text("plans:\n  PRO:\n    initial_question_count: 2\n", encoding="utf-8")
    stat = os.stat(path)
    os.utime(path, (stat.st_atime, stat.st_mtime + 5))
    assert catalog.get("PRO").initial_question_count == 2


def test_unknown_plan_raises(tmp_path):
    catalog = PlanCatalog(str(tmp_path / "absent.yaml"))
    with pytest.raises(KeyError):
        catalog.get("ENTERPRISE")
