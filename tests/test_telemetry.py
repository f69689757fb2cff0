# ABOUTME: Tests for extraction telemetry: one JSON line on stdout per extraction.
# ABOUTME: Exercises log_extraction directly and through actions.extract_with_telemetry.

import json

from core.telemetry import log_extraction
from goal_tracker.actions import extract_with_telemetry


def _last_line(capsys) -> dict:
    out = capsys.readouterr().out.strip().splitlines()
    return json.loads(out[-1])


def test_log_extraction_prints_json_line(capsys):
    """log_extraction prints one plan_extraction JSON line."""
    log_extraction(
        latency_ms=1.23456,
        text_length=42,
        step_count=3,
        default_title=False,
        default_step=False,
        has_plan_content=True,
    )
    entry = _last_line(capsys)
    assert entry["event"] == "plan_extraction"
    assert entry["latency_ms"] == 1.23
    assert entry["step_count"] == 3
    assert entry["has_plan_content"] is True
    assert "timestamp" in entry


def test_extract_with_telemetry_flags_defaults(capsys):
    """Unstructured text is logged with default title and step flags."""
    plan, looks_like_plan = extract_with_telemetry("Sounds good, talk soon!")
    entry = _last_line(capsys)
    assert looks_like_plan is False
    assert entry["default_title"] is True
    assert entry["default_step"] is True
    assert entry["step_count"] == len(plan.steps) == 1


def test_extract_with_telemetry_on_plan(capsys):
    """A real plan is logged without the default flags."""
    plan, looks_like_plan = extract_with_telemetry("Goal: Learn guitar\nSteps:\n1. Buy a guitar")
    entry = _last_line(capsys)
    assert looks_like_plan is True
    assert plan.goal_title == "Learn guitar"
    assert entry["default_title"] is False
    assert entry["text_length"] == len("Goal: Learn guitar\nSteps:\n1. Buy a guitar")
