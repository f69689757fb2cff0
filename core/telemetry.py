# ABOUTME: Plan extraction telemetry: one structured JSON log line per extraction.
# ABOUTME: Records latency, step count and whether defaults had to be substituted.

import json
from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass
class ExtractionLogEntry:
    """Structured telemetry entry for one extraction run."""

    timestamp: str
    latency_ms: float
    text_length: int
    step_count: int
    default_title: bool
    default_step: bool
    has_plan_content: bool

    def to_json(self) -> str:
        return json.dumps(
            {
                "event": "plan_extraction",
                "timestamp": self.timestamp,
                "latency_ms": round(self.latency_ms, 2),
                "text_length": self.text_length,
                "step_count": self.step_count,
                "default_title": self.default_title,
                "default_step": self.default_step,
                "has_plan_content": self.has_plan_content,
            }
        )


def log_extraction(
    *,
    latency_ms: float,
    text_length: int,
    step_count: int,
    default_title: bool,
    default_step: bool,
    has_plan_content: bool,
) -> None:
    """Print a structured JSON log line to stdout for one extraction."""
    entry = ExtractionLogEntry(
        timestamp=datetime.now(tz=timezone.utc).isoformat(),
        latency_ms=latency_ms,
        text_length=text_length,
        step_count=step_count,
        default_title=default_title,
        default_step=default_step,
        has_plan_content=has_plan_content,
    )
    print(entry.to_json(), flush=True)
