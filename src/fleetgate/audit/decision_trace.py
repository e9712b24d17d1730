from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

SCHEMA_VERSION = "gate_decision_trace.v0"


def build_decision_event(instance_dict: dict, verdict_dict: dict) -> dict[str, Any]:
    """One trace record per gate evaluation."""
    return {
        "schema_version": SCHEMA_VERSION,
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "instance": instance_dict,
        "proceed": bool(verdict_dict.get("proceed")),
        "stage": verdict_dict.get("stage"),
        "reason": verdict_dict.get("reason"),
        "error": verdict_dict.get("error"),
    }


def canonical_line(event: dict[str, Any]) -> str:
    return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False) + "\n"


@dataclass
class DecisionTraceWriter:
    path: Path

    def emit(self, event: dict[str, Any]) -> None:
        if event.get("schema_version") != SCHEMA_VERSION:
            raise ValueError(f"decision trace event must carry schema_version {SCHEMA_VERSION}")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(canonical_line(event))
