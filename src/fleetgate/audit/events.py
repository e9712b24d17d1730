from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from fleetgate.core.models import RoleInstance

WARNING = "Warning"
NORMAL = "Normal"


def append_jsonl(path: Path, record: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(record, ensure_ascii=False) + "\n")


@dataclass
class EventLog:
    """Append-only JSONL log of gate events, one record per line.

    Records mirror Kubernetes Events: `type` is Normal or Warning and
    `object` names the instance under reconciliation.
    """

    path: Path

    def emit(self, event: str, payload: dict) -> None:
        append_jsonl(
            self.path,
            {"ts": datetime.now(timezone.utc).isoformat(), "event": event, "payload": payload},
        )

    def publish(self, instance: RoleInstance, event: str, event_type: str, details: dict) -> None:
        if event_type not in (NORMAL, WARNING):
            raise ValueError(f"event type must be {NORMAL} or {WARNING}, got {event_type!r}")
        self.emit(
            event,
            {
                "type": event_type,
                "object": {
                    "kind": instance.kind.value,
                    "namespace": instance.namespace,
                    "name": instance.name,
                },
                **details,
            },
        )
