"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

_DEFAULT_API_GROUP = "fleet.example.com"
_DEFAULT_READ_TIMEOUT_S = 20.0
_DEFAULT_PROBE_TIMEOUT_S = 5.0
_DEFAULT_PROBE_PORT = 8089


def _parse_env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        parsed = float(raw)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_truthy(name: str) -> bool:
    value = os.environ.get(name, "").strip().lower()
    if value in {"", "0", "false", "no", "off"}:
        return False
    return True


def _read_secret(value: str | None, path: str | None) -> str | None:
    if value is not None and value.strip():
        return value.strip()
    if path and path.strip():
        try:
            with open(path.strip(), "r", encoding="utf-8") as handle:
                text = handle.read().strip()
        except OSError:
            return None
        return text or None
    return None


@dataclass(frozen=True)
class GateSettings:
    kubectl: str = "kubectl"
    api_group: str = _DEFAULT_API_GROUP
    read_timeout_s: float = _DEFAULT_READ_TIMEOUT_S
    probe_timeout_s: float = _DEFAULT_PROBE_TIMEOUT_S
    probe_scheme: str = "https"
    probe_port: int = _DEFAULT_PROBE_PORT
    probe_user: str = "admin"
    probe_password: str | None = None
    probe_ca_file: str | None = None
    probe_insecure: bool = False

    @classmethod
    def from_env(cls) -> "GateSettings":
        scheme = (os.environ.get("FLEETGATE_PROBE_SCHEME") or "https").strip().lower()
        if scheme not in {"http", "https"}:
            scheme = "https"
        return cls(
            kubectl=(os.environ.get("KUBECTL") or "kubectl").strip() or "kubectl",
            api_group=(os.environ.get("FLEETGATE_API_GROUP") or _DEFAULT_API_GROUP).strip(),
            read_timeout_s=_parse_env_float("FLEETGATE_READ_TIMEOUT_S", _DEFAULT_READ_TIMEOUT_S),
            probe_timeout_s=_parse_env_float("FLEETGATE_PROBE_TIMEOUT_S", _DEFAULT_PROBE_TIMEOUT_S),
            probe_scheme=scheme,
            probe_port=_parse_env_int("FLEETGATE_PROBE_PORT", _DEFAULT_PROBE_PORT),
            probe_user=(os.environ.get("FLEETGATE_PROBE_USER") or "admin").strip() or "admin",
            probe_password=_read_secret(
                os.environ.get("FLEETGATE_PROBE_PASSWORD"),
                os.environ.get("FLEETGATE_PROBE_PASSWORD_FILE"),
            ),
            probe_ca_file=(os.environ.get("FLEETGATE_PROBE_CA_FILE") or "").strip() or None,
            probe_insecure=_env_truthy("FLEETGATE_PROBE_INSECURE"),
        )
