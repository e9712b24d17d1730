"""Offline ResourceStore over a captured `kubectl get -o json` document."""

from __future__ import annotations

import json
from pathlib import Path

from fleetgate.core.kinds import RoleKind, workload_name
from fleetgate.core.models import ResourceParseError, RoleInstance, parse_role_instance
from fleetgate.store.base import ResourceStore
from fleetgate.store.kubectl import _first_container_image


class SnapshotValidationError(ValueError):
    """Raised when a snapshot document is malformed."""


class SnapshotResourceStore(ResourceStore):
    """Role instances and StatefulSets held in memory.

    Listing preserves insertion order, which stands in for the API server's
    enumeration order.
    """

    def __init__(
        self,
        instances: list[RoleInstance] | None = None,
        workloads: dict[tuple[str, str], str] | None = None,
    ) -> None:
        self._instances: list[RoleInstance] = list(instances or [])
        # (namespace, statefulset name) -> running image ("" when unknown)
        self._workloads: dict[tuple[str, str], str] = dict(workloads or {})

    def add(self, instance: RoleInstance) -> None:
        self._instances.append(instance)

    def add_workload(self, kind: RoleKind, namespace: str, name: str, image: str = "") -> None:
        self._workloads[(namespace, workload_name(kind, name))] = image

    def get(self, kind: RoleKind, namespace: str, name: str) -> RoleInstance | None:
        for item in self._instances:
            if item.kind == kind and item.namespace == namespace and item.name == name:
                return item
        return None

    def list(
        self,
        kind: RoleKind,
        namespace: str,
        labels: dict[str, str] | None = None,
    ) -> list[RoleInstance]:
        wanted = labels or {}
        return [
            item
            for item in self._instances
            if item.kind == kind
            and item.namespace == namespace
            and all(item.labels.get(key) == value for key, value in wanted.items())
        ]

    def namespaces(self) -> list[str]:
        return sorted({item.namespace for item in self._instances})

    def workload_exists(self, kind: RoleKind, namespace: str, name: str) -> bool:
        return (namespace, workload_name(kind, name)) in self._workloads

    def current_image(self, instance: RoleInstance) -> str:
        image = self._workloads.get((instance.namespace, workload_name(instance.kind, instance.name)))
        return image or instance.image

    @classmethod
    def from_payload(cls, payload: object, *, default_namespace: str = "default") -> "SnapshotResourceStore":
        if isinstance(payload, list):
            payload = {"items": payload}
        if not isinstance(payload, dict):
            raise SnapshotValidationError("snapshot must be an object or an array")
        items = payload.get("items", [])
        workloads = payload.get("workloads", [])
        if not isinstance(items, list):
            raise SnapshotValidationError("items must be an array")
        if not isinstance(workloads, list):
            raise SnapshotValidationError("workloads must be an array")

        store = cls()
        for idx, item in enumerate([*items, *workloads]):
            if isinstance(item, dict) and item.get("kind") == "StatefulSet":
                store._add_statefulset(item, default_namespace=default_namespace, index=idx)
                continue
            try:
                store.add(parse_role_instance(item, default_namespace=default_namespace))
            except ResourceParseError as exc:
                raise SnapshotValidationError(f"items[{idx}]: {exc}") from exc
        return store

    @classmethod
    def from_file(cls, path: Path, *, default_namespace: str = "default") -> "SnapshotResourceStore":
        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
        except OSError as exc:
            raise SnapshotValidationError(f"cannot read snapshot {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise SnapshotValidationError(f"snapshot {path} is not valid json: {exc}") from exc
        return cls.from_payload(payload, default_namespace=default_namespace)

    def _add_statefulset(self, item: dict, *, default_namespace: str, index: int) -> None:
        metadata = item.get("metadata")
        if not isinstance(metadata, dict):
            raise SnapshotValidationError(f"items[{index}]: metadata must be an object")
        name = metadata.get("name")
        if not isinstance(name, str) or not name.strip():
            raise SnapshotValidationError(f"items[{index}]: metadata.name must be a non-empty string")
        namespace = metadata.get("namespace")
        if not isinstance(namespace, str) or not namespace.strip():
            namespace = default_namespace
        self._workloads[(namespace.strip(), name.strip())] = _first_container_image(item) or ""
