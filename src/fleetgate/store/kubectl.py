"""ResourceStore backed by read-only kubectl calls."""

from __future__ import annotations

import json
import subprocess

from fleetgate.core.kinds import RoleKind, resource_name, workload_name
from fleetgate.core.models import ResourceParseError, RoleInstance, parse_role_instance
from fleetgate.errors import ImageLookupError, StoreError
from fleetgate.k8s.kubectl_errors import classify_kubectl_failure, parse_forbidden
from fleetgate.store.base import ResourceStore


def _as_text(value: object) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value or ""


def _run_kubectl(argv: list[str], timeout_s: float) -> dict:
    """Run one kubectl read. Never raises.

    `failure` is None on success, otherwise a `classify_kubectl_failure` code.
    """
    try:
        cp = subprocess.run(argv, capture_output=True, text=True, timeout=timeout_s)
    except FileNotFoundError as exc:
        return {"rc": 127, "stdout": "", "stderr": str(exc), "failure": "kubectl_missing"}
    except subprocess.TimeoutExpired as exc:
        # stdout/stderr on the exception may still be bytes
        return {"rc": 124, "stdout": _as_text(exc.stdout), "stderr": _as_text(exc.stderr), "failure": "timeout"}
    failure = None
    if cp.returncode != 0:
        failure = classify_kubectl_failure(cp.stderr, rc=cp.returncode)
    return {"rc": cp.returncode, "stdout": cp.stdout, "stderr": cp.stderr, "failure": failure}


def _snip(text: str | None, limit: int = 160) -> str:
    value = (text or "").strip().replace("\n", " ")
    if len(value) > limit:
        return value[: limit - 3] + "..."
    return value


def _label_selector(labels: dict[str, str] | None) -> str | None:
    if not labels:
        return None
    return ",".join(f"{key}={labels[key]}" for key in sorted(labels))


def _first_container_image(statefulset: dict) -> str | None:
    node: object = statefulset
    for key in ("spec", "template", "spec", "containers"):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    containers = node
    if not isinstance(containers, list):
        return None
    for container in containers:
        if not isinstance(container, dict):
            continue
        image = container.get("image")
        if isinstance(image, str) and image.strip():
            return image.strip()
    return None


class KubectlResourceStore(ResourceStore):
    def __init__(
        self,
        kubectl: str = "kubectl",
        *,
        api_group: str = "",
        timeout_s: float = 20.0,
    ) -> None:
        self.kubectl = kubectl
        self.api_group = api_group.strip()
        self.timeout_s = timeout_s

    def _resource(self, kind: RoleKind) -> str:
        if self.api_group:
            return f"{resource_name(kind)}.{self.api_group}"
        return resource_name(kind)

    def _get_json(self, args: list[str], what: str) -> dict | None:
        res = _run_kubectl([self.kubectl, *args], timeout_s=self.timeout_s)
        failure = res["failure"]
        if failure is not None:
            if failure == "not_found":
                return None
            stderr = res["stderr"]
            raise StoreError(
                f"could not read {what}: {failure} (rc={res['rc']}) {_snip(stderr)}".rstrip(),
                rc=res["rc"],
                failure=failure,
                rbac=parse_forbidden(stderr) if failure == "rbac_denied" else None,
            )
        try:
            payload = json.loads(res["stdout"] or "{}")
        except json.JSONDecodeError as exc:
            raise StoreError(f"could not read {what}: invalid json ({exc})", rc=0, failure="invalid_json") from exc
        if not isinstance(payload, dict):
            raise StoreError(f"could not read {what}: unexpected payload shape", rc=0, failure="invalid_json")
        return payload

    def get(self, kind: RoleKind, namespace: str, name: str) -> RoleInstance | None:
        what = f"{kind.value} {namespace}/{name}"
        payload = self._get_json(["-n", namespace, "get", self._resource(kind), name, "-o", "json"], what)
        if payload is None:
            return None
        try:
            return parse_role_instance(payload, default_kind=kind, default_namespace=namespace)
        except ResourceParseError as exc:
            raise StoreError(f"could not read {what}: {exc}", failure="invalid_resource") from exc

    def list(
        self,
        kind: RoleKind,
        namespace: str,
        labels: dict[str, str] | None = None,
    ) -> list[RoleInstance]:
        args = ["-n", namespace, "get", self._resource(kind), "-o", "json"]
        selector = _label_selector(labels)
        if selector:
            args.extend(["-l", selector])
        payload = self._get_json(args, f"{kind.value} list in {namespace}")
        if payload is None:
            return []

        items: list[RoleInstance] = []
        for item in payload.get("items", []):
            if not isinstance(item, dict):
                continue
            try:
                items.append(parse_role_instance(item, default_kind=kind, default_namespace=namespace))
            except ResourceParseError as exc:
                raise StoreError(
                    f"could not read {kind.value} list in {namespace}: {exc}",
                    failure="invalid_resource",
                ) from exc
        return items

    def _get_workload(self, kind: RoleKind, namespace: str, name: str) -> dict | None:
        workload = workload_name(kind, name)
        return self._get_json(
            ["-n", namespace, "get", "statefulset", workload, "-o", "json"],
            f"statefulset {namespace}/{workload}",
        )

    def workload_exists(self, kind: RoleKind, namespace: str, name: str) -> bool:
        return self._get_workload(kind, namespace, name) is not None

    def current_image(self, instance: RoleInstance) -> str:
        try:
            statefulset = self._get_workload(instance.kind, instance.namespace, instance.name)
        except StoreError as exc:
            raise ImageLookupError(
                f"could not get current image of {instance.kind.value} {instance.name}: {exc.message}",
                rc=exc.rc,
                failure=exc.failure,
                rbac=exc.rbac,
            ) from exc
        if statefulset is None:
            return instance.image
        return _first_container_image(statefulset) or instance.image
