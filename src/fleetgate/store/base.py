from __future__ import annotations

from fleetgate.core.kinds import RoleKind
from fleetgate.core.models import ClusterTopology, DependencyRef, RoleInstance


class ResourceStore:
    """Read-only access to role instances and their backing workloads.

    `get` and `workload_exists` report not-found as None/False; every other
    failure raises `fleetgate.errors.StoreError`.
    """

    def get(self, kind: RoleKind, namespace: str, name: str) -> RoleInstance | None:
        raise NotImplementedError

    def list(
        self,
        kind: RoleKind,
        namespace: str,
        labels: dict[str, str] | None = None,
    ) -> list[RoleInstance]:
        raise NotImplementedError

    def workload_exists(self, kind: RoleKind, namespace: str, name: str) -> bool:
        raise NotImplementedError

    def current_image(self, instance: RoleInstance) -> str:
        return instance.image


class GateReads(ResourceStore):
    """Store reads plus the topology query, as seen by one gate evaluation."""

    def get_topology(self, namespace: str, coordinator: DependencyRef) -> ClusterTopology:
        raise NotImplementedError
