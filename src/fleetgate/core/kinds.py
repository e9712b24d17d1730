from __future__ import annotations

from enum import Enum


class RoleKind(str, Enum):
    STANDALONE_NODE = "StandaloneNode"
    LICENSE_AUTHORITY = "LicenseAuthority"
    CLUSTER_COORDINATOR = "ClusterCoordinator"
    QUERY_TIER = "QueryTier"
    STORAGE_TIER = "StorageTier"
    MONITORING_SINK = "MonitoringSink"


class Phase(str, Enum):
    PENDING = "Pending"
    UPDATING = "Updating"
    SCALING_UP = "ScalingUp"
    SCALING_DOWN = "ScalingDown"
    READY = "Ready"
    ERROR = "Error"
    TERMINATING = "Terminating"


# Upgrade precedence; UpgradeGate walks stages in exactly this order.
STAGE_ORDER: tuple[RoleKind, ...] = (
    RoleKind.STANDALONE_NODE,
    RoleKind.LICENSE_AUTHORITY,
    RoleKind.CLUSTER_COORDINATOR,
    RoleKind.QUERY_TIER,
    RoleKind.STORAGE_TIER,
    RoleKind.MONITORING_SINK,
)

_ROLE_SLUGS = {
    RoleKind.STANDALONE_NODE: "standalone-node",
    RoleKind.LICENSE_AUTHORITY: "license-authority",
    RoleKind.CLUSTER_COORDINATOR: "cluster-coordinator",
    RoleKind.QUERY_TIER: "query-tier",
    RoleKind.STORAGE_TIER: "storage-tier",
    RoleKind.MONITORING_SINK: "monitoring-sink",
}

_RESOURCE_NAMES = {
    RoleKind.STANDALONE_NODE: "standalonenodes",
    RoleKind.LICENSE_AUTHORITY: "licenseauthorities",
    RoleKind.CLUSTER_COORDINATOR: "clustercoordinators",
    RoleKind.QUERY_TIER: "querytiers",
    RoleKind.STORAGE_TIER: "storagetiers",
    RoleKind.MONITORING_SINK: "monitoringsinks",
}

_REF_FIELDS = {
    RoleKind.STANDALONE_NODE: "standaloneNodeRef",
    RoleKind.LICENSE_AUTHORITY: "licenseAuthorityRef",
    RoleKind.CLUSTER_COORDINATOR: "clusterCoordinatorRef",
    RoleKind.QUERY_TIER: "queryTierRef",
    RoleKind.STORAGE_TIER: "storageTierRef",
    RoleKind.MONITORING_SINK: "monitoringSinkRef",
}


def role_slug(kind: RoleKind) -> str:
    return _ROLE_SLUGS[kind]


def resource_name(kind: RoleKind) -> str:
    return _RESOURCE_NAMES[kind]


def ref_field(kind: RoleKind) -> str:
    return _REF_FIELDS[kind]


def workload_name(kind: RoleKind, name: str) -> str:
    """Name of the StatefulSet the operator creates for an instance."""
    return f"{name}-{role_slug(kind)}"


def parse_kind(value: object) -> RoleKind:
    """Accept `StorageTier`, `storage-tier`, `storagetier` or the plural resource name."""
    if isinstance(value, RoleKind):
        return value
    text = str(value or "").strip()
    folded = text.replace("-", "").replace("_", "").lower()
    for kind in RoleKind:
        if folded in {kind.value.lower(), _RESOURCE_NAMES[kind]}:
            return kind
    raise ValueError(f"unknown role kind: {text!r}")


def parse_phase(value: object) -> Phase:
    # Anything unrecognised is treated as not ready.
    if isinstance(value, Phase):
        return value
    text = str(value or "").strip()
    for phase in Phase:
        if phase.value.lower() == text.lower():
            return phase
    return Phase.PENDING
