import pytest

from fleetgate.core.kinds import Phase, RoleKind, STAGE_ORDER, parse_kind, parse_phase, workload_name
from fleetgate.core.models import ResourceParseError, parse_role_instance


def test_stage_order_matches_precedence() -> None:
    assert [kind.value for kind in STAGE_ORDER] == [
        "StandaloneNode",
        "LicenseAuthority",
        "ClusterCoordinator",
        "QueryTier",
        "StorageTier",
        "MonitoringSink",
    ]


@pytest.mark.parametrize("text", ["StorageTier", "storage-tier", "storagetier", "storagetiers", "STORAGE_TIER"])
def test_parse_kind_accepts_common_spellings(text: str) -> None:
    assert parse_kind(text) == RoleKind.STORAGE_TIER


def test_parse_kind_rejects_unknown() -> None:
    with pytest.raises(ValueError):
        parse_kind("Indexer")


def test_parse_phase_unknown_is_not_ready() -> None:
    assert parse_phase("ready") == Phase.READY
    assert parse_phase("ScalingUp") == Phase.SCALING_UP
    assert parse_phase("Exploded") == Phase.PENDING
    assert parse_phase(None) == Phase.PENDING


def test_workload_name() -> None:
    assert workload_name(RoleKind.CLUSTER_COORDINATOR, "cm1") == "cm1-cluster-coordinator"


def test_parse_role_instance_reads_refs_labels_and_status() -> None:
    instance = parse_role_instance(
        {
            "kind": "StorageTier",
            "metadata": {"name": "idx1", "namespace": "ns1", "labels": {"tier": "hot"}},
            "spec": {
                "image": " img:2 ",
                "site": "site1",
                "clusterCoordinatorRef": {"name": "cm1"},
                "licenseAuthorityRef": "lm1",
                "monitoringSinkRef": {},
            },
            "status": {"phase": "Updating"},
        }
    )
    assert instance.kind == RoleKind.STORAGE_TIER
    assert instance.namespace == "ns1"
    assert instance.image == "img:2"
    assert instance.phase == Phase.UPDATING
    assert instance.labels == {"tier": "hot"}
    assert instance.ref(RoleKind.CLUSTER_COORDINATOR).name == "cm1"
    assert instance.ref(RoleKind.LICENSE_AUTHORITY).name == "lm1"
    assert instance.ref(RoleKind.MONITORING_SINK).is_set is False
    assert instance.ref(RoleKind.QUERY_TIER).is_set is False
    assert instance.to_dict()["spec"]["refs"] == {
        "LicenseAuthority": "lm1",
        "ClusterCoordinator": "cm1",
    }


def test_parse_role_instance_uses_defaults_when_kind_and_namespace_missing() -> None:
    instance = parse_role_instance(
        {"metadata": {"name": "mc1"}},
        default_kind=RoleKind.MONITORING_SINK,
        default_namespace="ops",
    )
    assert instance.kind == RoleKind.MONITORING_SINK
    assert instance.namespace == "ops"
    assert instance.phase == Phase.PENDING


@pytest.mark.parametrize(
    "obj",
    [
        [],
        {"kind": "Nope", "metadata": {"name": "x"}},
        {"kind": "QueryTier", "metadata": {}},
        {"kind": "QueryTier", "metadata": {"name": "x"}, "spec": []},
        {"kind": "QueryTier", "metadata": {"name": "x"}, "spec": {"image": 3}},
    ],
)
def test_parse_role_instance_rejects_malformed(obj) -> None:
    with pytest.raises(ResourceParseError):
        parse_role_instance(obj)
