import http.client
import io
import json
import urllib.error
import urllib.request

import pytest

from fleetgate.config import GateSettings
from fleetgate.core.kinds import Phase, RoleKind
from fleetgate.core.models import DependencyRef, RoleInstance, RoleSpec
from fleetgate.errors import ClusterInfoError
from fleetgate.gate.upgrade import validate_upgrade_path
from fleetgate.probe.cluster_info import RestClusterInfoProbe, parse_cluster_info
from fleetgate.store.snapshot import SnapshotResourceStore

CM1 = DependencyRef(RoleKind.CLUSTER_COORDINATOR, "cm1")


class _FakeResponse:
    def __init__(self, body: bytes, status: int = 200) -> None:
        self._body = body
        self.status = status

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc) -> None:
        return None


def _settings(**overrides) -> GateSettings:
    values = {"probe_scheme": "http", "probe_password": "s3cret", "probe_port": 8089}
    values.update(overrides)
    return GateSettings(**values)


@pytest.mark.parametrize("value, expected", [(True, True), ("true", True), ("false", False), (None, False)])
def test_parse_cluster_info_multisite_flag(value, expected) -> None:
    topology = parse_cluster_info({"entry": [{"content": {"multisite": value}}]})
    assert topology.multisite is expected


def test_parse_cluster_info_sites_and_label() -> None:
    topology = parse_cluster_info(
        {
            "entry": [
                {
                    "content": {
                        "multisite": "true",
                        "available_sites": "[site1, site2, site3]",
                        "cluster_label": "idxc-east",
                    }
                }
            ]
        }
    )
    assert topology.to_dict() == {"multisite": True, "site_count": 3, "cluster_label": "idxc-east"}


@pytest.mark.parametrize("payload", [[], {}, {"entry": []}, {"entry": [{"content": "x"}]}])
def test_parse_cluster_info_rejects_bad_shape(payload) -> None:
    with pytest.raises(ClusterInfoError):
        parse_cluster_info(payload)


def test_rest_probe_requests_coordinator_service(monkeypatch) -> None:
    seen: dict = {}

    def fake_urlopen(request, context=None, timeout=None):
        seen["url"] = request.full_url
        seen["auth"] = request.get_header("Authorization")
        seen["timeout"] = timeout
        seen["context"] = context
        return _FakeResponse(json.dumps({"entry": [{"content": {"multisite": "true"}}]}).encode("utf-8"))

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    topology = RestClusterInfoProbe(_settings(probe_timeout_s=3.0)).get_topology("ns1", CM1)

    assert topology.multisite is True
    assert seen["url"] == (
        "http://cm1-cluster-coordinator-service.ns1.svc.cluster.local:8089"
        "/services/cluster/manager/info?count=0&output_mode=json"
    )
    assert seen["auth"] == "Basic YWRtaW46czNjcmV0"
    assert seen["timeout"] == 3.0
    assert seen["context"] is None


def test_rest_probe_http_error_is_cluster_info_error(monkeypatch) -> None:
    def fake_urlopen(request, context=None, timeout=None):
        raise urllib.error.HTTPError(request.full_url, 401, "Unauthorized", {}, io.BytesIO(b""))

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    with pytest.raises(ClusterInfoError) as excinfo:
        RestClusterInfoProbe(_settings()).get_topology("ns1", CM1)
    assert "401" in str(excinfo.value)


def test_rest_probe_connection_error(monkeypatch) -> None:
    def fake_urlopen(request, context=None, timeout=None):
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    with pytest.raises(ClusterInfoError) as excinfo:
        RestClusterInfoProbe(_settings()).get_topology("ns1", CM1)
    assert "connection refused" in str(excinfo.value)


def test_rest_probe_invalid_json(monkeypatch) -> None:
    monkeypatch.setattr(urllib.request, "urlopen", lambda request, context=None, timeout=None: _FakeResponse(b"<html>"))
    with pytest.raises(ClusterInfoError):
        RestClusterInfoProbe(_settings()).get_topology("ns1", CM1)


def test_rest_probe_requires_password_and_coordinator() -> None:
    with pytest.raises(ClusterInfoError):
        RestClusterInfoProbe(_settings(probe_password=None)).get_topology("ns1", CM1)
    with pytest.raises(ClusterInfoError):
        RestClusterInfoProbe(_settings()).get_topology("ns1", DependencyRef(RoleKind.CLUSTER_COORDINATOR))


class _TruncatedResponse(_FakeResponse):
    def read(self) -> bytes:
        raise http.client.IncompleteRead(b'{"entry": [', 64)


def test_rest_probe_rejects_non_utf8_body(monkeypatch) -> None:
    monkeypatch.setattr(
        urllib.request,
        "urlopen",
        lambda request, context=None, timeout=None: _FakeResponse(b"\xff\xfe not utf8"),
    )
    with pytest.raises(ClusterInfoError) as excinfo:
        RestClusterInfoProbe(_settings()).get_topology("ns1", CM1)
    assert "utf-8" in str(excinfo.value)


def test_rest_probe_truncated_body(monkeypatch) -> None:
    monkeypatch.setattr(
        urllib.request,
        "urlopen",
        lambda request, context=None, timeout=None: _TruncatedResponse(b""),
    )
    with pytest.raises(ClusterInfoError) as excinfo:
        RestClusterInfoProbe(_settings()).get_topology("ns1", CM1)
    assert "IncompleteRead" in str(excinfo.value)


@pytest.mark.parametrize("response", [_FakeResponse(b"\xff\xfe not utf8"), _TruncatedResponse(b"")])
def test_gate_reports_unreadable_topology_as_fault(monkeypatch, response) -> None:
    monkeypatch.setattr(urllib.request, "urlopen", lambda request, context=None, timeout=None: response)
    store = SnapshotResourceStore(
        [
            RoleInstance(
                kind=RoleKind.STORAGE_TIER,
                name="idx1",
                namespace="ns1",
                phase=Phase.READY,
                spec=RoleSpec(image="v2", refs={RoleKind.CLUSTER_COORDINATOR: CM1}),
            )
        ]
    )
    instance = store.get(RoleKind.STORAGE_TIER, "ns1", "idx1")

    proceed, err = validate_upgrade_path(store, RestClusterInfoProbe(_settings()), instance)
    assert proceed is False
    assert isinstance(err, ClusterInfoError)
    assert err.wait is False
