"""Topology probe against a storage tier's cluster coordinator."""

from __future__ import annotations

import base64
import http.client
import json
import ssl
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass

from fleetgate.config import GateSettings
from fleetgate.core.kinds import RoleKind, workload_name
from fleetgate.core.models import ClusterTopology, DependencyRef
from fleetgate.errors import ClusterInfoError

_INFO_PATH = "/services/cluster/manager/info"


class ClusterInfoProbe:
    def get_topology(self, namespace: str, coordinator: DependencyRef) -> ClusterTopology:
        raise NotImplementedError


@dataclass
class StaticClusterInfoProbe(ClusterInfoProbe):
    topology: ClusterTopology | None = None
    error: str | None = None

    def get_topology(self, namespace: str, coordinator: DependencyRef) -> ClusterTopology:
        if self.error is not None or self.topology is None:
            raise ClusterInfoError(self.error or "cluster topology is unknown")
        return self.topology


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value or "").strip().lower() in {"true", "1", "yes"}


def _as_int(value: object) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def parse_cluster_info(payload: object) -> ClusterTopology:
    """Read `entry[0].content` of the coordinator's cluster info response."""
    if not isinstance(payload, dict):
        raise ClusterInfoError("invalid cluster info payload shape")
    entries = payload.get("entry")
    if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
        raise ClusterInfoError("cluster info response has no entry")
    content = entries[0].get("content")
    if not isinstance(content, dict):
        raise ClusterInfoError("cluster info entry has no content")

    site_count = None
    sites = content.get("available_sites")
    if isinstance(sites, str) and sites.strip():
        site_count = len([s for s in sites.strip("[] ").split(",") if s.strip()])
    elif isinstance(sites, list):
        site_count = len(sites)
    if site_count is None:
        site_count = _as_int(content.get("site_count"))

    label = content.get("cluster_label")
    return ClusterTopology(
        multisite=_as_bool(content.get("multisite")),
        site_count=site_count,
        cluster_label=label.strip() if isinstance(label, str) and label.strip() else None,
    )


class RestClusterInfoProbe(ClusterInfoProbe):
    def __init__(self, settings: GateSettings) -> None:
        self.settings = settings

    def coordinator_url(self, namespace: str, coordinator: DependencyRef) -> str:
        service = f"{workload_name(RoleKind.CLUSTER_COORDINATOR, coordinator.name)}-service"
        host = f"{service}.{namespace}.svc.cluster.local"
        query = urllib.parse.urlencode({"count": "0", "output_mode": "json"})
        return f"{self.settings.probe_scheme}://{host}:{self.settings.probe_port}{_INFO_PATH}?{query}"

    def _ssl_context(self) -> ssl.SSLContext | None:
        if self.settings.probe_scheme != "https":
            return None
        if self.settings.probe_insecure:
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
            return context
        return ssl.create_default_context(cafile=self.settings.probe_ca_file)

    def get_topology(self, namespace: str, coordinator: DependencyRef) -> ClusterTopology:
        if not coordinator.is_set:
            raise ClusterInfoError("storage tier has no cluster coordinator reference")
        if not self.settings.probe_password:
            raise ClusterInfoError(
                "coordinator password is not configured "
                "(set FLEETGATE_PROBE_PASSWORD or FLEETGATE_PROBE_PASSWORD_FILE)"
            )

        url = self.coordinator_url(namespace, coordinator)
        credentials = f"{self.settings.probe_user}:{self.settings.probe_password}".encode("utf-8")
        request = urllib.request.Request(
            url,
            headers={
                "Authorization": f"Basic {base64.b64encode(credentials).decode('ascii')}",
                "Accept": "application/json",
            },
        )
        try:
            with urllib.request.urlopen(
                request,
                context=self._ssl_context(),
                timeout=self.settings.probe_timeout_s,
            ) as response:
                status = getattr(response, "status", None)
                if status != 200:
                    raise ClusterInfoError(f"unexpected status code from {coordinator.name}: {status}")
                raw = response.read()
        except urllib.error.HTTPError as exc:
            raise ClusterInfoError(
                f"could not get cluster info from cluster coordinator {coordinator.name}: http {exc.code} {exc.reason}"
            ) from exc
        except urllib.error.URLError as exc:
            raise ClusterInfoError(
                f"could not get cluster info from cluster coordinator {coordinator.name}: {exc.reason}"
            ) from exc
        except http.client.HTTPException as exc:
            raise ClusterInfoError(
                f"could not read cluster info from cluster coordinator {coordinator.name}: {exc!r}"
            ) from exc
        except OSError as exc:
            raise ClusterInfoError(
                f"could not get cluster info from cluster coordinator {coordinator.name}: {exc}"
            ) from exc

        try:
            body = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ClusterInfoError(f"cluster info response is not utf-8: {exc}") from exc

        try:
            payload = json.loads(body)
        except json.JSONDecodeError as exc:
            raise ClusterInfoError(f"invalid cluster info json: {exc}") from exc
        return parse_cluster_info(payload)
