from __future__ import annotations

from dataclasses import dataclass, field

from fleetgate.core.kinds import (
    Phase,
    RoleKind,
    STAGE_ORDER,
    parse_kind,
    parse_phase,
    ref_field,
)


class ResourceParseError(ValueError):
    """Raised when a custom resource object cannot be read as a role instance."""


@dataclass(frozen=True)
class DependencyRef:
    kind: RoleKind
    name: str = ""

    @property
    def is_set(self) -> bool:
        return bool(self.name.strip())

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "name": self.name}


@dataclass
class RoleSpec:
    image: str = ""
    site: str = ""
    refs: dict[RoleKind, DependencyRef] = field(default_factory=dict)

    def ref(self, kind: RoleKind) -> DependencyRef:
        found = self.refs.get(kind)
        if found is None:
            return DependencyRef(kind)
        return found

    def to_dict(self) -> dict:
        return {
            "image": self.image,
            "site": self.site,
            "refs": {
                kind.value: self.refs[kind].name
                for kind in STAGE_ORDER
                if kind in self.refs and self.refs[kind].is_set
            },
        }


@dataclass
class RoleInstance:
    kind: RoleKind
    name: str
    namespace: str
    phase: Phase = Phase.PENDING
    spec: RoleSpec = field(default_factory=RoleSpec)
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def image(self) -> str:
        return self.spec.image

    def ref(self, kind: RoleKind) -> DependencyRef:
        return self.spec.ref(kind)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "namespace": self.namespace,
            "phase": self.phase.value,
            "spec": self.spec.to_dict(),
        }


@dataclass(frozen=True)
class ClusterTopology:
    multisite: bool
    site_count: int | None = None
    cluster_label: str | None = None

    def to_dict(self) -> dict:
        return {
            "multisite": self.multisite,
            "site_count": self.site_count,
            "cluster_label": self.cluster_label,
        }


def _optional_dict(value: object, *, path: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ResourceParseError(f"{path} must be an object")
    return value


def _optional_str(value: object, *, path: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ResourceParseError(f"{path} must be a string")
    return value.strip()


def _parse_refs(spec: dict) -> dict[RoleKind, DependencyRef]:
    refs: dict[RoleKind, DependencyRef] = {}
    for kind in STAGE_ORDER:
        key = ref_field(kind)
        raw = spec.get(key)
        if raw is None:
            continue
        # `{"name": "lm1"}` as in the CRD, or a bare name string.
        if isinstance(raw, str):
            name = raw.strip()
        else:
            name = _optional_str(_optional_dict(raw, path=f"spec.{key}").get("name"), path=f"spec.{key}.name")
        refs[kind] = DependencyRef(kind, name)
    return refs


def parse_role_instance(
    obj: object,
    *,
    default_kind: RoleKind | None = None,
    default_namespace: str = "",
) -> RoleInstance:
    """Read a custom resource object (as returned by `kubectl get -o json`)."""
    if not isinstance(obj, dict):
        raise ResourceParseError("resource must be an object")

    raw_kind = obj.get("kind")
    if raw_kind is None and default_kind is not None:
        kind = default_kind
    else:
        try:
            kind = parse_kind(raw_kind)
        except ValueError as exc:
            raise ResourceParseError(str(exc)) from exc

    metadata = _optional_dict(obj.get("metadata"), path="metadata")
    name = _optional_str(metadata.get("name"), path="metadata.name")
    if not name:
        raise ResourceParseError("metadata.name must be a non-empty string")
    namespace = _optional_str(metadata.get("namespace"), path="metadata.namespace") or default_namespace

    labels = {
        str(key): str(value)
        for key, value in _optional_dict(metadata.get("labels"), path="metadata.labels").items()
        if value is not None
    }
    spec = _optional_dict(obj.get("spec"), path="spec")
    status = _optional_dict(obj.get("status"), path="status")

    return RoleInstance(
        kind=kind,
        name=name,
        namespace=namespace,
        phase=parse_phase(status.get("phase")),
        spec=RoleSpec(
            image=_optional_str(spec.get("image"), path="spec.image"),
            site=_optional_str(spec.get("site"), path="spec.site"),
            refs=_parse_refs(spec),
        ),
        labels=labels,
    )
