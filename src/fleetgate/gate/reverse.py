from __future__ import annotations

from fleetgate.core.kinds import Phase, RoleKind
from fleetgate.core.models import RoleInstance, RoleSpec
from fleetgate.errors import GateError, HolderNotReadyError, StoreError
from fleetgate.gate.dependency import Warn
from fleetgate.store.base import ResourceStore

# Scanned in this order; the first unhealthy holder wins.
HOLDER_KINDS: tuple[RoleKind, ...] = (
    RoleKind.CLUSTER_COORDINATOR,
    RoleKind.QUERY_TIER,
    RoleKind.STANDALONE_NODE,
)
# Holders that must also run the sink's image.
IMAGE_PARITY_KINDS = frozenset({RoleKind.STANDALONE_NODE})


class ReverseDependencyEvaluator:
    """Checks every holder that references a monitoring sink."""

    def __init__(self, store: ResourceStore, warn: Warn | None = None) -> None:
        self.store = store
        self.warn = warn

    def evaluate(self, sink: RoleInstance, spec: RoleSpec) -> GateError | None:
        for kind in HOLDER_KINDS:
            try:
                holders = self.store.list(kind, sink.namespace)
            except StoreError as exc:
                if self.warn is not None:
                    self.warn("holder_list_failed", f"could not list {kind.value}. Reason {exc.message}")
                raise

            for holder in holders:
                if holder.ref(RoleKind.MONITORING_SINK).name != sink.name:
                    continue
                image_checked = kind in IMAGE_PARITY_KINDS
                image_ok = not image_checked or holder.image == spec.image
                if holder.phase != Phase.READY or not image_ok:
                    return HolderNotReadyError(
                        kind=kind.value,
                        name=holder.name,
                        current_image=holder.image,
                        expected_image=spec.image,
                        phase=holder.phase.value,
                        image_checked=image_checked,
                    )
        return None
