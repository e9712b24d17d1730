"""Site-at-a-time sequencing for multisite storage tiers."""

from __future__ import annotations

import re

from fleetgate.core.kinds import Phase, RoleKind
from fleetgate.core.models import DependencyRef, RoleInstance, RoleSpec
from fleetgate.errors import GateError, SiteNotReadyError
from fleetgate.store.base import GateReads

_DIGITS = re.compile(r"(\d+)")


def _natural_key(text: str) -> tuple:
    # "site2" sorts before "site10"
    return tuple(int(part) if part.isdigit() else part.lower() for part in _DIGITS.split(text))


def enumeration_key(position: int, instance: RoleInstance) -> tuple:
    return (position, instance.name)


def site_label_key(instance: RoleInstance) -> tuple:
    return (_natural_key(instance.spec.site), instance.name)


def rank_sites(
    siblings: list[RoleInstance],
    coordinator: DependencyRef,
    *,
    by_site_label: bool = False,
) -> list[RoleInstance]:
    """Storage tiers sharing `coordinator`, in upgrade order.

    The rank follows the order the store enumerated the siblings in, with
    the name breaking ties. `by_site_label` ranks by the natural order of
    `spec.site` (then name) instead.
    """
    matching = [
        item
        for item in siblings
        if item.kind == RoleKind.STORAGE_TIER
        and item.ref(RoleKind.CLUSTER_COORDINATOR).name == coordinator.name
    ]
    if by_site_label:
        return sorted(matching, key=site_label_key)
    ordered = sorted(enumerate(matching), key=lambda pair: enumeration_key(*pair))
    return [item for _, item in ordered]


def preceding_site(ranked: list[RoleInstance], instance: RoleInstance) -> RoleInstance | None:
    for index, item in enumerate(ranked):
        if item.name == instance.name and item.namespace == instance.namespace:
            if index > 0:
                return ranked[index - 1]
            return None
    return None


def check_site_sequence(
    reads: GateReads,
    instance: RoleInstance,
    spec: RoleSpec,
    *,
    by_site_label: bool = False,
) -> GateError | None:
    """Block a storage tier until the site ranked just before it has finished.

    Only the nearest predecessor is inspected; earlier sites were already
    checked by that predecessor's own passes.
    """
    coordinator = spec.ref(RoleKind.CLUSTER_COORDINATOR)
    if not coordinator.is_set:
        return None

    topology = reads.get_topology(instance.namespace, coordinator)
    if not topology.multisite:
        return None

    ranked = rank_sites(
        reads.list(RoleKind.STORAGE_TIER, instance.namespace),
        coordinator,
        by_site_label=by_site_label,
    )
    previous = preceding_site(ranked, instance)
    if previous is None:
        return None

    image = reads.current_image(previous)
    if previous.phase != Phase.READY or image != spec.image:
        return SiteNotReadyError(
            kind=previous.kind.value,
            name=previous.name,
            current_image=image,
            expected_image=spec.image,
            phase=previous.phase.value,
        )
    return None
