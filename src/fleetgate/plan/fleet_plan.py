"""Fleet-wide upgrade plan: the gate verdict for every instance in a namespace."""

from __future__ import annotations

from dataclasses import replace

from fleetgate.core.kinds import STAGE_ORDER, RoleKind
from fleetgate.core.models import DependencyRef
from fleetgate.gate.site_order import rank_sites
from fleetgate.gate.upgrade import UpgradeGate
from fleetgate.store.base import ResourceStore


def build_upgrade_plan(
    gate: UpgradeGate,
    namespace: str,
    *,
    image: str | None = None,
) -> dict:
    """Evaluate every instance in stage order.

    With `image`, each instance is judged as if its spec already asked for
    that image, which previews a fleet-wide rollout.
    """
    entries: list[dict] = []
    for kind in STAGE_ORDER:
        instances = sorted(gate.store.list(kind, namespace), key=lambda item: item.name)
        for instance in instances:
            spec = instance.spec
            if image:
                spec = replace(spec, image=image)
            verdict = gate.evaluate(instance, spec)
            entries.append(
                {
                    "kind": kind.value,
                    "name": instance.name,
                    "phase": instance.phase.value,
                    "image": instance.image,
                    "desired_image": spec.image,
                    **verdict.to_dict(),
                }
            )

    return {
        "schema": "upgrade_plan.v0",
        "namespace": namespace,
        "image_override": image,
        "summary": {
            "total": len(entries),
            "proceed": sum(1 for item in entries if item["proceed"]),
            "blocked": sum(1 for item in entries if not item["proceed"]),
        },
        "entries": entries,
    }


def build_site_order(
    store: ResourceStore,
    namespace: str,
    coordinator: str,
    *,
    by_site_label: bool = False,
) -> dict:
    ranked = rank_sites(
        store.list(RoleKind.STORAGE_TIER, namespace),
        DependencyRef(RoleKind.CLUSTER_COORDINATOR, coordinator),
        by_site_label=by_site_label,
    )
    return {
        "schema": "site_order.v0",
        "namespace": namespace,
        "coordinator": coordinator,
        "order": "site_label" if by_site_label else "store",
        "sites": [
            {
                "rank": index,
                "name": item.name,
                "site": item.spec.site,
                "phase": item.phase.value,
                "image": item.image,
            }
            for index, item in enumerate(ranked)
        ],
    }
