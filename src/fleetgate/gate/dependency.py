from __future__ import annotations

from typing import Callable

from fleetgate.core.kinds import Phase, RoleKind
from fleetgate.core.models import RoleInstance, RoleSpec
from fleetgate.errors import DependencyNotReadyError, GateError, StoreError
from fleetgate.store.base import ResourceStore

Warn = Callable[[str, str], None]


class DependencyEvaluator:
    """Judges one forward dependency of a holder.

    Returns None when the holder may move past this stage, a
    DependencyNotReadyError when it has to wait, and lets store faults
    propagate.
    """

    def __init__(self, store: ResourceStore, warn: Warn | None = None) -> None:
        self.store = store
        self.warn = warn

    def _warn(self, reason: str, message: str) -> None:
        if self.warn is not None:
            self.warn(reason, message)

    def evaluate(self, holder: RoleInstance, spec: RoleSpec, kind: RoleKind) -> GateError | None:
        ref = spec.ref(kind)
        if not ref.is_set:
            return None

        target = self.store.get(kind, holder.namespace, ref.name)
        if target is None:
            self._warn(
                "dependency_missing",
                f"could not find the {kind.value} {ref.name} referenced by {holder.name}",
            )
            return None

        try:
            image = self.store.current_image(target)
        except StoreError as exc:
            self._warn(
                "current_image_unavailable",
                f"could not get the {kind.value} image. Reason {exc.message}",
            )
            raise

        if target.phase != Phase.READY or image != spec.image:
            return DependencyNotReadyError(
                kind=kind.value,
                name=target.name,
                current_image=image,
                expected_image=spec.image,
                phase=target.phase.value,
            )
        return None
