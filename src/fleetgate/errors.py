"""Error types reported by the upgrade gate and its collaborators."""

from __future__ import annotations


class GateError(RuntimeError):
    """Base class for every verdict error.

    `wait` marks conditions that simply need another reconcile pass; the
    rest are infrastructure faults the caller should surface as warnings.
    """

    reason = "gate_error"
    wait = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "type": type(self).__name__,
            "reason": self.reason,
            "wait": self.wait,
            "message": self.message,
        }


class _BlockedBy(GateError):
    wait = True
    subject = "instance"

    def __init__(
        self,
        *,
        kind: str,
        name: str,
        current_image: str,
        expected_image: str,
        phase: str,
    ) -> None:
        self.kind = kind
        self.name = name
        self.current_image = current_image
        self.expected_image = expected_image
        self.phase = phase
        super().__init__(self._format())

    def _format(self) -> str:
        return (
            f"{self.subject} {self.kind} {self.name} is not ready: "
            f"current image {self.current_image or '<none>'}, "
            f"expected image {self.expected_image or '<none>'}, phase {self.phase}"
        )

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["blocker"] = {
            "kind": self.kind,
            "name": self.name,
            "current_image": self.current_image,
            "expected_image": self.expected_image,
            "phase": self.phase,
        }
        return payload


class DependencyNotReadyError(_BlockedBy):
    reason = "dependency_not_ready"
    subject = "dependency"


class SiteNotReadyError(_BlockedBy):
    reason = "predecessor_site_not_ready"
    subject = "preceding site"


class HolderNotReadyError(_BlockedBy):
    reason = "holder_not_ready"
    subject = "holder"

    def __init__(self, *, image_checked: bool = True, **kwargs: str) -> None:
        self.image_checked = image_checked
        super().__init__(**kwargs)

    def _format(self) -> str:
        if self.image_checked:
            return (
                f"{self.kind} {self.name} referencing this sink is not ready: image "
                f"{self.current_image or '<none>'} (expected {self.expected_image or '<none>'}), "
                f"phase is {self.phase}"
            )
        return f"{self.kind} {self.name} referencing this sink is not ready: phase is {self.phase}"

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["blocker"]["image_checked"] = self.image_checked
        return payload


class StoreError(GateError):
    """Raised by resource stores when a read fails for a reason other than not-found."""

    reason = "store_error"

    def __init__(
        self,
        message: str,
        *,
        rc: int | None = None,
        failure: str | None = None,
        rbac: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.rc = rc
        self.failure = failure
        self.rbac = rbac

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["rc"] = self.rc
        payload["failure"] = self.failure
        if self.rbac is not None:
            payload["rbac"] = self.rbac
        return payload


class ImageLookupError(StoreError):
    reason = "current_image_unavailable"


class ClusterInfoError(GateError):
    reason = "topology_probe_failed"


class GateCancelledError(GateError):
    reason = "cancelled"
