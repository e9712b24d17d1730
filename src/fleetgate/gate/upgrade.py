"""Dependency-ordered upgrade gate.

The gate walks the role kinds in a fixed precedence order:

  1. StandaloneNode or LicenseAuthority: nothing upstream, go ahead
  2. ClusterCoordinator: wait for a referenced LicenseAuthority
  3. QueryTier: wait for referenced LicenseAuthority and ClusterCoordinator
  4. StorageTier: as above, and on a multisite cluster upgrade one site at a
     time
  5. MonitoringSink: wait for every holder that references the sink

At the instance's own stage a role-specific check runs; at every other stage
the instance's reference to that kind (if any) must be Ready and running the
desired image. Each call reads a fresh snapshot and keeps no state, so the
reconcile loop can call it as often as it likes.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable

from fleetgate.audit.decision_trace import DecisionTraceWriter, build_decision_event
from fleetgate.audit.events import NORMAL, WARNING, EventLog
from fleetgate.core.kinds import RoleKind
from fleetgate.core.models import ClusterTopology, DependencyRef, RoleInstance, RoleSpec
from fleetgate.errors import ClusterInfoError, GateCancelledError, GateError, StoreError
from fleetgate.gate.dependency import DependencyEvaluator
from fleetgate.gate.reverse import ReverseDependencyEvaluator
from fleetgate.gate.site_order import check_site_sequence
from fleetgate.probe.cluster_info import ClusterInfoProbe
from fleetgate.store.base import GateReads, ResourceStore


@dataclass
class GateVerdict:
    proceed: bool
    error: GateError | None = None
    stage: RoleKind | None = None
    reason: str = "clear"

    @property
    def waiting(self) -> bool:
        return not self.proceed and (self.error is None or self.error.wait)

    def as_tuple(self) -> tuple[bool, GateError | None]:
        return self.proceed, self.error

    def to_dict(self) -> dict:
        return {
            "proceed": self.proceed,
            "stage": self.stage.value if self.stage is not None else None,
            "reason": self.reason,
            "error": self.error.to_dict() if self.error is not None else None,
        }


class _PassReads(GateReads):
    """Store and probe access for a single evaluation.

    Every read first checks the caller's cancel event.
    """

    def __init__(
        self,
        store: ResourceStore,
        probe: ClusterInfoProbe | None,
        cancel: threading.Event | None,
    ) -> None:
        self._store = store
        self._probe = probe
        self._cancel = cancel

    def _check(self, what: str) -> None:
        if self._cancel is not None and self._cancel.is_set():
            raise GateCancelledError(f"evaluation cancelled before {what}")

    def get(self, kind: RoleKind, namespace: str, name: str) -> RoleInstance | None:
        self._check(f"reading {kind.value} {name}")
        return self._store.get(kind, namespace, name)

    def list(
        self,
        kind: RoleKind,
        namespace: str,
        labels: dict[str, str] | None = None,
    ) -> list[RoleInstance]:
        self._check(f"listing {kind.value}")
        return self._store.list(kind, namespace, labels)

    def workload_exists(self, kind: RoleKind, namespace: str, name: str) -> bool:
        self._check(f"looking up the {kind.value} {name} workload")
        return self._store.workload_exists(kind, namespace, name)

    def current_image(self, instance: RoleInstance) -> str:
        self._check(f"reading the {instance.kind.value} {instance.name} image")
        return self._store.current_image(instance)

    def get_topology(self, namespace: str, coordinator: DependencyRef) -> ClusterTopology:
        self._check("probing cluster topology")
        if self._probe is None:
            raise ClusterInfoError("no cluster info probe is configured")
        return self._probe.get_topology(namespace, coordinator)


@dataclass
class _Pass:
    instance: RoleInstance
    spec: RoleSpec
    reads: _PassReads
    warn: Callable[[str, str], None]


@dataclass(frozen=True)
class Stage:
    kind: RoleKind
    check: str
    terminal: bool


STAGES: tuple[Stage, ...] = (
    Stage(RoleKind.STANDALONE_NODE, "_check_root", terminal=True),
    Stage(RoleKind.LICENSE_AUTHORITY, "_check_root", terminal=True),
    Stage(RoleKind.CLUSTER_COORDINATOR, "_check_own_workload", terminal=True),
    Stage(RoleKind.QUERY_TIER, "_check_own_workload", terminal=True),
    Stage(RoleKind.STORAGE_TIER, "_check_sites", terminal=False),
    Stage(RoleKind.MONITORING_SINK, "_check_holders", terminal=True),
)


def _blocked(stage: RoleKind, error: GateError) -> GateVerdict:
    return GateVerdict(proceed=False, error=error, stage=stage, reason=error.reason)


class UpgradeGate:
    def __init__(
        self,
        store: ResourceStore,
        probe: ClusterInfoProbe | None = None,
        *,
        events: EventLog | None = None,
        trace: DecisionTraceWriter | None = None,
        order_sites_by_label: bool = False,
    ) -> None:
        self.store = store
        self.probe = probe
        self.events = events
        self.trace = trace
        self.order_sites_by_label = order_sites_by_label

    def _publish_best_effort(self, instance: RoleInstance, event: str, event_type: str, payload: dict) -> None:
        if self.events is None:
            return
        try:
            self.events.publish(instance, event, event_type, payload)
        except Exception:
            return

    def _trace_best_effort(self, instance: RoleInstance, verdict: GateVerdict) -> None:
        if self.trace is None:
            return
        try:
            self.trace.emit(build_decision_event(instance.to_dict(), verdict.to_dict()))
        except Exception:
            return

    def evaluate(
        self,
        instance: RoleInstance,
        spec: RoleSpec | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> GateVerdict:
        """Decide whether `instance` may roll to `spec.image` now.

        `spec` defaults to the instance's own declared spec.
        """
        current = _Pass(
            instance=instance,
            spec=spec if spec is not None else instance.spec,
            reads=_PassReads(self.store, self.probe, cancel),
            warn=lambda reason, message: self._publish_best_effort(
                instance, "gate_warning", WARNING, {"reason": reason, "message": message}
            ),
        )
        verdict: GateVerdict | None = None
        stage_kind = instance.kind
        try:
            for stage in STAGES:
                stage_kind = stage.kind
                verdict = self._run_stage(stage, current)
                if verdict is not None:
                    break
        except GateError as exc:
            verdict = _blocked(stage_kind, exc)
        if verdict is None:
            verdict = GateVerdict(proceed=True, stage=stage_kind)

        self._report(instance, verdict)
        return verdict

    def _run_stage(self, stage: Stage, current: _Pass) -> GateVerdict | None:
        if current.instance.kind == stage.kind:
            verdict = getattr(self, stage.check)(current)
            if verdict is None and stage.terminal:
                return GateVerdict(proceed=True, stage=stage.kind)
            return verdict

        if stage.kind == RoleKind.MONITORING_SINK:
            # Nothing upstream references the sink, so there is no forward check.
            return GateVerdict(proceed=True, stage=stage.kind)

        evaluator = DependencyEvaluator(current.reads, warn=current.warn)
        error = evaluator.evaluate(current.instance, current.spec, stage.kind)
        if error is not None:
            return _blocked(stage.kind, error)
        return None

    def _check_root(self, current: _Pass) -> GateVerdict | None:
        return GateVerdict(proceed=True, stage=current.instance.kind, reason="no_upstream")

    def _check_own_workload(self, current: _Pass) -> GateVerdict | None:
        # Existence only: a first rollout is never blocked on itself.
        instance = current.instance
        try:
            exists = current.reads.workload_exists(instance.kind, instance.namespace, instance.name)
        except StoreError as exc:
            current.warn("workload_lookup_failed", exc.message)
            return GateVerdict(proceed=False, stage=instance.kind, reason="workload_lookup_failed")
        reason = "workload_present" if exists else "workload_not_created"
        return GateVerdict(proceed=True, stage=instance.kind, reason=reason)

    def _check_sites(self, current: _Pass) -> GateVerdict | None:
        error = check_site_sequence(
            current.reads,
            current.instance,
            current.spec,
            by_site_label=self.order_sites_by_label,
        )
        if error is not None:
            return _blocked(RoleKind.STORAGE_TIER, error)
        return None

    def _check_holders(self, current: _Pass) -> GateVerdict | None:
        evaluator = ReverseDependencyEvaluator(current.reads, warn=current.warn)
        error = evaluator.evaluate(current.instance, current.spec)
        if error is not None:
            return _blocked(RoleKind.MONITORING_SINK, error)
        return None

    def _report(self, instance: RoleInstance, verdict: GateVerdict) -> None:
        payload = verdict.to_dict()
        if verdict.proceed:
            self._publish_best_effort(instance, "gate_proceed", NORMAL, payload)
        elif verdict.error is None:
            self._publish_best_effort(instance, "gate_wait", NORMAL, payload)
        else:
            self._publish_best_effort(instance, "gate_blocked", WARNING, payload)
        self._trace_best_effort(instance, verdict)


def validate_upgrade_path(
    store: ResourceStore,
    probe: ClusterInfoProbe | None,
    instance: RoleInstance,
    spec: RoleSpec | None = None,
    *,
    events: EventLog | None = None,
    cancel: threading.Event | None = None,
) -> tuple[bool, GateError | None]:
    """`(True, None)` to proceed, `(False, None)` to wait quietly, `(False, err)` to report."""
    verdict = UpgradeGate(store, probe, events=events).evaluate(instance, spec, cancel=cancel)
    return verdict.as_tuple()
