"""Command-line interface for fleetgate."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path

from fleetgate import __version__ as FG_VERSION
from fleetgate.audit.decision_trace import DecisionTraceWriter
from fleetgate.audit.events import EventLog
from fleetgate.config import GateSettings
from fleetgate.core.kinds import RoleKind, parse_kind
from fleetgate.core.models import ClusterTopology
from fleetgate.errors import StoreError
from fleetgate.gate.upgrade import UpgradeGate
from fleetgate.plan.fleet_plan import build_site_order, build_upgrade_plan
from fleetgate.probe.cluster_info import (
    ClusterInfoProbe,
    RestClusterInfoProbe,
    StaticClusterInfoProbe,
)
from fleetgate.store.base import ResourceStore
from fleetgate.store.kubectl import KubectlResourceStore
from fleetgate.store.snapshot import SnapshotResourceStore, SnapshotValidationError

EXIT_PROCEED = 0
EXIT_FAULT = 2
EXIT_WAIT = 3


def _ensure_out_dir(out_dir: str) -> Path:
    path = Path(out_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _write_json_report(path: Path, payload: dict) -> None:
    path.write_text(
        json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True) + "\n",
        encoding="utf-8",
    )


def _kind_arg(value: str) -> RoleKind:
    try:
        return parse_kind(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _build_store(args: argparse.Namespace, settings: GateSettings) -> ResourceStore:
    if args.snapshot:
        return SnapshotResourceStore.from_file(Path(args.snapshot), default_namespace=args.namespace)
    return KubectlResourceStore(
        settings.kubectl,
        api_group=settings.api_group,
        timeout_s=settings.read_timeout_s,
    )


def _build_probe(args: argparse.Namespace, settings: GateSettings) -> ClusterInfoProbe:
    topology = getattr(args, "topology", None)
    if topology == "multisite":
        return StaticClusterInfoProbe(ClusterTopology(multisite=True))
    if topology == "single-site":
        return StaticClusterInfoProbe(ClusterTopology(multisite=False))
    if args.snapshot:
        return StaticClusterInfoProbe(
            error="cluster topology is unknown for a snapshot (pass --multisite or --single-site)"
        )
    return RestClusterInfoProbe(settings)


def _print_error(message: str) -> None:
    print(f"ERROR: {message}", file=sys.stderr)


def cmd_evaluate(args: argparse.Namespace) -> int:
    settings = GateSettings.from_env()
    out_dir = _ensure_out_dir(args.out)
    try:
        store = _build_store(args, settings)
        instance = store.get(args.kind, args.namespace, args.name)
    except (SnapshotValidationError, StoreError) as exc:
        _print_error(str(exc))
        return EXIT_FAULT
    if instance is None:
        _print_error(f"{args.kind.value} {args.namespace}/{args.name} not found")
        return EXIT_FAULT

    spec = instance.spec
    if args.image:
        spec = replace(spec, image=args.image)

    gate = UpgradeGate(
        store,
        _build_probe(args, settings),
        events=EventLog(out_dir / "events.jsonl"),
        trace=DecisionTraceWriter(out_dir / "decision_trace.jsonl"),
        order_sites_by_label=args.order_sites_by_label,
    )
    verdict = gate.evaluate(instance, spec)
    _write_json_report(
        out_dir / "gate_verdict_latest.json",
        {
            "schema": "gate_verdict.v0",
            "instance": instance.to_dict(),
            "desired_image": spec.image,
            "verdict": verdict.to_dict(),
        },
    )

    if verdict.proceed:
        print(f"proceed: {instance.kind.value} {instance.name} ({verdict.reason})")
        return EXIT_PROCEED
    message = verdict.error.message if verdict.error is not None else verdict.reason
    if verdict.waiting:
        print(f"wait: {message}")
        return EXIT_WAIT
    _print_error(message)
    return EXIT_FAULT


def cmd_plan(args: argparse.Namespace) -> int:
    settings = GateSettings.from_env()
    out_dir = _ensure_out_dir(args.out)
    try:
        store = _build_store(args, settings)
        gate = UpgradeGate(
            store,
            _build_probe(args, settings),
            order_sites_by_label=args.order_sites_by_label,
        )
        report = build_upgrade_plan(gate, args.namespace, image=args.image)
    except (SnapshotValidationError, StoreError) as exc:
        _print_error(str(exc))
        return EXIT_FAULT
    _write_json_report(out_dir / "upgrade_plan_latest.json", report)
    for entry in report["entries"]:
        state = "proceed" if entry["proceed"] else "blocked"
        print(f"{entry['kind']}/{entry['name']}: {state} ({entry['reason']})")
    return 0


def cmd_sites(args: argparse.Namespace) -> int:
    settings = GateSettings.from_env()
    out_dir = _ensure_out_dir(args.out)
    try:
        store = _build_store(args, settings)
        report = build_site_order(
            store,
            args.namespace,
            args.coordinator,
            by_site_label=args.order_sites_by_label,
        )
    except (SnapshotValidationError, StoreError) as exc:
        _print_error(str(exc))
        return EXIT_FAULT
    _write_json_report(out_dir / "site_order_latest.json", report)
    for site in report["sites"]:
        print(f"{site['rank']}: {site['name']} site={site['site'] or '-'} phase={site['phase']}")
    return 0


def _add_source_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--namespace", default="default", help="Namespace of the role instances")
    parser.add_argument(
        "--snapshot",
        help="Read instances from a `kubectl get -o json` snapshot file instead of the cluster",
    )


def _add_site_order_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--order-sites-by-label",
        action="store_true",
        help="Rank storage-tier sites by their spec.site label instead of the store's listing order",
    )


def _add_topology_args(parser: argparse.ArgumentParser) -> None:
    topology = parser.add_mutually_exclusive_group()
    topology.add_argument(
        "--multisite",
        dest="topology",
        action="store_const",
        const="multisite",
        help="Skip the coordinator probe and treat the storage tier as multisite",
    )
    topology.add_argument(
        "--single-site",
        dest="topology",
        action="store_const",
        const="single-site",
        help="Skip the coordinator probe and treat the storage tier as single-site",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fleetgate")
    parser.add_argument("--version", action="version", version=f"fleetgate {FG_VERSION}")

    sub = parser.add_subparsers(dest="command", required=True)

    evaluate = sub.add_parser("evaluate", help="Decide whether one instance may upgrade now (read-only)")
    evaluate.add_argument("--kind", required=True, type=_kind_arg, help="Role kind, e.g. StorageTier")
    evaluate.add_argument("--name", required=True, help="Instance name")
    evaluate.add_argument("--image", help="Desired image (default: the instance's spec.image)")
    _add_source_args(evaluate)
    _add_topology_args(evaluate)
    _add_site_order_arg(evaluate)
    evaluate.add_argument("--out", default="report/gate", help="Output directory")
    evaluate.set_defaults(func=cmd_evaluate)

    plan = sub.add_parser("plan", help="Gate verdict for every instance in a namespace (read-only)")
    plan.add_argument("--image", help="Preview verdicts as if every instance asked for this image")
    _add_source_args(plan)
    _add_topology_args(plan)
    _add_site_order_arg(plan)
    plan.add_argument("--out", default="report/plan", help="Output directory")
    plan.set_defaults(func=cmd_plan)

    sites = sub.add_parser("sites", help="Upgrade order of storage-tier sites sharing a coordinator")
    sites.add_argument("--coordinator", required=True, help="ClusterCoordinator name")
    _add_source_args(sites)
    _add_site_order_arg(sites)
    sites.add_argument("--out", default="report/sites", help="Output directory")
    sites.set_defaults(func=cmd_sites)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
