from fleetgate.gate.dependency import DependencyEvaluator
from fleetgate.gate.reverse import ReverseDependencyEvaluator
from fleetgate.gate.site_order import check_site_sequence, preceding_site, rank_sites
from fleetgate.gate.upgrade import STAGES, GateVerdict, UpgradeGate, validate_upgrade_path

__all__ = [
    "DependencyEvaluator",
    "GateVerdict",
    "ReverseDependencyEvaluator",
    "STAGES",
    "UpgradeGate",
    "check_site_sequence",
    "preceding_site",
    "rank_sites",
    "validate_upgrade_path",
]
