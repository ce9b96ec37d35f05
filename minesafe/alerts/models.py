"""
MineSafe Alerts - Record Constants & Targeting
"""
from typing import Iterable, Optional

INFO = "info"
WARNING = "warning"
URGENT = "urgent"
EMERGENCY = "emergency"

ALERT_PRIORITIES = (INFO, WARNING, URGENT, EMERGENCY)

ACTIVE = "active"
ACKNOWLEDGED = "acknowledged"
RESOLVED = "resolved"

ALERT_STATUSES = (ACTIVE, ACKNOWLEDGED, RESOLVED)

# Targeting wildcard: matches every section or role
ALL = "all"

SUPERVISOR_ROLES = ["admin", "supervisor"]

SYSTEM_ACTOR = ("system", "System")


def matches_target(targets: Optional[Iterable[str]], value: Optional[str]) -> bool:
    """True when value is targeted explicitly or through the 'all' wildcard."""
    if value is None:
        return True
    targets = set(targets or ())
    return value in targets or ALL in targets
