"""
MineSafe Incidents - Record Constants & Status Policy
"""

INCIDENT_TYPES = (
    "near_miss",
    "injury",
    "equipment_damage",
    "environmental",
    "fire",
    "structural",
    "other",
)

# Ordered by impact, lowest first
SEVERITIES = ("low", "medium", "high", "critical")

REPORTED = "reported"
INVESTIGATING = "investigating"
RESOLVED = "resolved"
CLOSED = "closed"

# Ordered: status may only move forward through this sequence
INCIDENT_STATUSES = (REPORTED, INVESTIGATING, RESOLVED, CLOSED)

# Severity -> alert priority raised when such an incident is reported
SEVERITY_ALERT_PRIORITY = {
    "critical": "emergency",
    "high": "urgent",
}

# Fields callers may not set through a generic update
PROTECTED_FIELDS = ("id", "status", "created_at", "updated_at", "resolved_at", "reported_by")


def can_transition(current: str, target: str) -> bool:
    """Forward-only: same status or any later status in INCIDENT_STATUSES."""
    return INCIDENT_STATUSES.index(target) >= INCIDENT_STATUSES.index(current)
