"""
MineSafe Incidents - Reporting & Status Tracking
"""
import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from ..alerts.models import ALL, SUPERVISOR_ROLES, SYSTEM_ACTOR
from ..config import format_ts, get_config, get_local_now, to_ts
from ..errors import InvalidState, NotFound, StoreUnavailable
from ..store import INCIDENTS, EntityStore
from .models import (
    INCIDENT_STATUSES,
    INCIDENT_TYPES,
    PROTECTED_FIELDS,
    REPORTED,
    RESOLVED,
    SEVERITIES,
    SEVERITY_ALERT_PRIORITY,
    can_transition,
)

logger = logging.getLogger(__name__)

LIST_FIELDS = ("witnesses", "equipment_involved", "corrective_actions", "attachments")


class IncidentService:
    """Incident reports, their forward-only status flow, and their side effects."""

    def __init__(
        self,
        store: EntityStore,
        alerts=None,
        recorder=None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.alerts = alerts
        self.recorder = recorder
        self._clock = clock or get_local_now

    def create_incident(self, data: Dict, reporter_id: str, reporter_name: str = None) -> Dict:
        """Validate and store a new incident in 'reported' status."""
        _validate_incident(data)

        now = self._clock()
        location = data["location"]
        incident = {
            "id": uuid.uuid4().hex,
            "title": data["title"],
            "description": data.get("description", ""),
            "type": data["type"],
            "severity": data["severity"],
            "status": REPORTED,
            "location": {
                "section": location["section"],
                "level": location["level"],
                "coordinates": location.get("coordinates"),
            },
            "reported_by": reporter_id,
            "reported_by_name": reporter_name or "Unknown",
            "assigned_to": data.get("assigned_to"),
            "assigned_to_name": data.get("assigned_to_name"),
            "witnesses": list(data.get("witnesses") or []),
            "injuries": _injury_count(data.get("injuries")),
            "equipment_involved": list(data.get("equipment_involved") or []),
            "root_cause": data.get("root_cause"),
            "corrective_actions": list(data.get("corrective_actions") or []),
            "attachments": list(data.get("attachments") or []),
            "created_at": format_ts(now),
            "updated_at": format_ts(now),
            "resolved_at": None,
        }

        self.store.set(INCIDENTS, incident["id"], incident)
        logger.info(
            f"[Incidents] {incident['severity'].upper()} {incident['type']} reported "
            f"in {location['section']} by {reporter_id}: {incident['id']}"
        )

        self._on_created(incident, now)
        return incident

    def _on_created(self, incident: Dict, now: datetime):
        if self.recorder is not None:
            self.recorder.record_incident_reported(now)

        priority = SEVERITY_ALERT_PRIORITY.get(incident["severity"])
        if priority is None or self.alerts is None:
            return
        try:
            self.alerts.create_alert({
                "title": f"New {incident['severity'].upper()} Incident: {incident['title']}",
                "message": f"{incident['description']}\nLocation: {incident['location']['section'] or 'Unknown'}",
                "priority": priority,
                "target_sections": [ALL],
                "target_roles": SUPERVISOR_ROLES,
                "created_by": SYSTEM_ACTOR[0],
                "created_by_name": SYSTEM_ACTOR[1],
            })
        except StoreUnavailable as e:
            logger.error(f"[Incidents] Alert for incident {incident['id']} failed: {e}")

    def get_incident(self, incident_id: str) -> Dict:
        incident = self.store.get(INCIDENTS, incident_id)
        if incident is None:
            raise NotFound("Incident", incident_id)
        return incident

    def list_incidents(
        self,
        status: str = None,
        severity: str = None,
        type: str = None,
        section: str = None,
        start=None,
        end=None,
        limit: int = None,
        offset: int = 0,
    ) -> Tuple[List[Dict], int]:
        """Filtered page of incidents, newest first, plus the unpaginated total."""
        filters = []
        if status:
            filters.append(("status", "==", status))
        if severity:
            filters.append(("severity", "==", severity))
        if type:
            filters.append(("type", "==", type))
        if section:
            filters.append(("location.section", "==", section))
        try:
            if start:
                filters.append(("created_at", ">=", to_ts(start)))
            if end:
                filters.append(("created_at", "<=", to_ts(end)))
        except ValueError as e:
            raise InvalidState(str(e))

        if limit is None:
            limit = get_config("list_default_limit", 20)

        total = self.store.count(INCIDENTS, filters)
        incidents = self.store.query(
            INCIDENTS, filters, order_by="created_at", descending=True, limit=limit, offset=offset,
        )
        return incidents, total

    def incidents_by_reporter(self, user_id: str) -> List[Dict]:
        return self.store.query(
            INCIDENTS, [("reported_by", "==", user_id)], order_by="created_at", descending=True,
        )

    def update_incident(self, incident_id: str, fields: Dict, actor: str = None) -> Dict:
        """Edit descriptive fields; a status change goes through update_status()."""
        fields = dict(fields)
        status = fields.pop("status", None)
        changes = {k: v for k, v in fields.items() if k not in PROTECTED_FIELDS}

        if "severity" in changes and changes["severity"] not in SEVERITIES:
            raise InvalidState(f"Invalid severity {changes['severity']!r}")
        if "type" in changes and changes["type"] not in INCIDENT_TYPES:
            raise InvalidState(f"Invalid incident type {changes['type']!r}")
        if "injuries" in changes:
            changes["injuries"] = _injury_count(changes["injuries"])

        incident = self.get_incident(incident_id)
        if changes:
            changes["updated_at"] = format_ts(self._clock())
            if not self.store.update(INCIDENTS, incident_id, changes):
                raise NotFound("Incident", incident_id)
            incident = dict(incident, **changes)

        if status is not None and status != incident["status"]:
            incident = self.update_status(incident_id, status, actor)
        return incident

    def update_status(self, incident_id: str, status: str, actor: str = None) -> Dict:
        """
        Move an incident forward through reported -> investigating ->
        resolved -> closed. Skipping ahead is allowed; going back is not.
        """
        if status not in INCIDENT_STATUSES:
            raise InvalidState(f"Invalid incident status {status!r}")

        incident = self.get_incident(incident_id)
        current = incident["status"]
        if current == status:
            return incident
        if not can_transition(current, status):
            raise InvalidState(f"Incident {incident_id} cannot move from {current} back to {status}")

        now = self._clock()
        changes = {"status": status, "updated_at": format_ts(now)}
        if status == RESOLVED:
            changes["resolved_at"] = format_ts(now)

        if not self.store.update(INCIDENTS, incident_id, changes):
            raise NotFound("Incident", incident_id)
        logger.info(f"[Incidents] {incident_id} {current} -> {status} (by {actor or 'unknown'})")

        if status == RESOLVED and self.recorder is not None:
            self.recorder.record_incident_resolved(now)
        return dict(incident, **changes)

    def delete_incident(self, incident_id: str) -> bool:
        deleted = self.store.delete(INCIDENTS, incident_id)
        if deleted:
            logger.info(f"[Incidents] Deleted {incident_id}")
        return deleted


def _validate_incident(data: Dict):
    if not data.get("title"):
        raise InvalidState("Incident title is required")
    if data.get("type") not in INCIDENT_TYPES:
        raise InvalidState(f"Invalid incident type {data.get('type')!r}")
    if data.get("severity") not in SEVERITIES:
        raise InvalidState(f"Invalid severity {data.get('severity')!r}")
    location = data.get("location") or {}
    if not isinstance(location, dict):
        raise InvalidState("Incident location must be an object with a section and a level")
    if not location.get("section") or not location.get("level"):
        raise InvalidState("Incident location needs a section and a level")
    for field in LIST_FIELDS:
        if not isinstance(data.get(field) or [], list):
            raise InvalidState(f"Incident {field} must be a list")


def _injury_count(value) -> int:
    try:
        count = int(value or 0)
    except (TypeError, ValueError):
        raise InvalidState(f"Invalid injury count {value!r}")
    if count < 0:
        raise InvalidState("Injury count cannot be negative")
    return count
