"""
MineSafe Alerts - Broadcast, Targeting & Acknowledgment
"""
import copy
import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from ..config import format_ts, get_local_now, parse_ts, to_ts
from ..errors import InvalidState, NotFound
from ..store import ALERTS, EntityStore
from .models import (
    ACTIVE,
    ALERT_PRIORITIES,
    ALERT_STATUSES,
    ALL,
    EMERGENCY,
    matches_target,
)
from .notify import NotificationSink

logger = logging.getLogger(__name__)


class AlertService:
    """
    Creates and targets site alerts.

    Section/role matching happens after retrieval: the store can filter on
    status and priority, but not on "set contains X or contains 'all'".
    """

    def __init__(
        self,
        store: EntityStore,
        sinks: Optional[Sequence[NotificationSink]] = None,
        recorder=None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.sinks = list(sinks or [])
        self.recorder = recorder
        self._clock = clock or get_local_now

    def create_alert(self, fields: Dict) -> Dict:
        """Persist a new active alert and hand it to every notification sink."""
        if not fields.get("title"):
            raise InvalidState("Alert title is required")
        priority = fields.get("priority", "info")
        if priority not in ALERT_PRIORITIES:
            raise InvalidState(f"Invalid alert priority {priority!r}")

        now = self._clock()
        try:
            expires_at = to_ts(fields.get("expires_at"))
        except ValueError as e:
            raise InvalidState(str(e))

        alert = {
            "id": uuid.uuid4().hex,
            "title": fields["title"],
            "message": fields.get("message", ""),
            "priority": priority,
            "status": ACTIVE,
            "target_sections": _target_set(fields.get("target_sections"), "target_sections"),
            "target_roles": _target_set(fields.get("target_roles"), "target_roles"),
            "created_by": fields.get("created_by"),
            "created_by_name": fields.get("created_by_name"),
            "acknowledged_by": [],
            "created_at": format_ts(now),
            "expires_at": expires_at,
        }

        self.store.set(ALERTS, alert["id"], alert)
        logger.info(f"[Alerts] Created {alert['priority']} alert {alert['id']}: {alert['title']}")

        self._publish(alert)
        if self.recorder is not None:
            self.recorder.record_alert_issued(now)
        return alert

    def create_emergency_alert(self, title: str, message: str, actor_id: str, actor_name: str = None) -> Dict:
        """Emergency broadcast to every section and role."""
        return self.create_alert({
            "title": title,
            "message": message,
            "priority": EMERGENCY,
            "target_sections": [ALL],
            "target_roles": [ALL],
            "created_by": actor_id,
            "created_by_name": actor_name,
        })

    def _publish(self, alert: Dict):
        for sink in self.sinks:
            if not sink.is_configured():
                logger.debug(f"[Alerts] {sink.channel_name} not configured, skipping {alert['id']}")
                continue
            try:
                result = sink.publish(alert)
                if not result.success:
                    logger.warning(f"[Alerts] Delivery failed: {result.to_dict()}")
            except Exception as e:
                logger.error(f"[Alerts] {sink.channel_name} sink raised for {alert['id']}: {e}")

    def get_alert(self, alert_id: str) -> Dict:
        alert = self.store.get(ALERTS, alert_id)
        if alert is None:
            raise NotFound("Alert", alert_id)
        return alert

    def list_active(
        self,
        priority: str = None,
        section: str = None,
        role: str = None,
        now: datetime = None,
    ) -> List[Dict]:
        """Active, unexpired alerts visible to section/role, newest first."""
        filters = [("status", "==", ACTIVE)]
        if priority:
            filters.append(("priority", "==", priority))

        alerts = self.store.query(ALERTS, filters, order_by="created_at", descending=True)

        if section:
            alerts = [a for a in alerts if matches_target(a.get("target_sections"), section)]
        if role:
            alerts = [a for a in alerts if matches_target(a.get("target_roles"), role)]

        now = parse_ts(now or self._clock())
        return [
            a for a in alerts
            if not a.get("expires_at") or parse_ts(a["expires_at"]) > now
        ]

    def acknowledge(self, alert_id: str, actor_id: str) -> Dict:
        """Record that actor_id has seen the alert. Repeat calls are no-ops."""
        if not actor_id or not str(actor_id).strip():
            raise InvalidState("An actor id is required to acknowledge an alert")

        alert = copy.deepcopy(self.get_alert(alert_id))
        acknowledged = alert.setdefault("acknowledged_by", [])
        if actor_id in acknowledged:
            return alert

        acknowledged.append(actor_id)
        if not self.store.update(ALERTS, alert_id, {"acknowledged_by": acknowledged}):
            raise NotFound("Alert", alert_id)
        logger.info(f"[Alerts] {alert_id} acknowledged by {actor_id} ({len(acknowledged)} total)")
        return alert

    def update_status(self, alert_id: str, status: str) -> Dict:
        if status not in ALERT_STATUSES:
            raise InvalidState(f"Invalid alert status {status!r}")
        alert = self.get_alert(alert_id)
        if not self.store.update(ALERTS, alert_id, {"status": status}):
            raise NotFound("Alert", alert_id)
        logger.info(f"[Alerts] {alert_id} {alert.get('status')} -> {status}")
        return dict(alert, status=status)

    def alerts_by_creator(self, user_id: str) -> List[Dict]:
        return self.store.query(
            ALERTS, [("created_by", "==", user_id)], order_by="created_at", descending=True,
        )

    def delete_alert(self, alert_id: str) -> bool:
        return self.store.delete(ALERTS, alert_id)


def _target_set(value, field: str) -> List[str]:
    """Normalise a section/role target to a de-duplicated list; empty means everyone."""
    if not value:
        return [ALL]
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple, set)):
        raise InvalidState(f"{field} must be a list of names")
    for entry in value:
        if not isinstance(entry, str) or not entry:
            raise InvalidState(f"{field} entries must be non-empty strings")
    return list(dict.fromkeys(value))
