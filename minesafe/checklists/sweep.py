"""
MineSafe Checklists - Overdue Sweep

Periodic scan that flips past-due pending/in_progress checklists to
overdue and raises a single summary alert per run. Already-overdue
checklists fall outside the query, so a repeat run with the same clock
changes nothing and raises nothing.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from ..alerts.models import ALL, SUPERVISOR_ROLES, SYSTEM_ACTOR, WARNING
from ..config import format_ts, parse_ts
from ..errors import PartialBatchFailure
from ..store import CHECKLISTS
from .models import sweep_status

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    matched: int
    updated: int
    alert_id: Optional[str] = None

    def to_dict(self) -> Dict:
        return {"matched": self.matched, "updated": self.updated, "alert_id": self.alert_id}


class OverdueSweep:
    """Marks overdue checklists; depends on a ChecklistEngine and an AlertService."""

    def __init__(self, checklists, alerts):
        self.checklists = checklists
        self.alerts = alerts

    def run(self, now: datetime = None) -> SweepResult:
        now = parse_ts(now or self.checklists.now())
        candidates = self.checklists.overdue_candidates(now)

        stamp = format_ts(now)
        updates = []
        for checklist in candidates:
            status = sweep_status(checklist, now)
            if status is not None:
                updates.append((checklist["id"], {"status": status, "updated_at": stamp}))

        if not updates:
            logger.debug("[Sweep] No overdue checklists")
            return SweepResult(matched=len(candidates), updated=0)

        try:
            updated = self.checklists.store.batch_update(CHECKLISTS, updates)
        except PartialBatchFailure as e:
            logger.warning(f"[Sweep] {e}; failed ids: {', '.join(e.failed)}")
            updated = e.succeeded

        logger.info(f"[Sweep] Marked {updated} of {len(updates)} checklists as overdue")

        alert_id = None
        if updated > 0:
            alert = self.alerts.create_alert({
                "title": f"{updated} Overdue Checklists",
                "message": f"There are {updated} checklists that are past their due date.",
                "priority": WARNING,
                "target_sections": [ALL],
                "target_roles": SUPERVISOR_ROLES,
                "created_by": SYSTEM_ACTOR[0],
                "created_by_name": SYSTEM_ACTOR[1],
            })
            alert_id = alert["id"]

        return SweepResult(matched=len(candidates), updated=updated, alert_id=alert_id)


def run_overdue_sweep(checklists, alerts, now: datetime = None) -> SweepResult:
    """One sweep pass at ``now`` (defaults to the engine clock)."""
    return OverdueSweep(checklists, alerts).run(now)
