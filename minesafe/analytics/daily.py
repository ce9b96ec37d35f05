"""
MineSafe Analytics - Daily Activity Counters

One DailyStat document per site-local date, created on first increment.
Each counter moves through store.increment(), which adds in one atomic
step, so independent events on the same day never overwrite each other.
"""
import logging
from datetime import date, datetime
from typing import Dict, List, Union

from ..config import format_date
from ..errors import StoreUnavailable
from ..store import DAILY_STATS, EntityStore

logger = logging.getLogger(__name__)

COUNTERS = (
    "incidents_reported",
    "incidents_resolved",
    "checklists_completed",
    "alerts_issued",
)


class ActivityRecorder:
    """Bumps DailyStat counters in response to domain events."""

    def __init__(self, store: EntityStore):
        self.store = store

    def _bump(self, when: Union[datetime, date], counter: str):
        day = format_date(when)
        try:
            self.store.increment(DAILY_STATS, day, {counter: 1}, defaults={"date": day})
        except StoreUnavailable as e:
            logger.error(f"[Analytics] Failed to increment {counter} for {day}: {e}")

    def record_incident_reported(self, when: datetime):
        self._bump(when, "incidents_reported")

    def record_incident_resolved(self, when: datetime):
        self._bump(when, "incidents_resolved")

    def record_checklist_completed(self, when: datetime):
        self._bump(when, "checklists_completed")

    def record_alert_issued(self, when: datetime):
        self._bump(when, "alerts_issued")


def read_daily_stats(store: EntityStore, start: Union[datetime, date], end: Union[datetime, date]) -> List[Dict]:
    """DailyStat documents for start..end inclusive, every counter present."""
    rows = store.query(
        DAILY_STATS,
        [("date", ">=", format_date(start)), ("date", "<=", format_date(end))],
        order_by="date",
    )
    return [dict({c: 0 for c in COUNTERS}, **row) for row in rows]
