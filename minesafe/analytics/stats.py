"""
MineSafe Analytics - Rolling-Window Statistics & Safety Score

The safety score is a policy heuristic, not a statistical model:

    score = 100 - (15*critical + 10*high + 5*medium + 2*low)
                + 20 * (completion_rate / 100)

clamped to [0, 100] and rounded for display. The weights below are the
contract; change them here and nowhere else.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from ..checklists.models import COMPLETED, OVERDUE
from ..config import format_ts, get_config, get_local_now, parse_ts
from ..incidents.models import INCIDENT_STATUSES, INCIDENT_TYPES, SEVERITIES
from ..store import CHECKLISTS, INCIDENTS, EntityStore
from .daily import read_daily_stats

logger = logging.getLogger(__name__)

SEVERITY_WEIGHTS = {
    "critical": 15,
    "high": 10,
    "medium": 5,
    "low": 2,
}
CHECKLIST_BONUS_MAX = 20
SCORE_MIN = 0
SCORE_MAX = 100


def round_half_up(value: float) -> int:
    """Nearest integer, halves rounded up (0.5 -> 1, 2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def completion_rate(completed: int, total: int) -> int:
    """Percentage of completed checklists; 0 for an empty window."""
    if total == 0:
        return 0
    return round_half_up(100 * completed / total)


def score_from(by_severity: Dict[str, int], rate: float) -> Dict:
    """Apply the scoring weights to severity counts and a completion rate."""
    impact = sum(SEVERITY_WEIGHTS[sev] * by_severity.get(sev, 0) for sev in SEVERITY_WEIGHTS)
    bonus = CHECKLIST_BONUS_MAX * (rate / 100)
    raw = 100 - impact + bonus
    return {
        "score": round_half_up(max(SCORE_MIN, min(SCORE_MAX, raw))),
        "raw_score": raw,
        "factors": {
            "incident_impact": -impact,
            "checklist_bonus": bonus,
        },
    }


class SafetyAnalytics:
    """Read-only aggregations over incidents and checklists."""

    def __init__(self, store: EntityStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self._clock = clock or get_local_now

    def now(self) -> datetime:
        return self._clock()

    def _window(self, kind: str, field: str, start, end):
        return self.store.query(kind, [
            (field, ">=", format_ts(parse_ts(start))),
            (field, "<=", format_ts(parse_ts(end))),
        ])

    def incident_stats(self, start, end) -> Dict:
        """Totals by severity, status and type for incidents created in [start, end]."""
        incidents = self._window(INCIDENTS, "created_at", start, end)

        by_severity = {s: 0 for s in SEVERITIES}
        by_status = {s: 0 for s in INCIDENT_STATUSES}
        by_type = {t: 0 for t in INCIDENT_TYPES}

        for incident in incidents:
            for bucket, key in (
                (by_severity, incident.get("severity")),
                (by_status, incident.get("status")),
                (by_type, incident.get("type")),
            ):
                if key in bucket:
                    bucket[key] += 1
                else:
                    logger.warning(f"[Analytics] Incident {incident.get('id')} has unknown value {key!r}")

        return {
            "total": len(incidents),
            "by_severity": by_severity,
            "by_status": by_status,
            "by_type": by_type,
        }

    def checklist_stats(self, start, end) -> Dict:
        """Completion statistics for checklists created in [start, end]."""
        checklists = self._window(CHECKLISTS, "created_at", start, end)

        stats = {
            "total": len(checklists),
            "completed": 0,
            "pending": 0,
            "overdue": 0,
            "completion_rate": 0,
            "by_category": {},
        }

        for checklist in checklists:
            status = checklist.get("status")
            if status == COMPLETED:
                stats["completed"] += 1
            elif status == OVERDUE:
                stats["overdue"] += 1
            else:
                stats["pending"] += 1

            category = stats["by_category"].setdefault(
                checklist.get("category") or "general", {"total": 0, "completed": 0}
            )
            category["total"] += 1
            if status == COMPLETED:
                category["completed"] += 1

        stats["completion_rate"] = completion_rate(stats["completed"], stats["total"])
        return stats

    def safety_score(self, start=None, end=None) -> Dict:
        """Safety score over [start, end]; defaults to the trailing 30 days."""
        end = parse_ts(end) if end is not None else self._clock()
        if start is None:
            start = end - timedelta(days=get_config("safety_score_window_days", 30))
        start = parse_ts(start)

        incidents = self.incident_stats(start, end)
        checklists = self.checklist_stats(start, end)

        result = score_from(incidents["by_severity"], checklists["completion_rate"])
        result.update({
            "incident_counts": incidents["by_severity"],
            "completion_rate": checklists["completion_rate"],
            "period": {
                "start": format_ts(start),
                "end": format_ts(end),
                "days": round((end - start).total_seconds() / 86400, 2),
            },
            "last_updated": format_ts(self._clock()),
        })
        return result

    def dashboard(self, now: datetime = None) -> Dict:
        """Today / trailing-week incident summary plus month-to-date checklist progress."""
        now = now or self._clock()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        start_of_week = start_of_day - timedelta(days=7)
        start_of_month = start_of_day.replace(day=1)

        today = self.incident_stats(start_of_day, now)
        weekly = self.incident_stats(start_of_week, now)
        monthly = self.checklist_stats(start_of_month, now)

        return {
            "today": {
                "incidents_reported": today["total"],
                "critical_incidents": today["by_severity"]["critical"] + today["by_severity"]["high"],
            },
            "weekly": {
                "total_incidents": weekly["total"],
                "resolved_incidents": weekly["by_status"]["resolved"] + weekly["by_status"]["closed"],
                "pending_incidents": weekly["by_status"]["reported"] + weekly["by_status"]["investigating"],
                "by_severity": weekly["by_severity"],
                "by_type": weekly["by_type"],
            },
            "monthly": {
                "checklists_completed": monthly["completed"],
                "checklists_pending": monthly["pending"],
                "checklists_overdue": monthly["overdue"],
                "completion_rate": monthly["completion_rate"],
            },
            "last_updated": format_ts(now),
        }

    def daily_stats(self, start, end):
        return read_daily_stats(self.store, parse_ts(start), parse_ts(end))
