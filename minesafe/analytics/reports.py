"""
MineSafe Analytics - Daily & Weekly Report Snapshots

Snapshots are written once per period (id = date) and never rewritten: a
retried run for a period that already has a snapshot returns the stored
record and raises no further alert.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, Optional, Tuple, Union

from ..alerts.models import ALL, INFO, SUPERVISOR_ROLES, SYSTEM_ACTOR
from ..config import format_date, format_ts, get_local_now, parse_ts
from ..store import CHECKLISTS, DAILY_REPORTS, WEEKLY_SUMMARIES, EntityStore
from .stats import SafetyAnalytics

logger = logging.getLogger(__name__)

DayLike = Union[str, date, datetime, None]


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """First and last second of a calendar day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1) - timedelta(seconds=1)


def _as_date(value: DayLike) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_ts(value).date()


class SafetyReporter:
    """Builds and persists periodic safety snapshots."""

    def __init__(
        self,
        store: EntityStore,
        analytics: SafetyAnalytics,
        alerts=None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.analytics = analytics
        self.alerts = alerts
        self._clock = clock or get_local_now

    def daily_report(self, day: DayLike = None) -> Dict:
        """Snapshot for one calendar day (default: yesterday)."""
        now = self._clock()
        day = _as_date(day) or (now - timedelta(days=1)).date()
        report_id = format_date(day)

        existing = self.store.get(DAILY_REPORTS, report_id)
        if existing is not None:
            logger.info(f"[Reports] Daily report for {report_id} already exists")
            return existing

        start, end = day_bounds(day)
        incidents = self.analytics.incident_stats(start, end)
        checklists = self.analytics.checklist_stats(start, end)
        completed = self.store.count(CHECKLISTS, [
            ("completed_at", ">=", format_ts(start)),
            ("completed_at", "<=", format_ts(end)),
        ])
        score = self.analytics.safety_score(end=end)

        report = {
            "id": report_id,
            "date": report_id,
            "incidents_reported": incidents["total"],
            "incidents": incidents,
            "checklists_completed": completed,
            "checklists": checklists,
            "safety_score": score["score"],
            "safety_factors": score["factors"],
            "generated_at": format_ts(now),
        }
        self.store.set(DAILY_REPORTS, report_id, report)
        logger.info(
            f"[Reports] Daily report {report_id}: {incidents['total']} incidents, "
            f"{completed} checklists completed, score {score['score']}"
        )
        return report

    def weekly_summary(self, week_ending: DayLike = None) -> Dict:
        """Snapshot of the 7 days ending at week_ending (default: now), announced with an info alert."""
        now = self._clock()
        if week_ending is None:
            end = now
        elif isinstance(week_ending, datetime):
            end = parse_ts(week_ending)
        else:
            end = day_bounds(_as_date(week_ending))[1]
        start = end - timedelta(days=7)
        summary_id = format_date(end)

        existing = self.store.get(WEEKLY_SUMMARIES, summary_id)
        if existing is not None:
            logger.info(f"[Reports] Weekly summary for {summary_id} already exists")
            return existing

        incidents = self.analytics.incident_stats(start, end)
        checklists = self.analytics.checklist_stats(start, end)
        score = self.analytics.safety_score(end=end)

        summary = {
            "id": summary_id,
            "week_ending": summary_id,
            "period": {"start": format_ts(start), "end": format_ts(end)},
            "total_incidents": incidents["total"],
            "incidents": incidents,
            "total_checklists": checklists["total"],
            "completed_checklists": checklists["completed"],
            "completion_rate": checklists["completion_rate"],
            "safety_score": score["score"],
            "generated_at": format_ts(now),
        }
        self.store.set(WEEKLY_SUMMARIES, summary_id, summary)
        logger.info(f"[Reports] Weekly summary {summary_id}: {summary['total_incidents']} incidents, "
                    f"{summary['completion_rate']}% completion")

        if self.alerts is not None:
            self.alerts.create_alert({
                "title": "Weekly Safety Summary Available",
                "message": (
                    f"Week ending {summary_id}: {summary['total_incidents']} incidents, "
                    f"{summary['completion_rate']}% checklist completion rate."
                ),
                "priority": INFO,
                "target_sections": [ALL],
                "target_roles": SUPERVISOR_ROLES,
                "created_by": SYSTEM_ACTOR[0],
                "created_by_name": SYSTEM_ACTOR[1],
            })
        return summary

    def get_daily_report(self, day: DayLike) -> Optional[Dict]:
        return self.store.get(DAILY_REPORTS, format_date(_as_date(day)))

    def get_weekly_summary(self, week_ending: DayLike) -> Optional[Dict]:
        return self.store.get(WEEKLY_SUMMARIES, format_date(_as_date(week_ending)))
