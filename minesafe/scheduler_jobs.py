"""
MineSafe - Scheduler Jobs

One APScheduler BackgroundScheduler runs the periodic work:

    overdue_sweep      hourly at :sweep_minute
    daily_report       every day at daily_report_time (yesterday's snapshot)
    weekly_summary     weekly_summary_day at weekly_summary_time

Every job is safe to re-run: the sweep only touches pending/in_progress
checklists and both snapshots are keyed by date.
"""
import logging
from typing import Any, Callable, Dict, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .analytics.reports import SafetyReporter
from .checklists.sweep import OverdueSweep
from .config import get_config, get_timezone, parse_time_input
from .errors import StoreUnavailable

logger = logging.getLogger(__name__)

OVERDUE_SWEEP_JOB = "overdue_sweep"
DAILY_REPORT_JOB = "daily_report"
WEEKLY_SUMMARY_JOB = "weekly_summary"


class SafetyScheduler:
    """Owns the background scheduler and the three periodic safety jobs."""

    def __init__(self, sweep: OverdueSweep, reporter: SafetyReporter):
        self.sweep = sweep
        self.reporter = reporter
        self._running = False
        self._jobs: Dict[str, Callable[[], Any]] = {
            OVERDUE_SWEEP_JOB: self._run_overdue_sweep,
            DAILY_REPORT_JOB: self._run_daily_report,
            WEEKLY_SUMMARY_JOB: self._run_weekly_summary,
        }

        self._scheduler = BackgroundScheduler(
            timezone=get_timezone(),
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": get_config("misfire_grace_seconds", 300),
            },
        )
        self._scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self._scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)

    def _on_job_executed(self, event):
        logger.info(f"[Scheduler] Job {event.job_id} executed successfully")

    def _on_job_error(self, event):
        logger.error(f"[Scheduler] Job {event.job_id} failed: {event.exception}")

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def build_triggers(self) -> Dict[str, CronTrigger]:
        tz = get_timezone()
        daily_hour, daily_minute = parse_time_input(get_config("daily_report_time", "06:00"))
        weekly_hour, weekly_minute = parse_time_input(get_config("weekly_summary_time", "08:00"))
        return {
            OVERDUE_SWEEP_JOB: CronTrigger(minute=get_config("sweep_minute", 0), timezone=tz),
            DAILY_REPORT_JOB: CronTrigger(hour=daily_hour, minute=daily_minute, timezone=tz),
            WEEKLY_SUMMARY_JOB: CronTrigger(
                day_of_week=get_config("weekly_summary_day", "mon"),
                hour=weekly_hour,
                minute=weekly_minute,
                timezone=tz,
            ),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        if self._running:
            logger.info("[Scheduler] Already running")
            return True

        for job_id, trigger in self.build_triggers().items():
            self._scheduler.add_job(self._jobs[job_id], trigger, id=job_id, replace_existing=True)

        if self._scheduler.running:
            self._scheduler.resume()
        else:
            self._scheduler.start()
        self._running = True
        logger.info(f"[Scheduler] Started with {len(self._jobs)} jobs ({get_timezone()})")
        return True

    def stop(self):
        if not self._running:
            return
        self._scheduler.shutdown(wait=False)
        self._running = False
        logger.info("[Scheduler] Stopped")

    def is_running(self) -> bool:
        return self._running and self._scheduler.running

    def get_status(self) -> Dict:
        jobs = []
        for job in self._scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "next_run": next_run.strftime("%Y-%m-%d %H:%M:%S") if next_run else None,
            })
        return {"running": self.is_running(), "timezone": str(get_timezone()), "jobs": jobs}

    def run_job_now(self, job_id: str) -> Dict[str, Any]:
        """Run one job synchronously, outside the schedule."""
        job = self._jobs.get(job_id)
        if job is None:
            return {"ok": False, "error": f"Unknown job {job_id}"}
        logger.info(f"[Scheduler] Manual run of {job_id}")
        result = job()
        return {"ok": result is not None, "result": result}

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def _run_overdue_sweep(self) -> Optional[Dict]:
        try:
            return self.sweep.run().to_dict()
        except StoreUnavailable as e:
            logger.error(f"[Scheduler] Overdue sweep skipped, store unavailable: {e}")
            return None

    def _run_daily_report(self) -> Optional[Dict]:
        try:
            return self.reporter.daily_report()
        except StoreUnavailable as e:
            logger.error(f"[Scheduler] Daily report skipped, store unavailable: {e}")
            return None

    def _run_weekly_summary(self) -> Optional[Dict]:
        try:
            return self.reporter.weekly_summary()
        except StoreUnavailable as e:
            logger.error(f"[Scheduler] Weekly summary skipped, store unavailable: {e}")
            return None
