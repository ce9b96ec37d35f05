# ============================================================================
# MineSafe - Application Entry Point
# ============================================================================
# Builds the FastAPI app: one entity store, the feature services wired
# around it, the per-feature routes and the background scheduler.
#
# Run:  uvicorn main:app --host 0.0.0.0 --port 8000
# ============================================================================

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

from fastapi import FastAPI

from minesafe import __version__
from minesafe.alerts import AlertService, LogSink, NotificationSink, register_alert_routes
from minesafe.analytics import ActivityRecorder, SafetyAnalytics, SafetyReporter, register_analytics_routes
from minesafe.checklists import ChecklistEngine, OverdueSweep, register_checklist_routes
from minesafe.config import get_config, get_local_now
from minesafe.errors import register_error_handlers
from minesafe.incidents import IncidentService, register_incident_routes
from minesafe.scheduler_jobs import SafetyScheduler
from minesafe.store import EntityStore, SQLiteEntityStore

logger = logging.getLogger("minesafe")


@dataclass
class SafetyServices:
    store: EntityStore
    recorder: ActivityRecorder
    alerts: AlertService
    incidents: IncidentService
    checklists: ChecklistEngine
    sweep: OverdueSweep
    analytics: SafetyAnalytics
    reporter: SafetyReporter
    scheduler: SafetyScheduler


def build_services(
    store: EntityStore,
    clock: Optional[Callable[[], datetime]] = None,
    sinks: Optional[Sequence[NotificationSink]] = None,
) -> SafetyServices:
    """Wire every service around one store and one clock."""
    clock = clock or get_local_now
    recorder = ActivityRecorder(store)
    alerts = AlertService(store, sinks=sinks if sinks is not None else [LogSink()], recorder=recorder, clock=clock)
    incidents = IncidentService(store, alerts=alerts, recorder=recorder, clock=clock)
    checklists = ChecklistEngine(store, recorder=recorder, clock=clock)
    sweep = OverdueSweep(checklists, alerts)
    analytics = SafetyAnalytics(store, clock=clock)
    reporter = SafetyReporter(store, analytics, alerts=alerts, clock=clock)
    return SafetyServices(
        store=store,
        recorder=recorder,
        alerts=alerts,
        incidents=incidents,
        checklists=checklists,
        sweep=sweep,
        analytics=analytics,
        reporter=reporter,
        scheduler=SafetyScheduler(sweep, reporter),
    )


def create_app(
    store: Optional[EntityStore] = None,
    clock: Optional[Callable[[], datetime]] = None,
    sinks: Optional[Sequence[NotificationSink]] = None,
) -> FastAPI:
    if store is None:
        store = SQLiteEntityStore(get_config("db_path", "minesafe.db"))
    services = build_services(store, clock=clock, sinks=sinks)

    app = FastAPI(title="MineSafe", version=__version__)
    app.state.services = services

    register_error_handlers(app)
    register_incident_routes(app, services.incidents)
    register_checklist_routes(app, services.checklists, services.sweep)
    register_alert_routes(app, services.alerts)
    register_analytics_routes(app, services.analytics, services.reporter)

    @app.get("/health")
    async def health():
        return {
            "ok": True,
            "version": __version__,
            "time": services.analytics.now().strftime("%Y-%m-%d %H:%M:%S"),
            "scheduler": services.scheduler.get_status(),
        }

    @app.on_event("startup")
    async def _startup():
        if get_config("scheduler_enabled", False):
            services.scheduler.start()
        logger.info("[MineSafe] Startup complete")

    @app.on_event("shutdown")
    async def _shutdown():
        services.scheduler.stop()

    return app


logging.basicConfig(
    level=getattr(logging, str(get_config("log_level", "INFO")).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
