"""
MineSafe Analytics - API Routes
"""
from datetime import timedelta

from fastapi import FastAPI, HTTPException, Request

from ..config import parse_ts
from ..errors import NotFound
from .reports import SafetyReporter
from .stats import SafetyAnalytics


def _window(request: Request, analytics: SafetyAnalytics, default_days: int = 30):
    """(start, end) from ?start=&end= query params, defaulting to the trailing window."""
    q = request.query_params
    try:
        end = parse_ts(q.get("end")) if q.get("end") else analytics.now()
        start = parse_ts(q.get("start")) if q.get("start") else end - timedelta(days=default_days)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")
    return start, end


def register_analytics_routes(app: FastAPI, analytics: SafetyAnalytics, reporter: SafetyReporter):
    """Register all analytics endpoints."""

    @app.get("/api/analytics/dashboard")
    async def api_dashboard(request: Request):
        return {"ok": True, "dashboard": analytics.dashboard()}

    @app.get("/api/analytics/safety-score")
    async def api_safety_score(request: Request):
        q = request.query_params
        if q.get("start") or q.get("end"):
            start, end = _window(request, analytics)
            score = analytics.safety_score(start, end)
        else:
            score = analytics.safety_score()
        return {"ok": True, **score}

    @app.get("/api/analytics/incidents")
    async def api_incident_stats(request: Request):
        start, end = _window(request, analytics)
        return {"ok": True, "stats": analytics.incident_stats(start, end)}

    @app.get("/api/analytics/checklists")
    async def api_checklist_stats(request: Request):
        start, end = _window(request, analytics)
        return {"ok": True, "stats": analytics.checklist_stats(start, end)}

    @app.get("/api/analytics/daily")
    async def api_daily_stats(request: Request):
        start, end = _window(request, analytics, default_days=7)
        return {"ok": True, "days": analytics.daily_stats(start, end)}

    @app.get("/api/analytics/reports/daily/{day}")
    async def api_daily_report(day: str):
        try:
            report = reporter.get_daily_report(day)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if report is None:
            raise NotFound("Daily report", day)
        return {"ok": True, "report": report}

    @app.get("/api/analytics/reports/weekly/{week_ending}")
    async def api_weekly_summary(week_ending: str):
        try:
            summary = reporter.get_weekly_summary(week_ending)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if summary is None:
            raise NotFound("Weekly summary", week_ending)
        return {"ok": True, "summary": summary}
