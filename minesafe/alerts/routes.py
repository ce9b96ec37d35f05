"""
MineSafe Alerts - API Routes
"""
from fastapi import FastAPI, Request

from ..errors import NotFound
from ..web import get_actor, read_json, require_actor, require_fields
from .service import AlertService


def register_alert_routes(app: FastAPI, alerts: AlertService):
    """Register all alert endpoints."""

    @app.post("/api/alerts")
    async def api_create_alert(request: Request):
        data = await read_json(request)
        require_fields(data, "title")
        user_id, user_name = require_actor(request)
        data["created_by"] = user_id
        data["created_by_name"] = user_name
        alert = alerts.create_alert(data)
        return {"ok": True, "alert": alert}

    @app.post("/api/alerts/emergency")
    async def api_emergency_alert(request: Request):
        data = await read_json(request)
        require_fields(data, "title", "message")
        user_id, user_name = require_actor(request)
        alert = alerts.create_emergency_alert(data["title"], data["message"], user_id, user_name)
        return {"ok": True, "alert": alert}

    @app.get("/api/alerts/active")
    async def api_active_alerts(request: Request):
        q = request.query_params
        active = alerts.list_active(
            priority=q.get("priority"),
            section=q.get("section"),
            role=q.get("role"),
        )
        return {"ok": True, "alerts": active}

    @app.get("/api/alerts/mine")
    async def api_my_alerts(request: Request):
        user_id, _ = require_actor(request)
        return {"ok": True, "alerts": alerts.alerts_by_creator(user_id)}

    @app.get("/api/alerts/{alert_id}")
    async def api_get_alert(alert_id: str):
        return {"ok": True, "alert": alerts.get_alert(alert_id)}

    @app.post("/api/alerts/{alert_id}/acknowledge")
    async def api_acknowledge_alert(alert_id: str, request: Request):
        user_id, _ = get_actor(request)
        alert = alerts.acknowledge(alert_id, user_id)
        return {"ok": True, "alert": alert}

    @app.post("/api/alerts/{alert_id}/status")
    async def api_update_alert_status(alert_id: str, request: Request):
        data = await read_json(request)
        require_fields(data, "status")
        alert = alerts.update_status(alert_id, data["status"])
        return {"ok": True, "alert": alert}

    @app.delete("/api/alerts/{alert_id}")
    async def api_delete_alert(alert_id: str):
        if not alerts.delete_alert(alert_id):
            raise NotFound("Alert", alert_id)
        return {"ok": True}
