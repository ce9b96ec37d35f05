"""
MineSafe Incidents - API Routes
"""
from fastapi import FastAPI, Request

from ..errors import NotFound
from ..web import query_int, read_json, require_actor, require_fields
from .service import IncidentService


def register_incident_routes(app: FastAPI, incidents: IncidentService):
    """Register all incident endpoints."""

    @app.post("/api/incidents")
    async def api_create_incident(request: Request):
        data = await read_json(request)
        require_fields(data, "title", "type", "severity", "location")
        user_id, user_name = require_actor(request)
        incident = incidents.create_incident(data, user_id, user_name)
        return {"ok": True, "incident": incident}

    @app.get("/api/incidents")
    async def api_list_incidents(request: Request):
        q = request.query_params
        records, total = incidents.list_incidents(
            status=q.get("status"),
            severity=q.get("severity"),
            type=q.get("type"),
            section=q.get("section"),
            start=q.get("start"),
            end=q.get("end"),
            limit=query_int(request, "limit"),
            offset=query_int(request, "offset", 0),
        )
        return {"ok": True, "incidents": records, "total": total}

    @app.get("/api/incidents/mine")
    async def api_my_incidents(request: Request):
        user_id, _ = require_actor(request)
        return {"ok": True, "incidents": incidents.incidents_by_reporter(user_id)}

    @app.get("/api/incidents/{incident_id}")
    async def api_get_incident(incident_id: str):
        return {"ok": True, "incident": incidents.get_incident(incident_id)}

    @app.put("/api/incidents/{incident_id}")
    async def api_update_incident(incident_id: str, request: Request):
        data = await read_json(request)
        user_id, _ = require_actor(request)
        incident = incidents.update_incident(incident_id, data, actor=user_id)
        return {"ok": True, "incident": incident}

    @app.post("/api/incidents/{incident_id}/status")
    async def api_update_incident_status(incident_id: str, request: Request):
        data = await read_json(request)
        require_fields(data, "status")
        user_id, _ = require_actor(request)
        incident = incidents.update_status(incident_id, data["status"], actor=user_id)
        return {"ok": True, "incident": incident}

    @app.delete("/api/incidents/{incident_id}")
    async def api_delete_incident(incident_id: str):
        if not incidents.delete_incident(incident_id):
            raise NotFound("Incident", incident_id)
        return {"ok": True}
