"""
MineSafe Checklists - API Routes
"""
from fastapi import FastAPI, Request

from ..errors import NotFound
from ..web import query_int, read_json, require_actor, require_fields
from .engine import ChecklistEngine
from .sweep import OverdueSweep


def register_checklist_routes(app: FastAPI, checklists: ChecklistEngine, sweep: OverdueSweep):
    """Register all checklist endpoints."""

    @app.post("/api/checklists")
    async def api_create_checklist(request: Request):
        data = await read_json(request)
        require_fields(data, "title", "items", "due_date")
        checklist = checklists.create_checklist(data)
        return {"ok": True, "checklist": checklist}

    @app.get("/api/checklists")
    async def api_list_checklists(request: Request):
        q = request.query_params
        records, total = checklists.list_checklists(
            status=q.get("status"),
            assigned_to=q.get("assigned_to"),
            category=q.get("category"),
            mine_section=q.get("mine_section"),
            shift=q.get("shift"),
            due_before=q.get("due_before"),
            limit=query_int(request, "limit"),
            offset=query_int(request, "offset", 0),
        )
        return {"ok": True, "checklists": records, "total": total}

    @app.get("/api/checklists/mine")
    async def api_my_checklists(request: Request):
        user_id, _ = require_actor(request)
        return {"ok": True, "checklists": checklists.checklists_for_assignee(user_id)}

    @app.post("/api/checklists/sweep")
    async def api_run_sweep(request: Request):
        result = sweep.run()
        return {"ok": True, **result.to_dict()}

    @app.get("/api/checklists/{checklist_id}")
    async def api_get_checklist(checklist_id: str):
        return {"ok": True, "checklist": checklists.get_checklist(checklist_id)}

    @app.patch("/api/checklists/{checklist_id}/items/{item_id}")
    async def api_update_item(checklist_id: str, item_id: str, request: Request):
        patch = await read_json(request)
        user_id, _ = require_actor(request)
        checklist = checklists.apply_item_update(checklist_id, item_id, patch, user_id)
        return {"ok": True, "checklist": checklist}

    @app.delete("/api/checklists/{checklist_id}")
    async def api_delete_checklist(checklist_id: str):
        if not checklists.delete_checklist(checklist_id):
            raise NotFound("Checklist", checklist_id)
        return {"ok": True}
