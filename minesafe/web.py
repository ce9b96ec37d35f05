"""
MineSafe - Request helpers shared by the feature route modules.

Authentication happens upstream; the gateway forwards the acting user in
X-User-Id / X-User-Name headers.
"""
from typing import Dict, Optional, Tuple

from fastapi import HTTPException, Request


def get_actor(request: Request) -> Tuple[Optional[str], Optional[str]]:
    """(user_id, display_name) of the caller, either may be None."""
    user_id = request.headers.get("x-user-id") or None
    user_name = request.headers.get("x-user-name") or None
    return user_id, user_name


def require_actor(request: Request) -> Tuple[str, Optional[str]]:
    user_id, user_name = get_actor(request)
    if not user_id:
        raise HTTPException(status_code=400, detail="X-User-Id header required")
    return user_id, user_name


def require_fields(data: Dict, *fields: str):
    missing = [f for f in fields if data.get(f) in (None, "", [])]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")


async def read_json(request: Request) -> Dict:
    try:
        data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return data


def query_int(request: Request, name: str, default: Optional[int] = None) -> Optional[int]:
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Query parameter {name} must be an integer")
