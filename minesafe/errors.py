"""
MineSafe - Error Taxonomy & HTTP Mapping
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SafetyError(Exception):
    """Base class for every failure raised by the safety core."""

    status_code = 500


class NotFound(SafetyError):
    """Referenced entity or checklist item does not exist."""

    status_code = 404

    def __init__(self, kind: str, entity_id: str, detail: Optional[str] = None):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(detail or f"{kind} {entity_id} not found")


class InvalidState(SafetyError):
    """Request is well-formed but not allowed in the current state."""

    status_code = 400


class StoreUnavailable(SafetyError):
    """The backing store failed the call."""

    status_code = 503


class PartialBatchFailure(SafetyError):
    """Some, but not all, updates of a batch were applied."""

    status_code = 500

    def __init__(self, succeeded: int, failed: list):
        self.succeeded = succeeded
        self.failed = list(failed)
        super().__init__(
            f"Batch partially applied: {succeeded} succeeded, {len(self.failed)} failed"
        )


def register_error_handlers(app: FastAPI):
    """Translate core failures into JSON responses."""

    @app.exception_handler(SafetyError)
    async def _safety_error_handler(request: Request, exc: SafetyError):
        if isinstance(exc, StoreUnavailable):
            logger.error(f"[API] {request.method} {request.url.path} store failure: {exc}")
        return JSONResponse({"ok": False, "error": str(exc)}, status_code=exc.status_code)
