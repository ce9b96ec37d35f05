"""
MineSafe Checklists Module
Recurring inspection checklists: item completion drives status, and an
hourly sweep flags checklists whose due date passed without progress.
"""
from .engine import ChecklistEngine
from .models import derive_status, sweep_status
from .sweep import OverdueSweep, SweepResult, run_overdue_sweep
from .routes import register_checklist_routes

__all__ = [
    "ChecklistEngine",
    "derive_status",
    "sweep_status",
    "OverdueSweep",
    "SweepResult",
    "run_overdue_sweep",
    "register_checklist_routes",
]
