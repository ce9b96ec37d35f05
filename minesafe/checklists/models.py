"""
MineSafe Checklists - Record Constants & Status Rules
"""
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..config import parse_ts

PENDING = "pending"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
OVERDUE = "overdue"

CHECKLIST_STATUSES = (PENDING, IN_PROGRESS, COMPLETED, OVERDUE)
SWEEPABLE_STATUSES = (PENDING, IN_PROGRESS)
SHIFTS = ("day", "night", "morning", "afternoon")

# Item fields a caller may change through an item update
ITEM_PATCH_FIELDS = ("is_completed", "notes", "photo_url")


def completed_count(items: Iterable[Dict]) -> int:
    return sum(1 for item in items if item.get("is_completed"))


def derive_status(items: List[Dict], due_date, now: datetime) -> str:
    """
    Checklist status as a function of item completion, due date and now.

    Partially completed checklists stay in_progress after the due date;
    overdue only applies to checklists with no progress at all.
    """
    now = parse_ts(now)
    done = completed_count(items)
    if done == len(items):
        return COMPLETED
    if done > 0:
        return IN_PROGRESS
    if now > parse_ts(due_date):
        return OVERDUE
    return PENDING


def sweep_status(checklist: Dict, now: datetime) -> Optional[str]:
    """
    Status the overdue sweep assigns, or None when the sweep leaves it alone.

    Any pending/in_progress checklist whose due date has passed becomes
    overdue. For zero-progress checklists this equals derive_status().
    """
    now = parse_ts(now)
    if checklist.get("status") not in SWEEPABLE_STATUSES:
        return None
    if parse_ts(checklist["due_date"]) < now:
        return OVERDUE
    return None


def new_item(data: Dict) -> Dict:
    """Build a fresh (incomplete) checklist item from caller data."""
    return {
        "id": data.get("id") or uuid.uuid4().hex,
        "description": data.get("description", ""),
        "is_completed": False,
        "completed_at": None,
        "completed_by": None,
        "notes": data.get("notes"),
        "requires_photo": bool(data.get("requires_photo", False)),
        "photo_url": None,
    }
