"""
MineSafe Checklists - Lifecycle Engine

Item updates drive the checklist status through derive_status(). Every
write re-derives the status from the item list so the stored value never
drifts from the rule.

Item updates are read -> compute -> write against the store without a
lock; two actors updating the same checklist at the same instant can lose
one of the writes. Accepted for a single site with low write concurrency.
"""
import copy
import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from ..config import format_ts, get_config, get_local_now, parse_ts, to_ts
from ..errors import InvalidState, NotFound
from ..store import CHECKLISTS, EntityStore
from .models import (
    COMPLETED,
    ITEM_PATCH_FIELDS,
    SHIFTS,
    SWEEPABLE_STATUSES,
    derive_status,
    new_item,
)

logger = logging.getLogger(__name__)


class ChecklistEngine:
    """Create, query and progress inspection checklists."""

    def __init__(
        self,
        store: EntityStore,
        recorder=None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.recorder = recorder
        self._clock = clock or get_local_now

    def now(self) -> datetime:
        return parse_ts(self._clock())

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    def create_checklist(self, data: Dict) -> Dict:
        """Create a checklist; every item starts incomplete and status is derived."""
        if not data.get("title"):
            raise InvalidState("Checklist title is required")
        if not data.get("items"):
            raise InvalidState("A checklist needs at least one item")
        if not data.get("due_date"):
            raise InvalidState("Checklist due_date is required")
        shift = data.get("shift")
        if shift is not None and shift not in SHIFTS:
            raise InvalidState(f"Invalid shift {shift!r}")

        if not isinstance(data["items"], list):
            raise InvalidState("Checklist items must be a list")
        for item in data["items"]:
            if not isinstance(item, dict) or not item.get("description"):
                raise InvalidState("Every checklist item needs a description")

        now = self.now()
        try:
            due_date = to_ts(data["due_date"])
        except ValueError as e:
            raise InvalidState(str(e))

        items = [new_item(item) for item in data["items"]]
        checklist = {
            "id": uuid.uuid4().hex,
            "title": data["title"],
            "description": data.get("description", ""),
            "category": data.get("category", "general"),
            "mine_section": data.get("mine_section"),
            "shift": shift,
            "assigned_to": data.get("assigned_to"),
            "assigned_to_name": data.get("assigned_to_name"),
            "items": items,
            "status": derive_status(items, due_date, now),
            "due_date": due_date,
            "completed_at": None,
            "created_at": format_ts(now),
            "updated_at": format_ts(now),
        }

        self.store.set(CHECKLISTS, checklist["id"], checklist)
        logger.info(f"[Checklists] Created {checklist['id']} '{checklist['title']}' ({len(items)} items)")
        return checklist

    def get_checklist(self, checklist_id: str) -> Dict:
        checklist = self.store.get(CHECKLISTS, checklist_id)
        if checklist is None:
            raise NotFound("Checklist", checklist_id)
        return checklist

    def list_checklists(
        self,
        status: str = None,
        assigned_to: str = None,
        category: str = None,
        mine_section: str = None,
        shift: str = None,
        due_before=None,
        limit: int = None,
        offset: int = 0,
    ) -> Tuple[List[Dict], int]:
        """Filtered page of checklists ordered by due date, plus the unpaginated total."""
        filters = []
        if status:
            filters.append(("status", "==", status))
        if assigned_to:
            filters.append(("assigned_to", "==", assigned_to))
        if category:
            filters.append(("category", "==", category))
        if mine_section:
            filters.append(("mine_section", "==", mine_section))
        if shift:
            filters.append(("shift", "==", shift))
        if due_before:
            try:
                filters.append(("due_date", "<=", to_ts(due_before)))
            except ValueError as e:
                raise InvalidState(str(e))

        if limit is None:
            limit = get_config("list_default_limit", 20)

        total = self.store.count(CHECKLISTS, filters)
        checklists = self.store.query(
            CHECKLISTS, filters, order_by="due_date", limit=limit, offset=offset,
        )
        return checklists, total

    def checklists_for_assignee(self, user_id: str) -> List[Dict]:
        return self.store.query(
            CHECKLISTS, [("assigned_to", "==", user_id)], order_by="due_date",
        )

    def overdue_candidates(self, now: datetime = None) -> List[Dict]:
        """Pending/in-progress checklists whose due date has passed."""
        now = parse_ts(now or self._clock())
        return self.store.query(
            CHECKLISTS,
            [("status", "in", list(SWEEPABLE_STATUSES)), ("due_date", "<", format_ts(now))],
        )

    def delete_checklist(self, checklist_id: str) -> bool:
        deleted = self.store.delete(CHECKLISTS, checklist_id)
        if deleted:
            logger.info(f"[Checklists] Deleted {checklist_id}")
        return deleted

    # ------------------------------------------------------------------
    # Item updates
    # ------------------------------------------------------------------

    def apply_item_update(self, checklist_id: str, item_id: str, patch: Dict, actor: str) -> Dict:
        """
        Merge a patch into one item, re-derive the checklist status and persist.

        Setting is_completed stamps completed_at/completed_by; clearing it
        removes both. Returns the full updated checklist.
        """
        checklist = copy.deepcopy(self.get_checklist(checklist_id))

        item = next((i for i in checklist["items"] if i.get("id") == item_id), None)
        if item is None:
            raise NotFound("Checklist item", item_id, f"Item {item_id} not found in checklist {checklist_id}")

        now = self.now()
        stamp = format_ts(now)

        for key in ITEM_PATCH_FIELDS:
            if key in patch:
                item[key] = patch[key]

        if "is_completed" in patch:
            item["is_completed"] = bool(patch["is_completed"])
            if item["is_completed"]:
                item["completed_at"] = stamp
                item["completed_by"] = actor
            else:
                item["completed_at"] = None
                item["completed_by"] = None

        previous_status = checklist.get("status")
        status = derive_status(checklist["items"], checklist["due_date"], now)

        changes = {
            "items": checklist["items"],
            "status": status,
            "updated_at": stamp,
            "completed_at": stamp if status == COMPLETED else None,
        }
        if not self.store.update(CHECKLISTS, checklist_id, changes):
            raise NotFound("Checklist", checklist_id)
        checklist.update(changes)

        if status != previous_status:
            logger.info(f"[Checklists] {checklist_id} {previous_status} -> {status} (by {actor})")
        if status == COMPLETED and previous_status != COMPLETED and self.recorder is not None:
            self.recorder.record_checklist_completed(now)

        return checklist
