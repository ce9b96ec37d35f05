# ============================================================================
# MineSafe - Entity Store Interface
# ============================================================================

import logging
import re
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..config import format_date, format_ts
from ..errors import PartialBatchFailure, StoreUnavailable

logger = logging.getLogger(__name__)

# Record kinds
INCIDENTS = "incidents"
CHECKLISTS = "checklists"
ALERTS = "alerts"
DAILY_STATS = "analytics"
DAILY_REPORTS = "daily_reports"
WEEKLY_SUMMARIES = "weekly_summaries"

KINDS = (INCIDENTS, CHECKLISTS, ALERTS, DAILY_STATS, DAILY_REPORTS, WEEKLY_SUMMARIES)

OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in")

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")

Filter = Tuple[str, str, Any]


def normalize_value(value: Any) -> Any:
    """Convert filter/record values to their stored representation."""
    if isinstance(value, datetime):
        return format_ts(value)
    if isinstance(value, date):
        return format_date(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [normalize_value(v) for v in value]
    return value


def validate_filters(filters: Iterable[Filter]) -> List[Filter]:
    """Check field names and operators; return filters with normalised values."""
    checked = []
    for f in filters:
        try:
            field, op, value = f
        except (TypeError, ValueError):
            raise ValueError(f"Filter must be a (field, op, value) tuple, got {f!r}")
        if not isinstance(field, str) or not _FIELD_RE.match(field):
            raise ValueError(f"Invalid filter field: {field!r}")
        if op not in OPERATORS:
            raise ValueError(f"Unsupported operator {op!r} (expected one of {OPERATORS})")
        if op == "in" and not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError(f"'in' filter on {field} needs a collection")
        checked.append((field, op, normalize_value(value)))
    return checked


def validate_kind(kind: str):
    if kind not in KINDS:
        raise ValueError(f"Unknown record kind: {kind!r}")


class EntityStore(ABC):
    """
    Uniform document-store interface over the record kinds.

    Filters are (field, op, value) tuples combined with AND, in order.
    Dotted field names address nested keys (``location.section``).
    """

    @abstractmethod
    def get(self, kind: str, entity_id: str) -> Optional[Dict]:
        """Return the record or None."""

    @abstractmethod
    def query(
        self,
        kind: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict]:
        """Return matching records."""

    @abstractmethod
    def count(self, kind: str, filters: Sequence[Filter] = ()) -> int:
        """Count matching records."""

    @abstractmethod
    def set(self, kind: str, entity_id: str, record: Dict) -> None:
        """Create or replace a record."""

    @abstractmethod
    def update(self, kind: str, entity_id: str, fields: Dict) -> bool:
        """Shallow-merge fields into a record. False if absent."""

    @abstractmethod
    def delete(self, kind: str, entity_id: str) -> bool:
        """Remove a record. False if absent."""

    @abstractmethod
    def increment(
        self, kind: str, entity_id: str, deltas: Dict[str, int], defaults: Optional[Dict] = None
    ) -> None:
        """Atomically add deltas to numeric fields, creating the record if needed."""

    def batch_update(self, kind: str, updates: Sequence[Tuple[str, Dict]]) -> int:
        """
        Apply updates one by one, continuing past individual failures.

        Returns the number of records updated. Raises PartialBatchFailure
        when at least one update failed; its ``succeeded`` is the real count.
        Stores with transactions override this with an atomic batch.
        """
        succeeded = 0
        failed = []
        for entity_id, fields in updates:
            try:
                if self.update(kind, entity_id, fields):
                    succeeded += 1
            except StoreUnavailable as e:
                logger.warning(f"[Store] batch update of {kind}/{entity_id} failed: {e}")
                failed.append(entity_id)
        if failed and len(failed) == len(updates):
            raise StoreUnavailable(f"Batch update of {len(failed)} {kind} records failed")
        if failed:
            raise PartialBatchFailure(succeeded, failed)
        return succeeded
