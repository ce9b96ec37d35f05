"""
MineSafe Entity Store
Document-style get/query/count/set/update/delete over incidents, checklists,
alerts and daily statistics.
"""
from .base import (
    EntityStore,
    INCIDENTS,
    CHECKLISTS,
    ALERTS,
    DAILY_STATS,
    DAILY_REPORTS,
    WEEKLY_SUMMARIES,
)
from .sqlite import SQLiteEntityStore

__all__ = [
    "EntityStore",
    "SQLiteEntityStore",
    "INCIDENTS",
    "CHECKLISTS",
    "ALERTS",
    "DAILY_STATS",
    "DAILY_REPORTS",
    "WEEKLY_SUMMARIES",
]
