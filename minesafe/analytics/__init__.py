"""
MineSafe Analytics Module
Incident/checklist statistics, the safety score, daily activity counters
and periodic report snapshots.
"""
from .daily import ActivityRecorder
from .stats import SafetyAnalytics, completion_rate, score_from
from .reports import SafetyReporter
from .routes import register_analytics_routes

__all__ = [
    "ActivityRecorder",
    "SafetyAnalytics",
    "SafetyReporter",
    "completion_rate",
    "score_from",
    "register_analytics_routes",
]
