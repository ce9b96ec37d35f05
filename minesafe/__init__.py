"""
MineSafe - Mine-site safety management core.

Incidents, inspection checklists, broadcast alerts and a rolling safety
score over a pluggable entity store.
"""
from .errors import InvalidState, NotFound, PartialBatchFailure, SafetyError, StoreUnavailable

__version__ = "1.0.0"

__all__ = [
    "SafetyError",
    "NotFound",
    "InvalidState",
    "StoreUnavailable",
    "PartialBatchFailure",
]
