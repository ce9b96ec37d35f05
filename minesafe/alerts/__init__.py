"""
MineSafe Alerts Module
Broadcast alerts with section/role targeting, expiry and acknowledgment.
"""
from .models import matches_target
from .notify import DeliveryResult, LogSink, NotificationSink
from .service import AlertService
from .routes import register_alert_routes

__all__ = [
    "AlertService",
    "NotificationSink",
    "LogSink",
    "DeliveryResult",
    "matches_target",
    "register_alert_routes",
]
