# ============================================================================
# MineSafe - Alert Notification Sinks
# ============================================================================
# Outbound transport for newly created alerts. Push/SMS gateways plug in by
# implementing NotificationSink; LogSink is the built-in console/log sink.
# ============================================================================

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    """Result of a delivery attempt."""
    success: bool
    alert_id: str
    channel: str
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "success": self.success,
            "alert_id": self.alert_id,
            "channel": self.channel,
            "error": self.error,
        }


class NotificationSink(ABC):
    """Abstract base class for alert notification channels."""

    channel_name: str = "base"

    @abstractmethod
    def publish(self, alert: Dict) -> DeliveryResult:
        """Deliver one alert through this channel."""
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the channel is configured."""
        pass


class LogSink(NotificationSink):
    """Writes each alert to the application log."""

    channel_name = "log"

    _LEVELS = {
        "info": logging.INFO,
        "warning": logging.WARNING,
        "urgent": logging.WARNING,
        "emergency": logging.CRITICAL,
    }

    def __init__(self, log: logging.Logger = None):
        self.log = log or logging.getLogger("minesafe.alerts.broadcast")

    def is_configured(self) -> bool:
        return True

    def publish(self, alert: Dict) -> DeliveryResult:
        level = self._LEVELS.get(alert.get("priority"), logging.INFO)
        self.log.log(
            level,
            f"[ALERT:{alert.get('priority', 'info').upper()}] {alert.get('title')} - "
            f"{alert.get('message')} (sections={','.join(alert.get('target_sections', []))} "
            f"roles={','.join(alert.get('target_roles', []))})",
        )
        return DeliveryResult(success=True, alert_id=alert["id"], channel=self.channel_name)
