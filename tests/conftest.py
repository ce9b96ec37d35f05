"""
MineSafe - Test Infrastructure (conftest.py)
=============================================
Provides:
  - Per-test SQLite store in a temporary directory
  - Fixed, steppable site clock
  - Wired services (alerts, incidents, checklists, sweep, analytics, reports)
  - FastAPI TestClient with actor headers
  - Record builders and store assertion helpers
"""

import os
import sys
import tempfile
from datetime import datetime, timedelta

import pytest

# Ensure project root is on path
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT_DIR)

# main builds a module-level app on import; keep its database out of the tree
os.environ.setdefault(
    "MINESAFE_DB_PATH", os.path.join(tempfile.mkdtemp(prefix="minesafe_test_"), "import.db")
)

from minesafe.alerts.notify import DeliveryResult, NotificationSink  # noqa: E402
from minesafe.config import SafetyConfig  # noqa: E402
from minesafe.store import DAILY_STATS, SQLiteEntityStore  # noqa: E402

# Monday, mid-shift
NOW = datetime(2024, 6, 10, 12, 0, 0)

SUPERVISOR = {"X-User-Id": "sup-1", "X-User-Name": "Thandi Mokoena"}
MINER = {"X-User-Id": "miner-7", "X-User-Name": "Sipho Dlamini"}


# ============================================================================
# Test doubles
# ============================================================================

class FixedClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime = NOW):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, when: datetime):
        self.current = when
        return self.current


class RecordingSink(NotificationSink):
    channel_name = "recording"

    def __init__(self):
        self.published = []

    def is_configured(self) -> bool:
        return True

    def publish(self, alert):
        self.published.append(alert)
        return DeliveryResult(success=True, alert_id=alert["id"], channel=self.channel_name)


class ExplodingSink(NotificationSink):
    channel_name = "exploding"

    def is_configured(self) -> bool:
        return True

    def publish(self, alert):
        raise RuntimeError("transport down")


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def reset_config():
    """Drop process-wide config overrides between tests."""
    SafetyConfig.reset()
    yield
    SafetyConfig.reset()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store(tmp_path):
    return SQLiteEntityStore(tmp_path / "minesafe_test.db")


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def services(store, clock, sink):
    from main import build_services
    return build_services(store, clock=clock, sinks=[sink])


@pytest.fixture
def client(store, clock, sink):
    """FastAPI TestClient over the test store and clock."""
    from starlette.testclient import TestClient
    from main import create_app
    app = create_app(store=store, clock=clock, sinks=[sink])
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


# ============================================================================
# Builders & helpers
# ============================================================================

def incident_data(**overrides):
    data = {
        "title": "Loose rock at tip 3",
        "description": "Hanging wall showing cracks",
        "type": "near_miss",
        "severity": "medium",
        "location": {"section": "shaft-a", "level": "L4"},
    }
    data.update(overrides)
    return data


def checklist_data(items=3, due=None, **overrides):
    due = due if due is not None else NOW + timedelta(hours=8)
    data = {
        "title": "Pre-shift ventilation check",
        "category": "ventilation",
        "mine_section": "shaft-a",
        "shift": "day",
        "assigned_to": "miner-7",
        "assigned_to_name": "Sipho Dlamini",
        "due_date": due.strftime("%Y-%m-%d %H:%M:%S"),
        "items": [{"description": f"Check item {i + 1}"} for i in range(items)],
    }
    data.update(overrides)
    return data


def complete_items(engine, checklist, count=None, actor="miner-7"):
    """Mark the first `count` items (default all) complete; returns the final record."""
    items = checklist["items"] if count is None else checklist["items"][:count]
    for item in items:
        checklist = engine.apply_item_update(checklist["id"], item["id"], {"is_completed": True}, actor)
    return checklist


def daily_counters(store, day: str):
    return store.get(DAILY_STATS, day) or {}
