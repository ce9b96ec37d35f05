"""
MineSafe - Incident Tests
==========================
Tests: reporting and validation, severity-driven alerts, forward-only
status flow, resolution stamps, listing, daily counters.
"""

from datetime import timedelta

import pytest

from minesafe.errors import InvalidState, NotFound, StoreUnavailable
from minesafe.incidents import IncidentService
from minesafe.incidents.models import can_transition
from tests.conftest import NOW, daily_counters, incident_data


class TestReportIncident:

    def test_new_incident(self, services):
        incident = services.incidents.create_incident(incident_data(), "miner-7", "Sipho Dlamini")

        assert incident["status"] == "reported"
        assert incident["reported_by"] == "miner-7"
        assert incident["reported_by_name"] == "Sipho Dlamini"
        assert incident["location"]["section"] == "shaft-a"
        assert incident["resolved_at"] is None
        assert incident["created_at"] == incident["updated_at"] == "2024-06-10 12:00:00"
        assert services.incidents.get_incident(incident["id"]) == incident

    def test_caller_cannot_preset_status(self, services):
        incident = services.incidents.create_incident(incident_data(status="closed"), "miner-7")
        assert incident["status"] == "reported"

    @pytest.mark.parametrize("overrides", [
        {"title": ""},
        {"type": "volcano"},
        {"severity": "catastrophic"},
        {"location": {"section": "shaft-a"}},
        {"location": None},
        {"location": "shaft-a"},
        {"injuries": "lots"},
        {"injuries": -1},
        {"witnesses": "Sipho Dlamini"},
        {"equipment_involved": {"id": "LHD-04"}},
    ])
    def test_validation(self, services, overrides):
        with pytest.raises(InvalidState):
            services.incidents.create_incident(incident_data(**overrides), "miner-7")

    def test_injury_count_is_stored_as_int(self, services):
        incident = services.incidents.create_incident(incident_data(injuries="2"), "miner-7")
        assert incident["injuries"] == 2

    def test_counts_toward_daily_stats(self, services, store):
        services.incidents.create_incident(incident_data(), "miner-7")
        services.incidents.create_incident(incident_data(), "miner-8")
        assert daily_counters(store, "2024-06-10")["incidents_reported"] == 2


class TestSeverityAlerts:

    def test_critical_raises_emergency_alert(self, services, sink):
        services.incidents.create_incident(
            incident_data(severity="critical", title="Fall of ground"), "miner-7",
        )
        assert len(sink.published) == 1
        alert = sink.published[0]
        assert alert["priority"] == "emergency"
        assert alert["title"] == "New CRITICAL Incident: Fall of ground"
        assert "shaft-a" in alert["message"]
        assert alert["target_sections"] == ["all"]
        assert alert["target_roles"] == ["admin", "supervisor"]

    def test_high_raises_urgent_alert(self, services, sink):
        services.incidents.create_incident(incident_data(severity="high"), "miner-7")
        assert [a["priority"] for a in sink.published] == ["urgent"]

    @pytest.mark.parametrize("severity", ["low", "medium"])
    def test_lower_severities_raise_nothing(self, services, sink, severity):
        services.incidents.create_incident(incident_data(severity=severity), "miner-7")
        assert sink.published == []

    def test_alert_failure_does_not_lose_incident(self, store, clock):
        class BrokenAlerts:
            def create_alert(self, fields):
                raise StoreUnavailable("alerts down")

        incidents = IncidentService(store, alerts=BrokenAlerts(), clock=clock)
        incident = incidents.create_incident(incident_data(severity="critical"), "miner-7")
        assert incidents.get_incident(incident["id"])["severity"] == "critical"


class TestStatusFlow:

    @pytest.mark.parametrize("current,target,allowed", [
        ("reported", "investigating", True),
        ("reported", "resolved", True),
        ("investigating", "closed", True),
        ("resolved", "resolved", True),
        ("resolved", "investigating", False),
        ("closed", "reported", False),
    ])
    def test_can_transition(self, current, target, allowed):
        assert can_transition(current, target) is allowed

    def test_resolving_stamps_resolved_at(self, services, clock, store):
        incident = services.incidents.create_incident(incident_data(), "miner-7")
        services.incidents.update_status(incident["id"], "investigating", actor="sup-1")

        clock.advance(hours=3)
        resolved = services.incidents.update_status(incident["id"], "resolved", actor="sup-1")

        assert resolved["status"] == "resolved"
        assert resolved["resolved_at"] == "2024-06-10 15:00:00"
        assert resolved["updated_at"] == "2024-06-10 15:00:00"
        assert daily_counters(store, "2024-06-10")["incidents_resolved"] == 1

    def test_closing_keeps_resolved_at(self, services, clock):
        incident = services.incidents.create_incident(incident_data(), "miner-7")
        services.incidents.update_status(incident["id"], "resolved")
        clock.advance(days=1)
        closed = services.incidents.update_status(incident["id"], "closed")
        assert closed["resolved_at"] == "2024-06-10 12:00:00"

    def test_skipping_resolution_leaves_resolved_at_unset(self, services):
        incident = services.incidents.create_incident(incident_data(), "miner-7")
        closed = services.incidents.update_status(incident["id"], "closed")
        assert closed["resolved_at"] is None

    def test_going_back_is_rejected(self, services):
        incident = services.incidents.create_incident(incident_data(), "miner-7")
        services.incidents.update_status(incident["id"], "resolved")
        with pytest.raises(InvalidState):
            services.incidents.update_status(incident["id"], "reported")
        assert services.incidents.get_incident(incident["id"])["status"] == "resolved"

    def test_same_status_is_a_no_op(self, services, clock, store):
        incident = services.incidents.create_incident(incident_data(), "miner-7")
        services.incidents.update_status(incident["id"], "resolved")
        clock.advance(hours=1)
        again = services.incidents.update_status(incident["id"], "resolved")
        assert again["resolved_at"] == "2024-06-10 12:00:00"
        assert daily_counters(store, "2024-06-10")["incidents_resolved"] == 1

    def test_unknown_status(self, services):
        incident = services.incidents.create_incident(incident_data(), "miner-7")
        with pytest.raises(InvalidState):
            services.incidents.update_status(incident["id"], "archived")

    def test_unknown_incident(self, services):
        with pytest.raises(NotFound):
            services.incidents.update_status("missing", "resolved")


class TestUpdateIncident:

    def test_descriptive_fields(self, services, clock):
        incident = services.incidents.create_incident(incident_data(), "miner-7")
        clock.advance(minutes=20)
        updated = services.incidents.update_incident(incident["id"], {
            "root_cause": "Scaling skipped",
            "assigned_to": "sup-1",
            "corrective_actions": ["Re-scale tip 3"],
        })
        assert updated["root_cause"] == "Scaling skipped"
        assert updated["updated_at"] == "2024-06-10 12:20:00"
        assert services.incidents.get_incident(incident["id"])["assigned_to"] == "sup-1"

    def test_protected_fields_ignored(self, services):
        incident = services.incidents.create_incident(incident_data(), "miner-7")
        updated = services.incidents.update_incident(incident["id"], {
            "reported_by": "someone-else",
            "resolved_at": "2020-01-01 00:00:00",
        })
        assert updated["reported_by"] == "miner-7"
        assert updated["resolved_at"] is None

    def test_status_goes_through_state_machine(self, services):
        incident = services.incidents.create_incident(incident_data(), "miner-7")
        services.incidents.update_status(incident["id"], "closed")
        with pytest.raises(InvalidState):
            services.incidents.update_incident(incident["id"], {"status": "investigating"})

    def test_invalid_severity(self, services):
        incident = services.incidents.create_incident(incident_data(), "miner-7")
        with pytest.raises(InvalidState):
            services.incidents.update_incident(incident["id"], {"severity": "meh"})

    def test_invalid_injury_count(self, services):
        incident = services.incidents.create_incident(incident_data(), "miner-7")
        with pytest.raises(InvalidState):
            services.incidents.update_incident(incident["id"], {"injuries": "several"})
        assert services.incidents.get_incident(incident["id"])["injuries"] == 0


class TestListIncidents:

    def test_filters_newest_first(self, services, clock):
        first = services.incidents.create_incident(incident_data(severity="low"), "miner-7")
        clock.advance(hours=1)
        second = services.incidents.create_incident(
            incident_data(severity="low", location={"section": "shaft-b", "level": "L2"}), "miner-7",
        )
        clock.advance(hours=1)
        services.incidents.create_incident(incident_data(severity="high"), "miner-8")

        records, total = services.incidents.list_incidents(severity="low")
        assert total == 2
        assert [r["id"] for r in records] == [second["id"], first["id"]]

        by_section, _ = services.incidents.list_incidents(section="shaft-b")
        assert [r["id"] for r in by_section] == [second["id"]]

    def test_time_window(self, services, clock):
        services.incidents.create_incident(incident_data(), "miner-7")
        clock.advance(days=2)
        recent = services.incidents.create_incident(incident_data(), "miner-7")

        records, total = services.incidents.list_incidents(start=NOW + timedelta(days=1))
        assert total == 1
        assert records[0]["id"] == recent["id"]

    def test_by_reporter(self, services):
        services.incidents.create_incident(incident_data(), "miner-7")
        services.incidents.create_incident(incident_data(), "miner-8")
        assert len(services.incidents.incidents_by_reporter("miner-8")) == 1

    def test_delete(self, services):
        incident = services.incidents.create_incident(incident_data(), "miner-7")
        assert services.incidents.delete_incident(incident["id"]) is True
        with pytest.raises(NotFound):
            services.incidents.get_incident(incident["id"])
