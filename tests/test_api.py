"""
MineSafe - HTTP API Tests
==========================
Tests: request handling, actor headers, error mapping, end-to-end flows
through the FastAPI routes.
"""

from datetime import timedelta

import pytest

from tests.conftest import MINER, NOW, SUPERVISOR, checklist_data, incident_data


# ============================================================================
# HEALTH & ERROR MAPPING
# ============================================================================

class TestHealth:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["ok"] is True
        assert data["time"] == "2024-06-10 12:00:00"
        assert data["scheduler"]["running"] is False


class TestErrorMapping:

    def test_not_found_is_404(self, client):
        resp = client.get("/api/incidents/missing")
        assert resp.status_code == 404
        assert resp.json()["ok"] is False

    def test_invalid_state_is_400(self, client):
        resp = client.post("/api/incidents", headers=MINER, json=incident_data(type="volcano"))
        assert resp.status_code == 400
        assert "volcano" in resp.json()["error"]

    def test_missing_fields_is_400(self, client):
        resp = client.post("/api/incidents", headers=MINER, json={"title": "only a title"})
        assert resp.status_code == 400

    def test_missing_actor_is_400(self, client):
        resp = client.post("/api/incidents", json=incident_data())
        assert resp.status_code == 400

    def test_non_object_body_is_400(self, client):
        resp = client.post("/api/alerts", headers=SUPERVISOR, json=["not", "an", "object"])
        assert resp.status_code == 400

    def test_store_outage_is_503(self, client, store, monkeypatch):
        from minesafe.errors import StoreUnavailable

        def down(*args, **kwargs):
            raise StoreUnavailable("disk I/O error")

        monkeypatch.setattr(store, "get", down)
        resp = client.get("/api/alerts/anything")
        assert resp.status_code == 503
        assert resp.json() == {"ok": False, "error": "disk I/O error"}


# ============================================================================
# INCIDENTS
# ============================================================================

class TestIncidentRoutes:

    def test_report_and_progress(self, client):
        resp = client.post("/api/incidents", headers=MINER, json=incident_data(severity="high"))
        assert resp.status_code == 200
        incident = resp.json()["incident"]
        assert incident["reported_by"] == "miner-7"
        assert incident["reported_by_name"] == "Sipho Dlamini"

        resp = client.post(f"/api/incidents/{incident['id']}/status", headers=SUPERVISOR,
                           json={"status": "resolved"})
        assert resp.status_code == 200
        assert resp.json()["incident"]["resolved_at"] == "2024-06-10 12:00:00"

        resp = client.post(f"/api/incidents/{incident['id']}/status", headers=SUPERVISOR,
                           json={"status": "reported"})
        assert resp.status_code == 400

    def test_list_and_mine(self, client):
        client.post("/api/incidents", headers=MINER, json=incident_data(severity="low"))
        client.post("/api/incidents", headers=SUPERVISOR, json=incident_data(severity="critical"))

        data = client.get("/api/incidents", params={"severity": "low"}).json()
        assert data["total"] == 1

        mine = client.get("/api/incidents/mine", headers=SUPERVISOR).json()["incidents"]
        assert [i["severity"] for i in mine] == ["critical"]

    def test_bad_limit(self, client):
        assert client.get("/api/incidents", params={"limit": "lots"}).status_code == 400

    @pytest.mark.parametrize("overrides", [
        {"location": "shaft-a"},
        {"injuries": "lots"},
        {"witnesses": "Sipho"},
    ])
    def test_malformed_report_is_400(self, client, overrides):
        resp = client.post("/api/incidents", headers=MINER, json=incident_data(**overrides))
        assert resp.status_code == 400
        assert resp.json()["ok"] is False

    def test_update_and_delete(self, client):
        incident = client.post("/api/incidents", headers=MINER, json=incident_data()).json()["incident"]

        resp = client.put(f"/api/incidents/{incident['id']}", headers=SUPERVISOR,
                          json={"root_cause": "Missed scaling"})
        assert resp.json()["incident"]["root_cause"] == "Missed scaling"

        assert client.delete(f"/api/incidents/{incident['id']}").status_code == 200
        assert client.delete(f"/api/incidents/{incident['id']}").status_code == 404


# ============================================================================
# CHECKLISTS
# ============================================================================

class TestChecklistRoutes:

    def test_complete_checklist_flow(self, client):
        resp = client.post("/api/checklists", headers=SUPERVISOR, json=checklist_data(items=2))
        assert resp.status_code == 200
        checklist = resp.json()["checklist"]
        assert checklist["status"] == "pending"

        for item in checklist["items"]:
            resp = client.patch(
                f"/api/checklists/{checklist['id']}/items/{item['id']}",
                headers=MINER,
                json={"is_completed": True, "notes": "ok"},
            )
            assert resp.status_code == 200

        final = resp.json()["checklist"]
        assert final["status"] == "completed"
        assert final["items"][1]["completed_by"] == "miner-7"

        mine = client.get("/api/checklists/mine", headers=MINER).json()["checklists"]
        assert [c["id"] for c in mine] == [checklist["id"]]

    def test_empty_items_rejected(self, client):
        resp = client.post("/api/checklists", headers=SUPERVISOR, json=checklist_data(items=0))
        assert resp.status_code == 400

    def test_malformed_items_are_400(self, client):
        data = checklist_data()
        data["items"] = ["Check ventilation", "Test gas monitor"]
        resp = client.post("/api/checklists", headers=SUPERVISOR, json=data)
        assert resp.status_code == 400

    def test_unknown_item_is_404(self, client):
        checklist = client.post("/api/checklists", headers=SUPERVISOR, json=checklist_data()).json()["checklist"]
        resp = client.patch(f"/api/checklists/{checklist['id']}/items/nope", headers=MINER,
                            json={"is_completed": True})
        assert resp.status_code == 404

    def test_sweep_endpoint(self, client, clock):
        client.post("/api/checklists", headers=SUPERVISOR, json=checklist_data(due=NOW + timedelta(hours=1)))
        clock.advance(hours=2)

        data = client.post("/api/checklists/sweep").json()
        assert data["updated"] == 1
        assert data["alert_id"]

        overdue = client.get("/api/checklists", params={"status": "overdue"}).json()
        assert overdue["total"] == 1


# ============================================================================
# ALERTS
# ============================================================================

class TestAlertRoutes:

    def test_targeted_listing(self, client):
        resp = client.post("/api/alerts", headers=SUPERVISOR, json={
            "title": "Roof bolting inspection",
            "target_sections": ["all"],
            "target_roles": ["supervisor"],
        })
        assert resp.status_code == 200
        assert resp.json()["alert"]["created_by"] == "sup-1"

        visible = client.get("/api/alerts/active", params={"section": "B", "role": "supervisor"}).json()
        assert len(visible["alerts"]) == 1
        hidden = client.get("/api/alerts/active", params={"role": "operator"}).json()
        assert hidden["alerts"] == []

    def test_single_target_names(self, client):
        resp = client.post("/api/alerts", headers=SUPERVISOR, json={
            "title": "Gas", "target_sections": "all", "target_roles": "supervisor",
        })
        assert resp.status_code == 200
        assert resp.json()["alert"]["target_sections"] == ["all"]

        visible = client.get("/api/alerts/active", params={"section": "B", "role": "supervisor"}).json()
        assert len(visible["alerts"]) == 1

    def test_malformed_targets_are_400(self, client):
        resp = client.post("/api/alerts", headers=SUPERVISOR, json={
            "title": "Gas", "target_roles": {"role": "supervisor"},
        })
        assert resp.status_code == 400
        assert client.get("/api/alerts/active").json()["alerts"] == []

    def test_acknowledge(self, client):
        alert = client.post("/api/alerts", headers=SUPERVISOR, json={"title": "x"}).json()["alert"]

        for _ in range(2):
            resp = client.post(f"/api/alerts/{alert['id']}/acknowledge", headers=MINER)
            assert resp.status_code == 200
        assert resp.json()["alert"]["acknowledged_by"] == ["miner-7"]

        anonymous = client.post(f"/api/alerts/{alert['id']}/acknowledge")
        assert anonymous.status_code == 400

    def test_emergency(self, client):
        resp = client.post("/api/alerts/emergency", headers=SUPERVISOR,
                           json={"title": "Evacuate", "message": "Smoke on L3"})
        alert = resp.json()["alert"]
        assert alert["priority"] == "emergency"
        assert alert["target_roles"] == ["all"]

    def test_resolve_and_delete(self, client):
        alert = client.post("/api/alerts", headers=SUPERVISOR, json={"title": "x"}).json()["alert"]
        resp = client.post(f"/api/alerts/{alert['id']}/status", json={"status": "resolved"})
        assert resp.json()["alert"]["status"] == "resolved"
        assert client.get("/api/alerts/active").json()["alerts"] == []
        assert client.delete(f"/api/alerts/{alert['id']}").status_code == 200
        assert client.get(f"/api/alerts/{alert['id']}").status_code == 404


# ============================================================================
# ANALYTICS
# ============================================================================

class TestAnalyticsRoutes:

    def test_safety_score(self, client):
        client.post("/api/incidents", headers=MINER, json=incident_data(severity="high"))
        data = client.get("/api/analytics/safety-score").json()
        assert data["ok"] is True
        assert data["score"] == 90
        assert data["factors"]["incident_impact"] == -10

    def test_dashboard(self, client):
        client.post("/api/incidents", headers=MINER, json=incident_data(severity="critical"))
        dashboard = client.get("/api/analytics/dashboard").json()["dashboard"]
        assert dashboard["today"]["critical_incidents"] == 1

    def test_window_stats(self, client):
        client.post("/api/incidents", headers=MINER, json=incident_data())
        stats = client.get("/api/analytics/incidents", params={
            "start": "2024-06-10 00:00:00", "end": "2024-06-10 23:59:59",
        }).json()["stats"]
        assert stats["total"] == 1
        assert stats["by_severity"]["medium"] == 1

    def test_bad_window(self, client):
        resp = client.get("/api/analytics/checklists", params={
            "start": "2024-06-11 00:00:00", "end": "2024-06-10 00:00:00",
        })
        assert resp.status_code == 400

    def test_daily_counters(self, client):
        client.post("/api/incidents", headers=MINER, json=incident_data())
        days = client.get("/api/analytics/daily").json()["days"]
        assert days[-1]["date"] == "2024-06-10"
        assert days[-1]["incidents_reported"] == 1

    def test_report_lookup(self, client):
        assert client.get("/api/analytics/reports/daily/2024-06-09").status_code == 404
        assert client.get("/api/analytics/reports/daily/not-a-date").status_code == 400
        client.app.state.services.reporter.daily_report()
        report = client.get("/api/analytics/reports/daily/2024-06-09").json()["report"]
        assert report["date"] == "2024-06-09"
