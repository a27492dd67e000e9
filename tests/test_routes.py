"""
API tests against the in-memory store.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from civictrack.main import create_app
from civictrack.services import REPORTERS, REPORTS

from tests.conftest import NOW, offset_north


STAFF = {"X-Staff-Id": "staff-7"}


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def client(store, clock, settings):
    return TestClient(create_app(store=store, clock=clock, settings=settings))


# ============================================================
# AUTH AND ERRORS
# ============================================================

class TestAuthAndErrors:

    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "database": "disabled"}

    def test_staff_header_required(self, client, add_incident):
        add_incident("p1")
        assert client.get("/api/incidents/p1").status_code == 401

    def test_not_found(self, client):
        response = client.get("/api/incidents/missing", headers=STAFF)
        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "not_found"
        assert body["documentId"] == "missing"
        assert body["retryable"] is False

    def test_invalid_time_frame(self, client):
        response = client.get("/api/sla/summary", params={"time_frame": "decade"}, headers=STAFF)
        assert response.status_code == 400


# ============================================================
# INCIDENTS
# ============================================================

class TestIncidentRoutes:

    def test_open_incident(self, client, add_incident):
        add_incident("p1")

        response = client.get("/api/incidents/p1", headers=STAFF)

        assert response.status_code == 200
        body = response.json()
        assert body["incident"]["status"] == "In Progress"
        assert body["incident"]["severity"] == "Medium"
        assert body["timeRemaining"] == "4d 22h"
        assert "lastViewed" in body["updatedFields"]
        assert body["redirectTo"] is None

    def test_severity_change_needs_confirmation(self, client, add_incident, store):
        add_incident("p1", severity="Medium")

        response = client.put("/api/incidents/p1/severity", json={"severity": "Critical"}, headers=STAFF)

        assert response.status_code == 409
        assert response.json()["preview"]["newSeverity"] == "Critical"
        assert response.json()["preview"]["newTimeRemaining"] == "22h"

        response = client.put(
            "/api/incidents/p1/severity", json={"severity": "Critical", "confirmed": True}, headers=STAFF,
        )
        assert response.status_code == 200
        assert response.json()["incident"]["severity"] == "Critical"

    def test_severity_preview(self, client, add_incident):
        add_incident("p1", severity="Medium")

        response = client.get("/api/incidents/p1/severity-preview", params={"severity": "Low"}, headers=STAFF)

        assert response.status_code == 200
        assert response.json()["description"] == "Low priority (7 days)"

    def test_complete(self, client, add_incident):
        add_incident("p1", reporterEmail="citizen@example.com")

        response = client.post("/api/incidents/p1/complete", headers=STAFF)

        assert response.status_code == 200
        body = response.json()
        assert body["resolutionTimeFormatted"] == "2h"
        assert body["trustUpdate"]["trustLevel"] == 15

    def test_flag(self, client, add_incident):
        add_incident("p1", reporterEmail="prankster@example.com")

        response = client.post(
            "/api/incidents/p1/flag", json={"reason": "false_report", "notes": "Nothing there"}, headers=STAFF,
        )

        assert response.status_code == 200
        assert response.json()["trustUpdate"]["trustLevel"] == 5

    def test_flag_invalid_reason(self, client, add_incident):
        add_incident("p1")
        response = client.post("/api/incidents/p1/flag", json={"reason": "boring"}, headers=STAFF)
        assert response.status_code == 400


# ============================================================
# DUPLICATES AND MERGE
# ============================================================

class TestDuplicateRoutes:

    def test_candidates_are_preselected(self, client, add_incident):
        add_incident("a")
        add_incident("b", latitude=offset_north(40.0, 15), incidentType="Graffiti", description="Paint")

        body = client.get("/api/incidents/a/duplicates", headers=STAFF).json()

        assert body["selectedIds"] == ["b"]
        assert body["candidates"][0]["formattedDistance"] == "15m"

    def test_groups(self, client, add_incident):
        add_incident("a", timestamp=NOW - timedelta(hours=5))
        add_incident("b", latitude=offset_north(40.0, 30))

        body = client.get("/api/duplicates/groups", headers=STAFF).json()

        assert body["total"] == 1
        assert body["groups"][0]["primaryId"] == "a"

    def test_related(self, client, add_incident):
        add_incident("a")
        add_incident("done", latitude=offset_north(40.0, 30), status="Completed")

        body = client.get("/api/incidents/a/related", headers=STAFF).json()

        assert [r["id"] for r in body["related"]] == ["done"]

    def test_merge(self, client, add_incident, store):
        add_incident("target")
        add_incident("source")

        response = client.post("/api/incidents/target/merge", json={"sourceIds": ["source"]}, headers=STAFF)

        assert response.status_code == 200
        assert response.json()["mergedIds"] == ["source"]

    def test_partial_merge_is_207(self, client, add_incident):
        add_incident("target")
        add_incident("source")

        response = client.post(
            "/api/incidents/target/merge", json={"sourceIds": ["source", "ghost"]}, headers=STAFF,
        )

        assert response.status_code == 207
        outcome = response.json()["outcome"]
        assert outcome["mergedIds"] == ["source"]
        assert list(outcome["failed"]) == ["ghost"]
        assert response.json()["retryable"] is True


# ============================================================
# REPORTERS AND SLA
# ============================================================

class TestReporterRoutes:

    def test_verification_event(self, client):
        response = client.post("/api/reporters/verification", json={"email": "new@example.com"}, headers=STAFF)
        assert response.status_code == 200
        assert response.json()["created"] is True

    def test_manual_trust(self, client, store):
        store.put(REPORTERS, "r1", {"email": "r@example.com", "trustLevel": 10})

        response = client.put("/api/reporters/r1/trust", json={"trustLevel": 85}, headers=STAFF)

        assert response.status_code == 200
        assert response.json()["trustLabel"] == "Trusted"
        assert response.json()["reporter"]["trustReason"] == "Manual adjustment"

    def test_manual_trust_out_of_range(self, client, store):
        store.put(REPORTERS, "r1", {"email": "r@example.com"})
        response = client.put("/api/reporters/r1/trust", json={"trustLevel": 150}, headers=STAFF)
        assert response.status_code == 400

    def test_priority(self, client, add_incident):
        add_incident("p1", severity="High")
        body = client.get("/api/reporters/priority", params={"incident_id": "p1"}, headers=STAFF).json()
        assert body["priority"] == 60


class TestSlaRoutes:

    def test_summary(self, client, store):
        store.put(REPORTS, "c1", {
            "status": "Completed",
            "timestamp": NOW - timedelta(days=2),
            "deadline": NOW + timedelta(days=1),
            "completedAt": NOW - timedelta(days=1),
            "resolutionTimeHours": 24,
        })

        body = client.get("/api/sla/summary", params={"time_frame": "week"}, headers=STAFF).json()

        assert body["completedIncidents"] == 1
        assert body["percentOnTime"] == 100
        assert body["avgResolutionFormatted"] == "1 day 0 hours"


class TestSettingsRoutes:

    def test_requires_staff(self, client):
        assert client.get("/api/admin/settings").status_code == 401

    def test_get_all(self, client):
        body = client.get("/api/admin/settings", headers=STAFF).json()
        assert set(body) == {"duplicate_detection", "deadline", "trust", "catalog"}
        assert body["deadline"]["timeframe_hours"]["Critical"] == 24

    def test_unknown_section(self, client):
        assert client.get("/api/admin/settings/nope", headers=STAFF).status_code == 404
        assert client.put("/api/admin/settings/nope", json={"x": 1}, headers=STAFF).status_code == 404

    def test_update_reaches_services(self, client, settings):
        response = client.put(
            "/api/admin/settings/deadline",
            json={"timeframe_hours": {"Critical": 12}, "fallback_timeframe_hours": 48},
            headers=STAFF,
        )

        assert response.status_code == 200
        assert response.json()["config"]["timeframe_hours"]["Critical"] == 12
        assert client.get("/api/admin/settings/deadline", headers=STAFF).json()["fallback_timeframe_hours"] == 48
        assert client.app.state.services.engine.settings.timeframe_hours["Critical"] == 12
        assert settings.deadline.fallback_timeframe_hours == 48
