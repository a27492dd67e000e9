"""
Tests for reporter trust scoring, trust events and incident priority.
"""

from datetime import timedelta

import pytest

from civictrack.services import (
    REPORTERS,
    USERS,
    InvalidInput,
    NotFound,
    calculate_incident_priority,
    trust_level,
    trust_level_label,
)

from tests.conftest import NOW


# ============================================================
# FORMULA
# ============================================================

class TestTrustLevel:

    def test_new_reporter(self):
        assert trust_level(0, 0, 0, None, NOW) == 10

    def test_history_and_tenure(self):
        # 10 base + 20 verified + 8 accuracy + 3 tenure
        assert trust_level(10, 4, 0, NOW - timedelta(days=90), NOW) == 41

    def test_accuracy_rounds_half_up(self):
        # 1/8 * 20 = 2.5 -> 3
        assert trust_level(8, 1, 0, None, NOW) == 10 + 5 + 3

    def test_penalty_floor(self):
        assert trust_level(10, 4, 1, NOW - timedelta(days=90), NOW) == 31
        assert trust_level(10, 4, 9, NOW - timedelta(days=90), NOW) == 5

    def test_caps(self):
        assert trust_level(100, 100, 0, NOW - timedelta(days=3650), NOW) == 90

    def test_stored_timestamp_shapes(self):
        created = (NOW - timedelta(days=60)).isoformat()
        assert trust_level(0, 0, 0, created, NOW) == 12


class TestLabelsAndPriority:

    @pytest.mark.parametrize("level,label", [
        (0, "New"), (None, "New"), (20, "Basic"), (49, "Basic"),
        (50, "Reliable"), (80, "Trusted"), (100, "Verified"),
    ])
    def test_labels(self, level, label):
        assert trust_level_label(level) == label

    @pytest.mark.parametrize("trust,severity,priority", [
        (0, "Low", 10),
        (58, "High", 65),
        (100, "Critical", 100),
        (35, None, 33),
        (35, "Whatever", 33),
    ])
    def test_priority(self, trust, severity, priority):
        assert calculate_incident_priority(trust, severity) == priority


# ============================================================
# TRUST EVENTS
# ============================================================

@pytest.fixture
def reporter(store):
    store.put(REPORTERS, "r1", {
        "email": "regular@example.com",
        "reportCount": 10,
        "verifiedReports": 4,
        "falseReports": 0,
        "trustLevel": 30,
        "createdAt": NOW - timedelta(days=90),
    })
    return "r1"


class TestTrustEvents:

    @pytest.mark.asyncio
    async def test_verification_applies_formula_and_bonus(self, services, store, reporter):
        update = await services.trust.record_verification("regular@example.com")

        # 10 + 25 + 10 + 3, plus the completion bonus
        assert update.trust_level == 58
        assert update.previous_trust_level == 30
        assert update.created is False
        stored = await store.get(REPORTERS, reporter)
        assert stored["verifiedReports"] == 5
        assert stored["trustLevel"] == 58

    @pytest.mark.asyncio
    async def test_false_report_penalty(self, services, store, reporter):
        update = await services.trust.record_false_report("regular@example.com")

        assert update.trust_level == 31
        assert (await store.get(REPORTERS, reporter))["falseReports"] == 1

    @pytest.mark.asyncio
    async def test_bonus_is_clamped(self, services, store):
        store.put(REPORTERS, "vet", {
            "email": "vet@example.com", "reportCount": 50, "verifiedReports": 50,
            "createdAt": NOW - timedelta(days=3650),
        })

        update = await services.trust.record_verification("vet@example.com")

        assert update.trust_level == 100

    @pytest.mark.asyncio
    async def test_unknown_email_is_seeded(self, services, store):
        verified = await services.trust.record_verification("first@example.com")
        flagged = await services.trust.record_false_report("second@example.com")

        assert (verified.trust_level, verified.verified_reports, verified.report_count) == (15, 1, 1)
        assert (flagged.trust_level, flagged.false_reports) == (5, 1)
        assert len(await store.query(REPORTERS)) == 2

    @pytest.mark.asyncio
    async def test_users_collection_fallback(self, services, store):
        store.put(USERS, "u1", {"reporterEmail": "legacy@example.com", "verifiedReports": 0})

        update = await services.trust.record_verification("legacy@example.com")

        assert update.collection == USERS
        assert update.report_count == 1
        # 10 + 5 + 20 accuracy, plus the completion bonus
        assert update.trust_level == 45
        assert (await store.get(USERS, "u1"))["trustLevel"] == 45
        assert await store.query(REPORTERS) == []

    @pytest.mark.asyncio
    async def test_reporter_collection_wins(self, services, store, reporter):
        store.put(USERS, "u1", {"email": "regular@example.com"})

        update = await services.trust.record_verification("regular@example.com")

        assert update.collection == REPORTERS
        assert update.reporter_id == reporter

    @pytest.mark.asyncio
    async def test_blank_email(self, services):
        with pytest.raises(InvalidInput):
            await services.trust.record_verification("  ")


class TestManualAdjustment:

    @pytest.mark.asyncio
    async def test_set_trust_level(self, services, reporter):
        updated = await services.trust.set_trust_level(reporter, 75, "Known community volunteer")

        assert updated.trust_level == 75
        assert updated.trust_reason == "Known community volunteer"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("level", [-1, 101, "50", True, 50.5])
    async def test_rejects_out_of_range(self, services, reporter, level):
        with pytest.raises(InvalidInput):
            await services.trust.set_trust_level(reporter, level)

    @pytest.mark.asyncio
    async def test_unknown_reporter(self, services):
        with pytest.raises(NotFound):
            await services.trust.set_trust_level("nobody", 50)


class TestPriorityForIncident:

    @pytest.mark.asyncio
    async def test_uses_reporter_trust(self, services, add_incident, reporter):
        add_incident("p1", severity="High", reporterEmail="regular@example.com")

        result = await services.trust.priority_for_incident("p1")

        assert result["trustLevel"] == 30
        assert result["priority"] == 63

    @pytest.mark.asyncio
    async def test_anonymous_reporter_has_no_bonus(self, services, add_incident, reporter):
        add_incident("p1", severity="Critical", reporterEmail="regular@example.com", isAnonymous=True)

        result = await services.trust.priority_for_incident("p1")

        assert result["priority"] == 90
        assert result["trustLabel"] == "New"
