"""
Tests for geo, timestamp and model-normalization primitives.
"""

from datetime import date, datetime, timezone

import pytest

from civictrack.models import Incident, IncidentStatus, Reporter, Severity, apply_patch
from civictrack.utils import format_distance, has_coordinates, haversine_distance, normalize_timestamp


# ============================================================
# GEO
# ============================================================

class TestHaversine:

    def test_identical_points_are_zero(self):
        assert haversine_distance(40.7128, -74.006, 40.7128, -74.006) == 0

    def test_symmetric(self):
        a = (40.7128, -74.0060)
        b = (40.7138, -74.0050)
        assert haversine_distance(*a, *b) == pytest.approx(haversine_distance(*b, *a))

    def test_one_degree_latitude(self):
        assert haversine_distance(0, 0, 1, 0) == pytest.approx(111_195, abs=1)

    def test_municipal_scale(self):
        # ~0.0009 degrees of latitude is about 100 m
        assert haversine_distance(40.0, -75.0, 40.0009, -75.0) == pytest.approx(100.08, abs=0.5)


class TestCoordinatesAndFormatting:

    def test_missing_coordinates(self):
        assert has_coordinates(None, -75.0) is False
        assert has_coordinates(40.0, None) is False
        assert has_coordinates(float("nan"), 1.0) is False
        assert has_coordinates(0.0, 0.0) is True

    def test_format_distance(self):
        assert format_distance(45.4) == "45m"
        assert format_distance(999) == "999m"
        assert format_distance(1234) == "1.2km"


# ============================================================
# TIMESTAMPS
# ============================================================

class TestNormalizeTimestamp:

    def test_missing(self):
        assert normalize_timestamp(None) is None
        assert normalize_timestamp("") is None
        assert normalize_timestamp("not a date") is None
        assert normalize_timestamp(True) is None

    def test_naive_datetime_is_utc(self):
        result = normalize_timestamp(datetime(2024, 1, 2, 3, 4))
        assert result == datetime(2024, 1, 2, 3, 4, tzinfo=timezone.utc)

    def test_seconds_mapping(self):
        result = normalize_timestamp({"seconds": 1704164640, "nanoseconds": 500_000_000})
        assert result == datetime(2024, 1, 2, 3, 4, 0, 500000, tzinfo=timezone.utc)

    def test_underscore_seconds_mapping(self):
        assert normalize_timestamp({"_seconds": 0}) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_iso_string_with_z(self):
        assert normalize_timestamp("2024-01-02T03:04:00Z") == datetime(2024, 1, 2, 3, 4, tzinfo=timezone.utc)

    def test_epoch_number(self):
        assert normalize_timestamp(86400) == datetime(1970, 1, 2, tzinfo=timezone.utc)

    def test_date(self):
        assert normalize_timestamp(date(2024, 5, 1)) == datetime(2024, 5, 1, tzinfo=timezone.utc)

    def test_object_with_seconds(self):
        class SdkTimestamp:
            seconds = 60
            nanoseconds = 0

        assert normalize_timestamp(SdkTimestamp()) == datetime(1970, 1, 1, 0, 1, tzinfo=timezone.utc)


# ============================================================
# MODELS
# ============================================================

class TestIncidentModel:

    def test_reads_camel_case_document(self):
        incident = Incident.from_document("abc", {
            "incidentType": "Pothole",
            "severity": "high",
            "status": "In Progress",
            "timestamp": {"seconds": 0},
            "mergedReports": [{"id": "x", "timestamp": "2024-01-01T00:00:00Z", "mergedAt": None}],
        })
        assert incident.incident_type == "Pothole"
        assert incident.severity == Severity.HIGH
        assert incident.status == IncidentStatus.IN_PROGRESS
        assert incident.timestamp == datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert incident.is_main_report

    def test_legacy_status_key_and_value(self):
        incident = Incident.from_document("abc", {"reportState": "Resolved"})
        assert incident.status == IncidentStatus.COMPLETED

    def test_unknown_values_fall_back(self):
        incident = Incident.from_document("abc", {"severity": "Urgent", "status": "Weird", "latitude": ""})
        assert incident.severity is None
        assert incident.status == IncidentStatus.NEW
        assert incident.latitude is None
        assert not incident.has_coordinates

    def test_to_document_uses_persisted_names(self):
        doc = Incident(id="abc", incident_type="Pothole").to_document()
        assert "incidentType" in doc
        assert "isOverdue" in doc
        assert "mergedReports" in doc
        assert "id" not in doc

    def test_apply_patch(self):
        incident = Incident(id="abc", status=IncidentStatus.NEW)
        patched = apply_patch(incident, {"status": "Overdue", "isOverdue": True})
        assert patched.status == IncidentStatus.OVERDUE
        assert patched.is_overdue is True
        assert incident.status == IncidentStatus.NEW

    def test_reporter_counts_default(self):
        reporter = Reporter.from_document("r1", {"email": "a@b.c", "falseReports": None})
        assert reporter.false_reports == 0
        assert reporter.report_count is None

    def test_reporter_tolerates_loose_records(self):
        reporter = Reporter.from_document("u1", {
            "reporterEmail": "a@b.com",
            "email": None,
            "trustLevel": 42.6,
            "reportCount": 3.0,
        })
        assert reporter.email == ""
        assert reporter.trust_level == 43
        assert reporter.report_count == 3
