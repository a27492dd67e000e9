"""
Shared fixtures: fixed clock, in-memory store with a seeded type catalog,
and the wired service container.
"""

from datetime import datetime, timedelta, timezone

import pytest

from civictrack.services import (
    INCIDENT_TYPES,
    REPORTS,
    InMemoryDocumentStore,
    build_services,
)
from civictrack.services.settings import SettingsService


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

CATALOG = {
    "pothole": {"name": "Pothole", "severity": "Medium"},
    "road-damage": {"name": "Road Damage", "severity": "Low"},
    "streetlight": {"name": "Streetlight Out", "severity": "Low"},
    "fallen-tree": {"name": "Fallen Tree", "severity": "High"},
    "water-main": {"name": "Water Main Break", "severity": "Critical"},
}


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeMonotonic:
    def __init__(self):
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryDocumentStore(seed={INCIDENT_TYPES: CATALOG})


@pytest.fixture
def settings():
    return SettingsService(environ={})


@pytest.fixture
def services(store, clock, settings):
    return build_services(store, clock=clock, settings=settings)


@pytest.fixture
def add_incident(store):
    """Put a report document into the store and return its id."""

    def _add(doc_id, **fields):
        data = {
            "incidentType": "Pothole",
            "description": "Large pothole in the road",
            "status": "New",
            "timestamp": NOW - timedelta(hours=2),
            "latitude": 40.0,
            "longitude": -75.0,
        }
        data.update(fields)
        store.put(REPORTS, doc_id, data)
        return doc_id

    return _add


def offset_north(latitude: float, meters: float) -> float:
    """Latitude shifted north by roughly ``meters``."""
    return latitude + meters / 111_195.0
