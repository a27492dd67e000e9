"""
Incident-type catalog with a process-local TTL cache.

The catalog maps an incident type name to its canonical severity. Entries
live in the ``incidentTypes`` collection and are looked up either by
document id or by case-insensitive name. The cache is refreshed wholesale
whenever it is stale or a lookup misses; concurrent refreshes only cost a
redundant query.
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from civictrack.models import IncidentTypeConfig, Severity

from .document_store import INCIDENT_TYPES, DocumentStore
from .errors import DependencyUnavailable
from .thresholds import INCIDENT_TYPE_CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)

# Seed data for a fresh deployment (``civictrack.cli seed-types``)
DEFAULT_INCIDENT_TYPES = [
    {"name": "Pothole", "severity": "Medium", "description": "Road surface damage"},
    {"name": "Road Damage", "severity": "Medium", "description": "Cracked or collapsed roadway"},
    {"name": "Streetlight Out", "severity": "Low", "description": "Non-working street lighting"},
    {"name": "Graffiti", "severity": "Low", "description": "Vandalism on public property"},
    {"name": "Illegal Dumping", "severity": "Low", "description": "Waste left on public land"},
    {"name": "Fallen Tree", "severity": "High", "description": "Tree blocking road or walkway"},
    {"name": "Flooding", "severity": "High", "description": "Standing water on roads or property"},
    {"name": "Traffic Signal Malfunction", "severity": "High", "description": "Signal dark or stuck"},
    {"name": "Water Main Break", "severity": "Critical", "description": "Burst water main"},
    {"name": "Gas Leak", "severity": "Critical", "description": "Suspected gas leak"},
]


class IncidentTypeCatalog:
    """
    Cached view of the incident-type collection.

    Owned by the severity engine; pass a fake ``clock`` for deterministic
    expiry in tests.
    """

    def __init__(
        self,
        store: DocumentStore,
        ttl_seconds: float = INCIDENT_TYPE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._by_id: Dict[str, IncidentTypeConfig] = {}
        self._by_name: Dict[str, IncidentTypeConfig] = {}
        self._loaded_at: Optional[float] = None

    @property
    def is_fresh(self) -> bool:
        return self._loaded_at is not None and self._clock() - self._loaded_at < self.ttl_seconds

    def invalidate(self) -> None:
        """Drop cached entries; the next lookup refreshes."""
        self._by_id = {}
        self._by_name = {}
        self._loaded_at = None

    async def refresh(self) -> List[IncidentTypeConfig]:
        """Reload every entry from the store."""
        docs = await self.store.query(INCIDENT_TYPES)
        by_id = {}
        by_name = {}
        for doc in docs:
            config = IncidentTypeConfig.from_document(doc.id, doc.data)
            by_id[config.id] = config
            if config.name:
                by_name[config.name.strip().lower()] = config
        self._by_id = by_id
        self._by_name = by_name
        self._loaded_at = self._clock()
        logger.info(f"Incident type catalog refreshed: {len(by_id)} types")
        return list(by_id.values())

    def _lookup(self, type_name: str) -> Optional[IncidentTypeConfig]:
        return self._by_id.get(type_name) or self._by_name.get(type_name.lower())

    async def get(self, type_name: str) -> Optional[IncidentTypeConfig]:
        """Find a type by id or name, refreshing on a stale cache or a miss."""
        type_name = (type_name or "").strip()
        if not type_name:
            return None
        if self.is_fresh:
            found = self._lookup(type_name)
            if found is not None:
                return found
        await self.refresh()
        return self._lookup(type_name)

    async def all_types(self) -> List[IncidentTypeConfig]:
        if self.is_fresh and self._by_id:
            return list(self._by_id.values())
        return await self.refresh()

    async def severity_for(self, type_name: str) -> Severity:
        """Catalog severity for one type; Medium when unknown or unreachable."""
        try:
            config = await self.get(type_name)
        except DependencyUnavailable as exc:
            logger.warning(f"Incident type catalog unavailable, defaulting {type_name!r} to Medium: {exc}")
            return Severity.MEDIUM
        if config is None:
            logger.warning(f'Incident type "{type_name}" not found, defaulting to Medium severity')
            return Severity.MEDIUM
        return config.severity


async def seed_incident_types(store: DocumentStore, entries: Optional[List[dict]] = None) -> int:
    """Add default catalog entries whose name is not present yet. Returns count added."""
    entries = DEFAULT_INCIDENT_TYPES if entries is None else entries
    existing = {
        (doc.data.get("name") or "").strip().lower()
        for doc in await store.query(INCIDENT_TYPES)
    }
    added = 0
    for entry in entries:
        if entry["name"].strip().lower() in existing:
            continue
        await store.add(INCIDENT_TYPES, dict(entry))
        added += 1
    logger.info(f"Seeded {added} incident types")
    return added
