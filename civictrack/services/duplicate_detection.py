"""Duplicate detection for geographically and textually similar reports.

A report B is a duplicate candidate of report A when all of these hold:

1. Both have coordinates, B is not A, and B is not already Merged.
2. The great-circle distance between them is at most 100 m.
3. Their trimmed incident types are identical, OR their descriptions are
   similar (see ``check_description_similarity``).

Reports closer than 20 m qualify on distance alone, whatever their type
or description.

Three entry points share the rule:

- ``find_duplicate_candidates()`` for a single incident's detail view,
  scanning active incidents, nearest first.
- ``scan_all_duplicate_groups()`` for the review dashboard. Oldest active
  incident anchors a group; each incident ends up in at most one group.
- ``find_related_reports()`` for the "related reports" panel, which looks
  at every non-merged incident regardless of status.

Known limitations:
    - The batch scan compares every pair of active incidents (O(n^2)); fine
      for hundreds of open reports, not for a city-wide archive.
    - Word overlap ignores word order and stems, so "lights" and "light"
      do not match.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from civictrack.models import ACTIVE_STATUSES, Incident, IncidentStatus
from civictrack.utils.geo import format_distance, haversine_distance

from .document_store import REPORTS, DocumentStore
from .errors import NotFound
from .settings import DuplicateDetectionSettings

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_CONFIG = DuplicateDetectionSettings()


def normalize_text(text: str) -> str:
    """Normalize text for comparison."""
    if not text:
        return ""
    text = text.lower()
    text = re.sub(r'[^\w\s]', '', text)
    text = re.sub(r'\s+', ' ', text).strip()
    return text


def tokenize(text: str, min_word_length: int = DEFAULT_CONFIG.min_word_length) -> set:
    """Distinct words longer than ``min_word_length`` characters."""
    return {w for w in normalize_text(text).split() if len(w) > min_word_length}


def check_description_similarity(
    description1: str,
    description2: str,
    config: DuplicateDetectionSettings = DEFAULT_CONFIG,
) -> bool:
    """
    True when one description contains the other, or when enough words overlap.

    Overlap is measured against the shorter description's word set, so a
    terse report ("Big pothole") can match a long one that mentions it.
    """
    text1 = normalize_text(description1)
    text2 = normalize_text(description2)
    if not text1 or not text2:
        return False
    if text1 in text2 or text2 in text1:
        return True

    words1 = tokenize(text1, config.min_word_length)
    words2 = tokenize(text2, config.min_word_length)
    if not words1 or not words2:
        return False
    match_count = len(words1 & words2)
    percent = match_count / min(len(words1), len(words2)) * 100
    return percent >= config.description_match_percent


@dataclass
class DuplicateCandidate:
    """A report that matched another, with the evidence for the match."""
    incident: Incident
    distance_meters: float
    same_type: bool = False
    similar_description: bool = False

    @property
    def id(self) -> str:
        return self.incident.id

    @property
    def formatted_distance(self) -> str:
        return format_distance(self.distance_meters)

    def to_dict(self) -> dict:
        return {
            "id": self.incident.id,
            "distanceMeters": round(self.distance_meters, 1),
            "formattedDistance": self.formatted_distance,
            "sameType": self.same_type,
            "similarDescription": self.similar_description,
            "incidentType": self.incident.incident_type,
            "description": self.incident.description,
            "status": self.incident.status.value,
            "timestamp": self.incident.timestamp,
        }


@dataclass
class DuplicateGroup:
    """Oldest report of a cluster plus the later reports matching it."""
    primary: Incident
    duplicates: List[DuplicateCandidate] = field(default_factory=list)

    @property
    def duplicate_ids(self) -> List[str]:
        return [d.id for d in self.duplicates]

    def to_dict(self) -> dict:
        return {
            "primaryId": self.primary.id,
            "incidentType": self.primary.incident_type,
            "location": self.primary.location,
            "timestamp": self.primary.timestamp,
            "duplicates": [d.to_dict() for d in self.duplicates],
        }


def _match(
    incident: Incident,
    other: Incident,
    config: DuplicateDetectionSettings,
    proximity_override: bool,
) -> Optional[DuplicateCandidate]:
    if other.id == incident.id or other.status == IncidentStatus.MERGED:
        return None
    if not incident.has_coordinates or not other.has_coordinates:
        return None

    distance = haversine_distance(incident.latitude, incident.longitude, other.latitude, other.longitude)
    if distance > config.max_distance_meters:
        return None

    same_type = bool(incident.incident_type.strip()) and incident.incident_type.strip() == other.incident_type.strip()
    similar = check_description_similarity(incident.description, other.description, config)
    close = proximity_override and distance < config.proximity_override_meters
    if not (same_type or similar or close):
        return None
    return DuplicateCandidate(other, distance, same_type=same_type, similar_description=similar)


def classify_candidate(
    incident: Incident,
    other: Incident,
    config: DuplicateDetectionSettings = DEFAULT_CONFIG,
) -> Optional[DuplicateCandidate]:
    """Return a candidate if ``other`` is a duplicate of ``incident``, else None."""
    return _match(incident, other, config, proximity_override=True)


def _active(pool: Iterable[Incident]) -> List[Incident]:
    return [i for i in pool if i.status in ACTIVE_STATUSES]


def find_duplicate_candidates(
    incident: Incident,
    pool: Iterable[Incident],
    config: DuplicateDetectionSettings = DEFAULT_CONFIG,
) -> List[DuplicateCandidate]:
    """Active duplicates of one incident, nearest first."""
    candidates = []
    for other in _active(pool):
        candidate = classify_candidate(incident, other, config)
        if candidate is not None:
            candidates.append(candidate)
    candidates.sort(key=lambda c: c.distance_meters)
    return candidates


def _creation_order(incident: Incident):
    # Reports without a timestamp sort first
    ts = incident.timestamp
    return (ts is not None, ts.timestamp() if ts else 0.0)


def scan_all_duplicate_groups(
    pool: Iterable[Incident],
    config: DuplicateDetectionSettings = DEFAULT_CONFIG,
) -> List[DuplicateGroup]:
    """Group active incidents around their oldest member.

    Single greedy pass in creation order: each unprocessed incident becomes
    a primary and claims every later unprocessed match. Groups without any
    duplicate are not emitted.
    """
    ordered = sorted(_active(pool), key=_creation_order)
    processed = set()
    groups = []

    for index, primary in enumerate(ordered):
        if primary.id in processed:
            continue
        processed.add(primary.id)
        duplicates = []
        for other in ordered[index + 1:]:
            if other.id in processed:
                continue
            candidate = classify_candidate(primary, other, config)
            if candidate is not None:
                duplicates.append(candidate)
                processed.add(other.id)
        if duplicates:
            groups.append(DuplicateGroup(primary, duplicates))

    logger.info(f"Duplicate scan: {len(ordered)} active incidents, {len(groups)} groups")
    return groups


def find_related_reports(
    incident: Incident,
    pool: Iterable[Incident],
    config: DuplicateDetectionSettings = DEFAULT_CONFIG,
) -> List[DuplicateCandidate]:
    """Nearby non-merged reports of the same type or with a similar description."""
    related = []
    for other in pool:
        candidate = _match(incident, other, config, proximity_override=False)
        if candidate is not None:
            related.append(candidate)
    related.sort(key=lambda c: c.distance_meters)
    return related


class DuplicateService:
    """Store-backed wrappers that load the pool once and run the pure scans."""

    def __init__(self, store: DocumentStore, config: Optional[DuplicateDetectionSettings] = None):
        self.store = store
        self.config = config or DEFAULT_CONFIG

    async def load_active(self) -> List[Incident]:
        docs = await self.store.query(
            REPORTS,
            where_in=("status", [s.value for s in ACTIVE_STATUSES]),
            order_by="timestamp",
        )
        return [Incident.from_document(d.id, d.data) for d in docs]

    async def load_all(self) -> List[Incident]:
        docs = await self.store.query(REPORTS)
        return [Incident.from_document(d.id, d.data) for d in docs]

    async def _load(self, incident_id: str) -> Incident:
        data = await self.store.get(REPORTS, incident_id)
        if data is None:
            raise NotFound("Incident not found", document_id=incident_id)
        return Incident.from_document(incident_id, data)

    async def candidates_for(self, incident_id: str) -> List[DuplicateCandidate]:
        incident = await self._load(incident_id)
        if not incident.has_coordinates or incident.is_terminal:
            return []
        return find_duplicate_candidates(incident, await self.load_active(), self.config)

    async def related_for(self, incident_id: str) -> List[DuplicateCandidate]:
        incident = await self._load(incident_id)
        if not incident.has_coordinates:
            return []
        return find_related_reports(incident, await self.load_all(), self.config)

    async def scan_groups(self) -> List[DuplicateGroup]:
        return scan_all_duplicate_groups(await self.load_active(), self.config)
