"""
Reporter trust scoring.

``trust_level()`` is a pure formula over a reporter's history. The
``TrustService`` applies it on verification (incident completed) and
false-report (incident flagged) events, creating a seeded reporter record
the first time an email is seen.

Reporter records may live in ``reporter`` (keyed by ``email``) or, for
older accounts, in ``users`` (keyed by ``email`` or ``reporterEmail``).
They are updated wherever they were found; new records go to ``reporter``.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Tuple

from civictrack.models import Incident, Reporter, Severity
from civictrack.utils.timestamps import normalize_timestamp, utcnow

from .document_store import REPORTERS, REPORTS, USERS, Document, DocumentStore
from .errors import InvalidInput, NotFound
from .settings import TrustSettings
from .thresholds import (
    SEVERITY_PRIORITY_BASE,
    TRUST_ACCURACY_POINTS,
    TRUST_BASE_SCORE,
    TRUST_FALSE_REPORT_PENALTY,
    TRUST_LEVELS,
    TRUST_PENALTY_FLOOR,
    TRUST_TENURE_CAP,
    TRUST_TENURE_DAYS_PER_POINT,
    TRUST_VERIFIED_CAP,
    TRUST_VERIFIED_POINTS,
)

logger = logging.getLogger(__name__)

MAX_TRUST = 100


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: float, low: int = 0, high: int = MAX_TRUST) -> int:
    return max(low, min(high, _round_half_up(value)))


def trust_level(
    report_count: Optional[int],
    verified_reports: int,
    false_reports: int,
    created_at: Any,
    now: datetime,
) -> int:
    """Trust score in 0..100 from report history and tenure."""
    report_count = report_count or 0
    verified_reports = verified_reports or 0
    false_reports = false_reports or 0

    created = normalize_timestamp(created_at) or now
    tenure_days = max(1, math.floor((now - created).total_seconds() / 86400))

    score = TRUST_BASE_SCORE
    score += min(TRUST_VERIFIED_CAP, verified_reports * TRUST_VERIFIED_POINTS)
    if report_count > 0:
        score += _round_half_up(verified_reports / report_count * TRUST_ACCURACY_POINTS)
    score += min(TRUST_TENURE_CAP, tenure_days // TRUST_TENURE_DAYS_PER_POINT)
    # Penalty alone never takes the score below the floor
    score -= min(score - TRUST_PENALTY_FLOOR, false_reports * TRUST_FALSE_REPORT_PENALTY)
    return _clamp(score)


def trust_level_label(level: Optional[int]) -> str:
    """New / Basic / Reliable / Trusted / Verified."""
    level = level or 0
    label = "New"
    for name, threshold in sorted(TRUST_LEVELS.items(), key=lambda item: item[1]):
        if level >= threshold:
            label = name
    return label


def calculate_incident_priority(trust: Optional[int], severity: Any) -> int:
    """Severity base plus a trust bonus of up to 10 points, capped at 100."""
    parsed = Severity.parse(severity) or Severity.MEDIUM
    base = SEVERITY_PRIORITY_BASE[parsed.value]
    bonus = max(0, min(MAX_TRUST, trust or 0)) // 10
    return min(MAX_TRUST, base + bonus)


@dataclass
class TrustUpdate:
    """Result of a trust event."""
    email: str
    reporter_id: str
    collection: str
    trust_level: int
    previous_trust_level: Optional[int] = None
    report_count: Optional[int] = None
    verified_reports: int = 0
    false_reports: int = 0
    created: bool = False

    @property
    def label(self) -> str:
        return trust_level_label(self.trust_level)

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "reporterId": self.reporter_id,
            "collection": self.collection,
            "trustLevel": self.trust_level,
            "trustLabel": self.label,
            "previousTrustLevel": self.previous_trust_level,
            "reportCount": self.report_count,
            "verifiedReports": self.verified_reports,
            "falseReports": self.false_reports,
            "created": self.created,
        }


class TrustService:
    """Applies trust events to reporter records."""

    def __init__(
        self,
        store: DocumentStore,
        settings: Optional[TrustSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.settings = settings or TrustSettings()
        self.clock = clock

    async def find_reporter(self, email: str) -> Optional[Tuple[str, Document]]:
        """Look up a reporter by email; returns (collection, document) or None."""
        lookups = (
            (REPORTERS, "email"),
            (USERS, "email"),
            (USERS, "reporterEmail"),
        )
        for collection, key in lookups:
            docs = await self.store.query(collection, where={key: email})
            if docs:
                return collection, docs[0]
        return None

    async def _create(self, email: str, verified: int, false: int, trust: int) -> TrustUpdate:
        now = self.clock()
        reporter_id = await self.store.add(REPORTERS, {
            "email": email,
            "reportCount": 1,
            "verifiedReports": verified,
            "falseReports": false,
            "trustLevel": trust,
            "createdAt": now,
            "updatedAt": now,
        })
        logger.info(f"Created reporter {reporter_id} for {email} at trust {trust}")
        return TrustUpdate(
            email=email,
            reporter_id=reporter_id,
            collection=REPORTERS,
            trust_level=trust,
            report_count=1,
            verified_reports=verified,
            false_reports=false,
            created=True,
        )

    async def _apply(self, email: str, verified_delta: int, false_delta: int, bonus: int) -> TrustUpdate:
        if not email or not email.strip():
            raise InvalidInput("Reporter email is required")
        email = email.strip()

        found = await self.find_reporter(email)
        if found is None:
            if verified_delta:
                return await self._create(email, 1, 0, self.settings.seed_on_verification)
            return await self._create(email, 0, 1, self.settings.seed_on_false_report)

        collection, doc = found
        reporter = Reporter.from_document(doc.id, doc.data)
        now = self.clock()

        verified = reporter.verified_reports + verified_delta
        false = reporter.false_reports + false_delta
        # First tracked report counts toward the total
        report_count = reporter.report_count if reporter.report_count is not None else 1

        level = trust_level(report_count, verified, false, reporter.created_at or now, now)
        level = min(MAX_TRUST, level + bonus)

        await self.store.update(collection, doc.id, {
            "verifiedReports": verified,
            "falseReports": false,
            "reportCount": report_count,
            "trustLevel": level,
            "updatedAt": now,
        })
        logger.info(f"Reporter {doc.id} trust {reporter.trust_level} -> {level}")
        return TrustUpdate(
            email=email,
            reporter_id=doc.id,
            collection=collection,
            trust_level=level,
            previous_trust_level=reporter.trust_level,
            report_count=report_count,
            verified_reports=verified,
            false_reports=false,
        )

    async def record_verification(self, email: str) -> TrustUpdate:
        """A report by ``email`` was completed; raise the reporter's trust."""
        return await self._apply(email, verified_delta=1, false_delta=0, bonus=self.settings.completion_bonus)

    async def record_false_report(self, email: str) -> TrustUpdate:
        """A report by ``email`` was flagged as false; lower the reporter's trust."""
        return await self._apply(email, verified_delta=0, false_delta=1, bonus=0)

    async def set_trust_level(self, reporter_id: str, level: int, reason: str = "Manual adjustment") -> Reporter:
        """Staff override of a reporter's trust level."""
        if not isinstance(level, int) or isinstance(level, bool) or not 0 <= level <= MAX_TRUST:
            raise InvalidInput(f"Trust level must be between 0 and {MAX_TRUST}", document_id=reporter_id)
        await self.store.update(REPORTERS, reporter_id, {
            "trustLevel": level,
            "trustReason": reason or "Manual adjustment",
            "updatedAt": self.clock(),
        })
        logger.info(f"Reporter {reporter_id} trust manually set to {level}: {reason}")
        data = await self.store.get(REPORTERS, reporter_id)
        if data is None:
            raise NotFound("Reporter not found", document_id=reporter_id)
        return Reporter.from_document(reporter_id, data)

    async def priority_for_incident(self, incident_id: str) -> dict:
        """Priority score of an incident from its severity and reporter trust."""
        data = await self.store.get(REPORTS, incident_id)
        if data is None:
            raise NotFound("Incident not found", document_id=incident_id)
        incident = Incident.from_document(incident_id, data)

        level = 0
        if not incident.is_anonymous and incident.reporter_email:
            found = await self.find_reporter(incident.reporter_email)
            if found is not None:
                level = Reporter.from_document(found[1].id, found[1].data).trust_level

        return {
            "incidentId": incident_id,
            "severity": incident.severity.value if incident.severity else None,
            "trustLevel": level,
            "trustLabel": trust_level_label(level),
            "priority": calculate_incident_priority(level, incident.severity),
        }
