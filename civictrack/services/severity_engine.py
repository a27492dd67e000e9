"""Severity and deadline engine.

Maps an incident type to a severity tier, a severity tier plus report time
to an SLA deadline, and decides whether an incident is overdue.

``reconcile_incident()`` is the pure core run on every incident read: it
takes the already-resolved severity and returns a patch of persisted field
names containing only what changed. Applying the patch and reconciling
again yields an empty patch.

``SeverityEngine`` wraps the pure functions with the incident-type catalog
(which it owns) so callers can reconcile a document in one await.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from civictrack.models import (
    DEFAULT_SEVERITY,
    Incident,
    IncidentStatus,
    Severity,
    TERMINAL_STATUSES,
)
from civictrack.utils.timestamps import normalize_timestamp, utcnow

from .document_store import DocumentStore
from .incident_type_service import IncidentTypeCatalog
from .settings import DeadlineSettings
from .thresholds import (
    DEADLINE_DRIFT_TOLERANCE_HOURS,
    FALLBACK_TIMEFRAME_HOURS,
    INCIDENT_TYPE_SEPARATORS,
    SEVERITY_TIMEFRAME_HOURS,
)

logger = logging.getLogger(__name__)

SEVERITY_DESCRIPTIONS = {
    Severity.LOW: "Low priority (7 days)",
    Severity.MEDIUM: "Medium priority (5 days)",
    Severity.HIGH: "High priority (3 days)",
    Severity.CRITICAL: "Critical priority (1 day)",
}


def split_incident_types(incident_type: Optional[str]) -> List[str]:
    """Split a combined type label into trimmed, non-empty type names."""
    if not incident_type:
        return []
    parts = re.split(INCIDENT_TYPE_SEPARATORS, incident_type)
    return [p.strip() for p in parts if p.strip()]


def highest_severity(severities: Iterable[Severity]) -> Optional[Severity]:
    """Highest-ranked severity, or None for an empty input."""
    ranked = [s for s in severities if s is not None]
    if not ranked:
        return None
    return max(ranked, key=lambda s: s.rank)


def needs_derivation(current: Optional[Severity]) -> bool:
    """Only an unset or default-Low severity may be replaced by type inference."""
    return current is None or current == DEFAULT_SEVERITY


def timeframe_hours(
    severity: Any,
    timeframes: Optional[Dict[str, int]] = None,
    fallback_hours: int = FALLBACK_TIMEFRAME_HOURS,
) -> int:
    timeframes = timeframes or SEVERITY_TIMEFRAME_HOURS
    parsed = Severity.parse(severity)
    if parsed is None:
        return fallback_hours
    return timeframes.get(parsed.value, fallback_hours)


def calculate_deadline(
    created_at: Any,
    severity: Any,
    timeframes: Optional[Dict[str, int]] = None,
    fallback_hours: int = FALLBACK_TIMEFRAME_HOURS,
) -> Optional[datetime]:
    """Report time plus the severity timeframe; None if the report time is unusable."""
    created = normalize_timestamp(created_at)
    if created is None:
        return None
    return created + timedelta(hours=timeframe_hours(severity, timeframes, fallback_hours))


def is_overdue(deadline: Any, status: Any, now: datetime) -> bool:
    """Past the deadline and not in a terminal state."""
    if status in (IncidentStatus.COMPLETED.value, IncidentStatus.MERGED.value):
        return False
    due = normalize_timestamp(deadline)
    if due is None:
        return False
    return now > due


def reconcile_incident(
    incident: Incident,
    severity: Optional[Severity],
    now: datetime,
    timeframes: Optional[Dict[str, int]] = None,
    drift_tolerance_hours: float = DEADLINE_DRIFT_TOLERANCE_HOURS,
    fallback_hours: int = FALLBACK_TIMEFRAME_HOURS,
) -> Dict[str, Any]:
    """
    Compute the persisted-field patch that brings ``incident`` up to date.

    ``severity`` is the result of severity resolution for this incident.
    Status changes only happen for non-terminal incidents; terminal ones
    only ever get ``isOverdue`` forced to False.
    """
    patch: Dict[str, Any] = {}

    severity = severity or incident.severity or DEFAULT_SEVERITY
    if severity != incident.severity:
        patch["severity"] = severity.value

    computed = calculate_deadline(incident.timestamp, severity, timeframes, fallback_hours)
    if computed is not None:
        stored = incident.deadline
        drift = abs((computed - stored).total_seconds()) / 3600 if stored else None
        if drift is None or drift > drift_tolerance_hours:
            patch["deadline"] = computed
    deadline = computed or incident.deadline

    if incident.status in TERMINAL_STATUSES:
        if incident.is_overdue:
            patch["isOverdue"] = False
        return patch

    overdue = is_overdue(deadline, incident.status, now)
    if overdue != incident.is_overdue:
        patch["isOverdue"] = overdue
    if overdue and incident.status != IncidentStatus.OVERDUE:
        patch["status"] = IncidentStatus.OVERDUE.value
    elif not overdue and incident.status == IncidentStatus.OVERDUE:
        patch["status"] = IncidentStatus.IN_PROGRESS.value
    return patch


def _split_units(total_seconds: float):
    total_minutes = int(total_seconds // 60)
    days, rest = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rest, 60)
    return days, hours, minutes


def _two_largest_units(total_seconds: float) -> str:
    days, hours, minutes = _split_units(total_seconds)
    if days > 0:
        return f"{days}d {hours}h" if hours > 0 else f"{days}d"
    if hours > 0:
        return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"
    if minutes > 0:
        return f"{minutes}m"
    return "Less than 1 minute"


def format_time_remaining(
    deadline: Any,
    status: Any,
    now: datetime,
    show_overdue_time: bool = False,
) -> str:
    """Human label for the time left until (or past) the deadline.

    List views pass ``show_overdue_time=False`` and get a plain "Overdue";
    detail views get "Overdue by 1d 4h".
    """
    if status == IncidentStatus.MERGED:
        return "-"
    if status == IncidentStatus.COMPLETED:
        return "Completed"
    due = normalize_timestamp(deadline)
    if due is None:
        return "No deadline"

    remaining = (due - now).total_seconds()
    if remaining <= 0:
        if show_overdue_time:
            return f"Overdue by {_two_largest_units(-remaining)}"
        return "Overdue"
    return _two_largest_units(remaining)


class SeverityEngine:
    """Severity resolution and reconciliation backed by the type catalog."""

    def __init__(
        self,
        store: DocumentStore,
        catalog: Optional[IncidentTypeCatalog] = None,
        settings: Optional[DeadlineSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.catalog = catalog or IncidentTypeCatalog(store)
        self.settings = settings or DeadlineSettings()
        self.clock = clock

    async def resolve_severity(self, incident_type: Optional[str], current: Optional[Severity]) -> Severity:
        """Keep an explicit severity; otherwise the highest catalog severity of the types."""
        current = Severity.parse(current)
        if not needs_derivation(current):
            return current

        types = split_incident_types(incident_type)
        if not types:
            return current or DEFAULT_SEVERITY

        severities = [await self.catalog.severity_for(t) for t in types]
        return highest_severity(severities)

    def calculate_deadline(self, created_at: Any, severity: Any) -> Optional[datetime]:
        return calculate_deadline(
            created_at,
            severity,
            self.settings.timeframe_hours,
            self.settings.fallback_timeframe_hours,
        )

    def format_time_remaining(self, deadline: Any, status: Any, show_overdue_time: bool = False) -> str:
        return format_time_remaining(deadline, status, self.clock(), show_overdue_time)

    async def reconcile(self, incident: Incident) -> Dict[str, Any]:
        """Resolve severity through the catalog and return the reconcile patch."""
        severity = await self.resolve_severity(incident.incident_type, incident.severity)
        patch = reconcile_incident(
            incident,
            severity,
            self.clock(),
            timeframes=self.settings.timeframe_hours,
            drift_tolerance_hours=self.settings.drift_tolerance_hours,
            fallback_hours=self.settings.fallback_timeframe_hours,
        )
        if patch:
            logger.debug(f"Reconcile {incident.id}: {sorted(patch)}")
        return patch
