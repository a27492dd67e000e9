"""
Incident state machine.

    New -> In Progress -> (Overdue <-> In Progress) -> Completed | Merged

Completed and Merged are terminal. Flagging is orthogonal to status.

Every transition re-reads the incident before writing and aborts with
NotFound if it is gone. Trust side effects (verification on completion,
penalty on a false-report flag) are best-effort: their failure is logged
and never undoes the transition.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from civictrack.models import (
    FlagReason,
    FlagStatus,
    Incident,
    IncidentStatus,
    Severity,
    apply_patch,
)
from civictrack.utils.timestamps import utcnow

from .document_store import REPORTS, DocumentStore
from .errors import ConfirmationRequired, InvalidInput, NotFound
from .reporter_trust import TrustService, TrustUpdate
from .severity_engine import SEVERITY_DESCRIPTIONS, SeverityEngine, format_time_remaining

logger = logging.getLogger(__name__)


def format_resolution_time(seconds: float) -> str:
    """Days/hours/minutes with zero units dropped, e.g. "1d 5m"."""
    total_minutes = int(max(0, seconds) // 60)
    days, rest = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rest, 60)
    parts = [f"{value}{unit}" for value, unit in ((days, "d"), (hours, "h"), (minutes, "m")) if value]
    return " ".join(parts) if parts else "Less than 1 minute"


@dataclass
class IncidentView:
    """What the detail page needs after opening an incident."""
    incident: Incident
    patch: Dict[str, Any] = field(default_factory=dict)
    time_remaining: str = ""
    redirect_to: Optional[str] = None

    @property
    def merged_reports(self) -> List[dict]:
        return [ref.model_dump(by_alias=True) for ref in self.incident.merged_reports]

    def to_dict(self) -> dict:
        return {
            "incident": self.incident.model_dump(by_alias=True),
            "updatedFields": sorted(self.patch),
            "timeRemaining": self.time_remaining,
            "redirectTo": self.redirect_to,
            "isMainReport": self.incident.is_main_report,
            "mergedReports": self.merged_reports,
        }


@dataclass
class SeverityPreview:
    """Old vs. new deadline shown before staff confirm a severity change."""
    incident_id: str
    current_severity: Optional[Severity]
    new_severity: Severity
    current_deadline: Optional[datetime]
    new_deadline: Optional[datetime]
    current_time_remaining: str
    new_time_remaining: str

    @property
    def description(self) -> str:
        return SEVERITY_DESCRIPTIONS[self.new_severity]

    def to_dict(self) -> dict:
        return {
            "incidentId": self.incident_id,
            "currentSeverity": self.current_severity.value if self.current_severity else None,
            "newSeverity": self.new_severity.value,
            "description": self.description,
            "currentDeadline": self.current_deadline,
            "newDeadline": self.new_deadline,
            "currentTimeRemaining": self.current_time_remaining,
            "newTimeRemaining": self.new_time_remaining,
        }


@dataclass
class ResolutionSummary:
    incident_id: str
    completed_at: datetime
    resolution_time_hours: Optional[float]
    resolution_time_formatted: Optional[str]
    trust_update: Optional[TrustUpdate] = None

    def to_dict(self) -> dict:
        return {
            "incidentId": self.incident_id,
            "completedAt": self.completed_at,
            "resolutionTimeHours": self.resolution_time_hours,
            "resolutionTimeFormatted": self.resolution_time_formatted,
            "trustUpdate": self.trust_update.to_dict() if self.trust_update else None,
        }


class IncidentLifecycle:
    """Staff-driven transitions on a single incident."""

    def __init__(
        self,
        store: DocumentStore,
        engine: SeverityEngine,
        trust: TrustService,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.engine = engine
        self.trust = trust
        self.clock = clock

    async def _load(self, incident_id: str) -> Incident:
        data = await self.store.get(REPORTS, incident_id)
        if data is None:
            raise NotFound("Incident not found", document_id=incident_id)
        return Incident.from_document(incident_id, data)

    async def open_incident(self, incident_id: str) -> IncidentView:
        """Reconcile on read, persist what changed, and mark a New incident In Progress."""
        incident = await self._load(incident_id)
        patch = await self.engine.reconcile(incident)

        reconciled = apply_patch(incident, patch)
        if reconciled.status == IncidentStatus.NEW:
            patch["status"] = IncidentStatus.IN_PROGRESS.value
            patch["lastViewed"] = self.clock()

        if patch:
            await self.store.update(REPORTS, incident_id, patch)
            logger.info(f"Incident {incident_id} updated on open: {sorted(patch)}")
            incident = apply_patch(incident, patch)

        return IncidentView(
            incident=incident,
            patch=patch,
            time_remaining=format_time_remaining(
                incident.deadline, incident.status, self.clock(), show_overdue_time=True
            ),
            redirect_to=incident.merged_into if incident.status == IncidentStatus.MERGED else None,
        )

    def _parse_severity(self, incident_id: str, severity: Any) -> Severity:
        parsed = Severity.parse(severity)
        if parsed is None:
            raise InvalidInput(f"Invalid severity: {severity!r}", document_id=incident_id)
        return parsed

    async def preview_severity_change(self, incident_id: str, severity: Any) -> SeverityPreview:
        new_severity = self._parse_severity(incident_id, severity)
        incident = await self._load(incident_id)
        return self._preview(incident, new_severity)

    def _preview(self, incident: Incident, new_severity: Severity) -> SeverityPreview:
        now = self.clock()
        new_deadline = self.engine.calculate_deadline(incident.timestamp, new_severity)
        return SeverityPreview(
            incident_id=incident.id,
            current_severity=incident.severity,
            new_severity=new_severity,
            current_deadline=incident.deadline,
            new_deadline=new_deadline,
            current_time_remaining=format_time_remaining(incident.deadline, incident.status, now),
            new_time_remaining=format_time_remaining(new_deadline, incident.status, now),
        )

    async def change_severity(self, incident_id: str, severity: Any, confirmed: bool = False) -> Incident:
        """Set a new severity and deadline. Status is left alone.

        Raises ConfirmationRequired (with the preview) unless ``confirmed``.
        """
        new_severity = self._parse_severity(incident_id, severity)
        incident = await self._load(incident_id)
        if incident.is_terminal:
            raise InvalidInput(
                f"Cannot change severity of a {incident.status.value} incident", document_id=incident_id
            )
        if incident.severity == new_severity:
            return incident

        preview = self._preview(incident, new_severity)
        if not confirmed:
            raise ConfirmationRequired("Severity change needs confirmation", document_id=incident_id, preview=preview)

        patch = {"severity": new_severity.value, "deadline": preview.new_deadline}
        await self.store.update(REPORTS, incident_id, patch)
        logger.info(f"Incident {incident_id} severity {incident.severity} -> {new_severity.value}")
        return apply_patch(incident, patch)

    async def mark_completed(self, incident_id: str) -> ResolutionSummary:
        incident = await self._load(incident_id)
        if incident.is_terminal:
            raise InvalidInput(f"Incident is already {incident.status.value}", document_id=incident_id)

        now = self.clock()
        hours = None
        formatted = None
        if incident.timestamp is not None:
            elapsed = (now - incident.timestamp).total_seconds()
            hours = elapsed / 3600
            formatted = format_resolution_time(elapsed)

        await self.store.update(REPORTS, incident_id, {
            "status": IncidentStatus.COMPLETED.value,
            "isOverdue": False,
            "completedAt": now,
            "resolutionTimeHours": hours,
            "resolutionTimeFormatted": formatted,
        })
        logger.info(f"Incident {incident_id} completed in {formatted}")

        summary = ResolutionSummary(incident_id, now, hours, formatted)
        if not incident.is_anonymous and incident.reporter_email:
            try:
                summary.trust_update = await self.trust.record_verification(incident.reporter_email)
            except Exception:
                logger.exception(f"Reporter trust update failed for incident {incident_id}")
        return summary

    async def flag_incident(self, incident_id: str, reason: Any, notes: str = "") -> Optional[TrustUpdate]:
        """Mark an incident suspicious. Returns the trust penalty, if one was applied."""
        try:
            flag_reason = FlagReason(reason)
        except ValueError:
            raise InvalidInput(f"Invalid flag reason: {reason!r}", document_id=incident_id)

        incident = await self._load(incident_id)
        await self.store.update(REPORTS, incident_id, {
            "flagged": True,
            "flagReason": flag_reason.value,
            "flagNotes": notes or "",
            "flagStatus": FlagStatus.PENDING_REVIEW.value,
            "flaggedAt": self.clock(),
        })
        logger.info(f"Incident {incident_id} flagged: {flag_reason.value}")

        if flag_reason.is_false_report and not incident.is_anonymous and incident.reporter_email:
            try:
                return await self.trust.record_false_report(incident.reporter_email)
            except Exception:
                logger.exception(f"Reporter trust penalty failed for incident {incident_id}")
        return None
