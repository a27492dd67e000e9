"""
Incident models for the municipal incident console.

Attribute names are snake_case; aliases are the camelCase field names the
document store persists, which are part of the external contract.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from civictrack.utils.geo import has_coordinates
from civictrack.utils.timestamps import normalize_timestamp

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    """Urgency tier driving the SLA timeframe."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return SEVERITY_RANKING[self]

    @classmethod
    def parse(cls, value: Any) -> Optional["Severity"]:
        """Case-insensitive parse; None for anything unrecognized."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return None


SEVERITY_RANKING = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

# Severity that type-based inference may overwrite
DEFAULT_SEVERITY = Severity.LOW


class IncidentStatus(str, Enum):
    """Lifecycle state. Flagging is tracked separately."""
    NEW = "New"
    IN_PROGRESS = "In Progress"
    OVERDUE = "Overdue"
    COMPLETED = "Completed"
    MERGED = "Merged"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({IncidentStatus.COMPLETED, IncidentStatus.MERGED})
ACTIVE_STATUSES = (IncidentStatus.NEW, IncidentStatus.IN_PROGRESS, IncidentStatus.OVERDUE)

# Older documents used these values
_LEGACY_STATUSES = {
    "resolved": IncidentStatus.COMPLETED,
    "inprogress": IncidentStatus.IN_PROGRESS,
    "in_progress": IncidentStatus.IN_PROGRESS,
}


class FlagReason(str, Enum):
    """Why staff flagged a report as suspicious."""
    DUPLICATE = "duplicate"
    FALSE_INFO = "false_info"
    FALSE_REPORT = "false_report"
    INAPPROPRIATE = "inappropriate"
    SPAM = "spam"
    OTHER = "other"

    @property
    def display_text(self) -> str:
        return FLAG_REASON_TEXT[self]

    @property
    def is_false_report(self) -> bool:
        return self in (FlagReason.FALSE_REPORT, FlagReason.FALSE_INFO)


FLAG_REASON_TEXT = {
    FlagReason.DUPLICATE: "Duplicate Report",
    FlagReason.FALSE_INFO: "False Information",
    FlagReason.FALSE_REPORT: "False Report",
    FlagReason.INAPPROPRIATE: "Inappropriate Content",
    FlagReason.SPAM: "Spam",
    FlagReason.OTHER: "Other",
}


class FlagStatus(str, Enum):
    PENDING_REVIEW = "pending_review"
    CONFIRMED_FALSE = "confirmed_false"
    LEGITIMATE = "legitimate"


class DocumentModel(BaseModel):
    """Base for records persisted with camelCase field names."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_document(self) -> Dict[str, Any]:
        """Persisted field names and values, without the document id."""
        return self.model_dump(by_alias=True, exclude={"id"})


class MergedReportRef(DocumentModel):
    """Entry in a primary incident's ``mergedReports`` list."""
    id: str
    timestamp: Optional[datetime] = None
    merged_at: Optional[datetime] = None

    @field_validator("timestamp", "merged_at", mode="before")
    @classmethod
    def _normalize_times(cls, value):
        return normalize_timestamp(value)


class Incident(DocumentModel):
    """A single citizen-submitted report."""
    id: str

    # Location
    location: str = ""
    location_info: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    municipal: Optional[str] = None

    # Details
    incident_type: str = ""
    description: str = ""
    media_urls: List[str] = Field(default_factory=list)

    # SLA
    severity: Optional[Severity] = None
    timestamp: Optional[datetime] = None
    deadline: Optional[datetime] = None
    status: IncidentStatus = Field(
        default=IncidentStatus.NEW,
        validation_alias=AliasChoices("status", "reportState"),
    )
    is_overdue: bool = False
    last_viewed: Optional[datetime] = None

    # Resolution
    completed_at: Optional[datetime] = None
    resolution_time_hours: Optional[float] = None
    resolution_time_formatted: Optional[str] = None

    # Suspicious-report markers
    flagged: bool = False
    flag_reason: Optional[str] = None
    flag_notes: Optional[str] = None
    flag_status: Optional[str] = None
    flagged_at: Optional[datetime] = None

    # Merge bookkeeping
    merged_into: Optional[str] = None
    merged_at: Optional[datetime] = None
    merged_reports: List[MergedReportRef] = Field(default_factory=list)

    # Reporter
    reporter_name: Optional[str] = None
    reporter_email: Optional[str] = None
    is_anonymous: bool = False

    @field_validator(
        "timestamp", "deadline", "last_viewed", "completed_at", "flagged_at", "merged_at",
        mode="before",
    )
    @classmethod
    def _normalize_times(cls, value):
        return normalize_timestamp(value)

    @field_validator("severity", mode="before")
    @classmethod
    def _parse_severity(cls, value):
        return Severity.parse(value)

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        if isinstance(value, IncidentStatus):
            return value
        if not value:
            return IncidentStatus.NEW
        normalized = str(value).strip().lower()
        for member in IncidentStatus:
            if member.value.lower() == normalized:
                return member
        if normalized in _LEGACY_STATUSES:
            return _LEGACY_STATUSES[normalized]
        logger.warning(f"Unknown incident status {value!r}, treating as New")
        return IncidentStatus.NEW

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _blank_coordinate(cls, value):
        if value == "":
            return None
        return value

    @field_validator("media_urls", "merged_reports", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return value or []

    @field_validator("incident_type", "description", "location", "location_info", mode="before")
    @classmethod
    def _none_to_text(cls, value):
        return value or ""

    @field_validator("is_overdue", "flagged", "is_anonymous", mode="before")
    @classmethod
    def _none_to_false(cls, value):
        return bool(value)

    @property
    def has_coordinates(self) -> bool:
        return has_coordinates(self.latitude, self.longitude)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_main_report(self) -> bool:
        """True when other incidents have been merged into this one."""
        return bool(self.merged_reports)

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Incident":
        return cls.model_validate({**data, "id": doc_id})


def apply_patch(incident: Incident, patch: Dict[str, Any]) -> Incident:
    """Return a copy of ``incident`` with a persisted-name patch applied."""
    if not patch:
        return incident
    return Incident.from_document(incident.id, {**incident.to_document(), **patch})
