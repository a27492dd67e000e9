"""
Pydantic models for the incident console.
"""

from .incident import (
    Severity,
    SEVERITY_RANKING,
    DEFAULT_SEVERITY,
    IncidentStatus,
    TERMINAL_STATUSES,
    ACTIVE_STATUSES,
    FlagReason,
    FlagStatus,
    DocumentModel,
    MergedReportRef,
    Incident,
    apply_patch,
)
from .reporter import Reporter
from .incident_type import IncidentTypeConfig
from .requests import (
    SeverityChangeRequest,
    FlagRequest,
    MergeRequest,
    ReporterEventRequest,
    TrustAdjustmentRequest,
)

__all__ = [
    # Incident
    "Severity",
    "SEVERITY_RANKING",
    "DEFAULT_SEVERITY",
    "IncidentStatus",
    "TERMINAL_STATUSES",
    "ACTIVE_STATUSES",
    "FlagReason",
    "FlagStatus",
    "DocumentModel",
    "MergedReportRef",
    "Incident",
    "apply_patch",
    # Reporter
    "Reporter",
    # Incident types
    "IncidentTypeConfig",
    # Requests
    "SeverityChangeRequest",
    "FlagRequest",
    "MergeRequest",
    "ReporterEventRequest",
    "TrustAdjustmentRequest",
]
