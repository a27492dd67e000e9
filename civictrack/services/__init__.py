"""
Incident console services.
"""

from .errors import (
    ErrorKind,
    IncidentError,
    NotFound,
    InvalidInput,
    DependencyUnavailable,
    MergePartialFailure,
    ConfirmationRequired,
)
from .document_store import (
    Document,
    DocumentStore,
    InMemoryDocumentStore,
    PostgresDocumentStore,
    REPORTS,
    REPORTERS,
    USERS,
    INCIDENT_TYPES,
)
from .settings import SettingsService, get_settings_service
from .incident_type_service import IncidentTypeCatalog, DEFAULT_INCIDENT_TYPES, seed_incident_types
from .severity_engine import (
    SeverityEngine,
    calculate_deadline,
    is_overdue,
    reconcile_incident,
    format_time_remaining,
    SEVERITY_DESCRIPTIONS,
)
from .duplicate_detection import (
    DuplicateService,
    DuplicateCandidate,
    DuplicateGroup,
    check_description_similarity,
    find_duplicate_candidates,
    scan_all_duplicate_groups,
    find_related_reports,
)
from .merge_service import MergeService, MergeOutcome
from .reporter_trust import (
    TrustService,
    TrustUpdate,
    trust_level,
    trust_level_label,
    calculate_incident_priority,
)
from .incident_lifecycle import IncidentLifecycle, IncidentView, SeverityPreview, ResolutionSummary
from .sla_metrics import SlaService, SlaSummary, summarize_sla
from .container import ConsoleServices, build_services

__all__ = [
    # Errors
    "ErrorKind",
    "IncidentError",
    "NotFound",
    "InvalidInput",
    "DependencyUnavailable",
    "MergePartialFailure",
    "ConfirmationRequired",
    # Store
    "Document",
    "DocumentStore",
    "InMemoryDocumentStore",
    "PostgresDocumentStore",
    "REPORTS",
    "REPORTERS",
    "USERS",
    "INCIDENT_TYPES",
    # Settings
    "SettingsService",
    "get_settings_service",
    # Incident types
    "IncidentTypeCatalog",
    "DEFAULT_INCIDENT_TYPES",
    "seed_incident_types",
    # Severity / deadlines
    "SeverityEngine",
    "calculate_deadline",
    "is_overdue",
    "reconcile_incident",
    "format_time_remaining",
    "SEVERITY_DESCRIPTIONS",
    # Duplicates
    "DuplicateService",
    "DuplicateCandidate",
    "DuplicateGroup",
    "check_description_similarity",
    "find_duplicate_candidates",
    "scan_all_duplicate_groups",
    "find_related_reports",
    # Merge
    "MergeService",
    "MergeOutcome",
    # Trust
    "TrustService",
    "TrustUpdate",
    "trust_level",
    "trust_level_label",
    "calculate_incident_priority",
    # Lifecycle
    "IncidentLifecycle",
    "IncidentView",
    "SeverityPreview",
    "ResolutionSummary",
    # SLA
    "SlaService",
    "SlaSummary",
    "summarize_sla",
    # Wiring
    "ConsoleServices",
    "build_services",
]
