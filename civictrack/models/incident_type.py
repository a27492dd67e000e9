"""
Incident-type catalog entries.
"""

from typing import Optional

from pydantic import field_validator

from civictrack.models.incident import DocumentModel, Severity


class IncidentTypeConfig(DocumentModel):
    """Maps an incident type name to its canonical severity."""
    id: str
    name: str = ""
    severity: Severity = Severity.MEDIUM
    description: Optional[str] = None

    @field_validator("severity", mode="before")
    @classmethod
    def _parse_severity(cls, value):
        return Severity.parse(value) or Severity.MEDIUM

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "IncidentTypeConfig":
        return cls.model_validate({**data, "id": doc_id})
