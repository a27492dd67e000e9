"""
Reporter records used for trust scoring.
"""

from datetime import datetime
from typing import Optional

from pydantic import field_validator

from civictrack.models.incident import DocumentModel
from civictrack.utils.timestamps import normalize_timestamp


class Reporter(DocumentModel):
    """A citizen reporter. ``report_count`` is None until first tracked."""
    id: str
    email: str = ""
    name: Optional[str] = None
    trust_level: int = 0
    report_count: Optional[int] = None
    verified_reports: int = 0
    false_reports: int = 0
    trust_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _normalize_times(cls, value):
        return normalize_timestamp(value)

    @field_validator("email", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or ""

    @field_validator("verified_reports", "false_reports", "trust_level", mode="before")
    @classmethod
    def _none_to_zero(cls, value):
        # Older records hold fractional trust levels
        if isinstance(value, float):
            return round(value)
        return value or 0

    @field_validator("report_count", mode="before")
    @classmethod
    def _round_count(cls, value):
        return round(value) if isinstance(value, float) else value

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "Reporter":
        return cls.model_validate({**data, "id": doc_id})
