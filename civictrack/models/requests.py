"""
Request bodies for the staff console API.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RequestModel(BaseModel):
    """Accepts camelCase or snake_case keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SeverityChangeRequest(RequestModel):
    severity: str
    confirmed: bool = False


class FlagRequest(RequestModel):
    reason: str
    notes: str = ""


class MergeRequest(RequestModel):
    source_ids: List[str] = Field(default_factory=list)


class ReporterEventRequest(RequestModel):
    email: str


class TrustAdjustmentRequest(RequestModel):
    """Manual override of a reporter's trust level."""
    trust_level: int
    reason: Optional[str] = "Manual adjustment"
