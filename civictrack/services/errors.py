"""
Incident console error taxonomy.

Pure computations never raise these; they fall back to safe defaults. I/O
backed operations raise them so the HTTP/CLI layer can decide how to tell
the user and whether a retry makes sense.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"                          # Document vanished between read and write
    INVALID_INPUT = "invalid_input"                  # Bad severity, reason, ids, terminal target
    PARTIAL_FAILURE = "partial_failure"              # Multi-document merge partly applied
    DEPENDENCY_UNAVAILABLE = "dependency_unavailable"  # Store or catalog unreachable, retry later
    CONFIRMATION_REQUIRED = "confirmation_required"  # Staff must confirm before committing


@dataclass
class IncidentError(Exception):
    """Classified error with retry semantics."""
    message: str
    document_id: Optional[str] = None
    kind: ErrorKind = field(default=ErrorKind.INVALID_INPUT, init=False)
    retryable: bool = field(default=False, init=False)

    def __str__(self):
        if self.document_id:
            return f"[{self.kind.value}] {self.message} ({self.document_id})"
        return f"[{self.kind.value}] {self.message}"


@dataclass
class NotFound(IncidentError):
    kind: ErrorKind = field(default=ErrorKind.NOT_FOUND, init=False)


@dataclass
class InvalidInput(IncidentError):
    kind: ErrorKind = field(default=ErrorKind.INVALID_INPUT, init=False)


@dataclass
class DependencyUnavailable(IncidentError):
    kind: ErrorKind = field(default=ErrorKind.DEPENDENCY_UNAVAILABLE, init=False)
    retryable: bool = field(default=True, init=False)
    original: Optional[Exception] = field(default=None, repr=False)


@dataclass
class MergePartialFailure(IncidentError):
    """Some merge writes succeeded; ``outcome`` lists which.

    The target update lands first, so failed source ids can already be
    listed on the target until the merge is retried.
    """
    kind: ErrorKind = field(default=ErrorKind.PARTIAL_FAILURE, init=False)
    retryable: bool = field(default=True, init=False)
    outcome: Any = None


@dataclass
class ConfirmationRequired(IncidentError):
    """Raised instead of committing a severity change that was not confirmed."""
    kind: ErrorKind = field(default=ErrorKind.CONFIRMATION_REQUIRED, init=False)
    preview: Any = None
