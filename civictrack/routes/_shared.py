"""
Shared dependencies and error mapping for route modules.
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from civictrack.services import ConsoleServices
from civictrack.services.errors import (
    ConfirmationRequired,
    ErrorKind,
    IncidentError,
    MergePartialFailure,
)

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.DEPENDENCY_UNAVAILABLE: 503,
    ErrorKind.PARTIAL_FAILURE: 207,
    ErrorKind.CONFIRMATION_REQUIRED: 409,
}


def get_services(request: Request) -> ConsoleServices:
    """FastAPI dependency returning the app's service container."""
    return request.app.state.services


def require_staff(x_staff_id: Optional[str] = Header(None)) -> str:
    """FastAPI dependency: the auth proxy sets X-Staff-Id for signed-in staff."""
    if not x_staff_id:
        raise HTTPException(status_code=401, detail="Staff authentication required")
    return x_staff_id


def error_payload(exc: IncidentError) -> dict:
    payload = {
        "error": exc.kind.value,
        "detail": exc.message,
        "documentId": exc.document_id,
        "retryable": exc.retryable,
    }
    if isinstance(exc, MergePartialFailure) and exc.outcome is not None:
        payload["outcome"] = exc.outcome.to_dict()
    if isinstance(exc, ConfirmationRequired) and exc.preview is not None:
        payload["preview"] = exc.preview.to_dict()
    return payload


async def incident_error_handler(request: Request, exc: IncidentError) -> JSONResponse:
    """Translate service errors into HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(exc.kind, 400)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=status_code, content=jsonable_encoder(error_payload(exc)))
