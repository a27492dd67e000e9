"""
Reporter trust routes.
"""

import logging

from fastapi import APIRouter, Depends, Query

from civictrack.models import ReporterEventRequest, TrustAdjustmentRequest
from civictrack.routes._shared import get_services, require_staff
from civictrack.services import ConsoleServices, trust_level_label

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reporters"], dependencies=[Depends(require_staff)])


@router.post("/api/reporters/verification")
async def record_verification(body: ReporterEventRequest, services: ConsoleServices = Depends(get_services)):
    update = await services.trust.record_verification(body.email)
    return update.to_dict()


@router.post("/api/reporters/false-report")
async def record_false_report(body: ReporterEventRequest, services: ConsoleServices = Depends(get_services)):
    update = await services.trust.record_false_report(body.email)
    return update.to_dict()


@router.put("/api/reporters/{reporter_id}/trust")
async def set_trust_level(
    reporter_id: str,
    body: TrustAdjustmentRequest,
    staff_id: str = Depends(require_staff),
    services: ConsoleServices = Depends(get_services),
):
    reporter = await services.trust.set_trust_level(reporter_id, body.trust_level, body.reason)
    logger.info(f"Staff {staff_id} adjusted trust of reporter {reporter_id}")
    return {
        "reporter": reporter.model_dump(by_alias=True),
        "trustLabel": trust_level_label(reporter.trust_level),
    }


@router.get("/api/reporters/priority")
async def get_incident_priority(
    incident_id: str = Query(..., description="Incident to score"),
    services: ConsoleServices = Depends(get_services),
):
    """Priority from the incident's severity and its reporter's trust level."""
    return await services.trust.priority_for_incident(incident_id)
