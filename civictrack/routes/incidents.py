"""
Incident detail routes: open, severity, completion, flagging, duplicates, merge.
"""

import logging

from fastapi import APIRouter, Depends, Query

from civictrack.models import FlagRequest, MergeRequest, SeverityChangeRequest
from civictrack.routes._shared import get_services, require_staff
from civictrack.services import ConsoleServices

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Incidents"], dependencies=[Depends(require_staff)])


@router.get("/api/incidents/{incident_id}")
async def open_incident(incident_id: str, services: ConsoleServices = Depends(get_services)):
    """Open an incident: reconcile, persist changes, mark New as In Progress."""
    view = await services.lifecycle.open_incident(incident_id)
    return view.to_dict()


@router.get("/api/incidents/{incident_id}/severity-preview")
async def preview_severity(
    incident_id: str,
    severity: str = Query(..., description="Proposed severity"),
    services: ConsoleServices = Depends(get_services),
):
    """Old vs. new deadline for a proposed severity."""
    preview = await services.lifecycle.preview_severity_change(incident_id, severity)
    return preview.to_dict()


@router.put("/api/incidents/{incident_id}/severity")
async def change_severity(
    incident_id: str,
    body: SeverityChangeRequest,
    staff_id: str = Depends(require_staff),
    services: ConsoleServices = Depends(get_services),
):
    """Commit a severity change. Responds 409 with the preview until confirmed."""
    incident = await services.lifecycle.change_severity(incident_id, body.severity, confirmed=body.confirmed)
    logger.info(f"Staff {staff_id} set severity of {incident_id} to {body.severity}")
    return {"incident": incident.model_dump(by_alias=True)}


@router.post("/api/incidents/{incident_id}/complete")
async def complete_incident(
    incident_id: str,
    staff_id: str = Depends(require_staff),
    services: ConsoleServices = Depends(get_services),
):
    summary = await services.lifecycle.mark_completed(incident_id)
    logger.info(f"Staff {staff_id} completed {incident_id}")
    return summary.to_dict()


@router.post("/api/incidents/{incident_id}/flag")
async def flag_incident(
    incident_id: str,
    body: FlagRequest,
    services: ConsoleServices = Depends(get_services),
):
    trust_update = await services.lifecycle.flag_incident(incident_id, body.reason, body.notes)
    return {
        "success": True,
        "incidentId": incident_id,
        "trustUpdate": trust_update.to_dict() if trust_update else None,
    }


@router.get("/api/incidents/{incident_id}/duplicates")
async def get_duplicate_candidates(incident_id: str, services: ConsoleServices = Depends(get_services)):
    """Active duplicate candidates, nearest first, all pre-selected for merge."""
    candidates = await services.duplicates.candidates_for(incident_id)
    return {
        "incidentId": incident_id,
        "candidates": [c.to_dict() for c in candidates],
        "selectedIds": [c.id for c in candidates],
    }


@router.get("/api/incidents/{incident_id}/related")
async def get_related_reports(incident_id: str, services: ConsoleServices = Depends(get_services)):
    related = await services.duplicates.related_for(incident_id)
    return {"incidentId": incident_id, "related": [r.to_dict() for r in related]}


@router.post("/api/incidents/{incident_id}/merge")
async def merge_into_incident(
    incident_id: str,
    body: MergeRequest,
    staff_id: str = Depends(require_staff),
    services: ConsoleServices = Depends(get_services),
):
    """Merge the given sources into this incident. Partial failures respond 207."""
    outcome = await services.merges.merge_incidents(incident_id, body.source_ids)
    logger.info(f"Staff {staff_id} merged {outcome.merged_ids} into {incident_id}")
    return outcome.to_dict()
