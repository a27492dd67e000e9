"""
Admin settings routes: inspect and tune duplicate, deadline, trust and catalog settings.
"""

import logging

from fastapi import APIRouter, Body, Depends, HTTPException

from civictrack.routes._shared import get_services, require_staff
from civictrack.services import ConsoleServices

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Settings"], dependencies=[Depends(require_staff)])


@router.get("/api/admin/settings")
def get_all_settings(services: ConsoleServices = Depends(get_services)):
    """Get every settings section."""
    return services.settings.get_all()


@router.get("/api/admin/settings/{section}")
def get_settings_section(section: str, services: ConsoleServices = Depends(get_services)):
    try:
        return services.settings.get_section(section)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown settings section: {section}")


@router.put("/api/admin/settings/{section}")
def update_settings_section(
    section: str,
    updates: dict = Body(...),
    staff_id: str = Depends(require_staff),
    services: ConsoleServices = Depends(get_services),
):
    """Update fields of one section; unknown fields are ignored."""
    try:
        config = services.settings.update_section(section, updates)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown settings section: {section}")
    logger.info(f"Staff {staff_id} updated {section} settings: {sorted(updates)}")
    return {"success": True, "config": config}
