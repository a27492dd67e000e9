"""
SLA dashboard routes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from civictrack.routes._shared import get_services, require_staff
from civictrack.services import ConsoleServices

router = APIRouter(tags=["SLA"], dependencies=[Depends(require_staff)])


@router.get("/api/sla/summary")
async def get_sla_summary(
    time_frame: str = Query("all", description="day, week, month or all"),
    municipal: Optional[str] = Query(None, description="Restrict to one municipality"),
    services: ConsoleServices = Depends(get_services),
):
    summary = await services.sla.summary(time_frame, municipal)
    return summary.to_dict()
