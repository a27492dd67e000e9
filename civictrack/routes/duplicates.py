"""
Duplicate review dashboard routes.
"""

from fastapi import APIRouter, Depends

from civictrack.routes._shared import get_services, require_staff
from civictrack.services import ConsoleServices

router = APIRouter(tags=["Duplicates"], dependencies=[Depends(require_staff)])


@router.get("/api/duplicates/groups")
async def get_duplicate_groups(services: ConsoleServices = Depends(get_services)):
    """Group active incidents around their oldest matching report."""
    groups = await services.duplicates.scan_groups()
    return {"groups": [g.to_dict() for g in groups], "total": len(groups)}
