"""
Batch jobs shared by the Celery beat tasks and the CLI.
"""

import logging
from typing import Dict

from civictrack.models import ACTIVE_STATUSES, Incident, IncidentStatus

from .container import ConsoleServices
from .document_store import REPORTS
from .errors import NotFound

logger = logging.getLogger(__name__)


async def reconcile_open_incidents(services: ConsoleServices) -> Dict[str, int]:
    """Overdue sweep: reconcile every active incident and persist changed fields.

    Terminal incidents still carrying ``isOverdue`` are included so the flag
    gets cleared.
    """
    store = services.store
    docs = await store.query(REPORTS, where_in=("status", [s.value for s in ACTIVE_STATUSES]))
    seen = {d.id for d in docs}
    for doc in await store.query(REPORTS, where={"isOverdue": True}):
        if doc.id not in seen:
            docs.append(doc)
            seen.add(doc.id)

    stats = {"scanned": len(docs), "updated": 0, "overdue": 0, "missing": 0}
    for doc in docs:
        incident = Incident.from_document(doc.id, doc.data)
        patch = await services.engine.reconcile(incident)
        if patch.get("status") == IncidentStatus.OVERDUE.value:
            stats["overdue"] += 1
        if not patch:
            continue
        try:
            await store.update(REPORTS, incident.id, patch)
        except NotFound:
            stats["missing"] += 1
            logger.warning(f"Incident {incident.id} vanished during sweep")
            continue
        stats["updated"] += 1

    logger.info(f"Reconcile sweep: {stats}")
    return stats


async def scan_duplicate_groups(services: ConsoleServices) -> Dict[str, int]:
    """Count duplicate groups among active incidents for the review dashboard."""
    groups = await services.duplicates.scan_groups()
    result = {
        "groups": len(groups),
        "duplicates": sum(len(g.duplicates) for g in groups),
    }
    logger.info(f"Duplicate groups awaiting review: {result}")
    return result
