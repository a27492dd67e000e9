"""
Merge execution for duplicate incidents.

A merge folds one or more source incidents into a target. There is no
cross-document transaction, so the merge runs as a saga:

1. Re-read the target and every source.
2. Write the target once: union-append a ``mergedReports`` entry per new
   source, append each source description under a banner, and concatenate
   media URLs.
3. Write each source independently (``status=Merged``, ``mergedInto``).

Every source gets its own outcome. If any source fails, the caller gets a
``MergePartialFailure`` listing which ids merged and which did not, and can
retry just the failed ones. Sources already listed in the target's
``mergedReports`` are not appended again, so a retry does not duplicate
descriptions or media.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from civictrack.models import Incident, IncidentStatus, MergedReportRef
from civictrack.utils.timestamps import utcnow

from .document_store import REPORTS, DocumentStore
from .errors import DependencyUnavailable, InvalidInput, MergePartialFailure, NotFound

logger = logging.getLogger(__name__)


def merge_banner(source_id: str) -> str:
    return f"\n\n--- Merged from #{source_id[-6:]} ---\n"


@dataclass
class MergeOutcome:
    """Per-source result of a merge.

    The target is written before the sources. A source listed in ``failed``
    may already appear in the target's mergedReports and description; it
    stays active until a retry marks it Merged, and the retry does not
    append it to the target twice.
    """
    target_id: str
    merged_ids: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)  # source id -> reason
    merged_at: Optional[datetime] = None

    @property
    def is_complete(self) -> bool:
        return not self.failed

    @property
    def failed_ids(self) -> List[str]:
        return list(self.failed)

    def to_dict(self) -> dict:
        return {
            "targetId": self.target_id,
            "mergedIds": self.merged_ids,
            "failed": self.failed,
            "mergedAt": self.merged_at,
            "complete": self.is_complete,
        }


class MergeService:
    """Folds duplicate incidents into a primary one."""

    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    async def _fetch(self, incident_id: str) -> Optional[Incident]:
        data = await self.store.get(REPORTS, incident_id)
        if data is None:
            return None
        return Incident.from_document(incident_id, data)

    async def merge_incidents(self, target_id: str, source_ids: List[str]) -> MergeOutcome:
        """Merge ``source_ids`` into ``target_id``.

        Raises InvalidInput for a bad request, NotFound if the target is
        gone, and MergePartialFailure (carrying the outcome) when at least
        one source could not be merged.
        """
        if not source_ids:
            raise InvalidInput("No source incidents selected", document_id=target_id)
        if len(set(source_ids)) != len(source_ids):
            raise InvalidInput("Source incidents must be unique", document_id=target_id)
        if target_id in source_ids:
            raise InvalidInput("An incident cannot be merged into itself", document_id=target_id)

        target = await self._fetch(target_id)
        if target is None:
            raise NotFound("Merge target not found", document_id=target_id)
        if target.status == IncidentStatus.MERGED:
            raise InvalidInput(
                f"Target is already merged into {target.merged_into}", document_id=target_id
            )

        now = self.clock()
        outcome = MergeOutcome(target_id=target_id, merged_at=now)

        fetched = await asyncio.gather(*(self._fetch(sid) for sid in source_ids))
        sources = []
        for source_id, source in zip(source_ids, fetched):
            if source is None:
                outcome.failed[source_id] = "not found"
            elif source.status == IncidentStatus.MERGED and source.merged_into != target_id:
                outcome.failed[source_id] = f"already merged into {source.merged_into}"
            else:
                sources.append(source)

        already_listed = {ref.id for ref in target.merged_reports}
        new_sources = [s for s in sources if s.id not in already_listed]

        if new_sources:
            refs = [
                MergedReportRef(id=s.id, timestamp=s.timestamp, merged_at=now).model_dump(by_alias=True)
                for s in new_sources
            ]
            description = target.description + "".join(
                merge_banner(s.id) + s.description for s in new_sources
            )
            media_urls = list(target.media_urls)
            for s in new_sources:
                media_urls.extend(s.media_urls)

            await self.store.update(
                REPORTS,
                target_id,
                {"description": description, "mediaUrls": media_urls},
                array_union={"mergedReports": refs},
            )
            logger.info(f"Merge target {target_id} absorbed {[s.id for s in new_sources]}")

        for source in sources:
            try:
                await self.store.update(
                    REPORTS,
                    source.id,
                    {
                        "status": IncidentStatus.MERGED.value,
                        "mergedInto": target_id,
                        "mergedAt": now,
                        "isOverdue": False,
                    },
                )
            except (NotFound, DependencyUnavailable) as e:
                logger.error(f"Failed to mark {source.id} merged into {target_id}: {e}")
                outcome.failed[source.id] = e.message
                continue
            outcome.merged_ids.append(source.id)

        if outcome.failed:
            raise MergePartialFailure(
                f"{len(outcome.failed)} of {len(source_ids)} incidents could not be merged",
                document_id=target_id,
                outcome=outcome,
            )
        logger.info(f"Merged {len(outcome.merged_ids)} incidents into {target_id}")
        return outcome
