"""
SLA reporting over a municipality's incidents.

``summarize_sla()`` is pure: given the incidents and the current time it
returns the dashboard KPIs. ``SlaService`` loads the incidents.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from civictrack.models import Incident, IncidentStatus, TERMINAL_STATUSES
from civictrack.utils.timestamps import utcnow

from .document_store import REPORTS, DocumentStore
from .errors import InvalidInput

logger = logging.getLogger(__name__)

TIME_FRAMES = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "all": None,
}

TIME_FRAME_LABELS = {
    "day": "Last 24 Hours",
    "week": "Last 7 Days",
    "month": "Last 30 Days",
    "all": "All Time",
}


def format_duration(hours: float) -> str:
    """Whole days and hours, e.g. "2 days 5 hours" or "1 hour"."""
    if not hours:
        return "0 hours"
    days = math.floor(hours / 24)
    remaining = math.floor(hours % 24)
    hour_text = f"{remaining} hour{'s' if remaining != 1 else ''}"
    if days == 0:
        return hour_text
    return f"{days} day{'s' if days != 1 else ''} {hour_text}"


def _percent(part: int, whole: int) -> int:
    if whole == 0:
        return 0
    return int(math.floor(part / whole * 100 + 0.5))


def _on_time(incident: Incident) -> bool:
    if incident.deadline is None or incident.completed_at is None:
        return False
    return incident.completed_at <= incident.deadline


@dataclass
class SlaSummary:
    time_frame: str
    total_incidents: int
    completed_incidents: int
    avg_resolution_hours: float
    avg_resolution_formatted: str
    percent_on_time: int
    resolved_this_month: int
    breaching_ids: List[str] = field(default_factory=list)
    compliance: List[Dict[str, object]] = field(default_factory=list)

    @property
    def avg_resolution_days(self) -> float:
        return round(self.avg_resolution_hours / 24, 1)

    def to_dict(self) -> dict:
        return {
            "timeFrame": self.time_frame,
            "timeFrameLabel": TIME_FRAME_LABELS[self.time_frame],
            "totalIncidents": self.total_incidents,
            "completedIncidents": self.completed_incidents,
            "avgResolutionHours": round(self.avg_resolution_hours, 2),
            "avgResolutionDays": self.avg_resolution_days,
            "avgResolutionFormatted": self.avg_resolution_formatted,
            "percentOnTime": self.percent_on_time,
            "resolvedThisMonth": self.resolved_this_month,
            "breachingCount": len(self.breaching_ids),
            "breachingIds": self.breaching_ids,
            "compliance": self.compliance,
        }


def filter_by_time_frame(incidents: List[Incident], time_frame: str, now: datetime) -> List[Incident]:
    if time_frame not in TIME_FRAMES:
        raise InvalidInput(f"Unknown time frame: {time_frame!r}")
    window = TIME_FRAMES[time_frame]
    if window is None:
        return list(incidents)
    start = now - window
    return [i for i in incidents if i.timestamp is not None and i.timestamp >= start]


def average_resolution_hours(completed: List[Incident]) -> float:
    """Mean of stored resolution hours; older records fall back to completedAt - timestamp."""
    stored = [i.resolution_time_hours for i in completed if i.resolution_time_hours is not None]
    if stored:
        return sum(stored) / len(stored)
    derived = [
        (i.completed_at - i.timestamp).total_seconds() / 3600
        for i in completed
        if i.completed_at is not None and i.timestamp is not None
    ]
    if derived:
        return sum(derived) / len(derived)
    return 0.0


def summarize_sla(incidents: List[Incident], time_frame: str, now: datetime) -> SlaSummary:
    filtered = filter_by_time_frame(incidents, time_frame, now)
    completed = [i for i in filtered if i.status == IncidentStatus.COMPLETED]

    avg_hours = average_resolution_hours(completed)
    on_time = [i for i in completed if _on_time(i)]
    this_month = [
        i for i in completed
        if i.completed_at is not None
        and i.completed_at.year == now.year
        and i.completed_at.month == now.month
    ]
    breaching = [
        i.id for i in filtered
        if i.deadline is not None and i.status not in TERMINAL_STATUSES and now > i.deadline
    ]

    grouped = defaultdict(lambda: [0, 0])  # date -> [total, on_time]
    for incident in completed:
        if incident.completed_at is None:
            continue
        bucket = grouped[incident.completed_at.date().isoformat()]
        bucket[0] += 1
        if _on_time(incident):
            bucket[1] += 1
    compliance = [
        {"date": day, "compliance": _percent(on, total)}
        for day, (total, on) in sorted(grouped.items())
    ]

    return SlaSummary(
        time_frame=time_frame,
        total_incidents=len(filtered),
        completed_incidents=len(completed),
        avg_resolution_hours=avg_hours,
        avg_resolution_formatted=format_duration(avg_hours),
        percent_on_time=_percent(len(on_time), len(completed)),
        resolved_this_month=len(this_month),
        breaching_ids=breaching,
        compliance=compliance,
    )


class SlaService:
    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    async def summary(self, time_frame: str = "all", municipal: Optional[str] = None) -> SlaSummary:
        if time_frame not in TIME_FRAMES:
            raise InvalidInput(f"Unknown time frame: {time_frame!r}")
        where = {"municipal": municipal} if municipal else None
        docs = await self.store.query(REPORTS, where=where)
        incidents = [Incident.from_document(d.id, d.data) for d in docs]
        return summarize_sla(incidents, time_frame, self.clock())
