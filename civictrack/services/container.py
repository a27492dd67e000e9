"""
Service wiring shared by the API, CLI and worker.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from civictrack.utils.timestamps import utcnow

from .document_store import DocumentStore
from .duplicate_detection import DuplicateService
from .incident_lifecycle import IncidentLifecycle
from .incident_type_service import IncidentTypeCatalog
from .merge_service import MergeService
from .reporter_trust import TrustService
from .settings import SettingsService, get_settings_service
from .severity_engine import SeverityEngine
from .sla_metrics import SlaService

logger = logging.getLogger(__name__)


@dataclass
class ConsoleServices:
    store: DocumentStore
    settings: SettingsService
    catalog: IncidentTypeCatalog
    engine: SeverityEngine
    trust: TrustService
    lifecycle: IncidentLifecycle
    duplicates: DuplicateService
    merges: MergeService
    sla: SlaService


def build_services(
    store: DocumentStore,
    clock: Callable[[], datetime] = utcnow,
    settings: Optional[SettingsService] = None,
    catalog_clock: Optional[Callable[[], float]] = None,
) -> ConsoleServices:
    """Build every service on one store and clock."""
    settings = settings or get_settings_service()
    catalog_kwargs = {"clock": catalog_clock} if catalog_clock is not None else {}
    catalog = IncidentTypeCatalog(store, ttl_seconds=settings.catalog.cache_ttl_seconds, **catalog_kwargs)
    engine = SeverityEngine(store, catalog=catalog, settings=settings.deadline, clock=clock)
    trust = TrustService(store, settings=settings.trust, clock=clock)
    return ConsoleServices(
        store=store,
        settings=settings,
        catalog=catalog,
        engine=engine,
        trust=trust,
        lifecycle=IncidentLifecycle(store, engine, trust, clock=clock),
        duplicates=DuplicateService(store, config=settings.duplicate_detection),
        merges=MergeService(store, clock=clock),
        sla=SlaService(store, clock=clock),
    )
