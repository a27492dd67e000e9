"""Scheduled Celery tasks: overdue sweep and duplicate-group scan."""

import logging

from civictrack.celery_app import app
from civictrack.services import sweeps
from civictrack.tasks.db import run_with_services

logger = logging.getLogger(__name__)


@app.task(
    bind=True,
    name="civictrack.tasks.scheduled_tasks.reconcile_open_incidents",
    acks_late=True,
    soft_time_limit=300,
    time_limit=360,
)
def reconcile_open_incidents(self):
    """Reconcile every active incident, persisting only changed fields."""
    logger.info("Reconcile sweep starting")
    try:
        result = run_with_services(sweeps.reconcile_open_incidents)
        logger.info(f"Reconcile sweep completed: {result}")
        return result
    except Exception as exc:
        logger.error(f"Reconcile sweep failed: {exc}")
        raise


@app.task(
    bind=True,
    name="civictrack.tasks.scheduled_tasks.scan_duplicate_groups",
    acks_late=True,
    soft_time_limit=300,
    time_limit=360,
)
def scan_duplicate_groups(self):
    """Hourly duplicate scan for the review dashboard."""
    logger.info("Duplicate scan starting")
    try:
        result = run_with_services(sweeps.scan_duplicate_groups)
        logger.info(f"Duplicate scan completed: {result}")
        return result
    except Exception as exc:
        logger.error(f"Duplicate scan failed: {exc}")
        raise
