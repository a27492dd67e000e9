"""
Tests for the batch sweeps and the Celery tasks that run them.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from civictrack.services import REPORTS, NotFound, sweeps
from civictrack.tasks import scheduled_tasks

from tests.conftest import NOW, offset_north


# ============================================================
# OVERDUE SWEEP
# ============================================================

class TestReconcileOpenIncidents:

    @pytest.mark.asyncio
    async def test_sweep_updates_changed_incidents(self, services, add_incident, store):
        add_incident("late", timestamp=NOW - timedelta(days=10), status="In Progress")
        add_incident("fresh")
        add_incident("done", status="Completed", isOverdue=True,
                     severity="Medium", deadline=NOW - timedelta(days=1),
                     timestamp=NOW - timedelta(days=1, hours=120))
        add_incident("merged", status="Merged", severity="Medium",
                     timestamp=NOW - timedelta(days=10))

        stats = await sweeps.reconcile_open_incidents(services)

        assert stats == {"scanned": 3, "updated": 3, "overdue": 1, "missing": 0}
        assert (await store.get(REPORTS, "late"))["status"] == "Overdue"
        assert (await store.get(REPORTS, "fresh"))["status"] == "New"
        assert (await store.get(REPORTS, "done"))["isOverdue"] is False

    @pytest.mark.asyncio
    async def test_second_sweep_is_quiet(self, services, add_incident):
        add_incident("late", timestamp=NOW - timedelta(days=10))
        await sweeps.reconcile_open_incidents(services)

        stats = await sweeps.reconcile_open_incidents(services)

        assert stats["updated"] == 0
        assert stats["overdue"] == 0

    @pytest.mark.asyncio
    async def test_vanished_incident_is_counted(self, services, add_incident, store):
        add_incident("late", timestamp=NOW - timedelta(days=10))
        store.update = AsyncMock(side_effect=NotFound("reports document not found", document_id="late"))

        stats = await sweeps.reconcile_open_incidents(services)

        assert stats["missing"] == 1
        assert stats["updated"] == 0


class TestScanDuplicateGroups:

    @pytest.mark.asyncio
    async def test_counts(self, services, add_incident):
        add_incident("a", timestamp=NOW - timedelta(hours=5))
        add_incident("b", latitude=offset_north(40.0, 20))
        add_incident("c", latitude=offset_north(40.0, 40))

        assert await sweeps.scan_duplicate_groups(services) == {"groups": 1, "duplicates": 2}


# ============================================================
# CELERY TASKS
# ============================================================

class TestScheduledTasks:

    def test_reconcile_task_runs_sweep(self, services, add_incident, monkeypatch):
        add_incident("late", timestamp=NOW - timedelta(days=10))
        monkeypatch.setattr(
            scheduled_tasks, "run_with_services", lambda handler: asyncio.run(handler(services)),
        )

        result = scheduled_tasks.reconcile_open_incidents()

        assert result["overdue"] == 1

    def test_task_failure_propagates(self, monkeypatch):
        def broken(handler):
            raise ConnectionError("database unreachable")

        monkeypatch.setattr(scheduled_tasks, "run_with_services", broken)

        with pytest.raises(ConnectionError):
            scheduled_tasks.scan_duplicate_groups()
