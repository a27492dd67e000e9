"""
Tests for the in-memory document store and the JSONB query builder.
"""

from datetime import timedelta

import pytest

from civictrack.database import build_where_clause
from civictrack.models import IncidentStatus
from civictrack.services import REPORTS, InMemoryDocumentStore, NotFound
from civictrack.services.document_store import to_json_safe

from tests.conftest import NOW


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def docs():
    return InMemoryDocumentStore(seed={REPORTS: {
        "a": {"status": "New", "municipal": "Springfield", "timestamp": NOW},
        "b": {"status": "Completed", "municipal": "Springfield", "timestamp": NOW - timedelta(hours=3)},
        "c": {"status": "Overdue", "municipal": "Shelbyville"},
    }})


# ============================================================
# IN-MEMORY STORE
# ============================================================

class TestInMemoryDocumentStore:

    def test_json_safe_encoding(self):
        encoded = to_json_safe({"when": NOW, "status": IncidentStatus.MERGED, "ids": ("x", "y")})
        assert encoded == {"when": NOW.isoformat(), "status": "Merged", "ids": ["x", "y"]}

    @pytest.mark.asyncio
    async def test_get_returns_copy(self, docs):
        data = await docs.get(REPORTS, "a")
        data["status"] = "Changed"
        assert (await docs.get(REPORTS, "a"))["status"] == "New"
        assert await docs.get(REPORTS, "missing") is None

    @pytest.mark.asyncio
    async def test_query_filters_and_order(self, docs):
        springfield = await docs.query(REPORTS, where={"municipal": "Springfield"}, order_by="timestamp")
        assert [d.id for d in springfield] == ["b", "a"]

        active = await docs.query(REPORTS, where_in=("status", [IncidentStatus.NEW, IncidentStatus.OVERDUE]))
        assert sorted(d.id for d in active) == ["a", "c"]

    @pytest.mark.asyncio
    async def test_order_puts_missing_values_first(self, docs):
        ordered = await docs.query(REPORTS, order_by="timestamp")
        assert [d.id for d in ordered] == ["c", "b", "a"]
        descending = await docs.query(REPORTS, order_by="timestamp", descending=True)
        assert [d.id for d in descending] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_update_with_array_union(self, docs):
        await docs.update(REPORTS, "a", {"status": "Merged"}, array_union={"mergedReports": [{"id": "x"}]})
        await docs.update(REPORTS, "a", {}, array_union={"mergedReports": [{"id": "x"}, {"id": "y"}]})

        data = await docs.get(REPORTS, "a")
        assert data["status"] == "Merged"
        assert data["mergedReports"] == [{"id": "x"}, {"id": "y"}]

    @pytest.mark.asyncio
    async def test_update_missing_document(self, docs):
        with pytest.raises(NotFound):
            await docs.update(REPORTS, "missing", {"status": "New"})

    @pytest.mark.asyncio
    async def test_add_generates_id(self, docs):
        doc_id = await docs.add(REPORTS, {"status": "New"})
        assert (await docs.get(REPORTS, doc_id)) == {"status": "New"}


# ============================================================
# QUERY BUILDER
# ============================================================

class TestBuildWhereClause:

    def test_empty(self):
        assert build_where_clause(None) == ("TRUE", [])

    def test_equality_and_membership(self):
        sql, params = build_where_clause(
            {"municipal": "Springfield"}, ("status", ["New", "Overdue"]), start_param=2,
        )
        assert sql == "data -> $2 = $3::jsonb AND data -> $4 = ANY($5::jsonb[])"
        assert params == ["municipal", "Springfield", "status", ["New", "Overdue"]]
