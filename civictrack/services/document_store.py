"""
Document store adapters.

The console treats its persistence layer as a collection-of-documents store
(``reports``, ``reporter``, ``users``, ``incidentTypes``). Business logic
only needs get-by-id, equality / membership / ordered queries, partial
updates with optional array union-append, and inserts.

Two implementations share the contract:

- ``PostgresDocumentStore`` keeps every document as a JSONB row in one
  ``documents`` table via the asyncpg pool in ``civictrack.database``.
- ``InMemoryDocumentStore`` keeps plain dicts; used for local development
  (``USE_DATABASE=false``) and tests.

Datetimes and enums are encoded to JSON-safe values at this boundary;
reads hand back whatever was stored and the models normalize it.
"""

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple

import asyncpg

from .errors import DependencyUnavailable, NotFound

logger = logging.getLogger(__name__)

REPORTS = "reports"
REPORTERS = "reporter"
USERS = "users"
INCIDENT_TYPES = "incidentTypes"


class Document(NamedTuple):
    id: str
    data: Dict[str, Any]


def to_json_safe(value: Any) -> Any:
    """Recursively convert datetimes/enums/pydantic models to JSON-safe values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_json_safe(v) for v in value]
    model_dump = getattr(value, "model_dump", None)
    if callable(model_dump):
        return to_json_safe(model_dump(by_alias=True))
    return value


def _union_append(existing: Any, items: Iterable[Any]) -> List[Any]:
    """Append items not already present (by equality), preserving order."""
    merged = list(existing) if isinstance(existing, list) else []
    for item in items:
        if item not in merged:
            merged.append(item)
    return merged


def _sort_key(value: Any) -> Tuple[int, str]:
    # None sorts first, then by string form (ISO timestamps sort chronologically)
    if value is None:
        return (0, "")
    return (1, str(value))


class DocumentStore(ABC):
    """Collection/document persistence contract."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document data, or None if it does not exist."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        where_in: Optional[Tuple[str, Iterable[Any]]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Document]:
        """Equality filters, one membership filter, optional ordering."""

    @abstractmethod
    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        array_union: Optional[Dict[str, List[Any]]] = None,
    ) -> None:
        """Merge ``fields`` into an existing document in a single write.

        ``array_union`` maps array fields to items appended unless already
        present. Raises NotFound if the document does not exist.
        """

    @abstractmethod
    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Insert a new document and return its generated id."""


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store with the same semantics as the Postgres adapter."""

    def __init__(self, seed: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for collection, docs in (seed or {}).items():
            for doc_id, data in docs.items():
                self.put(collection, doc_id, data)

    def put(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Create or replace a document (fixtures and seeding)."""
        self._collections.setdefault(collection, {})[doc_id] = to_json_safe(data)

    def delete(self, collection: str, doc_id: str) -> None:
        self._collections.get(collection, {}).pop(doc_id, None)

    async def get(self, collection, doc_id):
        data = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    async def query(self, collection, where=None, where_in=None, order_by=None, descending=False):
        where = to_json_safe(where or {})
        results = []
        for doc_id, data in self._collections.get(collection, {}).items():
            if any(data.get(key) != value for key, value in where.items()):
                continue
            if where_in is not None:
                key, values = where_in
                if data.get(key) not in to_json_safe(list(values)):
                    continue
            results.append(Document(doc_id, copy.deepcopy(data)))
        if order_by:
            results.sort(key=lambda d: _sort_key(d.data.get(order_by)), reverse=descending)
        return results

    async def update(self, collection, doc_id, fields, array_union=None):
        docs = self._collections.get(collection, {})
        if doc_id not in docs:
            raise NotFound(f"{collection} document not found", document_id=doc_id)
        data = docs[doc_id]
        data.update(to_json_safe(fields))
        for key, items in (array_union or {}).items():
            data[key] = _union_append(data.get(key), to_json_safe(items))

    async def add(self, collection, data):
        doc_id = uuid.uuid4().hex
        self.put(collection, doc_id, data)
        return doc_id


class PostgresDocumentStore(DocumentStore):
    """JSONB-backed store on the shared asyncpg pool."""

    async def get(self, collection, doc_id):
        from civictrack.database import fetchrow

        try:
            row = await fetchrow(
                "SELECT data FROM documents WHERE collection = $1 AND id = $2",
                collection, doc_id,
            )
        except (asyncpg.PostgresError, OSError) as exc:
            raise DependencyUnavailable(f"Failed to read {collection}", document_id=doc_id, original=exc)
        return row["data"] if row else None

    async def query(self, collection, where=None, where_in=None, order_by=None, descending=False):
        from civictrack.database import build_where_clause, fetch

        membership = None
        if where_in is not None:
            key, values = where_in
            membership = (key, to_json_safe(list(values)))
        where_sql, params = build_where_clause(to_json_safe(where or {}), membership, start_param=2)
        sql = f"SELECT id, data FROM documents WHERE collection = $1 AND {where_sql}"
        if order_by:
            params.append(order_by)
            direction = "DESC" if descending else "ASC"
            sql += f" ORDER BY data -> ${len(params) + 1} {direction} NULLS FIRST"

        try:
            rows = await fetch(sql, collection, *params)
        except (asyncpg.PostgresError, OSError) as exc:
            raise DependencyUnavailable(f"Failed to query {collection}", original=exc)
        return [Document(row["id"], row["data"]) for row in rows]

    async def update(self, collection, doc_id, fields, array_union=None):
        from civictrack.database import get_transaction

        try:
            async with get_transaction() as conn:
                row = await conn.fetchrow(
                    "SELECT data FROM documents WHERE collection = $1 AND id = $2 FOR UPDATE",
                    collection, doc_id,
                )
                if row is None:
                    raise NotFound(f"{collection} document not found", document_id=doc_id)
                data = row["data"]
                data.update(to_json_safe(fields))
                for key, items in (array_union or {}).items():
                    data[key] = _union_append(data.get(key), to_json_safe(items))
                await conn.execute(
                    """
                    UPDATE documents SET data = $3, updated_at = NOW()
                    WHERE collection = $1 AND id = $2
                    """,
                    collection, doc_id, data,
                )
        except (asyncpg.PostgresError, OSError) as exc:
            raise DependencyUnavailable(f"Failed to update {collection}", document_id=doc_id, original=exc)

    async def add(self, collection, data):
        from civictrack.database import execute

        doc_id = uuid.uuid4().hex
        try:
            await execute(
                "INSERT INTO documents (collection, id, data) VALUES ($1, $2, $3)",
                collection, doc_id, to_json_safe(data),
            )
        except (asyncpg.PostgresError, OSError) as exc:
            raise DependencyUnavailable(f"Failed to insert into {collection}", original=exc)
        logger.info(f"Created {collection} document {doc_id}")
        return doc_id
