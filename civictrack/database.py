"""
Database connection pool and utilities for PostgreSQL.

Documents live in a single JSONB table keyed by (collection, id); see
``civictrack.services.document_store`` for the store built on top.
"""

import json
import logging
from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager

import asyncpg
from asyncpg import Pool, Connection

from civictrack import config

logger = logging.getLogger(__name__)


async def _init_connection(conn: Connection):
    """Initialize connection with JSON codec."""
    await conn.set_type_codec(
        'jsonb',
        encoder=json.dumps,
        decoder=json.loads,
        schema='pg_catalog'
    )
    await conn.set_type_codec(
        'json',
        encoder=json.dumps,
        decoder=json.loads,
        schema='pg_catalog'
    )

# Database URL from environment (.env loaded by civictrack.config)
DATABASE_URL = config.DATABASE_URL

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    collection  TEXT NOT NULL,
    id          TEXT NOT NULL,
    data        JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (collection, id)
);
CREATE INDEX IF NOT EXISTS documents_data_gin ON documents USING GIN (data);
"""

# Global connection pool
_pool: Optional[Pool] = None


async def get_pool() -> Pool:
    """Get or create the connection pool."""
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(
            DATABASE_URL,
            min_size=2,
            max_size=10,
            command_timeout=60,
            init=_init_connection,  # Register JSON codecs on each connection
        )
        logger.info("Database connection pool created")
    return _pool


async def close_pool():
    """Close the connection pool."""
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Database connection pool closed")


def reset_pool():
    """Forget the current pool without closing it (new event loop)."""
    global _pool
    _pool = None


@asynccontextmanager
async def get_connection() -> AsyncGenerator[Connection, None]:
    """Get a connection from the pool."""
    pool = await get_pool()
    async with pool.acquire() as conn:
        yield conn


@asynccontextmanager
async def get_transaction() -> AsyncGenerator[Connection, None]:
    """Get a connection with an active transaction."""
    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn


async def execute(query: str, *args, timeout: float = None) -> str:
    """Execute a query and return status."""
    async with get_connection() as conn:
        return await conn.execute(query, *args, timeout=timeout)


async def fetch(query: str, *args, timeout: float = None) -> list:
    """Fetch multiple rows."""
    async with get_connection() as conn:
        return await conn.fetch(query, *args, timeout=timeout)


async def fetchrow(query: str, *args, timeout: float = None):
    """Fetch a single row."""
    async with get_connection() as conn:
        return await conn.fetchrow(query, *args, timeout=timeout)


async def fetchval(query: str, *args, timeout: float = None):
    """Fetch a single value."""
    async with get_connection() as conn:
        return await conn.fetchval(query, *args, timeout=timeout)


# Health check
async def check_connection() -> bool:
    """Check if database connection is healthy."""
    try:
        result = await fetchval("SELECT 1")
        return result == 1
    except (asyncpg.PostgresError, OSError) as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def ensure_schema():
    """Create the documents table if it does not exist."""
    async with get_transaction() as conn:
        await conn.execute(SCHEMA_SQL)
        logger.info("Document schema ensured")


# Utility for building parameterized document filters
def build_where_clause(
    filters: Optional[dict],
    membership: Optional[tuple] = None,
    start_param: int = 1,
) -> tuple[str, list]:
    """
    Build a WHERE clause over JSONB document fields.

    ``filters`` maps field -> value (equality); ``membership`` is a
    ``(field, values)`` pair (field IN values). Values are compared as JSONB.
    Returns (where_sql, params).
    """
    conditions = []
    params = []
    param_num = start_param

    for key, value in (filters or {}).items():
        conditions.append(f"data -> ${param_num} = ${param_num + 1}::jsonb")
        params.extend([key, value])
        param_num += 2

    if membership is not None:
        key, values = membership
        conditions.append(f"data -> ${param_num} = ANY(${param_num + 1}::jsonb[])")
        params.extend([key, list(values)])
        param_num += 2

    where_sql = ' AND '.join(conditions) if conditions else 'TRUE'
    return where_sql, params
