"""
Worker-side store setup for Celery tasks.

Each ``asyncio.run()`` creates a fresh event loop and asyncpg pools are
bound to the loop they were created on, so every task run starts from a
new pool and closes it before the loop ends.

Tasks should call run_with_services() which wraps the whole lifecycle
(pool -> services -> handler -> close) in a single asyncio.run().
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from civictrack import database
from civictrack.services import PostgresDocumentStore, build_services
from civictrack.services.container import ConsoleServices

logger = logging.getLogger(__name__)


async def _run(handler: Callable[[ConsoleServices], Awaitable[Any]]) -> Any:
    database.reset_pool()  # Pool from a previous loop is unusable
    await database.get_pool()
    try:
        services = build_services(PostgresDocumentStore())
        return await handler(services)
    finally:
        await database.close_pool()


def run_with_services(handler: Callable[[ConsoleServices], Awaitable[Any]]) -> Any:
    """Run an async handler against a worker-local Postgres store."""
    return asyncio.run(_run(handler))
