"""
FastAPI backend for the CivicTrack municipal incident console.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from civictrack import config
from civictrack.routes import register_routes
from civictrack.routes._shared import incident_error_handler
from civictrack.services import (
    DocumentStore,
    IncidentError,
    InMemoryDocumentStore,
    PostgresDocumentStore,
    SettingsService,
    build_services,
)
from civictrack.utils.timestamps import utcnow

logger = logging.getLogger(__name__)


def create_app(
    store: Optional[DocumentStore] = None,
    clock: Optional[Callable[[], datetime]] = None,
    settings: Optional[SettingsService] = None,
) -> FastAPI:
    """Build the API. Without a store, USE_DATABASE picks Postgres or in-memory."""
    use_database = store is None and config.USE_DATABASE
    if store is None:
        store = PostgresDocumentStore() if use_database else InMemoryDocumentStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        if use_database:
            from civictrack.database import get_pool, ensure_schema
            await get_pool()
            await ensure_schema()
            logger.info("Database connection pool initialized")

        yield

        if use_database:
            from civictrack.database import close_pool
            await close_pool()

    app = FastAPI(
        title="CivicTrack API",
        description="Municipal incident lifecycle and duplicate resolution",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.services = build_services(store, clock=clock or utcnow, settings=settings)
    app.add_exception_handler(IncidentError, incident_error_handler)
    register_routes(app)

    @app.get("/health")
    async def health():
        status = {"status": "ok", "database": "disabled"}
        if use_database:
            from civictrack.database import check_connection
            healthy = await check_connection()
            status["database"] = "ok" if healthy else "unavailable"
            if not healthy:
                status["status"] = "degraded"
        return status

    return app


def run():
    """Entry point for ``civictrack-api``."""
    import uvicorn

    config.setup_logging()
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
