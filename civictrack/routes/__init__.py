"""
Route registration for the CivicTrack staff console API.
"""

from fastapi import FastAPI

from civictrack.routes import (
    incidents,
    duplicates,
    reporters,
    settings,
    sla,
)


def register_routes(app: FastAPI) -> None:
    """Register all route modules with the FastAPI app."""
    app.include_router(incidents.router)
    app.include_router(duplicates.router)
    app.include_router(reporters.router)
    app.include_router(sla.router)
    app.include_router(settings.router)
