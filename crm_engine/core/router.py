"""
Module for registering routes in the FastAPI application.
"""

from fastapi import FastAPI

from crm_engine.metadata.router import router as metadata_router
from crm_engine.records.router import router as records_router
from crm_engine.reporting.router import router as report_router


def register_routes(app: FastAPI) -> None:
    """
    Registers all the routes for the FastAPI application.

    Args:
        app (FastAPI): The FastAPI application instance.
    """
    app.include_router(metadata_router, prefix="/api")
    app.include_router(records_router, prefix="/api")
    app.include_router(report_router, prefix="/api")
