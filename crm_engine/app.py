"""FastAPI application entry point for the CRM record engine."""

import logging
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError, ResponseValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from crm_engine.core.database import init_db
from crm_engine.core.errors import RecordEngineError
from crm_engine.core.router import register_routes
from crm_engine.logging.exception_handlers import (
    general_exception_handler,
    http_exception_handler,
    record_engine_exception_handler,
    request_validation_exception_handler,
    response_validation_exception_handler,
)
from crm_engine.logging.middleware import LoggingMiddleware


def create_app(
    init_database: bool = True,
    log_session_factory: Optional[Callable[[], Session]] = None,
) -> FastAPI:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    app = FastAPI(
        title="CRM Record Engine",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    if init_database:
        init_db()

    # Request log rows go to the default database unless a factory is supplied
    app.state.log_session_factory = log_session_factory

    # Add request logger middleware
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(RecordEngineError, record_engine_exception_handler)
    # Capture 500 response validation errors (these aren't captured by middleware)
    app.add_exception_handler(ResponseValidationError, response_validation_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with specific origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)

    return app
