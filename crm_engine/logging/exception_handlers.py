# crm_engine/logging/exception_handlers.py

import logging
import traceback

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError, ResponseValidationError
from fastapi.responses import JSONResponse

from crm_engine.core.errors import RecordEngineError
from crm_engine.logging.context import safe_json_dumps, write_log

logger = logging.getLogger(__name__)


async def record_engine_exception_handler(request: Request, exc: RecordEngineError):
    """Map engine errors onto their HTTP status with a structured body."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    else:
        logger.warning("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def general_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions and log them to database"""
    error_traceback = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)

    # Server errors bypass LoggingMiddleware, so the row is written here
    write_log(
        request,
        500,
        safe_json_dumps({"error": str(exc), "type": type(exc).__name__, "traceback": error_traceback}),
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error", "code": "INTERNAL"},
    )


async def response_validation_exception_handler(request: Request, exc: ResponseValidationError):
    logger.error("Response validation failed on %s %s", request.method, request.url.path)
    write_log(request, 500, safe_json_dumps(exc.errors()))

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal Server Error: Response validation failed.",
            "code": "INTERNAL",
        },
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""
    logger.warning("Request validation failed on %s %s", request.method, request.url.path)

    # Convert errors to a safe format for JSON response
    def convert_error(error):
        if isinstance(error, dict):
            return {k: convert_error(v) for k, v in error.items()}
        elif isinstance(error, list):
            return [convert_error(item) for item in error]
        elif isinstance(error, (int, float, bool)) or error is None:
            return error
        else:
            return str(error)

    return JSONResponse(
        status_code=422,
        content={"detail": convert_error(exc.errors()), "code": "VALIDATION_ERROR"},
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions raised by routing or endpoints"""
    if exc.status_code >= 400:
        logger.warning("HTTP %s on %s %s: %s", exc.status_code, request.method, request.url.path, exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )
