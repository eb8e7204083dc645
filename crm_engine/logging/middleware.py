import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.background import BackgroundTask
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from crm_engine.logging.context import APPLICATION_ID, HOSTNAME, USERNAME, write_log

logger = logging.getLogger(__name__)

# Paths that should be excluded from logging
EXCLUDED_PATHS = ("/api/docs", "/api/redoc", "/api/openapi.json")


class LoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.username = USERNAME
        self.hostname = HOSTNAME
        self.application_id = APPLICATION_ID

        logger.info(
            "Logging middleware initialized with username: %s on host: %s, App ID: %s",
            self.username,
            self.hostname,
            self.application_id,
        )

    async def dispatch(self, request: Request, call_next: Callable):
        if any(request.url.path.startswith(path) for path in EXCLUDED_PATHS):
            return await call_next(request)

        # --- Start timer ---
        start_time = time.time()

        # --- Read request body ---
        body_bytes = await request.body()
        request_body = body_bytes.decode("utf-8", errors="ignore")
        request.state.body = request_body

        # Reconstruct stream
        async def receive() -> dict:
            return {"type": "http.request", "body": body_bytes}

        request = Request(request.scope, receive=receive)

        # --- Proceed with original response ---
        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        status_code = response.status_code
        content_type = response.headers.get("content-type", "")

        response_body = b""

        if isinstance(response, Response) and hasattr(response, "body"):
            response_body = response.body
        elif hasattr(response, "body_iterator"):
            # Streaming response: buffer chunks as they are sent
            original_iterator = response.body_iterator
            chunks = []

            async def buffer_iterator():
                nonlocal response_body
                async for chunk in original_iterator:
                    chunks.append(chunk)
                    yield chunk
                response_body = b"".join(chunks)

            response.body_iterator = buffer_iterator()

        # Only CSV exports of successful responses skip the body
        is_csv = "text/csv" in content_type

        logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, status_code, duration_ms)

        # --- Log to DB (in background) ---
        def log_to_db():
            if is_csv and status_code < 400:
                body_to_log = "[CSV export not logged]"
            elif response_body:
                body_to_log = response_body.decode("utf-8", errors="ignore")
            else:
                body_to_log = "[Response body not available]"
            write_log(request, status_code, body_to_log, request_body=request_body, processing_time=duration_ms)

        response.background = getattr(response, "background", None) or BackgroundTask(log_to_db)

        return response
