"""Process identity and the session factory used for request log rows."""

import getpass
import json
import logging
import os
import platform
import socket
from datetime import datetime
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import Request

from crm_engine.core.database import SessionLocal
from crm_engine.logging.models import Log

load_dotenv()

logger = logging.getLogger(__name__)

APPLICATION_ID = os.environ.get("APPLICATION_ID", "Unknown")


def current_username() -> str:
    try:
        return os.environ.get("USER") or os.environ.get("USERNAME") or getpass.getuser() or "unknown_user"
    except (KeyError, OSError):
        return "unknown_user"


def current_hostname() -> str:
    try:
        return socket.gethostname() or platform.node() or "unknown_host"
    except OSError:
        return "unknown_host"


USERNAME = current_username()
HOSTNAME = current_hostname()


def safe_json_dumps(obj: Any) -> str:
    return json.dumps(obj, indent=2, default=str)


def log_session_factory(request: Request):
    """Session factory for log rows; apps may override it via app.state."""
    return getattr(request.app.state, "log_session_factory", None) or SessionLocal


def request_body_text(request: Request) -> str:
    """Body captured by LoggingMiddleware, if it ran for this request."""
    return getattr(request.state, "body", None) or ""


def write_log(
    request: Request,
    status_code: int,
    response_body: str,
    request_body: Optional[str] = None,
    processing_time: Optional[float] = None,
) -> None:
    """Persist one request log row. Failures are reported, never raised."""
    session_factory = log_session_factory(request)
    try:
        with session_factory() as session:
            session.add(
                Log(
                    timestamp=datetime.now(),
                    method=request.method,
                    path=str(request.url.path),
                    status_code=status_code,
                    client_ip=request.client.host if request.client else None,
                    request_headers=json.dumps(dict(request.headers)),
                    request_body=request_body if request_body is not None else request_body_text(request),
                    response_body=response_body,
                    processing_time=processing_time,
                    user_agent=request.headers.get("user-agent"),
                    organization_id=request.headers.get("x-organization-id"),
                    username=USERNAME,
                    hostname=HOSTNAME,
                    application_id=APPLICATION_ID,
                )
            )
            session.commit()
    except Exception:
        logger.exception("Failed to write request log for %s %s", request.method, request.url.path)
