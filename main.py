#!/usr/bin/env python3
import logging
import os

import uvicorn

from crm_engine.app import create_app

logger = logging.getLogger(__name__)

# Create the FastAPI app
app = create_app()


if __name__ == "__main__":
    host = os.getenv("CRM_ENGINE_HOST", "0.0.0.0")
    port = int(os.getenv("CRM_ENGINE_PORT", "8000"))
    reload_enabled = os.getenv("CRM_ENGINE_DEV_MODE", "false").lower() == "true"

    logger.info("Starting CRM record engine on %s:%s (reload=%s)", host, port, reload_enabled)

    uvicorn.run("main:app", host=host, port=port, reload=reload_enabled)
