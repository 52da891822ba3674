"""CallGuard FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app(): testable application factory
  - lifespan: @asynccontextmanager startup/shutdown sequence
  - /health router: delegated to callguard/health.py
  - /v1/hooks/* router: delegated to callguard/hooks.py
  - app = create_app(): module-level instance for uvicorn

Startup sequence:
  1. load_config()           → app.state.config
  2. configure_logging()     → level from config.logging.log_level
  3. app.state.ready = True

Shutdown: app.state.ready = False.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from callguard import __version__
from callguard.config import GuardConfig, load_config
from callguard.health import router as health_router
from callguard.hooks import router as hooks_router
from callguard.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown sequence.

    load_config() raises SystemExit on an invalid config file, so the
    process exits non-zero before ready=True is ever set.
    """
    config: GuardConfig = load_config()
    app.state.config = config

    configure_logging(
        log_level=config.logging.log_level,
        json_output=os.getenv("CALLGUARD_LOG_FORMAT", "json").lower() != "console",
    )

    app.state.ready = True
    logger.info(
        "CallGuard ready",
        host=config.server.host,
        port=config.server.port,
        filter_inputs=config.filter_inputs,
        filter_outputs=config.filter_outputs,
    )

    yield

    logger.info("CallGuard shutting down...")
    app.state.ready = False


def create_app() -> FastAPI:
    """Create and configure the CallGuard FastAPI application.

    Call this function directly in tests to get an isolated app instance.
    The module-level `app` is created at import time for uvicorn:
        uvicorn callguard.main:app --host 127.0.0.1 --port 4343
    """
    _debug = os.getenv("DEBUG", "false").lower() == "true"

    application = FastAPI(
        title="CallGuard",
        description="Policy gate for agent tool calls",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if _debug else None,
        redoc_url="/redoc" if _debug else None,
        openapi_url="/openapi.json" if _debug else None,
    )

    # /health returns 503 for anything that arrives before startup completes.
    application.state.ready = False

    application.include_router(health_router)
    application.include_router(hooks_router)

    @application.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=500, content={"error": "Internal server error"}
        )

    return application


app = create_app()
