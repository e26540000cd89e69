"""
FastAPI application for the whale tracker.

This module creates the application, installs middleware and error
handlers, mounts the routers and ties the tracker runtime to the
application lifecycle.
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from whale_tracker import __version__
from whale_tracker.config import ServerConfig, get_server_config
from whale_tracker.logging_config import configure_logging, get_logger
from whale_tracker.models.api_models import ApiResponse
from whale_tracker.routes import alerts, chains, launches, stream, whales
from whale_tracker.runtime import TrackerRuntime
from whale_tracker.utils.api_response import register_error_handlers

logger = get_logger(__name__)

# API Documentation tags
tags_metadata = [
    {"name": "whales", "description": "Whale transactions, addresses and statistics per chain"},
    {"name": "alerts", "description": "Whale token acquisition alerts and token analyses"},
    {"name": "launches", "description": "New launches, whale magnets and bonding curves"},
    {"name": "chains", "description": "Chain connectivity and account balances"},
    {"name": "stream", "description": "WebSocket push channel"},
    {"name": "system", "description": "Service health"},
]


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of every HTTP request."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.monotonic()
        response = await call_next(request)
        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.debug(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle events.

    Args:
        app: The FastAPI application instance
    """
    if getattr(app.state, "runtime", None) is None:
        app.state.runtime = TrackerRuntime()

    runtime: TrackerRuntime = app.state.runtime
    if app.state.start_runtime:
        await runtime.start()
    logger.info("Application initialized successfully")

    yield  # Application is running here

    logger.info("Application shutting down...")
    await runtime.stop()
    logger.info("Shutdown complete")


def create_application(
    runtime: Optional[TrackerRuntime] = None,
    server_config: Optional[ServerConfig] = None,
    start_runtime: bool = True,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        runtime: Pre-built runtime. Built from the environment on startup when omitted.
        server_config: Server configuration. Defaults to environment-based config.
        start_runtime: Whether startup launches the background detection loops

    Returns:
        The configured FastAPI application
    """
    config = server_config or get_server_config()
    configure_logging(config.log_level)

    app = FastAPI(
        title="Whale Tracker API",
        description="Multi-chain whale detection, token risk scoring and new launch tracking.",
        version=__version__,
        openapi_tags=tags_metadata,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        debug=config.debug,
    )
    app.state.runtime = runtime
    app.state.start_runtime = start_runtime

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_error_handlers(app)

    app.include_router(whales.router)
    app.include_router(alerts.router)
    app.include_router(launches.router)
    app.include_router(chains.router)
    app.include_router(stream.router)

    @app.get("/health", response_model=ApiResponse[Dict[str, Any]], tags=["system"])
    async def health_check():
        """
        Check the health of the service.
        """
        runtime: Optional[TrackerRuntime] = app.state.runtime
        return ApiResponse.success_response({
            "status": "healthy",
            "version": __version__,
            "environment": config.environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "chains": list(runtime.detectors) if runtime is not None else [],
            "running": runtime.started if runtime is not None else False,
        })

    return app
