"""
FastAPI Relay Application Factory
=================================

This is the main entry point for the media relay service: a browser asks it
to fetch a remote URL and gets the upstream response back with CORS headers
it could not get from the origin server directly.

Architecture:
    Browser → Relay (this service) → Upstream media/content server

Routers:
    - /api/proxy                 : Upstream relay (optional API_KEY gate)
    - /api/channels-by-category  : Predefined channel catalog
    - /health                    : Health check endpoint
    - /                          : Built frontend when STATIC_DIR is set

Environment Variables (all optional):
    - API_KEY: Shared secret required as ?key= on relay requests
    - PORT: Listen port (default: 5000)
    - HOST: Bind address (default: 0.0.0.0)
    - LOG_LEVEL: Logging level (default: INFO)
    - UPSTREAM_CONNECT_TIMEOUT / UPSTREAM_READ_TIMEOUT: Upstream timeouts
    - RELAY_CHUNK_SIZE: Bytes per body copy iteration (default: 65536)
    - STATIC_DIR: Built frontend directory
    - CHANNELS_FILE: Channel catalog JSON override

Running the Service:
    Development:
        uvicorn relay.app.main:app --reload --port 5000

    Production:
        python -m relay.app.main
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict

from fastapi import FastAPI, Request
from starlette.requests import ClientDisconnect
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
import uvicorn

from .channels import ChannelCatalog, channels_router
from .config import Settings, get_settings, validate_configuration
from .models import HealthResponse, ServiceInfo
from .proxy import RelayError, proxy_router
from .proxy.errors import PostCommitError
from .proxy.upstream import UpstreamRelay, apply_cors_headers
from .request_log import UNHANDLED_ERROR_MESSAGE, RequestLogMiddleware

SERVICE_NAME = "relay"
SERVICE_VERSION = "1.0.0"


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def error_response(request: Request, status_code: int, message: str) -> JSONResponse:
    """
    Build a JSON error carrying the CORS triad.

    The body is also left on request.state for the request log line.
    """
    payload = {"error": message}
    request.state.log_payload = payload

    response = JSONResponse(status_code=status_code, content=payload)
    apply_cors_headers(response.headers)
    return response


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Load configuration and set up logging
        - Log configuration warnings, abort on configuration errors
        - Build the upstream relay and load the channel catalog

    Shutdown tasks:
        - Drop per-app state
    """
    settings: Settings = app.state.settings

    setup_logging(settings.LOG_LEVEL)
    logger = logging.getLogger("relay.main")

    status = validate_configuration(settings)
    for warning in status["warnings"]:
        logger.warning(warning)
    if not status["valid"]:
        for error in status["errors"]:
            logger.error(error)
        raise RuntimeError("Invalid relay configuration: " + "; ".join(status["errors"]))

    if getattr(app.state, "relay", None) is None:
        app.state.relay = UpstreamRelay.from_settings(settings)
    if getattr(app.state, "catalog", None) is None:
        app.state.catalog = ChannelCatalog.load(settings.CHANNELS_FILE)

    logger.info(
        "Relay service started",
        extra={
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "gate_enabled": settings.gate_enabled,
            "port": settings.PORT,
        }
    )

    yield

    logger.info("Shutting down relay service")
    app.state.relay = None
    app.state.catalog = None


# Create FastAPI application
def create_app(settings: Settings = None) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Lifespan management
        - Request logging middleware
        - Route handlers
        - Exception handlers
        - Static frontend (when STATIC_DIR is set)

    Args:
        settings: Settings to use instead of the environment

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Media Relay Service",
        description="Fetches remote media on behalf of browsers and relays it with CORS headers",
        version=SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.settings = settings
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(RequestLogMiddleware, path_prefix="/api")

    # Relay router: fetches upstream URLs on behalf of the caller
    app.include_router(
        proxy_router,
        prefix="/api",
        tags=["Upstream Relay"]
    )

    # Channels router: predefined channel catalog
    app.include_router(
        channels_router,
        prefix="/api",
        tags=["Channels"]
    )

    # Health check endpoint
    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> Dict[str, str]:
        """
        Health check endpoint.

        Returns:
            dict: Service health information
        """
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION
        }

    # Relay errors: gate rejections, upstream failures, transport failures
    @app.exception_handler(RelayError)
    async def relay_exception_handler(request: Request, exc: RelayError) -> JSONResponse:
        return error_response(request, int(exc.status_code), exc.message)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized error response. Upstream
        read failures (logged by the relay) and client disconnects happen after
        a streamed response has started, so they are re-raised untouched and
        the server drops the connection.
        """
        if isinstance(exc, (PostCommitError, ClientDisconnect)):
            raise exc

        logger = logging.getLogger("relay.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        return error_response(request, 500, UNHANDLED_ERROR_MESSAGE)

    if settings.STATIC_DIR and Path(settings.STATIC_DIR).is_dir():
        # Mounted last so API routes win
        app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="frontend")
    else:
        # Root endpoint
        @app.get("/", tags=["System"], response_model=ServiceInfo)
        async def root() -> Dict[str, object]:
            """
            Root endpoint with service information.

            Returns:
                dict: Service metadata and available endpoints
            """
            return {
                "service": SERVICE_NAME,
                "version": SERVICE_VERSION,
                "description": "Media relay with permissive CORS",
                "endpoints": {
                    "health": "/health",
                    "docs": "/docs",
                    "proxy": "/api/proxy",
                    "channels": "/api/channels-by-category"
                }
            }

    return app


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    """
    Direct execution entry point: python -m relay.app.main
    """
    settings = get_settings()

    uvicorn.run(
        "relay.app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower()
    )
