"""
Proxy Routes - Upstream Relay
=============================

This module exposes the relay endpoint: the caller names a remote URL and
the service fetches it and streams the answer back with permissive CORS.

Access Model:
-------------
1. ``url`` is required and must be an absolute http(s) URL
2. When API_KEY is configured, ``key`` must match it exactly
3. Without API_KEY the relay is open to anyone who can reach it

Endpoints:
----------
- GET /api/proxy?url=...&key=...: Relay a remote resource
- OPTIONS /api/proxy: CORS preflight
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status

from ..config import Settings, get_settings
from ..models import ErrorResponse
from .gate import check_gate
from .upstream import CancellationToken, UpstreamRelay, apply_cors_headers

logger = logging.getLogger(__name__)

# Create router
proxy_router = APIRouter()

# Relay failures share the {"error": ...} body; upstream non-2xx codes pass through
ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse, "description": "Missing or invalid url"},
    status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse, "description": "Key does not match API_KEY"},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse, "description": "Upstream unreachable"},
    "4XX": {"model": ErrorResponse, "description": "Upstream client error, status passed through"},
    "5XX": {"model": ErrorResponse, "description": "Upstream server error, status passed through"},
}


# ============================================================================
# Dependencies
# ============================================================================

def get_relay(request: Request) -> UpstreamRelay:
    """
    Dependency returning the relay configured at startup.

    Falls back to a relay built from current settings when the lifespan has
    not run (e.g. the router mounted on a bare app).
    """
    relay = getattr(request.app.state, "relay", None)
    if relay is None:
        settings = getattr(request.app.state, "settings", None) or get_settings()
        relay = UpstreamRelay.from_settings(settings)
    return relay


# ============================================================================
# Proxy Endpoints
# ============================================================================

@proxy_router.get("/proxy", responses=ERROR_RESPONSES)
async def relay_proxy(
    request: Request,
    url: Optional[str] = Query(None, description="Absolute URL to fetch"),
    key: Optional[str] = Query(None, description="Shared secret, when the server requires one"),
    settings: Settings = Depends(get_settings),
    relay: UpstreamRelay = Depends(get_relay),
):
    """
    Relay a remote resource to the caller.

    Flow:
    1. Gate: require url, check key against API_KEY, validate the URL
    2. Fetch url with browser-like headers (redirects followed, no retry)
    3. Non-2xx upstream -> same status with a JSON error, body dropped
    4. 2xx upstream -> upstream status and headers, CORS triad, streamed body

    Errors are raised as RelayError subclasses and rendered by the handler
    registered in main.py.
    """
    relay_request = check_gate(url, key, settings.API_KEY)

    token = CancellationToken(request.is_disconnected)
    return await relay.open(relay_request, token)


@proxy_router.options("/proxy")
async def relay_preflight() -> Response:
    """Answer CORS preflight for the relay endpoint."""
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    apply_cors_headers(response.headers)
    return response
