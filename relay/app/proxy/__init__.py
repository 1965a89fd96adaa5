"""
Proxy Package
=============

This package implements the upstream relay: a caller names a remote URL and
the service fetches it on their behalf, streaming the answer back with
permissive CORS headers.

Main Components:
----------------
- gate.py: request validation and the optional shared-secret check
- upstream.py: outbound fetch, header translation and the body copy loop
- errors.py: relay error taxonomy
- routes.py: FastAPI router with the relay endpoint (/proxy)

Usage:
------
    from relay.app.proxy import proxy_router
    app.include_router(proxy_router, prefix="/api")
"""

from .errors import RelayError
from .routes import proxy_router

__all__ = ["proxy_router", "RelayError"]
