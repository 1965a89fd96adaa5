"""
Request logging middleware.

Logs one line per finished ``/api`` request:

    GET /api/proxy 404 in 132ms :: {"error": "Upstream error: Not Found"}

The JSON suffix is only present for error bodies. Handled errors leave theirs
on ``request.state.log_payload``. Unhandled exceptions are answered by the
app's global handler, which runs outside this middleware after the line is
written, so their body is logged here from ``UNHANDLED_ERROR_MESSAGE``.
Written as plain ASGI so streamed relay bodies pass through untouched.
"""

import json
import logging
import time

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("relay.requests")

UNHANDLED_ERROR_MESSAGE = "Internal Server Error"


class RequestLogMiddleware:
    """ASGI middleware recording method, path, status and duration."""

    def __init__(self, app: ASGIApp, path_prefix: str = "/api"):
        self.app = app
        self.path_prefix = path_prefix

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not scope["path"].startswith(self.path_prefix):
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        status_code = 500
        started = False
        payload = None

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, started
            if message["type"] == "http.response.start":
                status_code = message["status"]
                started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            if not started:
                payload = {"error": UNHANDLED_ERROR_MESSAGE}
            raise
        finally:
            duration_ms = int((time.perf_counter() - start) * 1000)
            line = f"{scope['method']} {scope['path']} {status_code} in {duration_ms}ms"

            payload = scope.get("state", {}).get("log_payload") or payload
            if payload is not None:
                line += f" :: {json.dumps(payload)}"

            logger.info(line)
