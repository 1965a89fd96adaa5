"""
Upstream Fetcher & Relay
========================

Fetches the target URL with a browser-like header set and relays the answer
to the caller:

1. Non-2xx upstream status  -> UpstreamError (same status, body discarded)
2. Connect/DNS/build failure -> TransportError (500)
3. 2xx                      -> StreamingResponse with every upstream header
                               copied, the CORS triad applied last, and the
                               raw body forwarded chunk by chunk

Each relay opens its own httpx.AsyncClient and closes it when the body is
exhausted, the client goes away, or the upstream read fails. Nothing is
pooled or cached between requests.
"""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Dict, MutableMapping, Optional
from urllib.parse import urlsplit

import httpx
from fastapi.responses import StreamingResponse

from ..config import Settings
from ..models import RelayRequest
from .errors import PostCommitError, TransportError, UpstreamError

logger = logging.getLogger(__name__)


BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}

DEFAULT_PORTS = {"http": 80, "https": 443}


# ============================================================================
# Header Functions
# ============================================================================

def origin_of(url: str) -> str:
    """
    Return the ``scheme://host[:port]`` origin of an absolute URL.

    Path, query, fragment and credentials are dropped; a default port is
    omitted.

    Raises:
        ValueError: If url has no scheme or host
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        raise ValueError(f"Not an absolute URL: {url!r}")

    scheme = parts.scheme.lower()
    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"

    port = parts.port
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


def build_upstream_headers(url: str) -> Dict[str, str]:
    """
    Build the outbound header set for a relay fetch.

    Many media servers refuse requests that lack a browser User-Agent or a
    same-origin looking Referer, so both Referer and Origin point at the
    target's own origin.

    Args:
        url: Absolute target URL

    Returns:
        Fresh header dict, one per request
    """
    origin = origin_of(url)
    return {
        "User-Agent": BROWSER_USER_AGENT,
        "Referer": origin,
        "Origin": origin,
        "Accept": "*/*",
        "Accept-Language": "en-US,en;q=0.9",
        "Connection": "keep-alive",
        "Cache-Control": "no-cache",
    }


def copy_upstream_headers(upstream_headers: httpx.Headers) -> Dict[str, str]:
    """Copy upstream headers verbatim; a repeated name keeps its last value."""
    headers: Dict[str, str] = {}
    for name, value in upstream_headers.multi_items():
        headers[name] = value
    return headers


def apply_cors_headers(headers: MutableMapping[str, str]) -> None:
    """
    Set the CORS triad on a response header map.

    Must run after the upstream copy: assignment on Starlette's MutableHeaders
    replaces any same-named header regardless of case, so upstream values
    never survive next to ours.
    """
    for name, value in CORS_HEADERS.items():
        headers[name] = value


def status_text(response: httpx.Response) -> str:
    """Upstream reason phrase, falling back to the standard phrase (HTTP/2 sends none)."""
    if response.reason_phrase:
        return response.reason_phrase
    return httpx.codes.get_reason_phrase(response.status_code) or str(response.status_code)


# ============================================================================
# Cancellation
# ============================================================================

class CancellationToken:
    """
    Per-request signal that the downstream client is gone.

    The copy loop checks it between chunks. ``is_disconnected`` is an optional async
    callable (normally ``Request.is_disconnected``) consulted on each check.
    """

    def __init__(self, is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None):
        self._is_disconnected = is_disconnected
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def check(self) -> bool:
        """Return True once the request has been cancelled."""
        if not self._cancelled and self._is_disconnected is not None:
            if await self._is_disconnected():
                self._cancelled = True
        return self._cancelled


# ============================================================================
# Relay
# ============================================================================

class RelayStreamingResponse(StreamingResponse):
    """StreamingResponse that always closes its body iterator when sending ends."""

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            # send failures and disconnect cancellation leave the generator suspended
            await self.body_iterator.aclose()


class UpstreamRelay:
    """
    Performs one upstream fetch per call and builds the client response.

    Args:
        connect_timeout: Seconds to establish the upstream connection
        read_timeout: Seconds between upstream reads (None waits forever)
        chunk_size: Upper bound on bytes held per copy-loop iteration
        transport: Optional httpx transport (tests inject httpx.MockTransport)
    """

    def __init__(
        self,
        connect_timeout: float = 10.0,
        read_timeout: Optional[float] = 60.0,
        chunk_size: int = 64 * 1024,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = httpx.Timeout(read_timeout, connect=connect_timeout)
        self.chunk_size = chunk_size
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "UpstreamRelay":
        return cls(
            connect_timeout=settings.UPSTREAM_CONNECT_TIMEOUT,
            read_timeout=settings.UPSTREAM_READ_TIMEOUT,
            chunk_size=settings.RELAY_CHUNK_SIZE,
            transport=transport,
        )

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    async def open(
        self,
        relay_request: RelayRequest,
        token: Optional[CancellationToken] = None,
    ) -> StreamingResponse:
        """
        Fetch the target and return a response that streams its body.

        Args:
            relay_request: Gate-validated relay request
            token: Cancellation token checked between body chunks

        Returns:
            StreamingResponse carrying upstream status and headers plus CORS

        Raises:
            UpstreamError: Upstream returned a non-2xx status
            TransportError: Request could not be built, sent or answered
        """
        url = relay_request.target_url
        client: Optional[httpx.AsyncClient] = None
        upstream: Optional[httpx.Response] = None

        try:
            headers = build_upstream_headers(url)
            client = self._new_client()
            upstream = await client.send(
                client.build_request("GET", url, headers=headers),
                stream=True,
            )

        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            await _close(upstream, client)
            logger.error(
                f"Upstream fetch failed: {e}",
                extra={"target_url": url, "exception_type": type(e).__name__}
            )
            raise TransportError() from e

        except Exception as e:
            await _close(upstream, client)
            logger.error(
                f"Unexpected error opening upstream: {e}",
                exc_info=True,
                extra={"target_url": url}
            )
            raise TransportError() from e

        if not upstream.is_success:
            text = status_text(upstream)
            await _close(upstream, client)
            logger.warning(
                f"Upstream returned {upstream.status_code} {text}",
                extra={"target_url": url, "status_code": upstream.status_code}
            )
            raise UpstreamError(upstream.status_code, text)

        try:
            response = RelayStreamingResponse(
                self._relay_body(url, upstream, client, token),
                status_code=upstream.status_code,
                headers=copy_upstream_headers(upstream.headers),
            )
            apply_cors_headers(response.headers)
        except Exception as e:
            await _close(upstream, client)
            logger.error(
                f"Could not build relay response: {e}",
                exc_info=True,
                extra={"target_url": url}
            )
            raise TransportError() from e

        logger.info(
            "Relaying upstream response",
            extra={
                "target_url": url,
                "status_code": upstream.status_code,
                "content_type": upstream.headers.get("content-type"),
                "content_length": upstream.headers.get("content-length"),
            }
        )
        return response

    async def _relay_body(
        self,
        url: str,
        upstream: httpx.Response,
        client: httpx.AsyncClient,
        token: Optional[CancellationToken],
    ) -> AsyncIterator[bytes]:
        """
        Copy the upstream body one bounded chunk at a time.

        Raw bytes are forwarded so copied Content-Encoding and Content-Length
        headers still describe the payload. Upstream is closed on every exit
        path: end of stream, client disconnect, read failure or cancellation.
        """
        bytes_sent = 0
        try:
            async for chunk in upstream.aiter_raw(self.chunk_size):
                if token is not None and await token.check():
                    logger.info(
                        "Client disconnected mid-stream, dropping upstream",
                        extra={"target_url": url, "bytes_sent": bytes_sent}
                    )
                    return
                yield chunk
                bytes_sent += len(chunk)

        except httpx.HTTPError as e:
            logger.error(
                f"Upstream read failed after headers were sent: {e}",
                extra={"target_url": url, "bytes_sent": bytes_sent}
            )
            raise PostCommitError(url, bytes_sent) from e

        finally:
            await asyncio.shield(_close(upstream, client))

        logger.debug(
            "Relay complete",
            extra={"target_url": url, "bytes_sent": bytes_sent}
        )


async def _close(
    upstream: Optional[httpx.Response],
    client: Optional[httpx.AsyncClient],
) -> None:
    if upstream is not None:
        await upstream.aclose()
    if client is not None:
        await client.aclose()
