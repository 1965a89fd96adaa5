"""
Relay error taxonomy.

Every error raised before the response starts carries the HTTP status and
the message rendered as ``{"error": message}`` by the exception handler
registered in ``relay.app.main``. ``PostCommitError`` is different: it is
raised from inside the body stream, after the status line went out, and can
only be logged.
"""

from http import HTTPStatus
from typing import Optional


class RelayError(Exception):
    """Base class for failures that map to a client-facing JSON error."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    message: str = "Proxy request failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(RelayError):
    """Inbound query is missing or malformed."""

    status_code = HTTPStatus.BAD_REQUEST
    message = "Missing 'url' parameter"


class AuthError(RelayError):
    """Shared secret is configured and the supplied key does not match."""

    status_code = HTTPStatus.UNAUTHORIZED
    message = "Unauthorized"


class UpstreamError(RelayError):
    """Upstream answered, but with a non-2xx status."""

    def __init__(self, status_code: int, status_text: str):
        self.status_text = status_text
        super().__init__(f"Upstream error: {status_text}", status_code)


class TransportError(RelayError):
    """Upstream unreachable or the request could not be built."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    message = "Proxy request failed"


class PostCommitError(Exception):
    """
    Failure after response headers were sent.

    Not a RelayError: there is no status line left to change, so it is
    logged and the connection is dropped.
    """

    def __init__(self, url: str, bytes_sent: int):
        self.url = url
        self.bytes_sent = bytes_sent
        super().__init__(f"Relay of {url} aborted after {bytes_sent} bytes")
