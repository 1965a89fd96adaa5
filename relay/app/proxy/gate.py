"""
Request gate for the relay endpoint.

Runs before any outbound connection is opened: rejects a missing target,
enforces the optional shared secret, then checks the target is an absolute
http(s) URL.
"""

import hmac
import logging
from typing import Optional
from urllib.parse import urlsplit

from ..models import RelayRequest
from .errors import AuthError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")


def key_matches(supplied: Optional[str], secret: str) -> bool:
    """Exact, constant-time comparison of the supplied key against the secret."""
    if supplied is None:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), secret.encode("utf-8"))


def is_absolute_url(url: str) -> bool:
    """True when ``url`` has an http(s) scheme and a host."""
    try:
        parts = urlsplit(url)
        # .port raises ValueError on a non-numeric or out-of-range port
        parts.port
    except ValueError:
        return False

    return parts.scheme.lower() in ALLOWED_SCHEMES and bool(parts.hostname)


def check_gate(
    url: Optional[str],
    key: Optional[str],
    secret: Optional[str],
) -> RelayRequest:
    """
    Validate an inbound relay query.

    Args:
        url: Value of the ``url`` query parameter
        key: Value of the ``key`` query parameter
        secret: Server-side shared secret (None disables the key check)

    Returns:
        RelayRequest carrying the target URL unchanged

    Raises:
        ValidationError: url missing/empty or not an absolute http(s) URL
        AuthError: secret configured and key does not match it exactly
    """
    if not url:
        raise ValidationError()

    if secret and not key_matches(key, secret):
        logger.warning("Relay request rejected: bad or missing key")
        raise AuthError()

    if not is_absolute_url(url):
        raise ValidationError("Invalid 'url' parameter")

    return RelayRequest(target_url=url, access_key=key)
