"""Security utilities for authorization flows.

Provides CSRF state generation, redirect URI validation and log-safe token
fingerprints.
"""

from __future__ import annotations

import hashlib
import secrets
import string
from urllib.parse import urlparse

STATE_ALPHABET = string.ascii_letters + string.digits + "-_"
STATE_LENGTH = 43

LOOPBACK_HOSTS = ("localhost", "127.0.0.1", "::1")


def generate_state() -> str:
    """Generate cryptographically secure state parameter.

    The state parameter provides CSRF protection by ensuring the callback
    matches an authorization request this server issued.

    Returns:
        Random URL-safe state string (43 characters, about 256 bits)
    """
    return "".join(secrets.choice(STATE_ALPHABET) for _ in range(STATE_LENGTH))


def validate_redirect_uri(uri: str) -> bool:
    """Validate redirect URI meets OAuth security requirements.

    Args:
        uri: Redirect URI to validate

    Returns:
        True if the URI uses HTTPS, or plain HTTP on a loopback host
    """
    try:
        parsed = urlparse(uri)
    except ValueError:
        return False
    if not parsed.netloc:
        return False
    return parsed.scheme == "https" or (
        parsed.scheme == "http" and parsed.hostname in LOOPBACK_HOSTS
    )


def is_absolute_http_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def fingerprint(secret: str) -> str:
    """Short, non-reversible tag for correlating a token across log lines."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()[:8]
