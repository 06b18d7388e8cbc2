import re
from urllib.parse import urlparse

ALLOWED_SCHEMES = {"http", "https"}
LOOPBACK_HOSTS = {"localhost", "127.0.0.1"}
PRIVATE_HOST_RE = re.compile(r"^(?:10\.|192\.168\.|172\.(?:1[6-9]|2[0-9]|3[0-1])\.)")
UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def is_public_http_url(raw_url: str | None) -> bool:
    """True for http(s) URLs whose host is neither loopback nor a private IPv4 range."""
    if not isinstance(raw_url, str) or not raw_url.strip():
        return False
    try:
        parsed = urlparse(raw_url.strip())
        hostname = (parsed.hostname or "").lower()
    except ValueError:
        return False

    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not hostname:
        return False
    if hostname in LOOPBACK_HOSTS:
        return False
    return PRIVATE_HOST_RE.match(hostname) is None


def is_valid_uuid(value: str | None) -> bool:
    return isinstance(value, str) and UUID_RE.match(value) is not None
