"""URL validation: the first pipeline stage. Pure, no network."""

from urllib.parse import urlsplit

from urlaudit.audit.errors import InvalidInput


def validate_url(url: str) -> str:
    """Return ``url`` stripped if it is absolute (scheme + host), else raise InvalidInput."""
    if not isinstance(url, str):
        raise InvalidInput()
    candidate = url.strip()
    try:
        parts = urlsplit(candidate)
        # Accessing .port validates the port component
        parts.port
    except ValueError:
        raise InvalidInput() from None
    if not parts.scheme or not parts.netloc or not parts.hostname:
        raise InvalidInput()
    if any(ch.isspace() for ch in candidate):
        raise InvalidInput()
    return candidate
