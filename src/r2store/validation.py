"""Key and URL normalization helpers for r2store.

These functions are pure and hold no state, so they can be unit-tested in
isolation from any transport.
"""

from urllib.parse import urlsplit

from r2store.errors import InvalidUrlError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_MAX_MAX_KEYS = 1000

_DEFAULT_PORTS = {"http": 80, "https": 443}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_key(key: str) -> str:
    """Strip every leading ``/`` from an object key.

    ``normalize_key(normalize_key(k)) == normalize_key(k)`` for any key.

    Args:
        key: The destination key as supplied by the caller.

    Returns:
        The key without leading path separators.
    """
    return key.lstrip("/")


def url_origin(url: str) -> str:
    """Reduce a URL to its origin (scheme, host and non-default port).

    Path, query, fragment and userinfo are dropped. Scheme and host are
    lower-cased, and the port is omitted when it is the scheme's default.

    Args:
        url: An absolute URL such as ``https://cdn.example.com/assets``.

    Returns:
        The origin, e.g. ``https://cdn.example.com``.

    Raises:
        InvalidUrlError: If the URL has no scheme or no host.
    """
    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError as e:
        raise InvalidUrlError(url) from e

    scheme = parts.scheme.lower()
    host = parts.hostname
    if not scheme or not host:
        raise InvalidUrlError(url)

    if ":" in host:
        host = f"[{host}]"
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


def validate_max_keys(max_keys: int) -> None:
    """Validate the page size of a list-objects call.

    Args:
        max_keys: Requested maximum number of keys per page.

    Raises:
        ValueError: If max_keys is outside 1..1000.
    """
    if max_keys < 1 or max_keys > _MAX_MAX_KEYS:
        raise ValueError(f"max_results must be between 1 and {_MAX_MAX_KEYS}, got {max_keys}")
