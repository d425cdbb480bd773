"""Error definitions for r2store.

Transport failures are never wrapped: they reach the caller as the
botocore exceptions raised by the signed S3 client. The classes here cover
the few conditions this library detects on its own.
"""

from botocore.exceptions import ClientError

# S3 error code returned when a bucket or object has no tag set.
NO_SUCH_TAG_SET = "NoSuchTagSet"


class R2Error(Exception):
    """Base class for errors raised by r2store itself.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(R2Error):
    """Client configuration is malformed (bad endpoint, missing account id)."""


class InvalidUrlError(R2Error):
    """A URL has no scheme or host and cannot be reduced to an origin."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid URL (scheme and host required): {url!r}")
        self.url = url


def error_code(exc: BaseException) -> str:
    """Return the S3 error code carried by a ClientError.

    Args:
        exc: Any exception raised by a transport call.

    Returns:
        The ``Error.Code`` of the response, or an empty string when the
        exception is not a ClientError or carries no code.
    """
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code", "")
    return ""
