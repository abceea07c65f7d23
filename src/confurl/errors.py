"""Exception taxonomy for URL-backed configuration files.

All errors derive from :class:`ConfUrlError`, itself an :class:`OSError`, so
hosts that treat configuration opens as file operations can keep catching
``OSError`` and inspect ``errno`` the way they would for a local file.
"""

from __future__ import annotations

import errno
from enum import Enum
from typing import Optional

# Offending URLs are truncated to this many characters in messages.
URL_PREVIEW_LENGTH = 200


def url_preview(url: Optional[str], limit: int = URL_PREVIEW_LENGTH) -> str:
    """Return ``url`` truncated to ``limit`` characters for logging."""
    if url is None:
        return ""
    return url[:limit]


class ParseErrorKind(str, Enum):
    """Reasons a URL string could not be parsed."""

    UNSUPPORTED_SCHEME = "unsupported_scheme"
    MALFORMED_IPV6_HOST = "malformed_ipv6_host"
    INVALID_PORT = "invalid_port"
    MALFORMED_QUERY = "malformed_query"


class TransportErrorKind(str, Enum):
    """Transport-level failure classes, derived from engine diagnostics."""

    HOST_UNREACHABLE = "host_unreachable"
    NETWORK_UNREACHABLE = "network_unreachable"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"
    GENERIC_FAILURE = "generic_failure"


class ResponseErrorKind(str, Enum):
    """Outcome classes for a completed transfer with a non-success code."""

    INVALID_REQUEST = "invalid_request"
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    GENERIC_FAILURE = "generic_failure"


_TRANSPORT_ERRNO = {
    TransportErrorKind.HOST_UNREACHABLE: errno.ESRCH,
    TransportErrorKind.NETWORK_UNREACHABLE: errno.ENETUNREACH,
    TransportErrorKind.TIMEOUT: errno.ETIMEDOUT,
    TransportErrorKind.NOT_FOUND: errno.ENOENT,
    TransportErrorKind.GENERIC_FAILURE: errno.EPERM,
}

_RESPONSE_ERRNO = {
    ResponseErrorKind.INVALID_REQUEST: errno.EINVAL,
    ResponseErrorKind.ACCESS_DENIED: errno.EACCES,
    ResponseErrorKind.NOT_FOUND: errno.ENOENT,
    ResponseErrorKind.GENERIC_FAILURE: errno.EPERM,
}


class ConfUrlError(OSError):
    """
    Base class for all confurl errors.

    Attributes:
        errno: Filesystem-style error number for the host
        kind: Specific error kind (an Enum member)
        url: Offending URL, truncated for log safety
    """

    def __init__(self, code: int, message: str, kind: Enum, url: Optional[str] = None):
        super().__init__(code, message)
        self.kind = kind
        self.url = url_preview(url)

    def __str__(self) -> str:
        if self.url:
            return f"{self.strerror} ('{self.url}')"
        return str(self.strerror)


class ParseError(ConfUrlError):
    """The URL could not be decomposed; no network activity took place."""

    def __init__(self, kind: ParseErrorKind, message: str, url: Optional[str] = None):
        super().__init__(errno.EINVAL, message, kind, url)


class TransportError(ConfUrlError):
    """The transfer itself failed (resolution, connect, timeout, ...)."""

    def __init__(
        self,
        kind: TransportErrorKind,
        message: str,
        url: Optional[str] = None,
        diagnostic: Optional[str] = None,
    ):
        super().__init__(_TRANSPORT_ERRNO[kind], message, kind, url)
        self.diagnostic = diagnostic or None


class ResponseError(ConfUrlError):
    """The transfer completed but the response code is not a success code."""

    def __init__(
        self,
        kind: ResponseErrorKind,
        status_code: int,
        url: Optional[str] = None,
    ):
        super().__init__(
            _RESPONSE_ERRNO[kind],
            f"received {status_code} response code",
            kind,
            url,
        )
        self.status_code = status_code
