"""Protocol definitions for the transport engine abstraction."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Protocol

# Sinks return the number of bytes they consumed; anything else aborts.
BodySink = Callable[[bytes], int]
HeaderSink = Callable[[bytes], int]
TraceSink = Callable[["TraceKind", bytes], None]


class TraceKind(str, Enum):
    """Kinds of debug data an engine may report while tracing."""

    TEXT = "text"
    HEADER_IN = "header_in"
    HEADER_OUT = "header_out"
    DATA_IN = "data_in"
    DATA_OUT = "data_out"
    SSL_DATA_IN = "ssl_data_in"
    SSL_DATA_OUT = "ssl_data_out"


class InfoKey(str, Enum):
    """Transfer information that can be queried after a request."""

    RESPONSE_CODE = "response_code"
    # Older name for the response code, kept by some engines.
    HTTP_CODE = "http_code"
    CONTENT_LENGTH = "content_length"
    CONTENT_TYPE = "content_type"
    TOTAL_TIME = "total_time"
    SIZE_DOWNLOAD = "size_download"


class TransportFailure(Exception):
    """
    Raised by an engine when a transfer fails.

    Attributes:
        diagnostic: Human-readable engine error text (may be empty)
    """

    def __init__(self, diagnostic: str = ""):
        super().__init__(diagnostic)
        self.diagnostic = diagnostic


class UnsupportedInfo(Exception):
    """Raised by :meth:`TransportHandle.getinfo` for keys it cannot answer."""


@dataclass
class HandleSettings:
    """
    Options fixed when a handle is created.

    Attributes:
        connect_timeout: Connect-phase ceiling in seconds
        total_timeout: Whole-request ceiling in seconds. It is checked as a
            deadline between received chunks and also bounds each socket
            read, so a server that stalls mid-chunk can overrun it by up to
            one read timeout
        verify_tls: Verify TLS peer certificates
        explicit_tls: Upgrade plain FTP control connections with AUTH TLS
        follow_redirects: Follow redirects transparently
        accept_encoding: Value for Accept-Encoding, or None to leave unset
    """

    connect_timeout: float
    total_timeout: float
    verify_tls: bool = True
    explicit_tls: bool = False
    follow_redirects: bool = True
    accept_encoding: Optional[str] = None


@dataclass
class TransportRequest:
    """One GET-style request, as handed to :meth:`TransportHandle.perform`."""

    url: str
    body_sink: BodySink
    header_sink: Optional[HeaderSink] = None
    trace_sink: Optional[TraceSink] = None
    headers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class EngineFeatures:
    """Capabilities of the installed engine."""

    ssl: bool = True
    zlib: bool = True
    version: str = ""


class TransportHandle(Protocol):
    """
    A single-use client handle, owned by one fetch.

    This abstraction allows for:
    - Simulated engines in tests
    - Swapping the concrete transport without touching the adapter
    """

    def perform(self, request: TransportRequest) -> None:
        """
        Perform one blocking request.

        Body chunks go to ``request.body_sink``, received header lines to
        ``request.header_sink``.

        Raises:
            TransportFailure: If the transfer does not complete
        """
        ...

    def getinfo(self, key: InfoKey) -> Any:
        """
        Return information about the last transfer.

        Raises:
            UnsupportedInfo: If the engine does not provide ``key``
        """
        ...

    def close(self) -> None:
        """Release the handle."""
        ...


class TransportEngine(Protocol):
    """Factory for handles, holding any process-wide connection context."""

    features: EngineFeatures

    def create_handle(self, settings: HandleSettings) -> TransportHandle:
        """Create a handle configured with ``settings``."""
        ...

    def close(self) -> None:
        """Release the shared connection context."""
        ...
