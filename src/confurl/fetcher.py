"""Fetch orchestration: URL in, readable configuration buffer out."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from types import TracebackType
from typing import Mapping, MutableMapping, Optional

from .errors import ConfUrlError, ResponseError, ResponseErrorKind, url_preview
from .logging_config import TRACING, Tracing
from .models.config import ConfUrlConfig, FetchOptions
from .params import encode_query, parse_boolean
from .transport.accumulator import ResponseAccumulator
from .transport.adapter import TransportAdapter
from .transport.engine import RequestsEngine
from .transport.protocols import TransportEngine
from .uri import parse_uri

logger = logging.getLogger(__name__)

# Fake descriptor number reported for URL-backed files.
URLCONF_FILENO = 7642

TRACING_PARAM = "tracing"
SSL_VERIFY_PARAM = "ssl_verify"

# 200 (file, HTTP), 226 (FTP transfer complete), 204, 206
SUCCESS_CODES = frozenset({200, 204, 206, 226})

_RESPONSE_KINDS = {
    400: ResponseErrorKind.INVALID_REQUEST,
    401: ResponseErrorKind.ACCESS_DENIED,
    403: ResponseErrorKind.ACCESS_DENIED,
    530: ResponseErrorKind.ACCESS_DENIED,
    404: ResponseErrorKind.NOT_FOUND,
    550: ResponseErrorKind.NOT_FOUND,
}


class FetchState(str, Enum):
    """Lifecycle of a URL-backed configuration file."""

    UNOPENED = "unopened"
    PARSING = "parsing"
    CONTROL_PARAMS = "control_params"
    FETCHING = "fetching"
    READY = "ready"
    FAILED = "failed"


def classify_response(status_code: int) -> Optional[ResponseErrorKind]:
    """
    Classify a response code.

    Returns:
        None for success codes, otherwise the matching error kind
    """
    if status_code in SUCCESS_CODES:
        return None
    return _RESPONSE_KINDS.get(status_code, ResponseErrorKind.GENERIC_FAILURE)


@dataclass
class ControlParams:
    """Values of the query parameters reserved for confurl itself."""

    tracing: bool = False
    ssl_verify: bool = True


def extract_control_params(params: MutableMapping[str, str]) -> ControlParams:
    """
    Read and remove the ``tracing`` and ``ssl_verify`` parameters.

    Both keys are removed whatever their value; unrecognized values leave
    the defaults in place. All other parameters are left untouched.
    """
    control = ControlParams()

    value = params.pop(TRACING_PARAM, None)
    if value is not None and parse_boolean(value) is True:
        control.tracing = True

    value = params.pop(SSL_VERIFY_PARAM, None)
    if value is not None and parse_boolean(value) is False:
        control.ssl_verify = False

    return control


def rewrite_url(url: str, params: Mapping[str, str], ftps: bool = False) -> str:
    """
    Build the URL handed to the transport.

    ``ftps://`` becomes ``ftp://`` (TLS is then negotiated explicitly),
    the original query is dropped, and the remaining parameters are
    re-appended.
    """
    if ftps and url[:7].lower() == "ftps://":
        url = url[:3] + url[4:]

    mark = url.find("?")
    if mark >= 0:
        url = url[:mark]

    return url + encode_query(params)


class ConfigUrlFile:
    """
    A configuration file whose contents come from a URL.

    The whole body is fetched by :meth:`open`; :meth:`read` then drains it
    sequentially. Usually created through :meth:`UrlFetcher.open`.

    Example:
        with fetcher.open("https://example.com/proftpd.conf?ssl_verify=off") as fh:
            while chunk := fh.read(8192):
                handle_config(chunk)
    """

    def __init__(self, url: str, fetcher: UrlFetcher):
        self.url = url
        self.fetcher = fetcher
        self.state = FetchState.UNOPENED
        self.error: Optional[ConfUrlError] = None
        self.target_url: Optional[str] = None
        self.options: Optional[FetchOptions] = None
        self.status_code: Optional[int] = None
        self.content_type: Optional[str] = None
        self._body: Optional[ResponseAccumulator] = None
        self._closed = False

    def open(self) -> ConfigUrlFile:
        """
        Parse the URL, fetch it and buffer the body.

        Raises:
            ParseError: Before any network activity
            TransportError: If the transfer fails
            ResponseError: If the response code is not a success code
        """
        if self.state != FetchState.UNOPENED:
            raise ValueError(f"file already opened (state: {self.state.value})")

        try:
            self._open()
        except ConfUrlError as e:
            self.state = FetchState.FAILED
            self.error = e
            self._body = None
            raise

        self.state = FetchState.READY
        return self

    def _open(self) -> None:
        preview = url_preview(self.url)
        logger.debug(f"Opening path '{preview}'")

        self.state = FetchState.PARSING
        try:
            parsed = parse_uri(self.url)
        except ConfUrlError as e:
            logger.debug(f"Failed parsing URI '{preview}': {e.strerror}")
            raise

        self.state = FetchState.CONTROL_PARAMS
        control = extract_control_params(parsed.query_params)
        if control.tracing:
            self.fetcher.tracing.enable()

        # ftps:// must use explicit TLS over an ftp:// connection.
        ftps = parsed.scheme == "ftps"
        self.target_url = rewrite_url(self.url, parsed.query_params, ftps=ftps)
        self.options = self.fetcher.fetch_options(use_tls=ftps, ssl_verify=control.ssl_verify)

        self.state = FetchState.FETCHING
        result = self.fetcher.adapter.fetch(self.target_url, self.options)
        self.status_code = result.status_code
        self.content_type = result.content_type

        kind = classify_response(result.status_code)
        if kind is not None:
            result.body.discard()
            logger.debug(f"Received {result.status_code} response code for '{preview}' request")
            raise ResponseError(kind, result.status_code, self.url)

        self._body = result.body

    def read(self, size: int = -1) -> bytes:
        """
        Read up to ``size`` bytes (all remaining bytes if negative).

        Returns:
            The next bytes of the body; empty once exhausted, or if the
            open failed

        Raises:
            ValueError: If the file was closed
        """
        if self._closed:
            raise ValueError("I/O operation on closed file")

        if self._body is None:
            return b""

        if size is None or size < 0:
            size = self._body.remaining
        return self._body.read(size)

    @property
    def remaining(self) -> int:
        """Bytes not yet read."""
        return self._body.remaining if self._body is not None else 0

    @property
    def size(self) -> int:
        return self._body.size if self._body is not None else 0

    @property
    def closed(self) -> bool:
        return self._closed

    def fileno(self) -> int:
        return URLCONF_FILENO

    def close(self) -> None:
        """Release the buffer. Safe to call more than once, in any state."""
        self._body = None
        self._closed = True

    def __enter__(self) -> ConfigUrlFile:
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<ConfigUrlFile url={url_preview(self.url)!r} state={self.state.value}>"


class UrlFetcher:
    """
    Opens configuration URLs.

    Fetches are sequential and blocking; a fetcher is not meant to be
    shared between threads.

    Example:
        fetcher = UrlFetcher(ConfUrlConfig(connect_timeout=5))
        with fetcher.open("ftps://ftp.example.com/etc/proftpd.conf") as fh:
            text = fh.read().decode()
    """

    def __init__(
        self,
        config: Optional[ConfUrlConfig] = None,
        engine: Optional[TransportEngine] = None,
        tracing: Tracing = TRACING,
        adapter: Optional[TransportAdapter] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            config: Timeouts, TLS and header configuration
            engine: Transport engine (default: shared RequestsEngine)
            tracing: Tracing switch; the process-wide one by default
            adapter: Pre-built adapter (overrides ``engine``)
        """
        self.config = config or ConfUrlConfig()
        self.tracing = tracing
        if adapter is None:
            adapter = TransportAdapter(
                engine or RequestsEngine(),
                tracing=tracing,
                user_agent=self.config.user_agent,
            )
        self.adapter = adapter

    @property
    def engine(self) -> TransportEngine:
        return self.adapter.engine

    def fetch_options(self, use_tls: bool = False, ssl_verify: bool = True) -> FetchOptions:
        """Options for one fetch; ``ssl_verify=False`` only ever disables verification."""
        return self.config.fetch_options(
            use_tls=use_tls,
            verify_tls=self.config.verify_tls and ssl_verify,
        )

    def open(self, url: str) -> ConfigUrlFile:
        """
        Fetch ``url`` and return a readable file.

        Raises:
            ConfUrlError: On parse, transport or response errors
        """
        return ConfigUrlFile(url, self).open()

    def fetch_bytes(self, url: str) -> bytes:
        """Fetch ``url`` and return its whole body."""
        with self.open(url) as fh:
            return fh.read()

    def close(self) -> None:
        """Release the engine's shared connection context."""
        self.engine.close()
