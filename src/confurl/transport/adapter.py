"""Transport adapter: one configured, blocking fetch per call."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from ..errors import TransportError, TransportErrorKind, url_preview
from ..logging_config import TRACING, Tracing
from ..models.config import DEFAULT_USER_AGENT, FetchOptions
from ..params import table_to_list
from .accumulator import ResponseAccumulator
from .protocols import (
    HandleSettings,
    InfoKey,
    TraceKind,
    TransportEngine,
    TransportFailure,
    TransportHandle,
    TransportRequest,
    UnsupportedInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_ACCEPT = "text/plain, application/octet-stream"


@dataclass(frozen=True)
class DiagnosticRule:
    """Maps engine diagnostic text containing ``phrase`` to an error kind."""

    phrase: str
    kind: TransportErrorKind


# Checked in order; the first matching phrase wins. These match the human
# readable text of the engines in use and are advisory: text that matches
# nothing is a generic failure.
DEFAULT_DIAGNOSTIC_RULES: tuple[DiagnosticRule, ...] = (
    DiagnosticRule("Couldn't resolve host", TransportErrorKind.HOST_UNREACHABLE),
    DiagnosticRule("Could not resolve host", TransportErrorKind.HOST_UNREACHABLE),
    DiagnosticRule("Failed to resolve", TransportErrorKind.HOST_UNREACHABLE),
    DiagnosticRule("Name or service not known", TransportErrorKind.HOST_UNREACHABLE),
    DiagnosticRule("nodename nor servname provided", TransportErrorKind.HOST_UNREACHABLE),
    DiagnosticRule("Temporary failure in name resolution", TransportErrorKind.HOST_UNREACHABLE),
    DiagnosticRule("getaddrinfo failed", TransportErrorKind.HOST_UNREACHABLE),
    DiagnosticRule("No route to host", TransportErrorKind.NETWORK_UNREACHABLE),
    DiagnosticRule("Network is unreachable", TransportErrorKind.NETWORK_UNREACHABLE),
    DiagnosticRule("connect() timed out", TransportErrorKind.TIMEOUT),
    DiagnosticRule("Connection timed out", TransportErrorKind.TIMEOUT),
    DiagnosticRule("timed out", TransportErrorKind.TIMEOUT),
    DiagnosticRule("Couldn't open file", TransportErrorKind.NOT_FOUND),
    DiagnosticRule("No such file or directory", TransportErrorKind.NOT_FOUND),
)


def classify_diagnostic(
    diagnostic: Optional[str],
    rules: Sequence[DiagnosticRule] = DEFAULT_DIAGNOSTIC_RULES,
) -> TransportErrorKind:
    """
    Map engine diagnostic text to a transport error kind.

    Args:
        diagnostic: Engine error text (may be empty or None)
        rules: Ordered substring rules

    Returns:
        Kind of the first matching rule, else GENERIC_FAILURE
    """
    if diagnostic:
        for rule in rules:
            if rule.phrase in diagnostic:
                return rule.kind
    return TransportErrorKind.GENERIC_FAILURE


def default_headers(user_agent: Optional[str] = None) -> dict[str, str]:
    """Return the default request headers: Accept and User-Agent."""
    return {
        "Accept": DEFAULT_ACCEPT,
        "User-Agent": user_agent or DEFAULT_USER_AGENT,
    }


@dataclass
class FetchResult:
    """
    Outcome of a completed transfer.

    Attributes:
        status_code: Raw response code reported by the engine
        body: Accumulated (frozen) response body
        content_type: Content-Type, if the engine reported one
        reason: Status-line reason phrase, if one was received
    """

    status_code: int
    body: ResponseAccumulator
    content_type: Optional[str] = None
    reason: Optional[str] = None


class TransportAdapter:
    """
    Configures and performs one transfer per :meth:`fetch` call.

    The adapter only reports transport-level success or failure and the
    raw response code; deciding whether that code is acceptable is left to
    the caller.

    Example:
        adapter = TransportAdapter(RequestsEngine())
        result = adapter.fetch("https://example.com/app.conf", FetchOptions())
        print(result.status_code, result.body.size)
    """

    def __init__(
        self,
        engine: TransportEngine,
        tracing: Tracing = TRACING,
        rules: Sequence[DiagnosticRule] = DEFAULT_DIAGNOSTIC_RULES,
        user_agent: Optional[str] = None,
    ):
        """
        Initialize the adapter.

        Args:
            engine: Transport engine creating per-fetch handles
            tracing: Tracing switch consulted before each request
            rules: Ordered diagnostic-to-error-kind rules
            user_agent: User-Agent for the default headers
        """
        self.engine = engine
        self.tracing = tracing
        self.rules = tuple(rules)
        self.user_agent = user_agent

        # Diagnostic state of the most recent fetch only.
        self.last_diagnostic = ""
        self.response_message: Optional[str] = None

    def request_headers(self, extra: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        """Merge caller headers over the defaults."""
        headers = default_headers(self.user_agent)
        if extra:
            headers.update(extra)
        return headers

    def handle_settings(self, options: FetchOptions) -> HandleSettings:
        return HandleSettings(
            connect_timeout=options.connect_timeout,
            total_timeout=options.total_timeout,
            verify_tls=options.verify_tls,
            explicit_tls=options.use_tls,
            follow_redirects=options.follow_redirects,
            accept_encoding="gzip, deflate" if self.engine.features.zlib else "identity",
        )

    def fetch(self, url: str, options: FetchOptions) -> FetchResult:
        """
        Perform one blocking request for ``url``.

        Args:
            url: Target URL, already rewritten for the engine
            options: Timeouts, TLS and header options for this request

        Returns:
            FetchResult with the raw response code and the frozen body

        Raises:
            TransportError: If the transfer fails or yields no response code
        """
        # Re-arm per-request diagnostics so nothing leaks from the last call.
        self.last_diagnostic = ""
        self.response_message = None

        body = ResponseAccumulator()
        request = TransportRequest(
            url=url,
            body_sink=body.write_chunk,
            header_sink=body.write_header,
            trace_sink=self._trace if self.tracing.enabled else None,
            headers=table_to_list(self.request_headers(options.extra_headers), ": "),
        )

        handle = self.engine.create_handle(self.handle_settings(options))
        try:
            try:
                handle.perform(request)
            except TransportFailure as e:
                body.discard()
                raise self._transport_error(url, e.diagnostic) from e

            status_code = self._response_code(handle, url)
            if status_code is None:
                body.discard()
                raise TransportError(
                    TransportErrorKind.GENERIC_FAILURE,
                    "unable to get response code",
                    url,
                )

            body.freeze()
            self.response_message = body.reason
            if self.response_message is not None:
                logger.debug(
                    f"Received response '{status_code} {self.response_message}' "
                    f"for '{url_preview(url)}' request"
                )
            else:
                logger.debug(f"Received response code {status_code} for '{url_preview(url)}' request")

            content_type = self._log_diagnostics(handle, url)
            return FetchResult(
                status_code=status_code,
                body=body,
                content_type=content_type,
                reason=self.response_message,
            )
        finally:
            handle.close()

    def _transport_error(self, url: str, diagnostic: str) -> TransportError:
        self.last_diagnostic = diagnostic
        if diagnostic:
            logger.debug(f"'{url_preview(url)}' request error: {diagnostic}")
        else:
            logger.debug(f"'{url_preview(url)}' request error: unknown transport failure")

        kind = classify_diagnostic(diagnostic, self.rules)
        message = diagnostic or "transport failure"
        return TransportError(kind, message, url, diagnostic=diagnostic)

    def _response_code(self, handle: TransportHandle, url: str) -> Optional[int]:
        try:
            return handle.getinfo(InfoKey.RESPONSE_CODE)
        except UnsupportedInfo:
            pass

        # Older engines only know the code under its legacy name.
        try:
            return handle.getinfo(InfoKey.HTTP_CODE)
        except UnsupportedInfo as e:
            logger.debug(f"Unable to get '{url_preview(url)}' response code: {e}")
            return None

    def _optional_info(self, handle: TransportHandle, key: InfoKey) -> Any:
        try:
            return handle.getinfo(key)
        except UnsupportedInfo:
            logger.debug(f"Unable to get {key.value} for transfer")
            return None

    def _log_diagnostics(self, handle: TransportHandle, url: str) -> Optional[str]:
        """Log transfer details; returns the content type, if known."""
        preview = url_preview(url)

        content_length = self._optional_info(handle, InfoKey.CONTENT_LENGTH)
        if content_length is not None and content_length > 0:
            logger.debug(f"Received Content-Length {content_length} for '{preview}' request")

        content_type = self._optional_info(handle, InfoKey.CONTENT_TYPE)
        if content_type:
            logger.debug(f"Received Content-Type '{content_type}' for '{preview}' request")

        total_time = self._optional_info(handle, InfoKey.TOTAL_TIME)
        if total_time is not None:
            logger.debug(f"'{preview}' request took {total_time:0.3f} secs")

        received = self._optional_info(handle, InfoKey.SIZE_DOWNLOAD)
        if received is not None:
            logger.debug(f"Received {received} bytes for '{preview}' request")

        return content_type

    def _trace(self, kind: TraceKind, data: bytes) -> None:
        size = len(data)
        if kind == TraceKind.TEXT:
            self.tracing.trace(f"[debug] INFO: {data.decode('latin-1')}")
        elif kind in (TraceKind.HEADER_IN, TraceKind.HEADER_OUT):
            if size > 2:
                direction = "IN" if kind == TraceKind.HEADER_IN else "OUT"
                text = data[:-2].decode("latin-1")
                self.tracing.trace(f"[debug] HEADER {direction}: {text} ({size} bytes)")
        elif kind == TraceKind.DATA_IN:
            self.tracing.trace(f"[debug] DATA IN: ({size} bytes)")
        elif kind == TraceKind.DATA_OUT:
            self.tracing.trace(f"[debug] DATA OUT: ({size} bytes)")
        elif kind in (TraceKind.SSL_DATA_IN, TraceKind.SSL_DATA_OUT):
            return
        else:
            self.tracing.trace(f"[debug] UNKNOWN DEBUG DATA: {kind} ({size} bytes)")
