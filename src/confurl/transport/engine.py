"""Blocking transport engine for http(s), ftp(s) and file URLs.

HTTP and HTTPS go through one process-wide :class:`requests.Session`, so
sequential fetches share DNS resolution, TLS sessions and cookies. FTP uses
:mod:`ftplib`, with explicit TLS (``AUTH TLS`` on a plain control
connection) when requested. ``file://`` URLs are read from the local
filesystem.
"""

from __future__ import annotations

import ftplib
import logging
import time
from typing import Any, Optional

import requests

from .. import __version__
from ..errors import ConfUrlError
from ..uri import parse_uri
from .protocols import (
    EngineFeatures,
    HandleSettings,
    InfoKey,
    TraceKind,
    TransportFailure,
    TransportRequest,
    UnsupportedInfo,
)

try:
    import ssl

    SSL_AVAILABLE = True
except ImportError:
    SSL_AVAILABLE = False

try:
    import zlib  # noqa: F401

    ZLIB_AVAILABLE = True
except ImportError:
    ZLIB_AVAILABLE = False

logger = logging.getLogger(__name__)

CHUNK_SIZE = 16 * 1024

# Smaller network reads, so the total deadline is checked more often.
HTTP_READ_SIZE = 1024
DEFAULT_FTP_PORT = 21

# Codes reported for successful transfers that have no protocol status.
FILE_RESPONSE_CODE_OK = 200


def detect_features() -> EngineFeatures:
    """Report what the installed stack supports."""
    return EngineFeatures(
        ssl=SSL_AVAILABLE,
        zlib=ZLIB_AVAILABLE,
        version=f"requests/{requests.__version__}",
    )


def _header_dict(lines: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for line in lines:
        name, _, value = line.partition(":")
        headers[name.strip()] = value.strip()
    return headers


def _ftp_code(reply: str) -> Optional[int]:
    code = reply[:3]
    return int(code) if code.isdigit() else None


class EngineHandle:
    """
    Single-use handle performing one transfer.

    Example:
        engine = RequestsEngine()
        handle = engine.create_handle(HandleSettings(connect_timeout=3, total_timeout=10))
        handle.perform(TransportRequest(url="https://example.com/app.conf", body_sink=sink))
        code = handle.getinfo(InfoKey.RESPONSE_CODE)
    """

    def __init__(self, session: requests.Session, settings: HandleSettings):
        self._session = session
        self.settings = settings
        self._info: dict[InfoKey, Any] = {}
        self._deadline = 0.0
        self._received = 0

    def _trace(self, request: TransportRequest, kind: TraceKind, data: bytes) -> None:
        if request.trace_sink is not None:
            request.trace_sink(kind, data)

    def _header(self, request: TransportRequest, line: str) -> None:
        raw = line.encode("latin-1", errors="replace")
        self._trace(request, TraceKind.HEADER_IN, raw)
        if request.header_sink is not None:
            request.header_sink(raw)

    def _deliver(self, request: TransportRequest, chunk: bytes) -> None:
        if time.monotonic() > self._deadline:
            elapsed = int(self.settings.total_timeout * 1000)
            raise TransportFailure(
                f"Operation timed out after {elapsed} milliseconds with {self._received} bytes received"
            )

        self._trace(request, TraceKind.DATA_IN, chunk)
        if request.body_sink(chunk) != len(chunk):
            raise TransportFailure("Failure writing output to destination")
        self._received += len(chunk)

    def perform(self, request: TransportRequest) -> None:
        """
        Perform the request, streaming the body into ``request.body_sink``.

        Raises:
            TransportFailure: On any transfer failure, with the diagnostic text
        """
        self._info = {}
        self._received = 0
        start = time.monotonic()
        self._deadline = start + self.settings.total_timeout

        scheme = request.url.split("://", 1)[0].lower()
        try:
            if scheme in ("http", "https"):
                self._perform_http(request)
            elif scheme == "ftp":
                self._perform_ftp(request)
            elif scheme == "file":
                self._perform_file(request)
            else:
                raise TransportFailure(f'Protocol "{scheme}" not supported')
        finally:
            self._info[InfoKey.TOTAL_TIME] = time.monotonic() - start
            self._info[InfoKey.SIZE_DOWNLOAD] = self._received

    def _perform_http(self, request: TransportRequest) -> None:
        headers = _header_dict(request.headers)
        if self.settings.accept_encoding:
            headers.setdefault("Accept-Encoding", self.settings.accept_encoding)

        try:
            response = self._session.get(
                request.url,
                headers=headers,
                stream=True,
                verify=self.settings.verify_tls,
                timeout=(self.settings.connect_timeout, self.settings.total_timeout),
                allow_redirects=self.settings.follow_redirects,
            )
        except requests.RequestException as e:
            raise TransportFailure(str(e)) from e

        with response:
            sent = getattr(response.request, "headers", None) or {}
            for name, value in sent.items():
                line = f"{name}: {value}\r\n".encode("latin-1", errors="replace")
                self._trace(request, TraceKind.HEADER_OUT, line)

            version = "1.0" if getattr(response.raw, "version", 11) == 10 else "1.1"
            self._header(request, f"HTTP/{version} {response.status_code} {response.reason or ''}\r\n")
            for name, value in response.headers.items():
                self._header(request, f"{name}: {value}\r\n")

            self._info[InfoKey.RESPONSE_CODE] = response.status_code
            self._info[InfoKey.CONTENT_TYPE] = response.headers.get("Content-Type")
            content_length = response.headers.get("Content-Length")
            if content_length is not None and content_length.isdigit():
                self._info[InfoKey.CONTENT_LENGTH] = int(content_length)

            try:
                for chunk in response.iter_content(chunk_size=HTTP_READ_SIZE):
                    if chunk:
                        self._deliver(request, chunk)
            except requests.RequestException as e:
                raise TransportFailure(str(e)) from e

    def _ftp_client(self) -> ftplib.FTP:
        if not self.settings.explicit_tls:
            return ftplib.FTP(timeout=self.settings.connect_timeout)

        if not SSL_AVAILABLE:
            raise TransportFailure("SSL/TLS support is not available for explicit FTPS")

        context = ssl.create_default_context()
        if not self.settings.verify_tls:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return ftplib.FTP_TLS(context=context, timeout=self.settings.connect_timeout)

    def _perform_ftp(self, request: TransportRequest) -> None:
        try:
            uri = parse_uri(request.url)
        except ConfUrlError as e:
            raise TransportFailure(f"URL using bad/illegal format: {e}") from e

        # Retrieve by full path, without changing directories first.
        path = uri.path or ""
        if path.startswith("/"):
            path = path[1:]

        ftp = self._ftp_client()
        try:
            port = uri.port or DEFAULT_FTP_PORT
            self._trace(request, TraceKind.TEXT, f"Connecting to {uri.host}:{port}".encode())
            self._header(request, ftp.connect(uri.host, port) + "\r\n")

            if self.settings.explicit_tls:
                self._header(request, ftp.auth() + "\r\n")

            self._header(request, ftp.login(uri.username or "anonymous", uri.password or "") + "\r\n")

            def callback(chunk: bytes) -> None:
                self._deliver(request, chunk)

            reply = ftp.retrbinary(f"RETR {path}", callback, blocksize=CHUNK_SIZE)
            self._header(request, reply + "\r\n")

        except (ftplib.error_perm, ftplib.error_temp) as e:
            # Negative replies (530, 550, ...) are responses, not transport failures.
            code = _ftp_code(str(e))
            if code is None:
                raise TransportFailure(str(e)) from e
            self._header(request, f"{e}\r\n")
            self._info[InfoKey.RESPONSE_CODE] = code
            return

        except ftplib.all_errors as e:
            raise TransportFailure(str(e) or type(e).__name__) from e

        finally:
            ftp.close()

        self._info[InfoKey.RESPONSE_CODE] = _ftp_code(reply)

    def _perform_file(self, request: TransportRequest) -> None:
        try:
            uri = parse_uri(request.url)
        except ConfUrlError as e:
            raise TransportFailure(f"URL using bad/illegal format: {e}") from e

        path = uri.host if uri.is_local_path else uri.path
        if not path:
            raise TransportFailure(f"Couldn't open file {request.url}")

        try:
            with open(path, "rb") as fh:
                while True:
                    chunk = fh.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    self._deliver(request, chunk)
        except OSError as e:
            raise TransportFailure(str(e)) from e

        self._info[InfoKey.RESPONSE_CODE] = FILE_RESPONSE_CODE_OK
        self._info[InfoKey.CONTENT_LENGTH] = self._received

    def getinfo(self, key: InfoKey) -> Any:
        """
        Return information about the last transfer.

        Raises:
            UnsupportedInfo: If the value is not known for this transfer
        """
        if key == InfoKey.HTTP_CODE:
            key = InfoKey.RESPONSE_CODE

        if key not in self._info:
            raise UnsupportedInfo(key.value)
        return self._info[key]

    def close(self) -> None:
        self._info = {}


class RequestsEngine:
    """
    Transport engine sharing one connection context across handles.

    Transfers are strictly sequential; the shared session is not protected
    against concurrent use.
    """

    def __init__(self, session: Optional[requests.Session] = None):
        self.features = detect_features()
        self._session = session or requests.Session()
        logger.debug(f"Transport engine ready ({self.features.version}, confurl {__version__})")
        if not self.features.ssl:
            logger.info("Transport engine has no SSL/TLS support")
        if not self.features.zlib:
            logger.info("Transport engine has no zlib support")

    def create_handle(self, settings: HandleSettings) -> EngineHandle:
        return EngineHandle(self._session, settings)

    def close(self) -> None:
        """Close the shared session."""
        self._session.close()
