"""
confurl - Read configuration files from URLs.

Usage:
    from confurl import UrlFetcher, ConfUrlConfig

    fetcher = UrlFetcher(ConfUrlConfig(connect_timeout=5))

    with fetcher.open("https://config.example.com/proftpd.conf?ssl_verify=off") as fh:
        text = fh.read().decode()
"""

__version__ = "0.1.0"

from .errors import (
    ConfUrlError,
    ParseError,
    ParseErrorKind,
    ResponseError,
    ResponseErrorKind,
    TransportError,
    TransportErrorKind,
)
from .fetcher import ConfigUrlFile, FetchState, UrlFetcher, classify_response
from .fs import ConfUrlModule, FSRegistry, SyntheticStat, UrlConfigFS
from .logging_config import TRACING, Tracing, setup_logging
from .models.config import ConfUrlConfig, FetchOptions
from .params import decode_query, encode_query
from .uri import ParsedURI, is_supported_scheme, parse_uri

__all__ = [
    "__version__",
    # Core
    "UrlFetcher",
    "ConfigUrlFile",
    "FetchState",
    "classify_response",
    # Parsing
    "ParsedURI",
    "parse_uri",
    "is_supported_scheme",
    "decode_query",
    "encode_query",
    # Filesystem hooks
    "UrlConfigFS",
    "FSRegistry",
    "ConfUrlModule",
    "SyntheticStat",
    # Config
    "ConfUrlConfig",
    "FetchOptions",
    # Logging
    "TRACING",
    "Tracing",
    "setup_logging",
    # Errors
    "ConfUrlError",
    "ParseError",
    "ParseErrorKind",
    "TransportError",
    "TransportErrorKind",
    "ResponseError",
    "ResponseErrorKind",
]
