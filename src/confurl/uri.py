"""Permissive, scheme-aware URI parsing.

The parser decomposes the URLs accepted for configuration files without
relying on a general-purpose URL library, because the inputs it must accept
are not all well-formed per RFC 3986:

    scheme://[user[:password]@]host[:port][/path][?key=value&...]
    scheme://[user[:password]@][ipv6]...
    file:///absolute/path

Passwords (and usernames) may contain ``@``; only the last ``@`` separates
the userinfo from the host. No percent-decoding is performed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from .errors import ParseError, ParseErrorKind, url_preview
from .params import decode_query

logger = logging.getLogger(__name__)

# Order used when parsing; prefixes are disjoint so the first match wins.
PARSE_SCHEMES = ("file://", "ftp://", "ftps://", "http://", "https://")

# Order used when deciding whether a path belongs to us.
SUPPORTED_SCHEMES = ("https://", "http://", "ftps://", "ftp://", "file://")

TLS_SCHEMES = frozenset({"https://", "ftps://"})

MIN_URI_LENGTH = 7

_DIGITS = frozenset("0123456789")


@dataclass
class ParsedURI:
    """
    Result of parsing one URL string.

    Attributes:
        scheme: Lowercase scheme name (file, ftp, ftps, http or https)
        host: Hostname, IPv4 literal, IPv6 literal without brackets, or,
              for ``file:///path`` style inputs, the whole absolute path
        port: Port number in [1, 65535], or None if not given
        path: Text following host[:port], or None if nothing follows
        username: Userinfo name, or None without userinfo
        password: Userinfo password; empty string when given but empty,
                  None when there is no password field at all
        query_params: Decoded query parameters (last duplicate wins)
    """

    scheme: str
    host: str
    port: Optional[int] = None
    path: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    query_params: dict[str, str] = field(default_factory=dict)

    @property
    def prefix(self) -> str:
        """Scheme with its ``://`` separator, e.g. ``"https://"``."""
        return f"{self.scheme}://"

    @property
    def is_local_path(self) -> bool:
        """Whether the host field holds an absolute path rather than a host."""
        return self.host.startswith("/")


def is_supported_scheme(path: str, tls_available: bool = True) -> bool:
    """
    Check whether ``path`` starts with a recognized URL scheme.

    Args:
        path: Candidate path or URL
        tls_available: When False, TLS-only schemes are not recognized

    Returns:
        True if a configuration-file open for ``path`` should be intercepted
    """
    lowered = path[:8].lower()
    for scheme in SUPPORTED_SCHEMES:
        if lowered.startswith(scheme):
            if not tls_available and scheme in TLS_SCHEMES:
                continue
            return True
    return False


def _match_scheme(uri: str) -> Optional[str]:
    lowered = uri[:8].lower()
    for scheme in PARSE_SCHEMES:
        if lowered.startswith(scheme):
            return scheme
    return None


def _split_userinfo(text: str) -> tuple[Optional[str], Optional[str], str]:
    """Split ``[user[:password]@]rest``, using the last ``@`` as delimiter."""
    at = text.rfind("@")
    if at < 0:
        return None, None, text

    userinfo, remaining = text[:at], text[at + 1 :]
    username, sep, password = userinfo.partition(":")
    if not sep:
        return username, None, remaining

    # "user:@host" has an empty, but present, password.
    return username, password, remaining


def _split_host(uri: str, text: str) -> tuple[str, Optional[str]]:
    """Split the host from whatever follows it (port and/or path)."""
    if text.startswith("["):
        end = text.find("]", 1)
        if end < 0:
            logger.debug(f"Badly formatted IPv6 address in host info '{url_preview(uri)}'")
            raise ParseError(
                ParseErrorKind.MALFORMED_IPV6_HOST,
                "badly formatted IPv6 address in host info",
                uri,
            )
        return text[1:end], text[end + 1 :] or None

    if text.startswith("/"):
        # Absolute local path, e.g. file:///etc/proftpd.conf
        return text, None

    # The first colon always starts the port, even past a slash.
    colon = text.find(":", 1)
    if colon > 0:
        return text[:colon], text[colon:]

    slash = text.find("/")
    if slash >= 0:
        return text[:slash], text[slash:]

    return text, None


def _split_port(uri: str, text: str) -> tuple[int, Optional[str]]:
    """Parse ``:port[/path]`` into the port number and the remaining path."""
    slash = text.find("/")
    if slash < 0:
        portspec, remaining = text[1:], None
    else:
        portspec, remaining = text[1:slash], text[slash:]

    for index, char in enumerate(portspec):
        if char not in _DIGITS:
            logger.debug(
                f"Invalid character ({char}) at index {index} in port specification '{portspec}'"
            )
            raise ParseError(
                ParseErrorKind.INVALID_PORT,
                f"invalid character in port specification '{portspec}'",
                uri,
            )

    # Digits only, so no negatives; an empty spec counts as port 0.
    port = int(portspec) if portspec else 0
    if port == 0 or port >= 65536:
        logger.debug(f"Port specification '{portspec}' yields invalid port number {port}")
        raise ParseError(
            ParseErrorKind.INVALID_PORT,
            f"port specification '{portspec}' yields invalid port number {port}",
            uri,
        )

    return port, remaining


def parse_uri(uri: str) -> ParsedURI:
    """
    Parse a configuration URL into its components.

    Args:
        uri: URL string such as ``https://user:pw@host:8443/conf?tracing=1``

    Returns:
        ParsedURI describing the URL

    Raises:
        ParseError: With kind UNSUPPORTED_SCHEME, MALFORMED_IPV6_HOST,
            INVALID_PORT or MALFORMED_QUERY
    """
    if len(uri) < MIN_URI_LENGTH:
        logger.debug(f"Unknown/unsupported scheme in URI '{url_preview(uri)}' (URI too short)")
        raise ParseError(ParseErrorKind.UNSUPPORTED_SCHEME, "URI too short", uri)

    prefix = _match_scheme(uri)
    if prefix is None:
        logger.debug(f"Unknown/unsupported scheme in URI '{url_preview(uri)}'")
        raise ParseError(ParseErrorKind.UNSUPPORTED_SCHEME, "unknown/unsupported scheme", uri)

    remaining = uri[len(prefix) :]

    # The query must be removed before userinfo/host parsing sees it.
    query_params: dict[str, str] = {}
    mark = remaining.find("?")
    if mark >= 0:
        query_params = decode_query(remaining[mark + 1 :], uri)
        remaining = remaining[:mark]

    username, password, remaining = _split_userinfo(remaining)
    host, rest = _split_host(uri, remaining)

    port = None
    if rest is not None and rest.startswith(":"):
        port, rest = _split_port(uri, rest)

    return ParsedURI(
        scheme=prefix[:-3],
        host=host,
        port=port,
        path=rest or None,
        username=username,
        password=password,
        query_params=query_params,
    )
