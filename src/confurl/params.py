"""Conversion between parameter tables and flat ``key=value`` sequences.

Query parameters and request headers are both carried as plain string
mappings. This module turns a query string into such a mapping, and a
mapping back into a query suffix or a list of header lines.
"""

import logging
from typing import Mapping, Optional

from .errors import ParseError, ParseErrorKind, url_preview

logger = logging.getLogger(__name__)

_TRUE_VALUES = frozenset({"on", "yes", "true", "1"})
_FALSE_VALUES = frozenset({"off", "no", "false", "0"})


def decode_query(query: str, uri: Optional[str] = None) -> dict[str, str]:
    """
    Decode a query string into a parameter table.

    Segments are split on ``&`` left to right; each must contain ``=``.
    Later duplicates overwrite earlier values. Decoding is all-or-nothing:
    one malformed segment rejects the whole query.

    Args:
        query: Text after the ``?`` (without the ``?`` itself)
        uri: Full URI, used only in error messages

    Returns:
        Mapping of parameter names to values

    Raises:
        ParseError: If any segment lacks ``=``
    """
    params: dict[str, str] = {}

    for segment in query.split("&"):
        key, sep, value = segment.partition("=")
        if not sep:
            logger.debug(
                f"Badly formatted query parameter '{segment}' in URI '{url_preview(uri)}'"
            )
            raise ParseError(
                ParseErrorKind.MALFORMED_QUERY,
                f"badly formatted query parameter '{segment}'",
                uri,
            )

        params[key] = value
        logger.debug(f"Parsed parameter '{key}', value '{value}' from URI")

    return params


def table_to_list(table: Mapping[str, str], separator: str = "=") -> list[str]:
    """Flatten a table into ``key<separator>value`` strings, in table order."""
    return [f"{key}{separator}{value}" for key, value in table.items()]


def encode_query(params: Mapping[str, str]) -> str:
    """
    Encode a parameter table as a query suffix.

    Returns:
        ``"?k=v&..."``, or an empty string when ``params`` is empty
    """
    if not params:
        return ""
    return "?" + "&".join(table_to_list(params))


def parse_boolean(value: str) -> Optional[bool]:
    """
    Interpret a boolean-ish string.

    Accepts on/off, yes/no, true/false and 1/0, case-insensitively.

    Returns:
        True or False, or None when the value is not recognized
    """
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None
