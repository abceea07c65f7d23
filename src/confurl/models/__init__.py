"""Configuration models for confurl."""

from .config import (
    DEFAULT_BLOCK_SIZE,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_USER_AGENT,
    ConfUrlConfig,
    FetchOptions,
)

__all__ = [
    "ConfUrlConfig",
    "DEFAULT_BLOCK_SIZE",
    "DEFAULT_CONNECT_TIMEOUT",
    "DEFAULT_REQUEST_TIMEOUT",
    "DEFAULT_USER_AGENT",
    "FetchOptions",
]
