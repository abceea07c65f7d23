"""Transport engine, adapter and response accumulation for confurl."""

from .accumulator import ResponseAccumulator
from .adapter import (
    DEFAULT_DIAGNOSTIC_RULES,
    DiagnosticRule,
    FetchResult,
    TransportAdapter,
    classify_diagnostic,
    default_headers,
)
from .engine import RequestsEngine, detect_features
from .protocols import (
    EngineFeatures,
    HandleSettings,
    InfoKey,
    TraceKind,
    TransportEngine,
    TransportFailure,
    TransportHandle,
    TransportRequest,
    UnsupportedInfo,
)

__all__ = [
    "DEFAULT_DIAGNOSTIC_RULES",
    "DiagnosticRule",
    "EngineFeatures",
    "FetchResult",
    "HandleSettings",
    "InfoKey",
    "RequestsEngine",
    "ResponseAccumulator",
    "TraceKind",
    "TransportAdapter",
    "TransportEngine",
    "TransportFailure",
    "TransportHandle",
    "TransportRequest",
    "UnsupportedInfo",
    "classify_diagnostic",
    "default_headers",
    "detect_features",
]
