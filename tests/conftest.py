"""Shared fixtures: a scripted transport engine standing in for the network."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import pytest
from confurl.logging_config import Tracing
from confurl.models.config import ConfUrlConfig
from confurl.fetcher import UrlFetcher
from confurl.transport.protocols import (
    EngineFeatures,
    HandleSettings,
    InfoKey,
    TraceKind,
    TransportFailure,
    TransportRequest,
    UnsupportedInfo,
)


@dataclass
class Script:
    """What the next fake transfer does."""

    code: Optional[int] = 200
    chunks: list[bytes] = field(default_factory=lambda: [b"Port 2121\n"])
    headers: list[bytes] = field(default_factory=lambda: [b"HTTP/1.1 200 OK\r\n"])
    failure: Optional[str] = None
    legacy_code_only: bool = False
    content_type: Optional[str] = None


class FakeHandle:
    """Handle that replays a :class:`Script` and records what it was asked to do."""

    def __init__(self, engine: FakeEngine, settings: HandleSettings):
        self.engine = engine
        self.settings = settings
        self.request: Optional[TransportRequest] = None
        self.info: dict[InfoKey, Any] = {}
        self.closed = False

    def perform(self, request: TransportRequest) -> None:
        self.request = request
        self.engine.requests.append(request)
        script = self.engine.script

        if request.trace_sink is not None:
            request.trace_sink(TraceKind.TEXT, b"Connected")
            for line in request.headers:
                request.trace_sink(TraceKind.HEADER_OUT, f"{line}\r\n".encode())

        for line in script.headers:
            if request.header_sink is not None:
                request.header_sink(line)

        for chunk in script.chunks:
            if request.trace_sink is not None:
                request.trace_sink(TraceKind.DATA_IN, chunk)
            request.body_sink(chunk)

        if script.failure is not None:
            raise TransportFailure(script.failure)

        if script.code is not None:
            key = InfoKey.HTTP_CODE if script.legacy_code_only else InfoKey.RESPONSE_CODE
            self.info[key] = script.code
        if script.content_type is not None:
            self.info[InfoKey.CONTENT_TYPE] = script.content_type
        self.info[InfoKey.SIZE_DOWNLOAD] = sum(len(c) for c in script.chunks)

    def getinfo(self, key: InfoKey) -> Any:
        if key not in self.info:
            raise UnsupportedInfo(key.value)
        return self.info[key]

    def close(self) -> None:
        self.closed = True


class FakeEngine:
    """Engine handing out :class:`FakeHandle` objects."""

    def __init__(self, features: Optional[EngineFeatures] = None):
        self.features = features or EngineFeatures(ssl=True, zlib=True, version="fake/1.0")
        self.script = Script()
        self.handles: list[FakeHandle] = []
        self.requests: list[TransportRequest] = []
        self.closed = False

    def create_handle(self, settings: HandleSettings) -> FakeHandle:
        handle = FakeHandle(self, settings)
        self.handles.append(handle)
        return handle

    def close(self) -> None:
        self.closed = True

    @property
    def last_handle(self) -> FakeHandle:
        return self.handles[-1]

    @property
    def last_request(self) -> TransportRequest:
        return self.requests[-1]


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def tracing():
    """A private tracing switch, turned off again after the test."""
    switch = Tracing(logger_name="confurl_test.trace")
    yield switch
    switch.disable()


@pytest.fixture
def fetcher(engine, tracing):
    return UrlFetcher(ConfUrlConfig(), engine=engine, tracing=tracing)


@pytest.fixture
def make_engine():
    """Factory for engines with specific features."""
    return FakeEngine
