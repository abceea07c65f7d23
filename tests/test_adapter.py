"""Tests for the transport adapter."""

import errno

import pytest
from confurl.errors import TransportError, TransportErrorKind
from confurl.models.config import DEFAULT_USER_AGENT, FetchOptions
from confurl.transport.adapter import (
    DEFAULT_ACCEPT,
    DiagnosticRule,
    TransportAdapter,
    classify_diagnostic,
    default_headers,
)
from confurl.transport.protocols import EngineFeatures


class TestClassifyDiagnostic:
    """Tests for diagnostic text classification."""

    @pytest.mark.parametrize(
        "text,kind",
        [
            ("Couldn't resolve host 'nowhere.invalid'", TransportErrorKind.HOST_UNREACHABLE),
            ("Failed to resolve 'nowhere.invalid'", TransportErrorKind.HOST_UNREACHABLE),
            ("[Errno -2] Name or service not known", TransportErrorKind.HOST_UNREACHABLE),
            ("Failed to connect: No route to host", TransportErrorKind.NETWORK_UNREACHABLE),
            ("[Errno 101] Network is unreachable", TransportErrorKind.NETWORK_UNREACHABLE),
            ("connect() timed out!", TransportErrorKind.TIMEOUT),
            ("Read timed out. (read timeout=10)", TransportErrorKind.TIMEOUT),
            ("Couldn't open file /etc/missing.conf", TransportErrorKind.NOT_FOUND),
            ("[Errno 2] No such file or directory: '/x'", TransportErrorKind.NOT_FOUND),
            ("SSL certificate problem", TransportErrorKind.GENERIC_FAILURE),
        ],
    )
    def test_default_rules(self, text, kind):
        """Test the built-in phrase rules."""
        assert classify_diagnostic(text) == kind

    def test_empty_diagnostic(self):
        """Test that missing text is a generic failure."""
        assert classify_diagnostic("") == TransportErrorKind.GENERIC_FAILURE
        assert classify_diagnostic(None) == TransportErrorKind.GENERIC_FAILURE

    def test_custom_rules(self):
        """Test that rules are replaceable."""
        rules = [DiagnosticRule("boom", TransportErrorKind.TIMEOUT)]
        assert classify_diagnostic("big boom", rules) == TransportErrorKind.TIMEOUT
        assert classify_diagnostic("Couldn't resolve host", rules) == (
            TransportErrorKind.GENERIC_FAILURE
        )


class TestHeaders:
    """Tests for request headers."""

    def test_default_headers(self):
        """Test the default Accept and User-Agent headers."""
        headers = default_headers()
        assert headers == {"Accept": DEFAULT_ACCEPT, "User-Agent": DEFAULT_USER_AGENT}
        assert DEFAULT_USER_AGENT.startswith("confurl+")

    def test_custom_user_agent(self):
        """Test overriding the User-Agent."""
        assert default_headers("probe/2")["User-Agent"] == "probe/2"

    def test_extra_headers_override(self, engine, tracing):
        """Test that caller headers are merged over the defaults."""
        adapter = TransportAdapter(engine, tracing=tracing)
        options = FetchOptions(extra_headers={"Accept": "*/*", "X-Env": "prod"})
        adapter.fetch("http://host/conf", options)

        sent = engine.last_request.headers
        assert "Accept: */*" in sent
        assert "X-Env: prod" in sent
        assert f"User-Agent: {DEFAULT_USER_AGENT}" in sent


class TestFetch:
    """Tests for TransportAdapter.fetch."""

    def test_success(self, engine, tracing):
        """Test a successful transfer."""
        engine.script.chunks = [b"a" * 10, b"b" * 5, b"c" * 20]
        engine.script.content_type = "text/plain"
        adapter = TransportAdapter(engine, tracing=tracing)

        result = adapter.fetch("http://host/conf", FetchOptions())

        assert result.status_code == 200
        assert result.body.size == 35
        assert result.body.frozen is True
        assert result.content_type == "text/plain"
        assert result.reason == "OK"
        assert adapter.response_message == "OK"
        assert engine.last_handle.closed is True

    def test_settings_from_options(self, engine, tracing):
        """Test that options are applied to the handle."""
        adapter = TransportAdapter(engine, tracing=tracing)
        options = FetchOptions(connect_timeout=1.5, total_timeout=4, use_tls=True, verify_tls=False)
        adapter.fetch("ftp://host/conf", options)

        settings = engine.last_handle.settings
        assert settings.connect_timeout == 1.5
        assert settings.total_timeout == 4
        assert settings.explicit_tls is True
        assert settings.verify_tls is False
        assert settings.follow_redirects is True
        assert settings.accept_encoding == "gzip, deflate"

    def test_no_compression_without_zlib(self, make_engine, tracing):
        """Test that compressed encodings are not requested without zlib."""
        engine = make_engine(EngineFeatures(ssl=True, zlib=False))
        adapter = TransportAdapter(engine, tracing=tracing)
        adapter.fetch("http://host/conf", FetchOptions())
        assert engine.last_handle.settings.accept_encoding == "identity"

    def test_non_success_code_is_returned(self, engine, tracing):
        """Test that the adapter leaves response code policy to the caller."""
        engine.script.code = 404
        engine.script.headers = [b"HTTP/1.1 404 Not Found\r\n"]
        adapter = TransportAdapter(engine, tracing=tracing)

        result = adapter.fetch("http://host/missing", FetchOptions())
        assert result.status_code == 404
        assert result.reason == "Not Found"

    def test_legacy_code_fallback(self, engine, tracing):
        """Test that the legacy response code key is used as a fallback."""
        engine.script.legacy_code_only = True
        engine.script.code = 226
        adapter = TransportAdapter(engine, tracing=tracing)
        assert adapter.fetch("ftp://host/conf", FetchOptions()).status_code == 226

    def test_no_response_code(self, engine, tracing):
        """Test that a transfer without any code is a generic failure."""
        engine.script.code = None
        adapter = TransportAdapter(engine, tracing=tracing)

        with pytest.raises(TransportError) as exc_info:
            adapter.fetch("http://host/conf", FetchOptions())
        assert exc_info.value.kind == TransportErrorKind.GENERIC_FAILURE
        assert engine.last_handle.closed is True

    def test_transport_failure(self, engine, tracing):
        """Test that engine failures are classified from their diagnostic."""
        engine.script.failure = "Couldn't resolve host 'nowhere.invalid'"
        adapter = TransportAdapter(engine, tracing=tracing)

        with pytest.raises(TransportError) as exc_info:
            adapter.fetch("http://nowhere.invalid/conf", FetchOptions())

        error = exc_info.value
        assert error.kind == TransportErrorKind.HOST_UNREACHABLE
        assert error.errno == errno.ESRCH
        assert error.diagnostic == "Couldn't resolve host 'nowhere.invalid'"
        assert adapter.last_diagnostic == error.diagnostic
        assert engine.last_handle.closed is True

    def test_failure_with_empty_diagnostic(self, engine, tracing):
        """Test that a failure without text is generic."""
        engine.script.failure = ""
        adapter = TransportAdapter(engine, tracing=tracing)

        with pytest.raises(TransportError) as exc_info:
            adapter.fetch("http://host/conf", FetchOptions())
        assert exc_info.value.kind == TransportErrorKind.GENERIC_FAILURE
        assert exc_info.value.errno == errno.EPERM

    def test_diagnostic_state_is_rearmed(self, engine, tracing):
        """Test that a failure's diagnostic does not leak into the next fetch."""
        adapter = TransportAdapter(engine, tracing=tracing)

        engine.script.failure = "Connection timed out"
        with pytest.raises(TransportError):
            adapter.fetch("http://host/conf", FetchOptions())
        assert adapter.last_diagnostic == "Connection timed out"

        engine.script.failure = None
        engine.script.headers = []
        adapter.fetch("http://host/conf", FetchOptions())
        assert adapter.last_diagnostic == ""
        assert adapter.response_message is None


class TestTracing:
    """Tests for trace output."""

    def test_no_trace_sink_when_disabled(self, engine, tracing):
        """Test that no trace sink is installed while tracing is off."""
        adapter = TransportAdapter(engine, tracing=tracing)
        adapter.fetch("http://host/conf", FetchOptions())
        assert engine.last_request.trace_sink is None

    def test_trace_records(self, engine, tracing, caplog):
        """Test trace messages when tracing is on."""
        tracing.enable()
        adapter = TransportAdapter(engine, tracing=tracing)

        with caplog.at_level("DEBUG", logger=tracing.logger.name):
            adapter.fetch("http://host/conf", FetchOptions())

        messages = [r.getMessage() for r in caplog.records if r.name == tracing.logger.name]
        assert "[debug] INFO: Connected" in messages
        assert any(m.startswith("[debug] HEADER OUT: Accept:") for m in messages)
        assert "[debug] DATA IN: (10 bytes)" in messages
