"""Tests for TRACE-level HTTP logging."""

from __future__ import annotations

import json
import logging
from unittest.mock import MagicMock

import httpx
import pytest

from citizenid.tracing import TRACE_LEVEL, HTTPTraceLogger, TraceConfig, _redact_body, _redact_headers

# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def trace_logger() -> logging.Logger:
    """Dedicated logger for trace assertions."""
    return logging.getLogger("citizenid.tests.trace")


def _token_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={"access_token": "secret-at", "id_token": "secret-id", "token_type": "Bearer"},
    )


# ─────────────────────────────────────────────────────────────────────────────
# TraceConfig
# ─────────────────────────────────────────────────────────────────────────────


class TestTraceConfig:
    """Tests for TraceConfig."""

    def test_defaults(self) -> None:
        """Pretty printing on, 8 KiB bodies."""
        config = TraceConfig()
        assert config.pretty is True
        assert config.max_body_length == 8192

    def test_hard_limit(self) -> None:
        """Body length is clamped to 64 KiB."""
        assert TraceConfig(max_body_length=1_000_000).max_body_length == 65536

    def test_negative_clamped(self) -> None:
        """A negative length becomes zero."""
        assert TraceConfig(max_body_length=-5).max_body_length == 0

    def test_from_mapping(self) -> None:
        """Missing keys fall back to defaults."""
        assert TraceConfig.from_mapping(None) == TraceConfig()
        assert TraceConfig.from_mapping({"pretty": False}) == TraceConfig(pretty=False)


# ─────────────────────────────────────────────────────────────────────────────
# Redaction helpers
# ─────────────────────────────────────────────────────────────────────────────


class TestRedaction:
    """Tests for secret redaction."""

    def test_form_body(self) -> None:
        """Sensitive form fields are masked, others kept."""
        body = _redact_body("grant_type=authorization_code&code=abc&client_secret=s3cr3t&client_id=app")
        assert "abc" not in body
        assert "s3cr3t" not in body
        assert "client_id=app" in body
        assert "grant_type=authorization_code" in body

    def test_json_body(self) -> None:
        """Nested JSON secrets are masked."""
        body = _redact_body(json.dumps({"access_token": "at", "nested": [{"refresh_token": "rt"}], "sub": "u1"}))
        data = json.loads(body)
        assert data["access_token"] == "***REDACTED***"
        assert data["nested"][0]["refresh_token"] == "***REDACTED***"
        assert data["sub"] == "u1"

    def test_plain_text_untouched(self) -> None:
        """Text that is neither JSON nor form data is kept."""
        assert _redact_body("hello world") == "hello world"

    def test_headers(self) -> None:
        """Credential headers are dropped whatever their case."""
        headers = _redact_headers({"Authorization": "Bearer at", "Accept": "application/json", "cookie": "x"})
        assert headers == {"Accept": "application/json"}


# ─────────────────────────────────────────────────────────────────────────────
# HTTPTraceLogger
# ─────────────────────────────────────────────────────────────────────────────


class TestHTTPTraceLogger:
    """Tests for the httpx event hooks."""

    def test_silent_above_trace(self, trace_logger: logging.Logger, caplog: pytest.LogCaptureFixture) -> None:
        """Nothing is logged at DEBUG."""
        tracer = HTTPTraceLogger(trace_logger=trace_logger)
        client = httpx.Client(transport=httpx.MockTransport(_token_handler), event_hooks=tracer.event_hooks)

        with caplog.at_level(logging.DEBUG, logger=trace_logger.name):
            client.post("https://citizenid.space/connect/token", data={"code": "abc"})

        assert "[HTTP]" not in caplog.text

    def test_request_and_response_logged(
        self,
        trace_logger: logging.Logger,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Both directions are logged with secrets redacted."""
        tracer = HTTPTraceLogger(trace_logger=trace_logger)
        client = httpx.Client(transport=httpx.MockTransport(_token_handler), event_hooks=tracer.event_hooks)

        with caplog.at_level(TRACE_LEVEL, logger=trace_logger.name):
            client.post(
                "https://citizenid.space/connect/token",
                data={"grant_type": "authorization_code", "code": "the-code"},
                headers={"Authorization": "Basic Zm9vOmJhcg=="},
            )

        text = caplog.text
        assert "[HTTP] --> POST https://citizenid.space/connect/token" in text
        assert "[HTTP] <-- POST https://citizenid.space/connect/token status=200" in text
        assert "the-code" not in text
        assert "Zm9vOmJhcg==" not in text
        assert "secret-at" not in text
        assert "secret-id" not in text
        assert "***REDACTED***" in text
        assert all(record.levelname == "TRACE" for record in caplog.records if record.name == trace_logger.name)

    def test_truncation(self, trace_logger: logging.Logger, caplog: pytest.LogCaptureFixture) -> None:
        """Long bodies are cut with a note."""
        tracer = HTTPTraceLogger(TraceConfig(max_body_length=20), trace_logger=trace_logger)
        client = httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="x" * 100)),
            event_hooks=tracer.event_hooks,
        )

        with caplog.at_level(TRACE_LEVEL, logger=trace_logger.name):
            client.get("https://citizenid.space/connect/userinfo")

        assert "truncated, 100 chars total" in caplog.text

    def test_compact_json(self, trace_logger: logging.Logger, caplog: pytest.LogCaptureFixture) -> None:
        """Pretty printing can be disabled."""
        tracer = HTTPTraceLogger(TraceConfig(pretty=False), trace_logger=trace_logger)
        client = httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"sub": "u1"})),
            event_hooks=tracer.event_hooks,
        )

        with caplog.at_level(TRACE_LEVEL, logger=trace_logger.name):
            client.get("https://citizenid.space/connect/userinfo")

        assert '<-- body: {"sub": "u1"}' in caplog.text

    def test_binary_request_body(self, trace_logger: logging.Logger, caplog: pytest.LogCaptureFixture) -> None:
        """Undecodable request bodies are summarized."""
        tracer = HTTPTraceLogger(trace_logger=trace_logger)
        request = httpx.Request("POST", "https://citizenid.space/connect/token", content=b"\xff\xfe\x00")

        with caplog.at_level(TRACE_LEVEL, logger=trace_logger.name):
            tracer.on_request(request)

        assert "binary or unparseable, 3 bytes" in caplog.text

    def test_unreadable_response(self, trace_logger: logging.Logger, caplog: pytest.LogCaptureFixture) -> None:
        """A body that cannot be read is reported, not raised."""
        tracer = HTTPTraceLogger(trace_logger=trace_logger)
        response = MagicMock()
        response.request = httpx.Request("GET", "https://citizenid.space/connect/userinfo")
        response.status_code = 200
        response.read.side_effect = httpx.StreamConsumed()

        with caplog.at_level(TRACE_LEVEL, logger=trace_logger.name):
            tracer.on_response(response)

        assert "unable to read body" in caplog.text
