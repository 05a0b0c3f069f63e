"""TRACE-level HTTP logging for provider calls.

Installs ``httpx`` event hooks that log each request and response sent to
CitizenID. Nothing is logged unless the ``citizenid`` loggers are set to the
custom ``TRACE`` level (5), below ``DEBUG``.

Secrets never reach the log: form and JSON bodies are redacted field by field
and the ``Authorization`` header is dropped.

Example:
    >>> import logging
    >>> from citizenid.tracing import TRACE_LEVEL
    >>> logging.getLogger("citizenid").setLevel(TRACE_LEVEL)  # doctest: +SKIP
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl, urlencode

if TYPE_CHECKING:
    import httpx

TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, "TRACE")

logger = logging.getLogger(__name__)

_TRACE_PRETTY_DEFAULT = True
_TRACE_MAX_BODY_DEFAULT = 8192
_TRACE_MAX_BODY_HARD_LIMIT = 65536

_REDACTED = "***REDACTED***"
_SENSITIVE_FIELDS = frozenset(
    {
        "access_token",
        "client_secret",
        "code",
        "code_verifier",
        "id_token",
        "password",
        "refresh_token",
    }
)
_SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "set-cookie"})


@dataclass(frozen=True, slots=True)
class TraceConfig:
    """Settings for TRACE-level HTTP logging.

    Attributes:
        pretty: Pretty-print JSON bodies.
        max_body_length: Truncate logged bodies after this many characters.

    Examples:
        >>> TraceConfig(max_body_length=10**9).max_body_length
        65536
    """

    pretty: bool = _TRACE_PRETTY_DEFAULT
    max_body_length: int = _TRACE_MAX_BODY_DEFAULT

    def __post_init__(self) -> None:
        """Clamp the body length to the hard limit."""
        if self.max_body_length > _TRACE_MAX_BODY_HARD_LIMIT:
            object.__setattr__(self, "max_body_length", _TRACE_MAX_BODY_HARD_LIMIT)
        if self.max_body_length < 0:
            object.__setattr__(self, "max_body_length", 0)

    @classmethod
    def from_mapping(cls, data: Any) -> TraceConfig:
        """Build a TraceConfig from a config section, falling back to defaults.

        Args:
            data: Mapping (or Box) with ``pretty`` / ``max_body_length`` keys, or None.

        Returns:
            TraceConfig instance.
        """
        if not data:
            return cls()
        return cls(
            pretty=bool(data.get("pretty", _TRACE_PRETTY_DEFAULT)),
            max_body_length=int(data.get("max_body_length", _TRACE_MAX_BODY_DEFAULT)),
        )


class HTTPTraceLogger:
    """httpx event hooks logging provider traffic at TRACE level.

    Args:
        config: Trace settings.
        trace_logger: Logger to write to (defaults to this module's logger).

    Example:
        >>> import httpx  # doctest: +SKIP
        >>> tracer = HTTPTraceLogger()  # doctest: +SKIP
        >>> client = httpx.Client(event_hooks=tracer.event_hooks)  # doctest: +SKIP
    """

    def __init__(
        self,
        config: TraceConfig | None = None,
        trace_logger: logging.Logger | None = None,
    ) -> None:
        self._config = config or TraceConfig()
        self._logger = trace_logger or logger

    @property
    def event_hooks(self) -> dict[str, list[Any]]:
        """Return the hooks mapping expected by ``httpx.Client``."""
        return {"request": [self.on_request], "response": [self.on_response]}

    def on_request(self, request: httpx.Request) -> None:
        """Log an outgoing request with its redacted body."""
        if not self._logger.isEnabledFor(TRACE_LEVEL):
            return

        headers = _redact_headers(dict(request.headers))
        self._logger.log(TRACE_LEVEL, "[HTTP] --> %s %s headers=%s", request.method, request.url, headers)

        content = request.content
        if not content:
            return

        try:
            body = content.decode("utf-8")
        except (UnicodeDecodeError, AttributeError):
            self._logger.log(TRACE_LEVEL, "[HTTP] --> body: <binary or unparseable, %d bytes>", len(content))
            return

        self._logger.log(TRACE_LEVEL, "[HTTP] --> body: %s", self._truncate(_redact_body(body)))

    def on_response(self, response: httpx.Response) -> None:
        """Log an incoming response with its redacted body."""
        if not self._logger.isEnabledFor(TRACE_LEVEL):
            return

        request = response.request
        self._logger.log(
            TRACE_LEVEL,
            "[HTTP] <-- %s %s status=%s",
            request.method,
            request.url,
            response.status_code,
        )

        try:
            response.read()
            body = response.text
        except Exception as exc:  # noqa: BLE001
            self._logger.log(TRACE_LEVEL, "[HTTP] <-- body: <unable to read body: %s>", exc)
            return

        if not body:
            return

        self._logger.log(TRACE_LEVEL, "[HTTP] <-- body: %s", self._truncate(self._format_body(body)))

    def _format_body(self, body: str) -> str:
        """Redact and optionally pretty-print a response body."""
        try:
            data = json.loads(body)
        except ValueError:
            return _redact_body(body)

        data = _redact_json(data)
        if self._config.pretty:
            return json.dumps(data, indent=2, ensure_ascii=False)
        return json.dumps(data, ensure_ascii=False)

    def _truncate(self, text: str) -> str:
        """Cut ``text`` at the configured maximum length."""
        limit = self._config.max_body_length
        if len(text) <= limit:
            return text
        return f"{text[:limit]}... [truncated, {len(text)} chars total]"


# ─────────────────────────────────────────────────────────────────────────────
# Private helpers
# ─────────────────────────────────────────────────────────────────────────────


def _redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Drop credential-bearing headers."""
    return {k: v for k, v in headers.items() if k.lower() not in _SENSITIVE_HEADERS}


def _redact_body(body: str) -> str:
    """Redact a JSON or form-encoded body.

    Examples:
        >>> _redact_body("grant_type=authorization_code&code=abc")
        'grant_type=authorization_code&code=%2A%2A%2AREDACTED%2A%2A%2A'
    """
    stripped = body.lstrip()
    if stripped.startswith(("{", "[")):
        try:
            return json.dumps(_redact_json(json.loads(body)), ensure_ascii=False)
        except ValueError:
            return body

    if "=" not in body:
        return body

    pairs = parse_qsl(body, keep_blank_values=True)
    return urlencode([(k, _REDACTED if k in _SENSITIVE_FIELDS else v) for k, v in pairs])


def _redact_json(data: Any) -> Any:
    """Recursively redact sensitive keys in decoded JSON."""
    if isinstance(data, dict):
        return {k: _REDACTED if k in _SENSITIVE_FIELDS else _redact_json(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_redact_json(item) for item in data]
    return data


__all__ = [
    "TRACE_LEVEL",
    "HTTPTraceLogger",
    "TraceConfig",
]
