"""Generic OAuth2 authorization code capability.

``OAuth2Client`` knows nothing about identity tokens or profiles. It builds
the authorization redirect, exchanges an authorization code at the token
endpoint and performs bearer-authenticated GET requests. The CitizenID
strategy wraps it and observes its results.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import httpx
from authlib.common.security import generate_token
from authlib.oauth2.rfc7636 import create_s256_code_challenge

from citizenid.errors import TokenExchangeError
from citizenid.models import ExchangeResult
from citizenid.tracing import HTTPTraceLogger

if TYPE_CHECKING:
    from collections.abc import Mapping

    from citizenid.config import StrategyConfig

logger = logging.getLogger(__name__)

# RFC 7636 allows 43 to 128 characters for the code verifier
PKCE_VERIFIER_LENGTH = 64
PKCE_METHOD = "S256"

# Set by the client itself; extra parameters may not override them
RESERVED_AUTHORIZATION_PARAMS = frozenset(
    {
        "client_id",
        "code_challenge",
        "code_challenge_method",
        "redirect_uri",
        "response_type",
        "scope",
        "state",
    }
)


def create_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code verifier and its S256 challenge.

    Returns:
        Tuple of (code_verifier, code_challenge).

    Examples:
        >>> verifier, challenge = create_pkce_pair()
        >>> len(verifier)
        64
    """
    verifier = generate_token(PKCE_VERIFIER_LENGTH)
    return verifier, create_s256_code_challenge(verifier)


class OAuth2Client:
    """Authorization code flow primitives against one provider.

    Args:
        config: Resolved strategy configuration.
        http_client: Optional pre-built ``httpx.Client``; one is created lazily
            otherwise (with the configured timeout, headers and trace hooks).

    Example:
        >>> from citizenid.config import StrategyConfig, resolve_config
        >>> client = OAuth2Client(resolve_config(StrategyConfig(client_id="app")))
        >>> url = client.build_authorization_url(state="xyz")
        >>> url.startswith("https://citizenid.space/connect/authorize?")
        True
    """

    def __init__(
        self,
        config: StrategyConfig,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._config = config
        self._http_client = http_client
        self._owns_client = http_client is None
        self.tracer = HTTPTraceLogger(config.trace)

    @property
    def config(self) -> StrategyConfig:
        """Return the resolved configuration."""
        return self._config

    @property
    def http_client(self) -> httpx.Client:
        """Return the HTTP client, creating it on first use."""
        if self._http_client is None:
            self._http_client = httpx.Client(
                timeout=self._config.timeout,
                headers=dict(self._config.headers),
                event_hooks=self.tracer.event_hooks,
            )
        return self._http_client

    def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._http_client is not None and self._owns_client:
            self._http_client.close()
            self._http_client = None

    def build_authorization_url(
        self,
        *,
        state: str | None = None,
        code_challenge: str | None = None,
        extra: Mapping[str, str] | None = None,
    ) -> str:
        """Build the browser redirect URL for the authorization endpoint.

        Query parameters already present on the configured endpoint are kept.
        Extra parameters never replace the ones the client sets itself
        (see ``RESERVED_AUTHORIZATION_PARAMS``).

        Args:
            state: CSRF state value, omitted when None.
            code_challenge: PKCE S256 challenge, omitted when None.
            extra: Additional query parameters.

        Returns:
            Absolute authorization URL.
        """
        cfg = self._config
        parsed = urlparse(str(cfg.authorization_url))

        query = dict(parse_qsl(parsed.query, keep_blank_values=True))

        query["response_type"] = "code"
        query["client_id"] = cfg.client_id
        if cfg.callback_url:
            query["redirect_uri"] = cfg.callback_url
        if cfg.scopes:
            query["scope"] = " ".join(cfg.scopes)
        if state is not None:
            query["state"] = state
        if code_challenge is not None:
            query["code_challenge"] = code_challenge
            query["code_challenge_method"] = PKCE_METHOD
        for key, value in (extra or {}).items():
            if key in RESERVED_AUTHORIZATION_PARAMS:
                logger.warning("Ignoring reserved authorization parameter '%s' in extra", key)
                continue
            query[key] = value

        return urlunparse(parsed._replace(query=urlencode(query)))

    def exchange_code(
        self,
        code: str,
        *,
        code_verifier: str | None = None,
        extra: Mapping[str, str] | None = None,
    ) -> ExchangeResult:
        """Exchange an authorization code for tokens.

        Args:
            code: Authorization code received on the callback.
            code_verifier: PKCE verifier matching the challenge sent earlier.
            extra: Additional form parameters for the token request.

        Returns:
            ExchangeResult with the untouched parameter bag.

        Raises:
            TokenExchangeError: If the endpoint rejects the code, cannot be
                reached or answers with something that is not a token response.
        """
        cfg = self._config
        data: dict[str, str] = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": cfg.client_id,
        }
        if cfg.callback_url:
            data["redirect_uri"] = cfg.callback_url
        if cfg.client_secret:
            data["client_secret"] = cfg.client_secret
        if code_verifier:
            data["code_verifier"] = code_verifier
        if extra:
            data.update(extra)

        logger.debug("Exchanging authorization code at %s", cfg.token_url)

        try:
            response = self.http_client.post(
                str(cfg.token_url),
                data=data,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            error = self._parse_error_response(exc.response)
            raise TokenExchangeError(
                error.get("error_description") or error["error"],
                error_code=error["error"],
                details={"status_code": exc.response.status_code},
            ) from exc
        except httpx.RequestError as exc:
            raise TokenExchangeError(f"Network error: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise TokenExchangeError("Token endpoint returned invalid JSON") from exc

        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise TokenExchangeError("Token endpoint response has no access_token")

        try:
            result = ExchangeResult.from_response(payload)
        except (TypeError, ValueError) as exc:
            raise TokenExchangeError(f"Malformed token response: {exc}") from exc

        logger.debug("Authorization code exchanged (id_token=%s)", "yes" if result.id_token else "no")
        return result

    def get(self, url: str, access_token: str) -> httpx.Response:
        """Perform a GET with the access token as bearer credential.

        The token travels in the ``Authorization`` header, never in the URL.

        Args:
            url: Resource URL.
            access_token: Bearer token.

        Returns:
            The successful response.

        Raises:
            httpx.HTTPStatusError: On a 4xx/5xx answer.
            httpx.RequestError: On a transport failure.
        """
        response = self.http_client.get(url, headers={"Authorization": f"Bearer {access_token}"})
        response.raise_for_status()
        return response

    def _parse_error_response(self, response: httpx.Response) -> dict[str, Any]:
        """Extract the OAuth2 error and description from an error response."""
        try:
            data = response.json()
        except ValueError:
            return {"error": "unknown", "error_description": response.text}

        if not isinstance(data, dict):
            return {"error": "unknown", "error_description": response.text}

        return {
            "error": data.get("error") or "unknown",
            "error_description": data.get("error_description") or "",
        }


__all__ = [
    "PKCE_METHOD",
    "RESERVED_AUTHORIZATION_PARAMS",
    "OAuth2Client",
    "create_pkce_pair",
]
