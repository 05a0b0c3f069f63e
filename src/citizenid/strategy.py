"""CitizenID authentication strategy.

The strategy authenticates users by delegating to CitizenID using OAuth 2.0
with OpenID Connect. Applications supply a ``verify`` callback which receives
the access token, refresh token and normalized profile, and returns the
application user (any falsy value means the credentials are rejected).

Typical flow::

    strategy = CitizenIDStrategy(
        StrategyConfig(
            client_id="a3a5953f-8ab0-4d39-a407-d3f0cc9f94da",
            client_secret="your-client-secret",
            callback_url="https://www.example.com/auth/citizenid/callback",
        ),
        lambda access_token, refresh_token, profile: users.find_or_create(profile.id),
    )

    # 1. login route
    url, attempt = strategy.authorization_request(AuthorizationParams(prompt="login"))
    # redirect the browser to ``url``

    # 2. callback route
    result = strategy.authenticate(code=request.args["code"], state=request.args["state"])
    if result.authenticated:
        login(result.user)
"""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING, Any, Callable

from citizenid.attempt import AuthAttempt, MemoryAttemptStore
from citizenid.config import resolve_config
from citizenid.errors import StateMismatchError, TokenExchangeError
from citizenid.models import PROVIDER_NAME, AttemptStatus, AuthFlow, AuthResult
from citizenid.oauth2 import OAuth2Client, create_pkce_pair
from citizenid.profile import ProfileLoader

if TYPE_CHECKING:
    import httpx

    from citizenid.attempt import AttemptStore
    from citizenid.config import StrategyConfig
    from citizenid.models import AuthorizationParams, ExchangeResult, NormalizedProfile

logger = logging.getLogger(__name__)

VerifyCallback = Callable[..., Any]


class CitizenIDStrategy:
    """OAuth2/OIDC client strategy for CitizenID.

    Options are resolved once, here, so a bad configuration fails before the
    first request.

    Args:
        config: Strategy options; missing values get CitizenID defaults.
        verify: Callback turning tokens and profile into an application user.
            Called as ``verify(access_token, refresh_token, profile)``;
            ``request`` is prepended when ``config.pass_request`` is set and
            ``params`` is inserted before ``profile`` when
            ``config.include_params`` is set. It returns the user, or a
            ``(user, info)`` tuple.
        http_client: Optional ``httpx.Client`` for provider calls.
        store: Where pending attempts wait for their callback.

    Raises:
        ConfigurationError: If ``client_id`` is missing.
    """

    name = PROVIDER_NAME

    def __init__(
        self,
        config: StrategyConfig,
        verify: VerifyCallback,
        *,
        http_client: httpx.Client | None = None,
        store: AttemptStore | None = None,
    ) -> None:
        self._config = resolve_config(config)
        self._verify = verify
        self._store = store if store is not None else MemoryAttemptStore()
        self._oauth2 = OAuth2Client(self._config, http_client)
        self._profiles = ProfileLoader(self._oauth2, str(self._config.userinfo_url))

    @property
    def config(self) -> StrategyConfig:
        """Return the resolved configuration."""
        return self._config

    @property
    def flow(self) -> AuthFlow:
        """Return the authorization code flow variant in use."""
        return AuthFlow.AUTHORIZATION_CODE_PKCE if self._config.pkce else AuthFlow.AUTHORIZATION_CODE

    @property
    def oauth2(self) -> OAuth2Client:
        """Return the underlying OAuth2 capability."""
        return self._oauth2

    @property
    def http_client(self) -> httpx.Client:
        """Return the HTTP client used for provider calls."""
        return self._oauth2.http_client

    def close(self) -> None:
        """Release the HTTP client."""
        self._oauth2.close()

    def __enter__(self) -> CitizenIDStrategy:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ─────────────────────────────────────────────────────────────────────────
    # Authorization redirect
    # ─────────────────────────────────────────────────────────────────────────

    def authorization_request(
        self,
        params: AuthorizationParams | None = None,
    ) -> tuple[str, AuthAttempt]:
        """Start an attempt and build the authorization redirect URL.

        The attempt is kept in the store until its callback arrives.

        Args:
            params: Optional OIDC extension parameters (nonce, prompt...).

        Returns:
            Tuple of (authorization_url, attempt).
        """
        state = secrets.token_urlsafe(32) if self._config.state else None
        verifier, challenge = create_pkce_pair() if self._config.pkce else (None, None)

        attempt = AuthAttempt(state=state, code_verifier=verifier, nonce=params.nonce if params else None)
        if state is not None:
            attempt.attempt_id = state

        extra = dict(self._config.extra)
        if params is not None:
            extra.update(self.authorization_params(params))

        url = self._oauth2.build_authorization_url(state=state, code_challenge=challenge, extra=extra)
        self._store.save(attempt)

        logger.debug("Authorization request started (flow=%s)", self.flow.value)
        return url, attempt

    def authorization_params(self, params: AuthorizationParams) -> dict[str, str]:
        """Return the extension parameters to add to the authorization request.

        Only supplied values are included; nothing is defaulted.
        """
        return params.to_query()

    # ─────────────────────────────────────────────────────────────────────────
    # Token exchange
    # ─────────────────────────────────────────────────────────────────────────

    def resume(self, state: str | None = None, attempt: AuthAttempt | None = None) -> AuthAttempt:
        """Find the pending attempt a callback belongs to.

        With state enabled, the callback state must match a pending attempt,
        which is consumed. Without state, an explicit attempt is used, or a
        fresh one when none is given.

        Raises:
            StateMismatchError: If the state is missing, unknown or expired.
        """
        if self._config.state:
            if not state or (attempt is not None and attempt.state != state):
                raise StateMismatchError(state)

            found = self._store.pop(state)
            if found is not None and attempt is not None and attempt is not found:
                self._store.save(found)
                found = None
            if found is None:
                raise StateMismatchError(state)
            return found

        if attempt is not None:
            self._store.pop(attempt.attempt_id)
            return attempt
        return AuthAttempt()

    def exchange_code(self, attempt: AuthAttempt, code: str) -> ExchangeResult:
        """Exchange the authorization code and capture the id_token.

        The exchange outcome is observed, never altered: tokens and the full
        parameter bag are returned as the token endpoint sent them. An issued
        id_token is kept on ``attempt`` for profile loading.

        Args:
            attempt: Attempt the code belongs to (must still be pending).
            code: Authorization code from the callback.

        Returns:
            ExchangeResult from the token endpoint.

        Raises:
            TokenExchangeError: If the exchange fails or the attempt was
                already used; no retry is made.
        """
        if attempt.status is not AttemptStatus.PENDING:
            raise TokenExchangeError("Authentication attempt already completed")

        if self._config.pkce and not attempt.code_verifier:
            attempt.complete()
            raise TokenExchangeError("PKCE is enabled but no code_verifier is available")

        result: ExchangeResult | None = None
        try:
            result = self._oauth2.exchange_code(code, code_verifier=attempt.code_verifier)
        finally:
            # Completed whatever the outcome; the id_token only on success
            attempt.complete(result.id_token if result is not None else None)

        return result

    # ─────────────────────────────────────────────────────────────────────────
    # Profile
    # ─────────────────────────────────────────────────────────────────────────

    def user_profile(self, access_token: str, attempt: AuthAttempt | None = None) -> NormalizedProfile:
        """Return the normalized profile for an attempt.

        Uses the attempt's captured id_token when it decodes, otherwise calls
        the userinfo endpoint.

        Raises:
            ProfileRetrievalError: If the userinfo endpoint cannot be reached.
            ProfileParseError: If the userinfo body is not a claim set.
        """
        return self._profiles.load(access_token, attempt)

    # ─────────────────────────────────────────────────────────────────────────
    # Full attempt
    # ─────────────────────────────────────────────────────────────────────────

    def authenticate(
        self,
        code: str,
        state: str | None = None,
        *,
        attempt: AuthAttempt | None = None,
        request: Any = None,
    ) -> AuthResult:
        """Complete an attempt from its callback parameters.

        Runs, in order: attempt lookup, code exchange, profile loading, and
        the application's verify callback. Any failure ends the attempt.

        Args:
            code: Authorization code from the callback.
            state: State value from the callback.
            attempt: Explicit attempt (required to reuse a PKCE verifier when
                state is disabled).
            request: Originating request, passed to verify when
                ``pass_request`` is set.

        Returns:
            AuthResult holding the verified user and the profile.

        Raises:
            StateMismatchError: If the state does not match a pending attempt.
            TokenExchangeError: If the code cannot be exchanged.
            ProfileRetrievalError: If the userinfo endpoint cannot be reached.
            ProfileParseError: If the userinfo body is not a claim set.
        """
        current = self.resume(state, attempt)
        exchange = self.exchange_code(current, code)
        profile = self.user_profile(exchange.access_token, current)

        outcome = self._call_verify(exchange, profile, request)
        user, info = outcome if isinstance(outcome, tuple) else (outcome, None)

        if not user:
            logger.info("Verify callback rejected CitizenID user %s", profile.id)
        return AuthResult(user=user, profile=profile, exchange=exchange, info=info)

    def _call_verify(self, exchange: ExchangeResult, profile: NormalizedProfile, request: Any) -> Any:
        """Invoke the verify callback with the configured signature."""
        args: list[Any] = [exchange.access_token, exchange.refresh_token]
        if self._config.include_params:
            args.append(exchange.params)
        args.append(profile)
        if self._config.pass_request:
            args.insert(0, request)
        return self._verify(*args)


__all__ = [
    "CitizenIDStrategy",
    "VerifyCallback",
]
