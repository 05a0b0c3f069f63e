"""CitizenID authentication for Python applications.

OAuth 2.0 / OpenID Connect client strategy for the CitizenID identity
provider: authorization redirect with PKCE and state, code exchange with
id_token capture, and normalized user profiles built from the id_token or
the userinfo endpoint.

Examples:
    >>> from citizenid import CitizenIDStrategy, StrategyConfig
    >>> strategy = CitizenIDStrategy(
    ...     StrategyConfig(client_id="my-app", callback_url="https://example.com/cb"),
    ...     lambda access_token, refresh_token, profile: profile.id,
    ... )
    >>> strategy.config.scopes
    ('openid', 'profile', 'email')
"""

from citizenid.attempt import AttemptStore, AuthAttempt, MemoryAttemptStore
from citizenid.config import StrategyConfig, build_strategy_config, load_config, resolve_config
from citizenid.errors import (
    CitizenIDError,
    ConfigurationError,
    ProfileError,
    ProfileParseError,
    ProfileRetrievalError,
    StateMismatchError,
    TokenDecodeError,
    TokenExchangeError,
)
from citizenid.models import (
    AttemptStatus,
    AuthFlow,
    AuthorizationParams,
    AuthResult,
    EmailAddress,
    ExchangeResult,
    NormalizedProfile,
    Photo,
)
from citizenid.profile import normalize_profile
from citizenid.strategy import CitizenIDStrategy
from citizenid.tracing import TRACE_LEVEL, TraceConfig

Strategy = CitizenIDStrategy

__version__ = "1.0.0"

__all__ = [
    "TRACE_LEVEL",
    "AttemptStatus",
    "AttemptStore",
    "AuthAttempt",
    "AuthFlow",
    "AuthResult",
    "AuthorizationParams",
    "CitizenIDError",
    "CitizenIDStrategy",
    "ConfigurationError",
    "EmailAddress",
    "ExchangeResult",
    "MemoryAttemptStore",
    "NormalizedProfile",
    "Photo",
    "ProfileError",
    "ProfileParseError",
    "ProfileRetrievalError",
    "StateMismatchError",
    "Strategy",
    "StrategyConfig",
    "TokenDecodeError",
    "TokenExchangeError",
    "TraceConfig",
    "build_strategy_config",
    "load_config",
    "normalize_profile",
    "resolve_config",
]
