"""Strategy configuration and option resolution.

``StrategyConfig`` holds everything the strategy needs before the first
request. ``resolve_config`` fills in the CitizenID defaults and enforces the
OpenID Connect invariants; it runs once, when the strategy is constructed, and
fails fast on a missing client identifier.

Configurations can also be loaded from a YAML file (``citizenid.conf.yml`` by
default) whose string values may reference environment variables::

    citizenid:
      client_id: ${CITIZENID_CLIENT_ID}
      client_secret: ${CITIZENID_CLIENT_SECRET:-}
      callback_url: http://localhost:3000/auth/citizenid/callback
      scopes: [openid, profile, email, roles, offline_access]
      trace:
        pretty: true
        max_body_length: 4096
"""

from __future__ import annotations

import dataclasses
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from box import Box

from citizenid.errors import ConfigurationError
from citizenid.oauth2 import RESERVED_AUTHORIZATION_PARAMS
from citizenid.tracing import TraceConfig

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)

PROVIDER_BASE_URL = "https://citizenid.space"
DEFAULT_AUTHORIZATION_URL = f"{PROVIDER_BASE_URL}/connect/authorize"
DEFAULT_TOKEN_URL = f"{PROVIDER_BASE_URL}/connect/token"
DEFAULT_USERINFO_URL = f"{PROVIDER_BASE_URL}/connect/userinfo"

OPENID_SCOPE = "openid"
DEFAULT_SCOPES: tuple[str, ...] = (OPENID_SCOPE, "profile", "email")

DEFAULT_CONFIG_FILENAME = "citizenid.conf.yml"
DEFAULT_SECTION = "citizenid"
DEFAULT_TIMEOUT = 10.0

# Pattern for environment variable substitution: ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([a-zA-Z_][a-zA-Z0-9_]*)(?::-([^}]*))?\}")


@dataclass(frozen=True, slots=True)
class StrategyConfig:
    """Options for the CitizenID strategy.

    Fields left to ``None`` are filled in by :func:`resolve_config`.

    Attributes:
        client_id: CitizenID application client ID (required).
        client_secret: Client secret, optional for public clients using PKCE.
        callback_url: URL CitizenID redirects to after authorization.
        scopes: Requested scopes, a sequence or a single space-free string.
        authorization_url: Authorization endpoint.
        token_url: Token endpoint.
        userinfo_url: UserInfo endpoint.
        pkce: Enable PKCE (S256).
        state: Enable the CSRF ``state`` parameter.
        pass_request: Pass the originating request to the verify callback.
        include_params: Pass the token endpoint parameters to the verify callback.
        headers: Extra HTTP headers sent with every provider call.
        timeout: HTTP timeout in seconds.
        trace: TRACE logging settings.
        extra: Provider-specific parameters added to the authorization request.

    Examples:
        >>> config = resolve_config(StrategyConfig(client_id="my-app", scopes="roles"))
        >>> config.scopes
        ('openid', 'roles')
        >>> config.pkce, config.state
        (True, True)
    """

    client_id: str
    client_secret: str | None = None
    callback_url: str | None = None
    scopes: Sequence[str] | str | None = None
    authorization_url: str | None = None
    token_url: str | None = None
    userinfo_url: str | None = None
    pkce: bool | None = None
    state: bool | None = None
    pass_request: bool = False
    include_params: bool = False
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT
    trace: TraceConfig = field(default_factory=TraceConfig)
    extra: dict[str, str] = field(default_factory=dict)


def resolve_config(config: StrategyConfig) -> StrategyConfig:
    """Return a fully-defaulted copy of ``config``.

    - endpoints default to the CitizenID OIDC endpoints;
    - scopes default to ``openid profile email``, a single string is wrapped,
      duplicates are dropped and ``openid`` is prepended when missing;
    - PKCE and state default to enabled.

    Args:
        config: Caller-supplied configuration.

    Returns:
        New StrategyConfig with every optional field resolved.

    Raises:
        ConfigurationError: If ``client_id`` is missing or ``extra`` sets a
            parameter the client controls (``state``, ``client_id``...).
    """
    if not config.client_id:
        raise ConfigurationError(
            "CitizenID strategy requires a client_id",
            details={"field": "client_id"},
        )

    reserved = sorted(set(config.extra) & RESERVED_AUTHORIZATION_PARAMS)
    if reserved:
        raise ConfigurationError(
            f"extra cannot set reserved authorization parameter(s): {', '.join(reserved)}",
            details={"field": "extra", "reserved": reserved},
        )

    resolved = dataclasses.replace(
        config,
        scopes=_resolve_scopes(config.scopes),
        authorization_url=config.authorization_url or DEFAULT_AUTHORIZATION_URL,
        token_url=config.token_url or DEFAULT_TOKEN_URL,
        userinfo_url=config.userinfo_url or DEFAULT_USERINFO_URL,
        pkce=True if config.pkce is None else config.pkce,
        state=True if config.state is None else config.state,
    )

    if not resolved.client_secret and not resolved.pkce:
        logger.warning("Public client '%s' configured without PKCE", resolved.client_id)

    return resolved


def _resolve_scopes(scopes: Sequence[str] | str | None) -> tuple[str, ...]:
    """Normalize the scope option into a unique tuple starting with openid.

    Examples:
        >>> _resolve_scopes(None)
        ('openid', 'profile', 'email')
        >>> _resolve_scopes(["profile", "email", "profile"])
        ('openid', 'profile', 'email')
        >>> _resolve_scopes(["email", "openid"])
        ('email', 'openid')
    """
    if scopes is None:
        return DEFAULT_SCOPES
    if isinstance(scopes, str):
        scopes = [scopes]

    unique = tuple(dict.fromkeys(s for s in scopes if s))
    if OPENID_SCOPE not in unique:
        unique = (OPENID_SCOPE, *unique)
    return unique


# ─────────────────────────────────────────────────────────────────────────────
# File-based configuration
# ─────────────────────────────────────────────────────────────────────────────


def load_config(path: str | Path | None = None) -> Box:
    """Load a YAML configuration file.

    Args:
        path: File to read; defaults to ``citizenid.conf.yml`` in the
            current directory.

    Returns:
        Parsed document as a Box (attribute access, missing keys give empty boxes).

    Raises:
        ConfigurationError: If the file is missing or not a YAML mapping.
    """
    config_path = Path(path) if path is not None else Path.cwd() / DEFAULT_CONFIG_FILENAME
    if not config_path.is_file():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            details={"path": str(config_path)},
        )

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Invalid YAML in {config_path}: {exc}",
            details={"path": str(config_path)},
        ) from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Invalid configuration format in {config_path}: expected a mapping",
            details={"path": str(config_path)},
        )

    logger.debug("Loaded configuration from %s", config_path)
    return Box(_substitute_env(data, str(config_path)), default_box=True)


def build_strategy_config(
    section: str = DEFAULT_SECTION,
    *,
    config: Mapping[str, Any] | None = None,
    path: str | Path | None = None,
    **overrides: Any,
) -> StrategyConfig:
    """Build and resolve a StrategyConfig from a configuration section.

    Args:
        section: Top-level key holding the strategy options.
        config: Already-loaded configuration (skips file loading).
        path: YAML file to load when ``config`` is not given.
        **overrides: Explicit option values, applied over the file values.

    Returns:
        Resolved StrategyConfig.

    Raises:
        ConfigurationError: If the section has unknown keys or no client_id.

    Examples:
        >>> cfg = build_strategy_config(config={"citizenid": {"client_id": "app"}})
        >>> cfg.token_url
        'https://citizenid.space/connect/token'
    """
    if config is None:
        config = load_config(path)

    raw_section = config.get(section) or {}
    options: dict[str, Any] = {**dict(raw_section), **overrides}

    known = {f.name for f in dataclasses.fields(StrategyConfig)}
    unknown = sorted(set(options) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown option(s) in '{section}': {', '.join(unknown)}",
            details={"section": section, "unknown": unknown},
        )

    if "trace" in options and not isinstance(options["trace"], TraceConfig):
        options["trace"] = TraceConfig.from_mapping(options["trace"])
    for key in ("headers", "extra"):
        if key in options:
            options[key] = {str(k): str(v) for k, v in dict(options[key] or {}).items()}
    if isinstance(options.get("scopes"), list):
        options["scopes"] = tuple(options["scopes"])

    return resolve_config(StrategyConfig(**{"client_id": "", **options}))


def _substitute_env(data: Any, source: str) -> Any:
    """Replace ``${VAR}`` / ``${VAR:-default}`` in every string of a YAML document.

    Raises:
        ConfigurationError: If a variable without default is not set.

    Examples:
        >>> _substitute_env({"scopes": ["${CITIZENID_UNSET_SCOPE:-roles}"]}, "inline")
        {'scopes': ['roles']}
    """
    if isinstance(data, dict):
        return {key: _substitute_env(value, source) for key, value in data.items()}
    if isinstance(data, list):
        return [_substitute_env(item, source) for item in data]
    if not isinstance(data, str):
        return data

    def lookup(match: re.Match[str]) -> str:
        name, default = match.groups()
        value = os.environ.get(name, default)
        if value is None:
            raise ConfigurationError(
                f"Environment variable '{name}' is not set (referenced in {source})",
                details={"variable": name, "source": source},
            )
        return value

    return _ENV_VAR_PATTERN.sub(lookup, data)


__all__ = [
    "DEFAULT_AUTHORIZATION_URL",
    "DEFAULT_SCOPES",
    "DEFAULT_TOKEN_URL",
    "DEFAULT_USERINFO_URL",
    "OPENID_SCOPE",
    "StrategyConfig",
    "build_strategy_config",
    "load_config",
    "resolve_config",
]
