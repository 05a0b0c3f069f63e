"""Data models for the citizenid package.

This module defines the core data structures shared by the strategy:

- AuthFlow: Enum for the authorization code flow variant (plain or PKCE)
- AttemptStatus: Enum for the lifecycle of one authentication attempt
- AuthorizationParams: Optional OIDC extension parameters for the redirect
- ExchangeResult: Frozen outcome of a successful code-for-token exchange
- EmailAddress / Photo: Profile entries
- NormalizedProfile: Frozen, provider-independent user profile
- AuthResult: Frozen outcome of a full authentication attempt
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

PROVIDER_NAME = "citizenid"

# Claim names used by CitizenID in id_tokens and userinfo responses
CLAIM_SUBJECT = "sub"
CLAIM_NAME = "name"
CLAIM_PREFERRED_USERNAME = "preferred_username"
CLAIM_EMAIL = "email"
CLAIM_EMAIL_VERIFIED = "email_verified"
CLAIM_PICTURE = "picture"
CLAIM_ROLE = "role"
CLAIM_AUTHORIZATION_ID = "oi_au_id"

# Custom profile claims (discord, rsi, google, twitch...) granted by extra scopes
CUSTOM_CLAIM_PREFIX = "urn:user:"


class AuthFlow(str, Enum):
    """Authorization code flow variant.

    Attributes:
        AUTHORIZATION_CODE: Plain authorization code flow.
        AUTHORIZATION_CODE_PKCE: Authorization code flow with PKCE (S256).
    """

    AUTHORIZATION_CODE = "authorization_code"
    AUTHORIZATION_CODE_PKCE = "authorization_code_pkce"


class AttemptStatus(str, Enum):
    """Lifecycle of a single authentication attempt.

    Attributes:
        PENDING: Redirect issued, no exchange attempted yet.
        COMPLETED: Exchange finished, successfully or not.
    """

    PENDING = "pending"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class AuthorizationParams:
    """OIDC extension parameters for the authorization redirect.

    Each value is sent only when supplied; nothing is defaulted.

    Attributes:
        nonce: Value echoed back in the id_token ``nonce`` claim.
        response_mode: How the callback is delivered (``query``, ``form_post``, ``fragment``).
        prompt: Re-authentication or consent hint (``login``, ``consent``, ``none``).
        max_age: Maximum elapsed seconds since the user last authenticated.
        ui_locales: Preferred languages for the login pages.

    Examples:
        >>> AuthorizationParams(prompt="login", max_age=300).to_query()
        {'prompt': 'login', 'max_age': '300'}
    """

    nonce: str | None = None
    response_mode: str | None = None
    prompt: str | None = None
    max_age: int | None = None
    ui_locales: str | None = None

    def to_query(self) -> dict[str, str]:
        """Return the wire-level query parameters that were supplied."""
        query: dict[str, str] = {}
        if self.nonce:
            query["nonce"] = self.nonce
        if self.response_mode:
            query["response_mode"] = self.response_mode
        if self.prompt:
            query["prompt"] = self.prompt
        if self.max_age is not None:
            query["max_age"] = str(self.max_age)
        if self.ui_locales:
            query["ui_locales"] = self.ui_locales
        return query


@dataclass(frozen=True, slots=True)
class ExchangeResult:
    """Tokens returned by the token endpoint for one authentication attempt.

    Attributes:
        access_token: Opaque access token.
        refresh_token: Refresh token, if the provider issued one.
        id_token: Signed identity token, if the provider issued one.
        token_type: Token type (usually ``Bearer``).
        expires_in: Access token lifetime in seconds.
        scope: Granted scopes.
        params: Full parameter bag as returned by the token endpoint.
    """

    access_token: str
    refresh_token: str | None = None
    id_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None
    scope: tuple[str, ...] = ()
    params: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> ExchangeResult:
        """Build an ExchangeResult from a token endpoint JSON body.

        Args:
            data: Decoded token endpoint response.

        Returns:
            ExchangeResult keeping ``data`` untouched in ``params``.

        Examples:
            >>> result = ExchangeResult.from_response(
            ...     {"access_token": "abc", "scope": "openid profile", "id_token": "x.y.z"}
            ... )
            >>> result.scope
            ('openid', 'profile')
            >>> result.id_token
            'x.y.z'
        """
        scope = data.get("scope") or ()
        if isinstance(scope, str):
            scope = scope.split()

        expires_in = _parse_lifetime(data.get("expires_in"))

        return cls(
            access_token=str(data["access_token"]),
            refresh_token=data.get("refresh_token") or None,
            id_token=data.get("id_token") or None,
            token_type=str(data.get("token_type") or "Bearer"),
            expires_in=expires_in,
            scope=tuple(scope),
            params=data,
        )


def _parse_lifetime(value: Any) -> int | None:
    """Read a token lifetime sent as a number or a numeric string.

    Examples:
        >>> _parse_lifetime("3600.0"), _parse_lifetime(120), _parse_lifetime("soon")
        (3600, 120, None)
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


@dataclass(frozen=True, slots=True)
class EmailAddress:
    """An email address attached to a profile."""

    value: str
    verified: bool = False


@dataclass(frozen=True, slots=True)
class Photo:
    """A profile picture URL."""

    value: str


@dataclass(frozen=True, slots=True)
class NormalizedProfile:
    """User profile normalized from CitizenID claims.

    Attributes:
        id: Subject identifier (``sub`` claim), stable and unique per user.
        username: Preferred handle, empty string when unknown.
        display_name: Full name, falling back to the username.
        emails: Email entries, at most one.
        roles: Role names granted to the user.
        photos: Profile pictures, None when the provider sent none.
        authorization_id: Provider-internal authorization identifier.
        custom_claims: ``urn:user:*`` claims, None when none were sent.
        raw: Source document (the id_token string or the userinfo body).
        json: Parsed claim set the profile was built from.
        provider: Always ``citizenid``.
    """

    id: str
    username: str = ""
    display_name: str = ""
    emails: tuple[EmailAddress, ...] = ()
    roles: tuple[str, ...] = ()
    photos: tuple[Photo, ...] | None = None
    authorization_id: str | None = None
    custom_claims: dict[str, Any] | None = None
    raw: str = ""
    json: dict[str, Any] = field(default_factory=dict)
    provider: str = PROVIDER_NAME

    @property
    def email(self) -> str | None:
        """Return the first email address, if any."""
        return self.emails[0].value if self.emails else None

    def to_dict(self) -> dict[str, Any]:
        """Serialize the profile to a dictionary for JSON output.

        Optional fields are left out when they were not provided.

        Returns:
            Dictionary representation of the profile (without ``raw``).
        """
        data: dict[str, Any] = {
            "provider": self.provider,
            "id": self.id,
            "username": self.username,
            "display_name": self.display_name,
            "emails": [{"value": e.value, "verified": e.verified} for e in self.emails],
            "roles": list(self.roles),
        }
        if self.photos is not None:
            data["photos"] = [{"value": p.value} for p in self.photos]
        if self.authorization_id is not None:
            data["authorization_id"] = self.authorization_id
        if self.custom_claims is not None:
            data["custom_claims"] = dict(self.custom_claims)
        return data


@dataclass(frozen=True, slots=True)
class AuthResult:
    """Outcome of a completed authentication attempt.

    Attributes:
        user: Value returned by the application's verify callback.
        profile: Normalized profile handed to the verify callback.
        exchange: Token exchange result.
        info: Optional extra information returned by the verify callback.
    """

    user: Any
    profile: NormalizedProfile
    exchange: ExchangeResult
    info: Any = None

    @property
    def authenticated(self) -> bool:
        """Return True when the verify callback accepted the user."""
        return bool(self.user)


__all__ = [
    "CLAIM_AUTHORIZATION_ID",
    "CLAIM_EMAIL",
    "CLAIM_EMAIL_VERIFIED",
    "CLAIM_NAME",
    "CLAIM_PICTURE",
    "CLAIM_PREFERRED_USERNAME",
    "CLAIM_ROLE",
    "CLAIM_SUBJECT",
    "CUSTOM_CLAIM_PREFIX",
    "PROVIDER_NAME",
    "AttemptStatus",
    "AuthFlow",
    "AuthResult",
    "AuthorizationParams",
    "EmailAddress",
    "ExchangeResult",
    "NormalizedProfile",
    "Photo",
]
