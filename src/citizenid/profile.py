"""User profile loading and normalization.

Profiles are built from a claim set taken, in order of preference, from:

1. the id_token captured during the code exchange (decoded locally, no
   network call);
2. the userinfo endpoint, called with the access token as bearer credential.

A decode failure on step 1 is not an error: it is logged, recorded on the
attempt, and the loader falls back to step 2. Failures on step 2 are terminal
for the attempt and are never retried.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from citizenid.errors import ProfileParseError, ProfileRetrievalError, TokenDecodeError
from citizenid.models import (
    CLAIM_AUTHORIZATION_ID,
    CLAIM_EMAIL,
    CLAIM_EMAIL_VERIFIED,
    CLAIM_NAME,
    CLAIM_PICTURE,
    CLAIM_PREFERRED_USERNAME,
    CLAIM_ROLE,
    CLAIM_SUBJECT,
    CUSTOM_CLAIM_PREFIX,
    EmailAddress,
    NormalizedProfile,
    Photo,
)
from citizenid.tokens import decode_jwt_unverified

if TYPE_CHECKING:
    from citizenid.attempt import AuthAttempt
    from citizenid.oauth2 import OAuth2Client

logger = logging.getLogger(__name__)


def normalize_profile(claims: dict[str, Any], raw: str) -> NormalizedProfile:
    """Map a CitizenID claim set to a NormalizedProfile.

    Pure function: the same claims always give an equal profile.

    Args:
        claims: Claim set with at least a ``sub`` claim.
        raw: Source document the claims were read from.

    Returns:
        NormalizedProfile.

    Examples:
        >>> profile = normalize_profile({"sub": "u2"}, raw="{}")
        >>> profile.id, profile.username, profile.display_name, profile.emails, profile.roles
        ('u2', '', '', (), ())
        >>> profile.photos is None and profile.custom_claims is None
        True
    """
    username = claims.get(CLAIM_PREFERRED_USERNAME) or ""

    emails: tuple[EmailAddress, ...] = ()
    email = claims.get(CLAIM_EMAIL)
    if email:
        emails = (EmailAddress(value=email, verified=_is_verified(claims.get(CLAIM_EMAIL_VERIFIED))),)

    photos: tuple[Photo, ...] | None = None
    picture = claims.get(CLAIM_PICTURE)
    if picture:
        photos = (Photo(value=picture),)

    custom_claims = {k: v for k, v in claims.items() if k.startswith(CUSTOM_CLAIM_PREFIX)}

    return NormalizedProfile(
        id=claims[CLAIM_SUBJECT],
        username=username,
        display_name=claims.get(CLAIM_NAME) or username,
        emails=emails,
        roles=_roles(claims.get(CLAIM_ROLE)),
        photos=photos,
        authorization_id=claims.get(CLAIM_AUTHORIZATION_ID) or None,
        custom_claims=custom_claims or None,
        raw=raw,
        json=claims,
    )


def _roles(value: Any) -> tuple[str, ...]:
    """Return the role claim as a tuple, wrapping a single role."""
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(value)
    if isinstance(value, (set, frozenset)):
        return tuple(sorted(value))
    return (str(value),)


def _is_verified(value: Any) -> bool:
    """Interpret the email_verified claim, which some servers send as a string."""
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


def _is_claim_set(data: Any) -> bool:
    """Return True when ``data`` is a JSON object with a string subject."""
    return isinstance(data, dict) and isinstance(data.get(CLAIM_SUBJECT), str) and bool(data[CLAIM_SUBJECT])


def decode_id_token(id_token: str) -> dict[str, Any]:
    """Decode an id_token into a usable claim set, without signature check.

    Raises:
        TokenDecodeError: If the payload cannot be decoded or has no subject.
    """
    claims = decode_jwt_unverified(id_token)
    if not _is_claim_set(claims):
        raise TokenDecodeError("id_token payload has no 'sub' claim")
    return claims


class ProfileLoader:
    """Produce the profile of an authentication attempt.

    Args:
        oauth2: OAuth2 capability used for the userinfo request.
        userinfo_url: UserInfo endpoint.
    """

    def __init__(self, oauth2: OAuth2Client, userinfo_url: str) -> None:
        self._oauth2 = oauth2
        self._userinfo_url = userinfo_url

    def load(self, access_token: str, attempt: AuthAttempt | None = None) -> NormalizedProfile:
        """Build the profile, preferring the attempt's id_token.

        Args:
            access_token: Access token for the userinfo fallback.
            attempt: Attempt holding the captured id_token, if any.

        Returns:
            NormalizedProfile.

        Raises:
            ProfileRetrievalError: If the userinfo endpoint cannot be reached
                or answers with an HTTP error.
            ProfileParseError: If the userinfo body is not a claim set.
        """
        if attempt is not None and attempt.id_token:
            try:
                claims = decode_id_token(attempt.id_token)
            except TokenDecodeError as exc:
                logger.warning("ID token decode failed, falling back to userinfo: %s", exc.reason)
                attempt.record(f"id_token decode failed: {exc.reason}")
            else:
                logger.debug("Profile built from id_token for sub=%s", claims[CLAIM_SUBJECT])
                return normalize_profile(claims, attempt.id_token)

        return self.fetch_userinfo(access_token)

    def fetch_userinfo(self, access_token: str) -> NormalizedProfile:
        """Fetch and normalize the userinfo endpoint's claim set.

        Raises:
            ProfileRetrievalError: On transport failure or HTTP error status.
            ProfileParseError: If the body is not a JSON object with a subject.
        """
        url = self._userinfo_url
        logger.debug("Fetching user profile from %s", url)

        try:
            response = self._oauth2.get(url, access_token)
        except httpx.HTTPStatusError as exc:
            raise ProfileRetrievalError(url, exc.response.status_code) from exc
        except httpx.RequestError as exc:
            raise ProfileRetrievalError(url) from exc

        body = response.text
        try:
            claims = json.loads(body)
        except ValueError as exc:
            raise ProfileParseError(f"invalid JSON: {exc}") from exc

        if not _is_claim_set(claims):
            raise ProfileParseError("response is not a claim set with a 'sub' claim")

        return normalize_profile(claims, body)


__all__ = [
    "ProfileLoader",
    "decode_id_token",
    "normalize_profile",
]
