"""Exceptions raised by the citizenid package.

Exception hierarchy::

    CitizenIDError
        ConfigurationError (invalid strategy options, also ValueError)
        TokenExchangeError (token endpoint rejected or unreachable)
            StateMismatchError (callback state unknown or already consumed)
        ProfileError (base for profile failures)
            ProfileRetrievalError (userinfo endpoint unreachable)
            ProfileParseError (userinfo body is not a claim set)
        TokenDecodeError (id_token payload cannot be decoded)
"""

from __future__ import annotations

from typing import Any


class CitizenIDError(Exception):
    """Base exception for all citizenid errors.

    Attributes:
        message: Human-readable error message.
        details: Additional error context as key-value pairs.

    Examples:
        >>> raise CitizenIDError("Something went wrong", details={"step": "exchange"})
        Traceback (most recent call last):
        ...
        citizenid.errors.CitizenIDError: Something went wrong
    """

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize CitizenIDError.

        Args:
            message: Human-readable error message.
            details: Additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(CitizenIDError, ValueError):
    """Strategy configuration is invalid or incomplete.

    Raised at construction time, before any network activity.
    """


class TokenExchangeError(CitizenIDError):
    """The authorization code could not be exchanged for tokens.

    Attributes:
        reason: Description of the failure.
        error_code: OAuth2 error code returned by the provider, if any.
    """

    def __init__(
        self,
        reason: str,
        *,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize TokenExchangeError.

        Args:
            reason: Description of the failure.
            error_code: OAuth2 ``error`` value (e.g. ``invalid_grant``).
            details: Additional error context.
        """
        super().__init__(f"Token exchange failed: {reason}", details=details)
        self.reason = reason
        self.error_code = error_code


class StateMismatchError(TokenExchangeError):
    """The callback state does not match any pending authentication attempt."""

    def __init__(self, state: str | None) -> None:
        """Initialize StateMismatchError.

        Args:
            state: State value received on the callback.
        """
        super().__init__("State mismatch", error_code="invalid_state", details={"state": state})
        self.state = state


class ProfileError(CitizenIDError):
    """Base exception for user profile failures."""


class ProfileRetrievalError(ProfileError):
    """The userinfo endpoint could not be reached or answered with an error.

    The original transport error is chained as ``__cause__``.

    Attributes:
        url: Userinfo endpoint that was called.
        status_code: HTTP status code, if a response was received.
    """

    def __init__(self, url: str, status_code: int | None = None) -> None:
        """Initialize ProfileRetrievalError.

        Args:
            url: Userinfo endpoint that was called.
            status_code: HTTP status code, if a response was received.
        """
        super().__init__(
            "Failed to fetch user profile",
            details={"url": url, "status_code": status_code},
        )
        self.url = url
        self.status_code = status_code


class ProfileParseError(ProfileError):
    """The userinfo response body is not a well-formed claim set.

    The original parse error is chained as ``__cause__``.

    Attributes:
        reason: What was wrong with the body.
    """

    def __init__(self, reason: str) -> None:
        """Initialize ProfileParseError.

        Args:
            reason: What was wrong with the body.
        """
        super().__init__("Failed to parse user profile", details={"reason": reason})
        self.reason = reason


class TokenDecodeError(CitizenIDError):
    """The id_token payload could not be decoded into a claim set.

    Only used internally as the trigger for the userinfo fallback.

    Attributes:
        reason: Why decoding failed.
    """

    def __init__(self, reason: str) -> None:
        """Initialize TokenDecodeError.

        Args:
            reason: Why decoding failed.
        """
        super().__init__(reason, details={"reason": reason})
        self.reason = reason


__all__ = [
    "CitizenIDError",
    "ConfigurationError",
    "ProfileError",
    "ProfileParseError",
    "ProfileRetrievalError",
    "StateMismatchError",
    "TokenDecodeError",
    "TokenExchangeError",
]
