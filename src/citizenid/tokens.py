"""Unverified JWT payload decoding.

CitizenID id_tokens carry the user's claims directly. Reading them avoids a
round trip to the userinfo endpoint. The signature is **not** checked here;
callers who need cryptographic proof must verify the token before trusting it.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

from citizenid.errors import TokenDecodeError


def decode_jwt_unverified(token: str) -> dict[str, Any]:
    """Decode a JWT payload without verifying its signature.

    Args:
        token: Compact JWT (``header.payload.signature``).

    Returns:
        Decoded payload claims.

    Raises:
        TokenDecodeError: If the token is not a three-part JWT or its
            payload is not a base64url-encoded JSON object.

    Examples:
        >>> decode_jwt_unverified("eyJhbGciOiJub25lIn0.eyJzdWIiOiJ1MSJ9.")
        {'sub': 'u1'}
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise TokenDecodeError(f"Invalid JWT format: expected 3 parts, got {len(parts)}")

    try:
        payload = json.loads(_b64url_decode(parts[1]))
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise TokenDecodeError(f"Failed to decode JWT payload: {exc}") from exc

    if not isinstance(payload, dict):
        raise TokenDecodeError("JWT payload is not a JSON object")

    return payload


def _b64url_decode(data: str) -> bytes:
    """Decode base64url-encoded data with padding fix."""
    padding = 4 - len(data) % 4
    if padding != 4:
        data += "=" * padding
    return base64.urlsafe_b64decode(data)


__all__ = [
    "decode_jwt_unverified",
]
