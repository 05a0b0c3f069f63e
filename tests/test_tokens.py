"""Tests for unverified JWT payload decoding."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from citizenid.errors import TokenDecodeError
from citizenid.tokens import decode_jwt_unverified


class TestDecodeJwtUnverified:
    """Tests for decode_jwt_unverified()."""

    def test_decodes_payload(self, jwt_factory: Callable[[dict[str, Any]], str]) -> None:
        """The payload claims are returned as-is."""
        claims = {"sub": "u1", "role": ["admin"], "urn:user:rsi:handle": "Ada"}
        assert decode_jwt_unverified(jwt_factory(claims)) == claims

    def test_padding_restored(self, jwt_factory: Callable[[dict[str, Any]], str]) -> None:
        """Payloads whose length needs padding still decode."""
        for sub in ("a", "ab", "abc", "abcd"):
            assert decode_jwt_unverified(jwt_factory({"sub": sub}))["sub"] == sub

    @pytest.mark.parametrize("token", ["", "only-one", "two.parts", "a.b.c.d"])
    def test_wrong_part_count(self, token: str) -> None:
        """Anything but three segments is rejected."""
        with pytest.raises(TokenDecodeError, match="expected 3 parts"):
            decode_jwt_unverified(token)

    def test_garbage_payload(self) -> None:
        """A payload that is not JSON is rejected."""
        with pytest.raises(TokenDecodeError, match="Failed to decode JWT payload") as exc_info:
            decode_jwt_unverified("header.bm90LWpzb24.sig")

        assert exc_info.value.__cause__ is not None

    def test_non_object_payload(self) -> None:
        """A JSON array payload is not a claim set."""
        # base64url("[1,2]")
        with pytest.raises(TokenDecodeError, match="not a JSON object"):
            decode_jwt_unverified("eyJhbGciOiJub25lIn0.WzEsMl0.")
