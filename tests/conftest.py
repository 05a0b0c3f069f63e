"""Shared pytest fixtures for the citizenid test suite."""

from __future__ import annotations

# Disable Rich colors and force wide terminal BEFORE any imports
# Rich checks these at import time
import os

os.environ["NO_COLOR"] = "1"
os.environ["TERM"] = "dumb"
os.environ["FORCE_COLOR"] = "0"
os.environ["COLUMNS"] = "200"  # Prevent text wrapping in CLI output

import base64
import json
from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from citizenid.config import StrategyConfig
from citizenid.strategy import CitizenIDStrategy

# pylint: disable=redefined-outer-name

ADA_CLAIMS: dict[str, Any] = {
    "sub": "u1",
    "preferred_username": "ada",
    "name": "Ada L",
    "email": "ada@x.io",
    "email_verified": True,
    "role": ["admin", "pilot"],
}


def encode_segment(data: Any) -> str:
    """Base64url-encode a JSON document without padding."""
    raw = json.dumps(data).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def make_jwt(claims: dict[str, Any]) -> str:
    """Build an unsigned compact JWT carrying ``claims``."""
    return f"{encode_segment({'alg': 'RS256', 'typ': 'JWT'})}.{encode_segment(claims)}.c2lnbmF0dXJl"


def make_response(
    json_data: Any = None,
    *,
    status_code: int = 200,
    text: str | None = None,
) -> MagicMock:
    """Create a mocked httpx response.

    A status code of 400 or more makes ``raise_for_status`` raise
    ``httpx.HTTPStatusError`` like the real client does.
    """
    response = MagicMock()
    response.status_code = status_code
    if text is None:
        text = json.dumps(json_data) if json_data is not None else ""
    response.text = text
    if json_data is not None:
        response.json.return_value = json_data
    else:
        response.json.side_effect = ValueError("No JSON")

    if status_code >= 400:
        response.raise_for_status = MagicMock(
            side_effect=httpx.HTTPStatusError(
                f"HTTP {status_code}",
                request=MagicMock(),
                response=response,
            )
        )
    else:
        response.raise_for_status = MagicMock()
    return response


@pytest.fixture
def jwt_factory() -> Callable[[dict[str, Any]], str]:
    """Return the unsigned JWT builder."""
    return make_jwt


@pytest.fixture
def ada_id_token() -> str:
    """id_token for the sample user 'ada'."""
    return make_jwt(ADA_CLAIMS)


@pytest.fixture
def strategy_config() -> StrategyConfig:
    """Confidential client configuration."""
    return StrategyConfig(
        client_id="test-client",
        client_secret="test-secret",
        callback_url="http://127.0.0.1:3000/auth/citizenid/callback",
    )


@pytest.fixture
def verify() -> MagicMock:
    """Verify callback accepting every profile as its own subject."""
    return MagicMock(side_effect=lambda access_token, refresh_token, profile: {"id": profile.id})


@pytest.fixture
def strategy(strategy_config: StrategyConfig, verify: MagicMock) -> CitizenIDStrategy:
    """Strategy with default options."""
    return CitizenIDStrategy(strategy_config, verify)


@pytest.fixture
def response_factory() -> Callable[..., MagicMock]:
    """Return the mocked httpx response builder."""
    return make_response


@pytest.fixture
def ada_claims() -> dict[str, Any]:
    """Claim set of the sample user 'ada'."""
    return dict(ADA_CLAIMS)
