"""Tests for the citizenid command line."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlparse

import pytest
from typer.testing import CliRunner

from citizenid.cli import app

# Mark all tests in this module as CLI tests
pytestmark = pytest.mark.cli

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Minimal YAML configuration."""
    path = tmp_path / "citizenid.conf.yml"
    path.write_text(
        "citizenid:\n"
        "  client_id: cli-app\n"
        "  callback_url: http://localhost:3000/callback\n"
        "  scopes: [openid, profile, roles]\n",
        encoding="utf-8",
    )
    return path


# ─────────────────────────────────────────────────────────────────────────────
# authorize-url
# ─────────────────────────────────────────────────────────────────────────────


class TestAuthorizeUrl:
    """Tests for the authorize-url command."""

    def test_prints_url(self, config_file: Path) -> None:
        """The URL, state and verifier are printed."""
        result = runner.invoke(app, ["authorize-url", "--config", str(config_file), "--prompt", "login"])

        assert result.exit_code == 0, result.output
        url = result.output.splitlines()[0].strip()
        query = {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}
        assert query["client_id"] == "cli-app"
        assert query["scope"] == "openid profile roles"
        assert query["prompt"] == "login"
        assert "state:" in result.output
        assert "code_verifier:" in result.output

    def test_max_age_zero(self, config_file: Path) -> None:
        """--max-age 0 is forwarded."""
        result = runner.invoke(app, ["authorize-url", "-c", str(config_file), "--max-age", "0"])

        assert result.exit_code == 0, result.output
        assert "max_age=0" in result.output

    def test_missing_config(self, tmp_path: Path) -> None:
        """A missing file exits with an error."""
        result = runner.invoke(app, ["authorize-url", "--config", str(tmp_path / "absent.yml")])

        assert result.exit_code == 1
        assert "Configuration file not found" in result.output


# ─────────────────────────────────────────────────────────────────────────────
# profile
# ─────────────────────────────────────────────────────────────────────────────


class TestProfileCommand:
    """Tests for the profile command."""

    def test_json_output(self, ada_id_token: str) -> None:
        """--json prints the normalized profile."""
        result = runner.invoke(app, ["profile", ada_id_token, "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["id"] == "u1"
        assert data["username"] == "ada"
        assert data["emails"] == [{"value": "ada@x.io", "verified": True}]
        assert data["roles"] == ["admin", "pilot"]

    def test_rich_output(self, jwt_factory: Callable[[dict[str, Any]], str]) -> None:
        """The default output is a readable panel."""
        token = jwt_factory({"sub": "u9", "preferred_username": "neo", "urn:user:rsi:handle": "Neo", "exp": 1})

        result = runner.invoke(app, ["profile", token])

        assert result.exit_code == 0, result.output
        assert "CitizenID Profile" in result.output
        assert "neo" in result.output
        assert "Expired at" in result.output
        assert "urn:user:rsi:handle" in result.output

    def test_invalid_token_json(self) -> None:
        """An undecodable token gives an error object and exit code 1."""
        result = runner.invoke(app, ["profile", "not-a-jwt", "--json"])

        assert result.exit_code == 1
        assert "expected 3 parts" in json.loads(result.output)["error"]

    def test_invalid_token(self) -> None:
        """An undecodable token exits with code 1."""
        result = runner.invoke(app, ["profile", "not-a-jwt"])

        assert result.exit_code == 1
        assert "Error:" in result.output


class TestApp:
    """Tests for the application itself."""

    def test_no_args_shows_help(self) -> None:
        """Running without a command prints usage."""
        result = runner.invoke(app, [])

        assert "authorize-url" in result.output
        assert "profile" in result.output
