"""Command line helpers for CitizenID integrations.

Commands:
    citizenid authorize-url   Print an authorization redirect URL.
    citizenid profile TOKEN   Decode an id_token and show the normalized profile.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from citizenid.config import build_strategy_config
from citizenid.errors import CitizenIDError, TokenDecodeError
from citizenid.models import AuthorizationParams
from citizenid.profile import decode_id_token, normalize_profile
from citizenid.strategy import CitizenIDStrategy

app = typer.Typer(
    name="citizenid",
    help="CitizenID OpenID Connect helpers.",
    no_args_is_help=True,
)
console = Console()


def exit_error(message: str, code: int = 1) -> NoReturn:
    """Print an error message and exit.

    Args:
        message: Message to display.
        code: Process exit code.
    """
    console.print(f"[red]Error:[/] {message}")
    raise typer.Exit(code=code)


# ─────────────────────────────────────────────────────────────────────────────
# Rendering
# ─────────────────────────────────────────────────────────────────────────────


def _render_profile(profile_data: dict[str, Any], claims: dict[str, Any]) -> None:
    """Render a normalized profile as a summary table.

    Args:
        profile_data: Output of ``NormalizedProfile.to_dict()``.
        claims: Decoded claim set.
    """
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value")

    table.add_row("Subject", profile_data["id"])
    table.add_row("Username", profile_data["username"] or "[dim]none[/]")
    table.add_row("Display Name", profile_data["display_name"] or "[dim]none[/]")
    for email in profile_data["emails"]:
        suffix = "" if email["verified"] else " [yellow](unverified)[/]"
        table.add_row("Email", f"{email['value']}{suffix}")
    table.add_row("Roles", ", ".join(profile_data["roles"]) or "[dim]none[/]")
    for photo in profile_data.get("photos", []):
        table.add_row("Photo", photo["value"])
    if "authorization_id" in profile_data:
        table.add_row("Authorization ID", profile_data["authorization_id"])
    _add_expiry_row(table, claims)

    console.print(Panel(table, title="CitizenID Profile", style="green"))

    custom = profile_data.get("custom_claims")
    if custom:
        console.print(Panel(json.dumps(custom, indent=2, default=str), title="Custom Claims", style="cyan"))


def _add_expiry_row(table: Table, claims: dict[str, Any]) -> None:
    """Add the token expiry row when the claim set has ``exp``."""
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return

    exp_dt = datetime.fromtimestamp(exp, tz=timezone.utc)
    if exp_dt > datetime.now(timezone.utc):
        table.add_row("Expires", exp_dt.isoformat())
    else:
        table.add_row("Expires", f"[red]Expired at {exp_dt.isoformat()}[/]")


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────


CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="YAML configuration file (default: ./citizenid.conf.yml).",
)


@app.command("authorize-url")
def authorize_url(
    config_path: Path | None = CONFIG_OPTION,
    nonce: str | None = typer.Option(None, "--nonce", help="Nonce echoed in the id_token."),
    prompt: str | None = typer.Option(None, "--prompt", help="login, consent or none."),
    max_age: int | None = typer.Option(None, "--max-age", help="Maximum authentication age (seconds)."),
    ui_locales: str | None = typer.Option(None, "--ui-locales", help="Preferred UI languages."),
    response_mode: str | None = typer.Option(None, "--response-mode", help="query, fragment or form_post."),
) -> None:
    """Print an authorization URL with fresh state and PKCE values."""
    try:
        config = build_strategy_config(path=config_path)
    except CitizenIDError as exc:
        exit_error(exc.message)

    params = AuthorizationParams(
        nonce=nonce,
        response_mode=response_mode,
        prompt=prompt,
        max_age=max_age,
        ui_locales=ui_locales,
    )

    with CitizenIDStrategy(config, lambda *args: None) as strategy:
        url, attempt = strategy.authorization_request(params)

    console.print(url, soft_wrap=True)
    if attempt.state:
        console.print(f"[dim]state:[/] {attempt.state}")
    if attempt.code_verifier:
        console.print(f"[dim]code_verifier:[/] {attempt.code_verifier}")


@app.command("profile")
def profile(
    token: str = typer.Argument(..., help="id_token to decode (signature is NOT verified)."),
    as_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON for automation."),
) -> None:
    """Decode an id_token and show the normalized profile.

    Exit codes: 0 (decoded), 1 (not a decodable id_token).
    """
    try:
        claims = decode_id_token(token)
    except TokenDecodeError as exc:
        if as_json:
            sys.stdout.write(json.dumps({"error": exc.reason}) + "\n")
            raise typer.Exit(code=1) from exc
        exit_error(exc.reason)

    normalized = normalize_profile(claims, token)

    if as_json:
        sys.stdout.write(json.dumps(normalized.to_dict(), indent=2, default=str) + "\n")
        return

    _render_profile(normalized.to_dict(), claims)


def main() -> None:
    """Console script entry point."""
    app()


__all__ = [
    "app",
    "main",
]
