"""Auth CLI commands - thin wrappers orchestrating display and service."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from ..core.console import console, print_error
from ..core.runtime import get_services, parse_platform
from ..core.types import Failure
from .display import (
    show_connect_started,
    show_connected,
    show_disconnected,
    show_keys_saved,
    show_status_table,
)
from .service import (
    connect,
    disconnect,
    paste_token,
    platform_statuses,
    set_keys,
    set_twitter_keys,
)

auth_app = typer.Typer(help="API keys and platform connections", add_completion=False)


@auth_app.command("set-keys")
def set_keys_command(
    platform: str = typer.Argument(..., help="Platform name"),
    client_id: str = typer.Option(..., "--client-id", prompt=True, help="OAuth client ID"),
    client_secret: Optional[str] = typer.Option(
        None, "--client-secret", help="OAuth client secret (omit for public clients)"
    ),
) -> None:
    """Store the OAuth client keys for a platform."""
    services = get_services()
    result = set_keys(services, parse_platform(platform), client_id, client_secret)
    if isinstance(result, Failure):
        print_error(result.error)
        raise typer.Exit(1)
    show_keys_saved(console, result.value)


@auth_app.command("set-twitter-keys")
def set_twitter_keys_command(
    consumer_key: str = typer.Option(..., prompt=True, help="API key"),
    consumer_secret: str = typer.Option(..., prompt=True, hide_input=True, help="API key secret"),
    access_token: str = typer.Option(..., prompt=True, help="Access token"),
    access_token_secret: str = typer.Option(..., prompt=True, hide_input=True, help="Access token secret"),
) -> None:
    """Store the four X (Twitter) keys used for signed requests."""
    services = get_services()
    result = set_twitter_keys(services, consumer_key, consumer_secret, access_token, access_token_secret)
    if isinstance(result, Failure):
        print_error(result.error)
        raise typer.Exit(1)
    show_keys_saved(console, result.value)


@auth_app.command("connect")
def connect_command(
    platform: str = typer.Argument(..., help="Platform name"),
) -> None:
    """Authorize a platform in the browser and store its token."""
    services = get_services()
    parsed = parse_platform(platform)
    show_connect_started(console, parsed, services.oauth.redirect_uri)

    result = asyncio.run(connect(services, parsed))
    if isinstance(result, Failure):
        print_error(result.error, result.details)
        raise typer.Exit(1)
    show_connected(console, result.value)


@auth_app.command("paste-token")
def paste_token_command(
    platform: str = typer.Argument(..., help="Platform name"),
    token: str = typer.Option(..., "--token", prompt=True, hide_input=True, help="Bearer token"),
    expires_in: Optional[int] = typer.Option(None, "--expires-in", help="Token lifetime in seconds"),
) -> None:
    """Store a bearer token copied from the platform's token tool."""
    services = get_services()
    result = asyncio.run(paste_token(services, parse_platform(platform), token, expires_in))
    if isinstance(result, Failure):
        print_error(result.error, result.details)
        raise typer.Exit(1)
    show_connected(console, result.value)


@auth_app.command("disconnect")
def disconnect_command(
    platform: str = typer.Argument(..., help="Platform name"),
    forget_keys: bool = typer.Option(False, "--forget-keys", help="Also remove the stored API keys"),
) -> None:
    """Remove a platform's token and discovered page, board or account."""
    services = get_services()
    result = disconnect(services, parse_platform(platform), forget_keys)
    show_disconnected(console, result.value, forget_keys)


@auth_app.command("status")
def status_command() -> None:
    """Show keys, token state and readiness for every platform."""
    services = get_services()
    statuses = asyncio.run(platform_statuses(services))
    show_status_table(console, statuses)
