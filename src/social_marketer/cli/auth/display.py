"""Display functions for auth commands - pure functions for Rich output."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ...platforms.types import PlatformType
from .service import ConnectResult, PlatformStatus


def show_keys_saved(console: Console, platform: PlatformType) -> None:
    console.print(f"[green]API keys saved for {platform.display_name}.[/green]")
    if not platform.capabilities.uses_static_signing:
        console.print(f"[dim]Next:[/dim] [cyan]marketer auth connect {platform.value}[/cyan]")


def show_connect_started(console: Console, platform: PlatformType, redirect_uri: str) -> None:
    console.print(Panel(
        f"Opening the browser to authorize [cyan]{platform.display_name}[/cyan]\n"
        f"Redirect URI: [yellow]{redirect_uri}[/yellow]\n"
        "[dim]Register this redirect URI in the platform's developer console.[/dim]",
        title="Connect",
    ))


def show_connected(console: Console, result: ConnectResult) -> None:
    lines = [
        f"[bold green]{result.platform.display_name} connected[/bold green]",
        f"Token: [cyan]{result.token_status}[/cyan]",
    ]
    if result.setup:
        lines.append(f"Selected: [yellow]{result.setup}[/yellow]")
    console.print(Panel("\n".join(lines), border_style="green"))


def show_disconnected(console: Console, platform: PlatformType, forget_keys: bool) -> None:
    suffix = " and its API keys were removed" if forget_keys else ""
    console.print(f"[yellow]{platform.display_name} disconnected{suffix}.[/yellow]")


def show_status_table(console: Console, statuses: list[PlatformStatus]) -> None:
    """Display one row per platform with keys, token and readiness."""
    table = Table(title="Platforms")
    table.add_column("Platform", style="cyan")
    table.add_column("Enabled")
    table.add_column("Keys")
    table.add_column("Token", style="white")
    table.add_column("Ready")

    for status in statuses:
        table.add_row(
            status.platform.display_name,
            "[green]yes[/green]" if status.enabled else "[dim]no[/dim]",
            "[green]yes[/green]" if status.has_keys else "[dim]no[/dim]",
            status.token_status,
            "[green]yes[/green]" if status.configured else "[red]no[/red]",
        )

    console.print(table)

    ready = sum(1 for s in statuses if s.enabled and s.configured)
    enabled = sum(1 for s in statuses if s.enabled)
    console.print(f"\n[bold]Ready:[/] {ready} of {enabled} enabled platform(s)")
