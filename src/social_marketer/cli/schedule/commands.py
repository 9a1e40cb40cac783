"""Schedule CLI commands - thin wrappers orchestrating display and service."""

from __future__ import annotations

import typer

from ..core.console import console, print_error
from ..core.runtime import get_services
from ..core.types import Failure
from .display import show_schedule_changed, show_schedule_status, show_uninstalled
from .service import get_status, install_trigger, set_schedule, uninstall_trigger

schedule_app = typer.Typer(help="Daily trigger time and installation", add_completion=False)


@schedule_app.command("set")
def set_command(
    hour: int = typer.Argument(..., help="Hour (0-23)"),
    minute: int = typer.Argument(0, help="Minute (0-59)"),
) -> None:
    """Change the daily post time."""
    services = get_services()
    result = set_schedule(services, hour, minute)
    if isinstance(result, Failure):
        print_error(result.error)
        raise typer.Exit(1)
    show_schedule_changed(console, result.value)


@schedule_app.command("install")
def install_command() -> None:
    """Install (or replace) the daily OS trigger."""
    services = get_services()
    result = install_trigger(services)
    if isinstance(result, Failure):
        print_error(result.error)
        raise typer.Exit(1)
    show_schedule_status(console, result.value)


@schedule_app.command("uninstall")
def uninstall_command() -> None:
    """Remove the daily OS trigger."""
    services = get_services()
    result = uninstall_trigger(services)
    if isinstance(result, Failure):
        print_error(result.error)
        raise typer.Exit(1)
    show_uninstalled(console)


@schedule_app.command("status")
def status_command() -> None:
    """Show the configured time and the installed trigger."""
    services = get_services()
    show_schedule_status(console, get_status(services))
