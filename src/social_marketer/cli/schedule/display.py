"""Display functions for schedule commands - pure functions for Rich output."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel

from .service import ScheduleChange, ScheduleStatus


def show_schedule_changed(console: Console, change: ScheduleChange) -> None:
    console.print(f"[green]Daily post time set to {change.hour:02d}:{change.minute:02d}.[/green]")
    if change.reinstalled:
        console.print("[dim]The installed trigger was replaced with the new time.[/dim]")


def show_schedule_status(console: Console, status: ScheduleStatus) -> None:
    if status.installed is None:
        trigger = "[dim]not installed[/dim]"
    elif status.current:
        trigger = f"[green]installed[/green] ({status.installed.hour:02d}:{status.installed.minute:02d})"
    else:
        trigger = (
            f"[yellow]outdated[/yellow] ({status.installed.hour:02d}:{status.installed.minute:02d}); "
            "run [cyan]marketer schedule install[/cyan]"
        )

    console.print(Panel(
        f"Configured time: [cyan]{status.hour:02d}:{status.minute:02d}[/cyan]\n"
        f"Trigger: {trigger}",
        title="Schedule",
    ))


def show_uninstalled(console: Console) -> None:
    console.print("[yellow]Daily trigger removed.[/yellow]")
