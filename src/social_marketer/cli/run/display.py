"""Display functions for run commands - pure functions for Rich output."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ...scheduler.models import PostStatus
from ...scheduler.orchestrator import CycleReport


def show_cycle_report(console: Console, report: CycleReport) -> None:
    """Display the outcome of one cycle."""
    if report.cancelled:
        console.print("[yellow]Cycle cancelled before publishing. Nothing was posted.[/yellow]")
        return

    if report.post is None or not report.results:
        console.print(Panel(
            f"[yellow]{report.error or 'Nothing was published.'}[/yellow]",
            title="Cycle",
            border_style="yellow",
        ))
        if report.skipped:
            console.print(f"[dim]Skipped: {', '.join(report.skipped)}[/dim]")
        return

    table = Table(title=report.post.title or report.post.link)
    table.add_column("Platform", style="cyan")
    table.add_column("Result")
    table.add_column("Details", style="white")

    for result in report.results:
        if result.success:
            table.add_row(
                result.platform,
                "[green]posted[/green]",
                result.remote_post_url or result.remote_post_id or "",
            )
        else:
            table.add_row(result.platform, "[red]failed[/red]", result.error or "")

    console.print(table)
    if report.skipped:
        console.print(f"[dim]Skipped: {', '.join(report.skipped)}[/dim]")

    style = "green" if report.status == PostStatus.POSTED else "red"
    console.print(
        f"\n[bold]Status:[/] [{style}]{report.status.value}[/{style}] "
        f"({report.success_count} succeeded, {report.failure_count} failed)"
    )


def show_queue_processed(console: Console, reports: list[CycleReport]) -> None:
    if not reports:
        console.print("[yellow]No due posts in queue.[/yellow]")
        return
    for report in reports:
        show_cycle_report(console, report)
