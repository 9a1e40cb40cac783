"""Display functions for queue commands - pure functions for Rich output."""

from __future__ import annotations

from typing import List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ...scheduler.models import Post, PostStatus
from .service import QueueEntry

_STATUS_STYLE = {
    PostStatus.PENDING: "yellow",
    PostStatus.POSTED: "green",
    PostStatus.FAILED: "red",
}


def show_queue_table(console: Console, entries: List[QueueEntry]) -> None:
    """Display posts with per-platform outcomes from their stored logs."""
    if not entries:
        console.print("[yellow]No posts in queue.[/yellow]")
        console.print("\n[dim]Queue one with:[/dim]")
        console.print("  [cyan]marketer queue add --text '...' --link https://...[/cyan]")
        return

    table = Table(title="Post Queue")
    table.add_column("#", style="dim")
    table.add_column("Status")
    table.add_column("Scheduled", style="dim")
    table.add_column("Content", style="white")
    table.add_column("Succeeded", style="green")
    table.add_column("Failed", style="red")

    for i, entry in enumerate(entries, 1):
        post = entry.post
        style = _STATUS_STYLE[post.status]
        text = post.title or post.content
        table.add_row(
            str(i),
            f"[{style}]{post.status.value}[/{style}]",
            post.scheduled_at.astimezone().strftime("%Y-%m-%d %H:%M"),
            text[:35] + ("..." if len(text) > 35 else ""),
            ", ".join(entry.succeeded),
            ", ".join(entry.failed),
        )

    console.print(table)

    counts = {status: sum(1 for e in entries if e.post.status == status) for status in PostStatus}
    console.print(f"\n[bold]Total:[/] {len(entries)} posts")
    console.print(f"  Pending: [yellow]{counts[PostStatus.PENDING]}[/yellow]")
    console.print(f"  Posted: [green]{counts[PostStatus.POSTED]}[/green]")
    console.print(f"  Failed: [red]{counts[PostStatus.FAILED]}[/red]")


def show_post_queued(console: Console, post: Post) -> None:
    media = f"\nMedia: [cyan]{post.media_path}[/cyan]" if post.media_path else ""
    console.print(Panel(
        f"[bold green]Queued {post.category.value}[/bold green]\n"
        f"Due: [yellow]{post.scheduled_at.astimezone().strftime('%Y-%m-%d %H:%M')}[/yellow]\n"
        f"Link: [cyan]{post.link}[/cyan]"
        f"{media}",
        border_style="green",
    ))
