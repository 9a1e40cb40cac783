"""Queue CLI commands - thin wrappers orchestrating display and service."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from ...scheduler.models import PostStatus
from ..core.console import console, print_error
from ..core.runtime import get_services
from ..core.types import Failure
from .display import show_post_queued, show_queue_table
from .service import add_to_queue, list_queue

queue_app = typer.Typer(help="Queued posts and their results", add_completion=False)


@queue_app.command("list")
def list_command(
    status: Optional[PostStatus] = typer.Option(None, "--status", "-s", help="Only posts with this status"),
) -> None:
    """List posts with the platforms that succeeded and failed."""
    services = get_services()
    show_queue_table(console, list_queue(services, status))


@queue_app.command("add")
def add_command(
    text: str = typer.Option(..., "--text", "-t", help="Post body"),
    link: str = typer.Option("https://www.wisdombook.life", "--link", "-l", help="Target link"),
    title: str = typer.Option("", "--title", help="Title used for hashtags"),
    citation: Optional[str] = typer.Option(None, "--citation", "-c", help="Source line under the text"),
    category: str = typer.Option("thought", "--category", help="thought, quote or passage"),
    when: Optional[str] = typer.Option(None, "--at", help="When to post (ISO time, default now)"),
    media: Optional[Path] = typer.Option(None, "--media", "-m", help="Image or video to post instead of a rendered card"),
) -> None:
    """Queue a post for the next cycle (or a later time)."""
    services = get_services()
    result = add_to_queue(services, text, link, title, citation, category, when, media)
    if isinstance(result, Failure):
        print_error(result.error, result.details)
        raise typer.Exit(1)
    show_post_queued(console, result.value)
