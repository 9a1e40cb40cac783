"""Run CLI commands - thin wrappers orchestrating display and service."""

from __future__ import annotations

import asyncio

import typer

from ..core.console import console, print_error
from ..core.runtime import get_services
from ..core.types import Failure
from .display import show_cycle_report, show_queue_processed
from .service import process_queue, run_cycle


def run(
    scheduled: bool = typer.Option(
        False, "--scheduled", help="Invoked by the daily OS trigger"
    ),
) -> None:
    """Run one cycle: select content, render media and post everywhere.

    Press Ctrl+C before publishing starts to cancel a manual run.
    """
    services = get_services()
    result = asyncio.run(run_cycle(services, scheduled=scheduled))
    if isinstance(result, Failure):
        print_error(result.error)
        raise typer.Exit(1)
    show_cycle_report(console, result.value)


def process_queue_command() -> None:
    """Publish every queued post whose time has come."""
    services = get_services()
    result = asyncio.run(process_queue(services))
    if isinstance(result, Failure):
        print_error(result.error)
        raise typer.Exit(1)
    show_queue_processed(console, result.value)
