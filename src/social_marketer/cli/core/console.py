"""Rich console shared by every command group."""

import sys
from typing import Any, Optional

from rich.console import Console

# Windows cp1252 has no box drawing characters
console = Console(safe_box=sys.platform == "win32")


def print_error(message: str, details: Optional[dict[str, Any]] = None, out: Optional[Console] = None) -> None:
    """Print a failed command's message and its details.

    Args:
        message: What failed, as returned in ``Failure.error``.
        details: ``Failure.details``, one indented line per key
            (for example ``kind: missing_credential``).
        out: Console to print to (the shared console if omitted).
    """
    out = out or console
    out.print(f"[red]Error: {message}[/red]")
    for key, value in (details or {}).items():
        out.print(f"  [dim]{key}:[/dim] [yellow]{value}[/yellow]")
