"""Run commands: one cycle or the due queue."""

from .commands import process_queue_command, run

__all__ = ["process_queue_command", "run"]
