"""Queue commands: list and add."""

from .commands import queue_app

__all__ = ["queue_app"]
