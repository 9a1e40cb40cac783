"""Schedule commands: time and OS trigger."""

from .commands import schedule_app

__all__ = ["schedule_app"]
