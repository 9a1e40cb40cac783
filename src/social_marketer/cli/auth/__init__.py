"""Auth commands: keys, connections and status."""

from .commands import auth_app

__all__ = ["auth_app"]
