"""Command line interface - feature-based command groups.

- core/: console, result type and service access
- auth/: API keys, connections and token status
- run/: one cycle or the due queue
- queue/: queued posts and their per-platform results
- schedule/: daily trigger time and installation

Usage:
    marketer --help
    marketer auth connect linkedin
    marketer run
"""

from .app import app, main

__all__ = ["app", "main"]
