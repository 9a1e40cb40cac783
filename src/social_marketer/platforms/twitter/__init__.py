"""X (Twitter) platform connector."""

from .connector import TwitterConnector

__all__ = ["TwitterConnector"]
