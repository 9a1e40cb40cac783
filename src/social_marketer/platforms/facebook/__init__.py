"""Facebook Page connector."""

from .connector import FacebookConnector

__all__ = ["FacebookConnector"]
