"""Pinterest connector."""

from .connector import PinterestBoard, PinterestConnector

__all__ = ["PinterestBoard", "PinterestConnector"]
