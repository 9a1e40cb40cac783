"""Instagram Business connector."""

from .connector import InstagramAccount, InstagramConnector
from .media_host import CloudinaryMediaHost, FacebookPageMediaHost, MediaHost

__all__ = [
    "InstagramAccount",
    "InstagramConnector",
    "MediaHost",
    "FacebookPageMediaHost",
    "CloudinaryMediaHost",
]
