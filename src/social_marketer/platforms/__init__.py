"""Platform connectors behind a common publishing contract.

Usage:
    from social_marketer.platforms import ConnectorRegistry, PlatformType

    connectors = ConnectorRegistry().build_all(secrets, oauth, config)
    result = await connectors[PlatformType.LINKEDIN].post_text("Hello")
"""

from .base import PlatformConnector, PostResult
from .discovery import select_sub_resource
from .registry import ConnectorRegistry
from .types import MediaKind, PlatformCapabilities, PlatformType

__all__ = [
    "ConnectorRegistry",
    "MediaKind",
    "PlatformCapabilities",
    "PlatformConnector",
    "PlatformType",
    "PostResult",
    "select_sub_resource",
]
