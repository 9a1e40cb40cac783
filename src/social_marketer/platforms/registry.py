"""Registry for constructing platform connectors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional, Type

import httpx

from ..http import DEFAULT_TIMEOUT
from .base import PlatformConnector, ProgressCallback
from .facebook import FacebookConnector
from .instagram import InstagramConnector
from .linkedin import LinkedInConnector
from .pinterest import PinterestConnector
from .tiktok import TikTokConnector
from .twitter import TwitterConnector
from .types import PlatformType
from .youtube import YouTubeConnector

if TYPE_CHECKING:
    from ..auth.oauth import OAuthOrchestrator
    from ..auth.secret_store import SecretStore
    from ..config import MarketerConfig

DEFAULT_CONNECTORS: dict[PlatformType, Type[PlatformConnector]] = {
    PlatformType.TWITTER: TwitterConnector,
    PlatformType.INSTAGRAM: InstagramConnector,
    PlatformType.LINKEDIN: LinkedInConnector,
    PlatformType.FACEBOOK: FacebookConnector,
    PlatformType.PINTEREST: PinterestConnector,
    PlatformType.TIKTOK: TikTokConnector,
    PlatformType.YOUTUBE: YouTubeConnector,
}


class ConnectorRegistry:
    """Maps each PlatformType to its connector class and builds instances.

    Usage:
        registry = ConnectorRegistry()
        connector = registry.create(PlatformType.PINTEREST, secrets, oauth, config)
        connectors = registry.build_all(secrets, oauth, config)
    """

    def __init__(self, connectors: Optional[dict[PlatformType, Type[PlatformConnector]]] = None):
        self._connectors = dict(DEFAULT_CONNECTORS if connectors is None else connectors)

    def register(self, platform: PlatformType, connector_cls: Type[PlatformConnector]) -> None:
        self._connectors[platform] = connector_cls

    def is_registered(self, platform: PlatformType) -> bool:
        return platform in self._connectors

    def available_platforms(self) -> list[PlatformType]:
        return list(self._connectors)

    def create(
        self,
        platform: PlatformType,
        secrets: "SecretStore",
        oauth: "OAuthOrchestrator",
        config: Optional["MarketerConfig"] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
        progress_callback: ProgressCallback = None,
    ) -> PlatformConnector:
        """Build one connector.

        Raises:
            ValueError: If the platform has no registered connector.
        """
        if platform not in self._connectors:
            available = ", ".join(p.value for p in self._connectors)
            raise ValueError(f"Unknown platform: {platform}. Available: {available}")

        settings = config.platform(platform) if config is not None else None
        return self._connectors[platform](
            secrets,
            oauth,
            settings=settings,
            http_client=http_client,
            timeout=timeout,
            progress_callback=progress_callback,
        )

    def build_all(
        self,
        secrets: "SecretStore",
        oauth: "OAuthOrchestrator",
        config: Optional["MarketerConfig"] = None,
        platforms: Optional[Iterable[PlatformType]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> dict[PlatformType, PlatformConnector]:
        """Build connectors for ``platforms`` (default: every registered one)."""
        selected = list(platforms) if platforms is not None else self.available_platforms()
        return {
            platform: self.create(platform, secrets, oauth, config, http_client, timeout)
            for platform in selected
        }
