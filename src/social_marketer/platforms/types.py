"""Closed set of supported platforms and their capabilities."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MediaKind(str, Enum):
    """Kind of payload a publish call carries."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class PlatformCapabilities:
    """Static capability data for one platform."""

    display_name: str
    preferred_media: MediaKind
    supports_text: bool
    supports_image: bool
    supports_video: bool
    uses_static_signing: bool = False
    requires_sub_resource: bool = False
    oauth_refresh: bool = True


_CAPABILITIES: dict[str, PlatformCapabilities] = {
    "twitter": PlatformCapabilities(
        display_name="X (Twitter)",
        preferred_media=MediaKind.IMAGE,
        supports_text=True,
        supports_image=True,
        supports_video=False,
        uses_static_signing=True,
        oauth_refresh=False,
    ),
    "instagram": PlatformCapabilities(
        display_name="Instagram",
        preferred_media=MediaKind.VIDEO,
        supports_text=False,
        supports_image=True,
        supports_video=True,
        requires_sub_resource=True,
        oauth_refresh=False,
    ),
    "linkedin": PlatformCapabilities(
        display_name="LinkedIn",
        preferred_media=MediaKind.IMAGE,
        supports_text=True,
        supports_image=True,
        supports_video=False,
        requires_sub_resource=True,
    ),
    "facebook": PlatformCapabilities(
        display_name="Facebook",
        preferred_media=MediaKind.IMAGE,
        supports_text=True,
        supports_image=True,
        supports_video=False,
        requires_sub_resource=True,
        oauth_refresh=False,
    ),
    "pinterest": PlatformCapabilities(
        display_name="Pinterest",
        preferred_media=MediaKind.IMAGE,
        supports_text=False,
        supports_image=True,
        supports_video=False,
        requires_sub_resource=True,
    ),
    "tiktok": PlatformCapabilities(
        display_name="TikTok",
        preferred_media=MediaKind.VIDEO,
        supports_text=False,
        supports_image=False,
        supports_video=True,
    ),
    "youtube": PlatformCapabilities(
        display_name="YouTube",
        preferred_media=MediaKind.VIDEO,
        supports_text=False,
        supports_image=False,
        supports_video=True,
    ),
}


class PlatformType(str, Enum):
    """Supported platforms.

    Adding a platform means adding a member here, its capability entry, and
    one connector class registered in ``platforms.registry``.
    """

    TWITTER = "twitter"
    INSTAGRAM = "instagram"
    LINKEDIN = "linkedin"
    FACEBOOK = "facebook"
    PINTEREST = "pinterest"
    TIKTOK = "tiktok"
    YOUTUBE = "youtube"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]

    @classmethod
    def parse(cls, name: str) -> "PlatformType":
        """Parse a user-supplied platform name (accepts 'x' for twitter)."""
        normalized = name.strip().lower()
        if normalized == "x":
            normalized = "twitter"
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(
                f"Unknown platform: {name}. Available: {', '.join(cls.values())}"
            ) from None

    @property
    def capabilities(self) -> PlatformCapabilities:
        return _CAPABILITIES[self.value]

    @property
    def display_name(self) -> str:
        return self.capabilities.display_name

    @property
    def preferred_media(self) -> MediaKind:
        return self.capabilities.preferred_media

    def supports(self, kind: MediaKind) -> bool:
        caps = self.capabilities
        return {
            MediaKind.TEXT: caps.supports_text,
            MediaKind.IMAGE: caps.supports_image,
            MediaKind.VIDEO: caps.supports_video,
        }[kind]
