"""YouTube connector."""

from .connector import YouTubeConnector, build_video_metadata, video_title

__all__ = ["YouTubeConnector", "build_video_metadata", "video_title"]
