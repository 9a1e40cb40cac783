"""TikTok connector."""

from .connector import TikTokConnector, TikTokUser, plan_chunks

__all__ = ["TikTokConnector", "TikTokUser", "plan_chunks"]
