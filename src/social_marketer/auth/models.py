"""Credential and token models persisted in the secret store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Credential(BaseModel):
    """API keys entered by the user for one platform."""

    platform: str
    client_id: str
    client_secret: Optional[str] = None


class OAuth1Credentials(BaseModel):
    """Static four-key credentials for request signing."""

    model_config = ConfigDict(frozen=True)

    consumer_key: str
    consumer_secret: str
    access_token: str
    access_token_secret: str

    def is_complete(self) -> bool:
        return all([
            self.consumer_key,
            self.consumer_secret,
            self.access_token,
            self.access_token_secret,
        ])


class Token(BaseModel):
    """OAuth2 token for one platform."""

    platform: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None
    id_token: Optional[str] = None
    obtained_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_response(cls, platform: str, data: dict[str, Any]) -> "Token":
        """Build a token from a token-endpoint JSON response.

        Args:
            platform: Platform identifier.
            data: Parsed response body.

        Returns:
            Token with ``expires_in`` converted to an absolute instant.
        """
        expires_at = None
        expires_in = data.get("expires_in")
        if expires_in not in (None, ""):
            expires_at = utcnow() + timedelta(seconds=int(expires_in))

        return cls(
            platform=platform,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope"),
            id_token=data.get("id_token"),
        )

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) >= self.expires_at

    def expires_within(self, seconds: float, now: Optional[datetime] = None) -> bool:
        """True if the token expires within ``seconds`` (or already has)."""
        if self.expires_at is None:
            return False
        return (now or utcnow()) + timedelta(seconds=seconds) >= self.expires_at

    def is_usable(self, now: Optional[datetime] = None) -> bool:
        """Valid now, or expired but refreshable."""
        return not self.is_expired(now) or self.can_refresh
