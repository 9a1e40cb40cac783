"""Builders shared by several test modules."""

from __future__ import annotations

import json
import subprocess
from typing import Any, Optional
from unittest.mock import AsyncMock

import httpx

from social_marketer.auth.models import Credential, Token
from social_marketer.auth.oauth import OAuthOrchestrator
from social_marketer.platforms.base import PostResult
from social_marketer.scheduler.trigger import CRON_TAG


def save_token(oauth: OAuthOrchestrator, platform: str, **kwargs: Any) -> Token:
    """Store a bearer token for a platform (non-expiring unless told otherwise)."""
    token = Token(
        platform=platform,
        access_token=kwargs.pop("access_token", f"{platform}-token"),
        **kwargs,
    )
    oauth.save_token(token, refresh_attempted=True)
    return token


def save_credential(oauth: OAuthOrchestrator, platform: str) -> Credential:
    credential = Credential(
        platform=platform,
        client_id=f"{platform}-id",
        client_secret=f"{platform}-secret",
    )
    oauth.save_credential(credential)
    return credential


def form_of(request: httpx.Request) -> dict[str, str]:
    """Decode a form-urlencoded request body."""
    return dict(httpx.QueryParams(request.content.decode("utf-8")))


def json_of(request: httpx.Request) -> dict[str, Any]:
    return json.loads(request.content.decode("utf-8"))


def fake_connector(
    platform: str,
    result: PostResult | None = None,
    configured: bool = True,
) -> AsyncMock:
    """Connector double whose ``publish`` returns ``result``."""
    connector = AsyncMock()
    connector.is_configured.return_value = configured
    connector.publish.return_value = result or PostResult.ok(
        platform,
        f"{platform}-1",
        f"https://{platform}.example/1",
    )
    return connector


class FakeCrontab:
    """Stands in for ``crontab -l`` / ``crontab -``."""

    def __init__(self, text: Optional[str] = None):
        self.text = text
        self.calls: list[list[str]] = []

    def __call__(self, args: list[str], input: Optional[str] = None, **kwargs: Any) -> subprocess.CompletedProcess:
        self.calls.append(list(args))
        if args == ["crontab", "-l"]:
            if self.text is None:
                return subprocess.CompletedProcess(args, 1, "", "no crontab for user")
            return subprocess.CompletedProcess(args, 0, self.text, "")
        if args == ["crontab", "-"]:
            self.text = input
            return subprocess.CompletedProcess(args, 0, "", "")
        raise AssertionError(f"unexpected command: {args}")

    def tagged_lines(self) -> list[str]:
        return [line for line in (self.text or "").splitlines() if line.endswith(CRON_TAG)]
