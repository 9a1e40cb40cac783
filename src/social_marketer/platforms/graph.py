"""Shared pieces for Meta Graph API connectors (Facebook, Instagram)."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from ..auth.secret_store import FACEBOOK_PAGE_KEY
from ..errors import (
    AuthExpiredError,
    MarketerError,
    RateLimitedError,
    RemoteRejectedError,
    UploadFailedError,
)
from .base import PlatformConnector
from .discovery import select_sub_resource

_logger = logging.getLogger("platform_api")

DEFAULT_GRAPH_VERSION = "v24.0"

# Known Graph API error codes with retry guidance
GRAPH_ERROR_CODES: dict[int, dict[str, Any]] = {
    4: {
        "name": "APP_RATE_LIMIT",
        "user_message": "App rate limit reached. The next cycle will try again.",
        "rate_limited": True,
    },
    17: {
        "name": "USER_RATE_LIMIT",
        "user_message": "Too many requests for this user. Wait a few minutes.",
        "rate_limited": True,
    },
    32: {
        "name": "PAGE_RATE_LIMIT",
        "user_message": "Page request limit reached.",
        "rate_limited": True,
    },
    613: {
        "name": "CALLS_RATE_LIMIT",
        "user_message": "Calls to this API have exceeded the rate limit.",
        "rate_limited": True,
    },
    190: {
        "name": "ACCESS_TOKEN_EXPIRED",
        "user_message": "Access token expired or revoked. Reconnect the account.",
        "auth": True,
    },
    102: {
        "name": "SESSION_INVALID",
        "user_message": "Session is invalid. Reconnect the account.",
        "auth": True,
    },
    10: {
        "name": "PERMISSION_DENIED",
        "user_message": "The app lacks permission to publish. Check the granted scopes.",
        "auth": True,
    },
    200: {
        "name": "PERMISSION_ERROR",
        "user_message": "Missing publish permission for this page.",
        "auth": True,
    },
    2207026: {
        "name": "MEDIA_NOT_READY",
        "user_message": "Media is still being processed.",
        "retryable": True,
    },
    2207032: {
        "name": "MEDIA_UPLOAD_FAILED",
        "user_message": "Instagram failed to process the media. This is usually temporary.",
        "retryable": True,
    },
}


def get_error_info(error_code: Optional[int]) -> dict[str, Any]:
    """Get retry guidance for a Graph API error code."""
    if error_code is None:
        return {"name": "UNKNOWN"}
    return GRAPH_ERROR_CODES.get(error_code, {"name": f"ERROR_{error_code}"})


class FacebookPage(BaseModel):
    """Page selected for publishing, with its page access token."""

    page_id: str
    page_name: str
    page_access_token: str


class GraphConnector(PlatformConnector):
    """Base for connectors talking to graph.facebook.com."""

    @property
    def graph_version(self) -> str:
        if self.settings is not None and self.settings.api_version:
            return self.settings.api_version
        return DEFAULT_GRAPH_VERSION

    @property
    def base_url(self) -> str:
        return f"https://graph.facebook.com/{self.graph_version}"

    @property
    def video_base_url(self) -> str:
        return f"https://graph-video.facebook.com/{self.graph_version}"

    def _error_for(
        self,
        response: httpx.Response,
        stage: str,
        code: Optional[str],
        message: str,
    ) -> MarketerError:
        numeric = int(code) if code and code.isdigit() else None
        info = get_error_info(numeric)
        if info.get("rate_limited"):
            return RateLimitedError(self.platform_name)
        if info.get("auth"):
            return AuthExpiredError(self.platform_name, f"{message} ({info['name']})")
        if info.get("retryable"):
            return UploadFailedError(stage, message, code=code, retryable=True)
        return super()._error_for(response, stage, code, message)

    async def _graph(
        self,
        method: str,
        path: str,
        *,
        stage: str,
        access_token: str,
        params: Optional[dict[str, Any]] = None,
        video: bool = False,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Call a Graph endpoint with the token as a query parameter."""
        base = self.video_base_url if video else self.base_url
        query = dict(params or {})
        log_params = {k: v for k, v in query.items() if k != "caption"}
        query["access_token"] = access_token
        return await self._request_json(
            method,
            f"{base}/{path.lstrip('/')}",
            stage=stage,
            params=query,
            log_params=log_params,
            **kwargs,
        )

    async def fetch_pages(self, user_token: str) -> list[dict[str, Any]]:
        """List the pages the user manages (id, name, access_token)."""
        data = await self._graph(
            "GET",
            "me/accounts",
            stage="discovery",
            access_token=user_token,
            params={"fields": "id,name,access_token"},
        )
        return list(data.get("data") or [])

    async def discover_page(self, user_token: str) -> FacebookPage:
        """Select the preferred page and store it under the shared page key."""
        pages = await self.fetch_pages(user_token)
        page = select_sub_resource(pages, name=lambda p: p.get("name", ""))
        if page is None:
            raise RemoteRejectedError(None, "No Facebook Pages found for this account")

        selected = FacebookPage(
            page_id=page["id"],
            page_name=page.get("name", ""),
            page_access_token=page.get("access_token", user_token),
        )
        self.secrets.set_model(FACEBOOK_PAGE_KEY, selected)
        _logger.info(f"Facebook page selected: {selected.page_name} ({selected.page_id})")
        return selected

    def stored_page(self) -> Optional[FacebookPage]:
        return self.secrets.get_model(FACEBOOK_PAGE_KEY, FacebookPage)
