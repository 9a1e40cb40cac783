"""Instagram Business connector.

Publishing is two-phase: the media is hosted at a public URL, a media
container is created from it, and the container is published once Instagram
reports it FINISHED. Any failure after the container exists is reported as
a failure of the ``publish`` stage.

API Reference:
- https://developers.facebook.com/docs/instagram-platform/content-publishing
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ...auth.models import Token
from ...auth.secret_store import INSTAGRAM_ACCOUNT_KEY
from ...errors import (
    MarketerError,
    NotConfiguredError,
    RemoteRejectedError,
    UnsupportedOperationError,
    UploadFailedError,
)
from ..base import PostResult
from ..discovery import select_sub_resource
from ..graph import GraphConnector, get_error_info
from ..types import PlatformType
from .media_host import CloudinaryMediaHost, FacebookPageMediaHost, MediaHost

_logger = logging.getLogger("platform_api")

DEFAULT_CAPTION_SUFFIX = "Read more at wisdombook.life (link in bio)"


class InstagramAccount(BaseModel):
    """Business account linked to a Facebook Page."""

    business_account_id: str
    page_id: str
    page_name: str


class ContainerNotReady(Exception):
    """Container is still IN_PROGRESS."""


class InstagramConnector(GraphConnector):
    """Publishes images and Reels to an Instagram Business account."""

    platform = PlatformType.INSTAGRAM

    # Container polling: initial wait, then fixed-interval checks
    initial_poll_delay = 5.0
    poll_interval = 3.0
    poll_attempts = 10

    def _account(self) -> InstagramAccount:
        account = self.secrets.get_model(INSTAGRAM_ACCOUNT_KEY, InstagramAccount)
        if account is None:
            raise NotConfiguredError(self.platform_name, "no Instagram Business account linked")
        return account

    async def is_configured(self) -> bool:
        account = self.secrets.get_model(INSTAGRAM_ACCOUNT_KEY, InstagramAccount)
        return account is not None and self._has_usable_token()

    async def complete_setup(self) -> Optional[str]:
        """Find the business account behind the preferred Page.

        The Page token replaces the user token as the Instagram token.
        """
        user_token = await self._access_token()
        pages = await self.fetch_pages(user_token)
        page = select_sub_resource(pages, name=lambda p: p.get("name", ""))
        if page is None:
            raise RemoteRejectedError(
                None,
                "No Facebook Pages found. Instagram Business accounts must be linked to a Facebook Page.",
            )

        page_token = page.get("access_token", user_token)
        data = await self._graph(
            "GET",
            page["id"],
            stage="discovery",
            access_token=page_token,
            params={"fields": "instagram_business_account"},
        )
        business = data.get("instagram_business_account") or {}
        if not business.get("id"):
            raise RemoteRejectedError(None, f"No Instagram Business Account linked to '{page.get('name')}'")

        self.oauth.save_token(Token(platform=self.platform_name, access_token=page_token))
        account = InstagramAccount(
            business_account_id=business["id"],
            page_id=page["id"],
            page_name=page.get("name", ""),
        )
        self.secrets.set_model(INSTAGRAM_ACCOUNT_KEY, account)
        _logger.info(f"Instagram Business Account connected: {account.business_account_id} (via page: {account.page_name})")
        return f"Business account {account.business_account_id} via {account.page_name}"

    def media_host(self, account: InstagramAccount, token: str) -> MediaHost:
        """Host selected by the ``media_host`` option (facebook or cloudinary)."""
        host = str(self.option("media_host", "facebook")).lower()
        if host == "cloudinary":
            cloud_name = self.option("cloudinary_cloud_name")
            api_key = self.option("cloudinary_api_key")
            api_secret = self.option("cloudinary_api_secret")
            if not all([cloud_name, api_key, api_secret]):
                raise NotConfiguredError(self.platform_name, "Cloudinary credentials missing")
            return CloudinaryMediaHost(cloud_name, api_key, api_secret)
        return FacebookPageMediaHost(self, account.page_id, token)

    def _caption(self, caption: str) -> str:
        suffix = self.option("caption_suffix", DEFAULT_CAPTION_SUFFIX)
        return f"{caption}\n\n{suffix}" if suffix else caption

    # =========================================================================
    # Container lifecycle
    # =========================================================================

    async def create_container(self, account: InstagramAccount, token: str, params: dict[str, Any]) -> str:
        data = await self._graph(
            "POST",
            f"{account.business_account_id}/media",
            stage="container",
            access_token=token,
            params=params,
        )
        container_id = data.get("id")
        if not container_id:
            raise UploadFailedError("container", "No container id in response")
        _logger.info(f"Instagram container created: {container_id}")
        return container_id

    async def check_container_status(self, container_id: str, token: str) -> str:
        data = await self._graph(
            "GET",
            container_id,
            stage="publish",
            access_token=token,
            params={"fields": "status_code,status"},
        )
        status_code = (data.get("status_code") or "UNKNOWN").upper()
        if status_code == "ERROR":
            status_msg = data.get("status") or "Unknown error"
            match = re.search(r"error code (\d+)", status_msg, re.IGNORECASE)
            error_code = int(match.group(1)) if match else None
            info = get_error_info(error_code)
            raise UploadFailedError(
                "publish",
                f"Container processing failed: {status_msg}",
                code=str(error_code) if error_code else None,
                retryable=bool(info.get("retryable")),
            )
        if status_code == "EXPIRED":
            raise UploadFailedError("publish", "Container expired before publishing", retryable=True)
        return status_code

    async def wait_for_container(self, container_id: str, token: str) -> None:
        """Poll until FINISHED.

        Raises:
            UploadFailedError: Processing failed, expired or never finished.
        """
        await asyncio.sleep(self.initial_poll_delay)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.poll_attempts),
                wait=wait_fixed(self.poll_interval),
                retry=retry_if_exception_type(ContainerNotReady),
            ):
                with attempt:
                    status = await self.check_container_status(container_id, token)
                    n = attempt.retry_state.attempt_number
                    if status != "FINISHED":
                        _logger.info(f"Instagram container status: {status} (attempt {n}/{self.poll_attempts})")
                        raise ContainerNotReady(status)
                    _logger.info(f"Instagram container ready after {n} poll(s)")
        except RetryError as e:
            raise UploadFailedError(
                "publish",
                f"Instagram container not ready after {self.poll_attempts} attempts",
                retryable=True,
            ) from e

    async def publish_container(self, account: InstagramAccount, token: str, container_id: str) -> str:
        data = await self._graph(
            "POST",
            f"{account.business_account_id}/media_publish",
            stage="publish",
            access_token=token,
            params={"creation_id": container_id},
        )
        media_id = data.get("id")
        if not media_id:
            raise UploadFailedError("publish", "No media id in publish response")
        return media_id

    async def get_media_permalink(self, media_id: str, token: str) -> Optional[str]:
        try:
            data = await self._graph(
                "GET",
                media_id,
                stage="lookup",
                access_token=token,
                params={"fields": "permalink"},
            )
        except MarketerError as e:
            _logger.warning(f"Instagram permalink lookup failed for {media_id}: {e}")
            return None
        return data.get("permalink")

    async def _publish_from_container(self, account: InstagramAccount, token: str, container_id: str) -> PostResult:
        try:
            await self._emit_progress("processing", 50.0, "Waiting for Instagram to process media...")
            await self.wait_for_container(container_id, token)
            await self._emit_progress("publish", 85.0, "Publishing...")
            media_id = await self.publish_container(account, token, container_id)
        except UploadFailedError as e:
            if e.stage == "publish":
                raise
            raise UploadFailedError("publish", str(e), code=e.code, retryable=e.is_retryable) from e
        except MarketerError as e:
            raise UploadFailedError("publish", str(e), retryable=e.is_retryable) from e

        _logger.info(f"Instagram media published: {media_id}")
        permalink = await self.get_media_permalink(media_id, token)
        await self._emit_progress("complete", 100.0, "Published to Instagram!")
        return self._ok(media_id, permalink, container_id=container_id)

    # =========================================================================
    # Contract
    # =========================================================================

    async def post_text(self, caption: str) -> PostResult:
        raise UnsupportedOperationError(self.platform_name, "text-only posts")

    async def post(self, image: Path, caption: str, link: Optional[str] = None) -> PostResult:
        account = self._account()
        token = await self._access_token()

        await self._emit_progress("upload", 10.0, "Hosting image...")
        image_url = await self.media_host(account, token).host_image(image)

        await self._emit_progress("container", 30.0, "Creating media container...")
        container_id = await self.create_container(
            account,
            token,
            {"image_url": image_url, "caption": self._caption(caption)},
        )
        return await self._publish_from_container(account, token, container_id)

    async def post_video(self, video: Path, caption: str) -> PostResult:
        account = self._account()
        token = await self._access_token()

        await self._emit_progress("upload", 10.0, "Hosting video...")
        video_url = await self.media_host(account, token).host_video(video)

        await self._emit_progress("container", 30.0, "Creating Reels container...")
        container_id = await self.create_container(
            account,
            token,
            {"media_type": "REELS", "video_url": video_url, "caption": self._caption(caption)},
        )
        return await self._publish_from_container(account, token, container_id)
