"""TikTok connector.

Implements the Content Posting API direct-post flow: init with the chunk
plan, PUT each chunk with a Content-Range header, then poll the publish
status until TikTok reports completion.

API Reference:
- https://developers.tiktok.com/doc/content-posting-api-get-started
- https://developers.tiktok.com/doc/content-posting-api-reference-direct-post
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import httpx
from pydantic import BaseModel
from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt, wait_fixed

from ...auth.secret_store import TIKTOK_USER_KEY
from ...errors import (
    AuthExpiredError,
    MarketerError,
    NotConfiguredError,
    RateLimitedError,
    RemoteRejectedError,
    UnsupportedOperationError,
    UploadFailedError,
)
from ..base import PlatformConnector, PostResult
from ..types import PlatformType

_logger = logging.getLogger("platform_api")

API_BASE = "https://open.tiktokapis.com/v2"

# TikTok video requirements
TIKTOK_MAX_VIDEO_SIZE = 4 * 1024 * 1024 * 1024  # 4GB
TIKTOK_MIN_CHUNK_SIZE = 5 * 1024 * 1024  # 5MB minimum chunk
TIKTOK_CHUNK_SIZE = 10 * 1024 * 1024
TIKTOK_CHUNK_THRESHOLD = 64 * 1024 * 1024  # Files > 64MB need chunked upload


def plan_chunks(video_size: int, chunk_size: int = TIKTOK_CHUNK_SIZE) -> tuple[int, int]:
    """Return (chunk_size, total_chunk_count) for a file.

    Small files go up in one chunk. Larger files use fixed chunks and the
    trailing remainder is merged into the last chunk.
    """
    if video_size <= TIKTOK_CHUNK_THRESHOLD:
        return video_size, 1
    chunk_size = max(chunk_size, TIKTOK_MIN_CHUNK_SIZE)
    return chunk_size, max(1, video_size // chunk_size)


class TikTokUser(BaseModel):
    open_id: str
    display_name: str = ""


class PublishPending(Exception):
    """Publish is still processing."""


class TikTokConnector(PlatformConnector):
    """Direct-posts videos to the authenticated TikTok account."""

    platform = PlatformType.TIKTOK

    poll_interval = 10.0
    poll_attempts = 60

    def _user(self) -> Optional[TikTokUser]:
        return self.secrets.get_model(TIKTOK_USER_KEY, TikTokUser)

    async def is_configured(self) -> bool:
        return self._has_usable_token() and self._user() is not None

    def _error_for(
        self,
        response: httpx.Response,
        stage: str,
        code: Optional[str],
        message: str,
    ) -> MarketerError:
        if code in ("access_token_invalid", "scope_not_authorized"):
            return AuthExpiredError(self.platform_name, message)
        if code == "rate_limit_exceeded":
            return RateLimitedError(self.platform_name)
        return super()._error_for(response, stage, code, message)

    async def _api(self, path: str, token: str, *, stage: str, method: str = "POST", **kwargs: Any) -> dict[str, Any]:
        """Call the API and surface ``error.code`` other than ``ok`` as failures."""
        data = await self._request_json(
            method,
            f"{API_BASE}/{path}",
            stage=stage,
            expected=(200,),
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json; charset=UTF-8",
            },
            **kwargs,
        )
        error = data.get("error") or {}
        if error.get("code") not in (None, "", "ok"):
            raise RemoteRejectedError(error.get("code"), error.get("message") or "Unknown error")
        return data.get("data") or {}

    async def complete_setup(self) -> Optional[str]:
        token = await self._access_token()
        data = await self._api(
            "user/info/?fields=open_id,display_name",
            token,
            stage="discovery",
            method="GET",
        )
        user = data.get("user") or data
        if not user.get("open_id"):
            raise RemoteRejectedError(None, "TikTok user info returned no open_id")

        selected = TikTokUser(open_id=user["open_id"], display_name=user.get("display_name") or "")
        self.secrets.set_model(TIKTOK_USER_KEY, selected)
        _logger.info(f"TikTok account connected: {selected.display_name or selected.open_id}")
        return f"Account: {selected.display_name or selected.open_id}"

    async def post_text(self, caption: str) -> PostResult:
        raise UnsupportedOperationError(self.platform_name, "text-only posts")

    async def post(self, image: Path, caption: str, link: Optional[str] = None) -> PostResult:
        raise UnsupportedOperationError(self.platform_name, "image posts")

    async def _init_video_upload(self, token: str, caption: str, video_size: int, chunk_size: int, total_chunks: int) -> tuple[str, str]:
        post_info = {
            "title": caption[:2200],
            "privacy_level": self.option("privacy_level", "PUBLIC_TO_EVERYONE"),
            "disable_duet": False,
            "disable_comment": False,
            "disable_stitch": False,
            "video_cover_timestamp_ms": 1000,
        }
        source_info = {
            "source": "FILE_UPLOAD",
            "video_size": video_size,
            "chunk_size": chunk_size,
            "total_chunk_count": total_chunks,
        }
        data = await self._api(
            "post/publish/video/init/",
            token,
            stage="init",
            json={"post_info": post_info, "source_info": source_info},
        )
        if not data.get("publish_id") or not data.get("upload_url"):
            raise UploadFailedError("init", "Failed to get upload URL from TikTok")
        return data["publish_id"], data["upload_url"]

    async def _upload_video_chunk(self, upload_url: str, chunk: bytes, start: int, total: int) -> None:
        end = start + len(chunk) - 1
        async for attempt in self._chunk_retrying():
            with attempt:
                await self._request(
                    "PUT",
                    upload_url,
                    stage="upload",
                    expected=(200, 201, 206),
                    timeout=300.0,
                    headers={
                        "Content-Type": "video/mp4",
                        "Content-Length": str(len(chunk)),
                        "Content-Range": f"bytes {start}-{end}/{total}",
                    },
                    content=chunk,
                    log_params={"range": f"{start}-{end}/{total}"},
                )

    async def _check_publish_status(self, token: str, publish_id: str) -> dict[str, Any]:
        return await self._api(
            "post/publish/status/fetch/",
            token,
            stage="publish",
            json={"publish_id": publish_id},
        )

    async def _wait_for_publish(self, token: str, publish_id: str) -> dict[str, Any]:
        """Poll until PUBLISH_COMPLETE.

        Raises:
            UploadFailedError: TikTok reported FAILED or never finished.
        """
        status: dict[str, Any] = {}
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.poll_attempts),
                wait=wait_fixed(self.poll_interval),
                retry=retry_if_exception_type(PublishPending),
            ):
                with attempt:
                    status = await self._check_publish_status(token, publish_id)
                    state = (status.get("status") or "").upper()
                    if state == "FAILED":
                        raise UploadFailedError(
                            "publish",
                            f"Video publish failed: {status.get('fail_reason') or 'Unknown reason'}",
                        )
                    if state != "PUBLISH_COMPLETE":
                        await self._emit_progress("processing", 60.0, f"Processing video... ({state or 'pending'})")
                        raise PublishPending(state)
        except RetryError as e:
            raise UploadFailedError("publish", "Video publish timed out", retryable=True) from e
        return status

    async def post_video(self, video: Path, caption: str) -> PostResult:
        if self._user() is None:
            raise NotConfiguredError(self.platform_name, "account not resolved; reconnect TikTok")
        token = await self._access_token()

        video_size = video.stat().st_size
        if video_size == 0 or video_size > TIKTOK_MAX_VIDEO_SIZE:
            raise UploadFailedError("init", f"Unsupported video size: {video_size / 1024 / 1024:.1f}MB")

        chunk_size, total_chunks = plan_chunks(video_size)
        await self._emit_progress("init", 5.0, "Initializing TikTok upload...")
        publish_id, upload_url = await self._init_video_upload(token, caption, video_size, chunk_size, total_chunks)

        with open(video, "rb") as f:
            for index in range(total_chunks):
                start = index * chunk_size
                # Last chunk carries the remainder
                length = video_size - start if index == total_chunks - 1 else chunk_size
                f.seek(start)
                await self._upload_video_chunk(upload_url, f.read(length), start, video_size)
                await self._emit_progress(
                    "upload",
                    10.0 + 40.0 * (index + 1) / total_chunks,
                    f"Uploaded chunk {index + 1}/{total_chunks}",
                )

        final_status = await self._wait_for_publish(token, publish_id)

        post_ids = final_status.get("publicaly_available_post_id") or []
        post_id = str(post_ids[0]) if post_ids else None
        await self._emit_progress("complete", 100.0, "Published to TikTok!")
        return self._ok(
            post_id or publish_id,
            f"https://www.tiktok.com/@/video/{post_id}" if post_id else None,
            publish_id=publish_id,
        )
