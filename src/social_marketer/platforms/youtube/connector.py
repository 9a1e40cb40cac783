"""YouTube connector.

Videos go through a resumable upload session: the metadata is sent when the
session is opened, then the file is PUT in chunks. The server answers 308
while it expects more bytes and 200/201 with the video resource at the end.

API Reference:
- https://developers.google.com/youtube/v3/guides/using_resumable_upload_protocol
- https://developers.google.com/youtube/v3/docs/videos/insert
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Optional

from ...errors import UnsupportedOperationError, UploadFailedError
from ..base import PlatformConnector, PostResult
from ..types import PlatformType

_logger = logging.getLogger("platform_api")

UPLOAD_URL = "https://www.googleapis.com/upload/youtube/v3/videos"
UPLOAD_PARTS = "snippet,status,contentDetails"

TITLE_MAX_CHARS = 100
EDUCATION_CATEGORY = "27"
DEFAULT_TAGS = ["thoughts", "wisdom", "shorts", "socialmarketer"]
DESCRIPTION_SUFFIX = "#Shorts #SocialMarketer"

# Chunks must be multiples of 256 KiB
CHUNK_SIZE = 32 * 256 * 1024


def video_title(caption: str) -> str:
    """First caption line, capped at the YouTube title limit."""
    lines = caption.strip().splitlines()
    first = lines[0].strip() if lines else ""
    return first[:TITLE_MAX_CHARS]


def build_video_metadata(caption: str, privacy: str = "public") -> dict[str, Any]:
    return {
        "snippet": {
            "title": video_title(caption),
            "description": f"{caption}\n\n{DESCRIPTION_SUFFIX}",
            "categoryId": EDUCATION_CATEGORY,
            "tags": list(DEFAULT_TAGS),
        },
        "status": {
            "privacyStatus": privacy,
            "selfDeclaredMadeForKids": False,
            "embeddable": True,
            "publicStatsViewable": True,
            "license": "youtube",
        },
        "contentDetails": {
            "containsSyntheticMedia": False,
        },
    }


def next_offset(range_header: Optional[str]) -> int:
    """Byte offset to resume from, given a 308 ``Range: bytes=0-N`` header."""
    if not range_header:
        return 0
    match = re.search(r"bytes=\d+-(\d+)", range_header)
    return int(match.group(1)) + 1 if match else 0


class YouTubeConnector(PlatformConnector):
    """Uploads videos to the authenticated channel."""

    platform = PlatformType.YOUTUBE

    chunk_size = CHUNK_SIZE

    async def is_configured(self) -> bool:
        return self._has_usable_token()

    async def post_text(self, caption: str) -> PostResult:
        raise UnsupportedOperationError(self.platform_name, "text-only posts")

    async def post(self, image: Path, caption: str, link: Optional[str] = None) -> PostResult:
        raise UnsupportedOperationError(self.platform_name, "image posts")

    async def start_session(self, token: str, size: int, caption: str) -> str:
        """Open a resumable session and return its upload URI."""
        response = await self._request(
            "POST",
            UPLOAD_URL,
            stage="init",
            expected=(200, 201),
            params={"uploadType": "resumable", "part": UPLOAD_PARTS},
            headers={
                "Authorization": f"Bearer {token}",
                "X-Upload-Content-Type": "video/mp4",
                "X-Upload-Content-Length": str(size),
            },
            json=build_video_metadata(caption, self.option("privacy_status", "public")),
        )
        session_url = response.headers.get("Location")
        if not session_url:
            raise UploadFailedError("init", "No upload session URL in response")
        return session_url

    async def _put_chunk(self, token: str, session_url: str, chunk: bytes, start: int, total: int) -> Any:
        end = start + len(chunk) - 1
        async for attempt in self._chunk_retrying():
            with attempt:
                return await self._request(
                    "PUT",
                    session_url,
                    stage="upload",
                    expected=(200, 201, 308),
                    timeout=300.0,
                    follow_redirects=False,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Content-Type": "video/mp4",
                        "Content-Range": f"bytes {start}-{end}/{total}",
                    },
                    content=chunk,
                    log_params={"range": f"{start}-{end}/{total}"},
                )

    async def post_video(self, video: Path, caption: str) -> PostResult:
        token = await self._access_token()
        total = video.stat().st_size
        if total == 0:
            raise UploadFailedError("init", f"Video file is empty: {video}")

        await self._emit_progress("init", 5.0, "Opening YouTube upload session...")
        session_url = await self.start_session(token, total, caption)

        offset = 0
        stalls = 0
        resource: dict[str, Any] = {}
        with open(video, "rb") as f:
            while True:
                f.seek(offset)
                chunk = f.read(self.chunk_size)
                if not chunk:
                    raise UploadFailedError("upload", "Server expects more bytes than the file holds")

                response = await self._put_chunk(token, session_url, chunk, offset, total)
                if response.status_code == 308:
                    resumed = next_offset(response.headers.get("Range"))
                    stalls = stalls + 1 if resumed <= offset else 0
                    if stalls >= self.chunk_attempts:
                        raise UploadFailedError("upload", "Upload session is not accepting bytes", retryable=True)
                    offset = resumed
                    await self._emit_progress(
                        "upload",
                        10.0 + 80.0 * offset / total,
                        f"Uploaded {offset}/{total} bytes",
                    )
                    continue

                try:
                    resource = response.json()
                except ValueError:
                    resource = {}
                break

        video_id = resource.get("id") if isinstance(resource, dict) else None
        if not video_id or not resource.get("status"):
            raise UploadFailedError("finalize", "Upload finished without a video resource")

        _logger.info(f"YouTube video uploaded: {video_id} ({resource['status'].get('uploadStatus', 'unknown')})")
        await self._emit_progress("complete", 100.0, "Published to YouTube!")
        return self._ok(video_id, f"https://www.youtube.com/watch?v={video_id}")
