"""Public hosting for Instagram media.

The Instagram Graph API only accepts media by public URL. Two hosts are
available: an unpublished photo/video on the linked Facebook Page (default,
no extra account needed) and Cloudinary.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from ...errors import UploadFailedError

if TYPE_CHECKING:
    from ..graph import GraphConnector

_logger = logging.getLogger("platform_api")

# Videos at or above this size use the resumable page upload
RESUMABLE_THRESHOLD = 50 * 1024 * 1024
RESUMABLE_CHUNK_SIZE = 8 * 1024 * 1024


class MediaHost(ABC):
    """Turns a local file into a publicly reachable URL."""

    name: str = "host"

    @abstractmethod
    async def host_image(self, image: Path) -> str:
        ...

    @abstractmethod
    async def host_video(self, video: Path) -> str:
        ...


class FacebookPageMediaHost(MediaHost):
    """Hosts media as unpublished uploads on a Facebook Page."""

    name = "facebook"

    def __init__(self, connector: "GraphConnector", page_id: str, page_token: str):
        self.connector = connector
        self.page_id = page_id
        self.page_token = page_token

    async def _field(self, object_id: str, fields: str) -> dict:
        return await self.connector._graph(
            "GET",
            object_id,
            stage="upload",
            access_token=self.page_token,
            params={"fields": fields},
        )

    async def host_image(self, image: Path) -> str:
        with open(image, "rb") as f:
            photo = await self.connector._graph(
                "POST",
                f"{self.page_id}/photos",
                stage="upload",
                access_token=self.page_token,
                data={"published": "false"},
                files={"source": ("instagram_image.jpg", f, "image/jpeg")},
            )
        photo_id = photo.get("id")
        if not photo_id:
            raise UploadFailedError("upload", "No photo id from page upload")

        images = (await self._field(photo_id, "images")).get("images") or []
        if not images or not images[0].get("source"):
            raise UploadFailedError("upload", "No image URL returned from Facebook")
        url = images[0]["source"]
        _logger.info(f"Image hosted on Facebook CDN: {url[:80]}...")
        return url

    async def host_video(self, video: Path) -> str:
        size = video.stat().st_size
        _logger.info(f"Hosting video on Facebook: {size / 1024 / 1024:.1f} MB")
        if size < RESUMABLE_THRESHOLD:
            video_id = await self._upload_simple(video)
        else:
            video_id = await self._upload_resumable(video, size)

        source = (await self._field(video_id, "source")).get("source")
        if not source:
            raise UploadFailedError("upload", "No video source URL returned from Facebook")
        return source

    async def _upload_simple(self, video: Path) -> str:
        with open(video, "rb") as f:
            data = await self.connector._graph(
                "POST",
                f"{self.page_id}/videos",
                stage="upload",
                access_token=self.page_token,
                video=True,
                data={"published": "false"},
                files={"source": (video.name, f, "video/mp4")},
                timeout=300.0,
            )
        video_id = data.get("id")
        if not video_id:
            raise UploadFailedError("upload", "No video id from page upload")
        return video_id

    async def _upload_resumable(self, video: Path, size: int) -> str:
        """Start/transfer/finish upload in fixed-size chunks."""
        start = await self.connector._graph(
            "POST",
            f"{self.page_id}/videos",
            stage="upload",
            access_token=self.page_token,
            json={"published": False, "file_size": size, "upload_phase": "start"},
        )
        session_id = start.get("upload_session_id")
        video_id = start.get("video_id")
        if not session_id or not video_id:
            raise UploadFailedError("upload", "Invalid resumable upload start response")

        offset = int(start.get("start_offset") or 0)
        end = int(start.get("end_offset") or size)
        with open(video, "rb") as f:
            while offset < end:
                f.seek(offset)
                chunk = f.read(min(RESUMABLE_CHUNK_SIZE, end - offset))
                _logger.info(f"Uploading chunk: {offset} - {offset + len(chunk)}")
                transfer = await self.connector._graph(
                    "POST",
                    f"{self.page_id}/videos",
                    stage="upload",
                    access_token=self.page_token,
                    video=True,
                    data={
                        "upload_phase": "transfer",
                        "upload_session_id": session_id,
                        "start_offset": str(offset),
                    },
                    files={"video_file_chunk": ("chunk.bin", chunk, "application/octet-stream")},
                    timeout=300.0,
                )
                next_offset = transfer.get("start_offset")
                if next_offset is None:
                    break
                offset = int(next_offset)
                end = int(transfer.get("end_offset") or end)

        await self.connector._graph(
            "POST",
            f"{self.page_id}/videos",
            stage="upload",
            access_token=self.page_token,
            json={"upload_phase": "finish", "upload_session_id": session_id},
        )
        _logger.info(f"Resumable upload complete. Video ID: {video_id}")
        return video_id


class CloudinaryMediaHost(MediaHost):
    """Hosts media on Cloudinary.

    Cloudinary's SDK is synchronous; uploads run in the default executor.
    """

    name = "cloudinary"

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str = "social-marketer",
    ):
        self.folder = folder
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )

    def _upload(self, path: Path, resource_type: str) -> str:
        options = {
            "folder": self.folder,
            "resource_type": resource_type,
            "overwrite": True,
            "public_id": f"{self.folder}/{path.stem}",
        }
        try:
            if resource_type == "video" and path.stat().st_size > 20_000_000:
                result = cloudinary.uploader.upload_large(str(path), chunk_size=6_000_000, **options)
            else:
                result = cloudinary.uploader.upload(str(path), **options)
        except cloudinary.exceptions.Error as e:
            raise UploadFailedError("upload", f"Cloudinary upload failed: {e}") from e
        return result["secure_url"]

    async def _upload_async(self, path: Path, resource_type: str) -> str:
        loop = asyncio.get_running_loop()
        url = await loop.run_in_executor(None, self._upload, path, resource_type)
        _logger.info(f"{resource_type} hosted on Cloudinary: {url}")
        return url

    async def host_image(self, image: Path) -> str:
        return await self._upload_async(image, "image")

    async def host_video(self, video: Path) -> str:
        return await self._upload_async(video, "video")
