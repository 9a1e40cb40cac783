"""Facebook Page connector.

Posts as the selected Page using its page access token. Text goes to the
page feed; images are a single multipart upload to the page photos edge.

API Reference:
- https://developers.facebook.com/docs/pages-api/posts
- https://developers.facebook.com/docs/graph-api/reference/page/photos
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ...errors import NotConfiguredError, UploadFailedError
from ..base import PostResult
from ..graph import FacebookPage, GraphConnector
from ..types import PlatformType

_logger = logging.getLogger("platform_api")


def with_link(caption: str, link: Optional[str]) -> str:
    if not link:
        return caption
    return f"{caption}\n\n{link}"


class FacebookConnector(GraphConnector):
    """Publishes to a Facebook Page."""

    platform = PlatformType.FACEBOOK

    def _page(self) -> FacebookPage:
        page = self.stored_page()
        if page is None:
            raise NotConfiguredError(self.platform_name, "no Facebook Page selected")
        return page

    async def is_configured(self) -> bool:
        return self.stored_page() is not None

    async def complete_setup(self) -> Optional[str]:
        """Exchange the user token for the preferred Page's token."""
        user_token = await self._access_token()
        page = await self.discover_page(user_token)
        return f"Page: {page.page_name}"

    async def post_text(self, caption: str) -> PostResult:
        page = self._page()
        data = await self._graph(
            "POST",
            f"{page.page_id}/feed",
            stage="post",
            access_token=page.page_access_token,
            data={"message": caption},
        )
        post_id = data.get("id")
        if not post_id:
            raise UploadFailedError("post", "No post id in feed response")
        _logger.info(f"facebook text post created: {post_id}")
        return self._ok(post_id, f"https://facebook.com/{post_id}")

    async def post(self, image: Path, caption: str, link: Optional[str] = None) -> PostResult:
        page = self._page()
        await self._emit_progress("upload", 10.0, "Uploading photo to Facebook...")

        with open(image, "rb") as f:
            data = await self._graph(
                "POST",
                f"{page.page_id}/photos",
                stage="post",
                access_token=page.page_access_token,
                data={"message": with_link(caption, link)},
                files={"source": (image.name, f, "image/jpeg")},
            )

        photo_id = data.get("id")
        if not photo_id:
            raise UploadFailedError("post", "No photo id in response")

        await self._emit_progress("complete", 100.0, "Published to Facebook!")
        _logger.info(f"facebook photo posted: {photo_id}")
        return self._ok(
            data.get("post_id") or photo_id,
            f"https://facebook.com/{photo_id}",
            photo_id=photo_id,
        )
