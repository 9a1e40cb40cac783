"""Pinterest connector.

Pins are created in one JSON call carrying the image as base64 on the board
selected during setup.

API Reference:
- https://developers.pinterest.com/docs/api/v5/boards-list
- https://developers.pinterest.com/docs/api/v5/pins-create
"""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from ...auth.secret_store import PINTEREST_BOARD_KEY
from ...errors import NotConfiguredError, RemoteRejectedError, UnsupportedOperationError, UploadFailedError
from ..base import PlatformConnector, PostResult
from ..discovery import select_sub_resource
from ..types import PlatformType

_logger = logging.getLogger("platform_api")

DEFAULT_API_BASE = "https://api.pinterest.com/v5"
PIN_TITLE_MAX_CHARS = 100


class PinterestBoard(BaseModel):
    board_id: str
    board_name: str


class PinterestConnector(PlatformConnector):
    """Creates image pins on the selected board."""

    platform = PlatformType.PINTEREST

    @property
    def api_base(self) -> str:
        return str(self.option("api_base", DEFAULT_API_BASE)).rstrip("/")

    def _board(self) -> Optional[PinterestBoard]:
        return self.secrets.get_model(PINTEREST_BOARD_KEY, PinterestBoard)

    async def is_configured(self) -> bool:
        return self._board() is not None and self._has_usable_token()

    async def complete_setup(self) -> Optional[str]:
        """Select the preferred board and store it."""
        token = await self._access_token()
        data = await self._request_json(
            "GET",
            f"{self.api_base}/boards",
            stage="discovery",
            headers={"Authorization": f"Bearer {token}"},
        )
        boards = data.get("items") or []
        board = select_sub_resource(boards, name=lambda b: b.get("name", ""))
        if board is None:
            raise RemoteRejectedError(None, "No Pinterest boards found. Create a board on Pinterest first.")

        selected = PinterestBoard(board_id=board["id"], board_name=board.get("name", ""))
        self.secrets.set_model(PINTEREST_BOARD_KEY, selected)
        _logger.info(f"Pinterest board connected: {selected.board_name} (ID: {selected.board_id})")
        return f"Board: {selected.board_name}"

    async def post_text(self, caption: str) -> PostResult:
        raise UnsupportedOperationError(self.platform_name, "text-only posts")

    async def post(self, image: Path, caption: str, link: Optional[str] = None) -> PostResult:
        board = self._board()
        if board is None:
            raise NotConfiguredError(self.platform_name, "no board selected")
        token = await self._access_token()

        payload = {
            "board_id": board.board_id,
            "media_source": {
                "source_type": "image_base64",
                "content_type": "image/jpeg",
                "data": base64.b64encode(image.read_bytes()).decode("ascii"),
            },
            "title": caption[:PIN_TITLE_MAX_CHARS],
            "description": caption,
        }
        if link:
            payload["link"] = link

        await self._emit_progress("post", 20.0, "Creating pin...")
        data = await self._request_json(
            "POST",
            f"{self.api_base}/pins",
            stage="post",
            expected=(201,),
            headers={"Authorization": f"Bearer {token}"},
            json=payload,
            log_params={"board_id": board.board_id},
        )
        pin_id = data.get("id")
        if not pin_id:
            raise UploadFailedError("post", "No pin id in response")

        _logger.info(f"Pinterest pin created: {pin_id}")
        return self._ok(pin_id, f"https://pinterest.com/pin/{pin_id}", board_id=board.board_id)
