"""X (Twitter) connector.

Signs every call with the static four-key OAuth 1.0a credentials: media
goes through the v1.1 upload endpoint as multipart, then the tweet is created
through the v2 API referencing the media id.

API Reference:
- https://developer.x.com/en/docs/x-api/v1/media/upload-media/api-reference/post-media-upload
- https://developer.x.com/en/docs/x-api/tweets/manage-tweets/api-reference/post-tweets
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from ...auth.models import OAuth1Credentials
from ...auth.signing import OAuth1Signer
from ...errors import MarketerError, NotConfiguredError, RemoteRejectedError, UploadFailedError
from ..base import PlatformConnector, PostResult
from ..types import PlatformType

_logger = logging.getLogger("platform_api")

MEDIA_UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"
TWEETS_URL = "https://api.twitter.com/2/tweets"
TWEET_MAX_CHARS = 280


def truncate_tweet(text: str, limit: int = TWEET_MAX_CHARS) -> str:
    """Trim text to the tweet limit, ending with an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


class TwitterConnector(PlatformConnector):
    """Posts tweets with an optional image."""

    platform = PlatformType.TWITTER

    def _credentials(self) -> Optional[OAuth1Credentials]:
        credentials = self.oauth.get_oauth1_credentials()
        if credentials is None or not credentials.is_complete():
            return None
        return credentials

    def _signer(self) -> OAuth1Signer:
        credentials = self._credentials()
        if credentials is None:
            raise NotConfiguredError(self.platform_name, "OAuth 1.0a keys missing")
        return OAuth1Signer(credentials)

    async def is_configured(self) -> bool:
        return self._credentials() is not None

    def _error_for(
        self,
        response: httpx.Response,
        stage: str,
        code: Optional[str],
        message: str,
    ) -> MarketerError:
        # X answers duplicate tweets with 403
        if response.status_code == 403 and "duplicate" in message.lower():
            return RemoteRejectedError(code, message)
        return super()._error_for(response, stage, code, message)

    async def _upload_media(self, signer: OAuth1Signer, image: Path) -> str:
        # Multipart bodies are not part of the OAuth 1.0a signature
        signed = signer.sign("POST", MEDIA_UPLOAD_URL)
        with open(image, "rb") as f:
            response = await self._request(
                "POST",
                MEDIA_UPLOAD_URL,
                stage="upload",
                expected=(200, 201),
                headers=signed.headers,
                files={"media": (image.name, f, "image/jpeg")},
            )

        media_id = response.json().get("media_id_string")
        if not media_id:
            raise UploadFailedError("upload", "No media_id_string in upload response")
        _logger.info(f"twitter media uploaded: {media_id}")
        return media_id

    async def _create_tweet(self, signer: OAuth1Signer, text: str, media_id: Optional[str] = None) -> str:
        payload: dict[str, Any] = {"text": truncate_tweet(text)}
        if media_id:
            payload["media"] = {"media_ids": [media_id]}

        signed = signer.sign("POST", TWEETS_URL)
        data = await self._request_json(
            "POST",
            TWEETS_URL,
            stage="post",
            expected=(201,),
            headers=signed.headers,
            json=payload,
        )
        tweet_id = (data.get("data") or {}).get("id")
        if not tweet_id:
            raise UploadFailedError("post", "No tweet id in response")
        return tweet_id

    async def post_text(self, caption: str) -> PostResult:
        signer = self._signer()
        tweet_id = await self._create_tweet(signer, caption)
        return self._ok(tweet_id, f"https://x.com/i/status/{tweet_id}")

    async def post(self, image: Path, caption: str, link: Optional[str] = None) -> PostResult:
        signer = self._signer()
        await self._emit_progress("upload", 10.0, "Uploading image to X...")
        media_id = await self._upload_media(signer, image)

        await self._emit_progress("post", 60.0, "Creating tweet...")
        tweet_id = await self._create_tweet(signer, caption, media_id)

        await self._emit_progress("complete", 100.0, "Published to X!")
        return self._ok(tweet_id, f"https://x.com/i/status/{tweet_id}", media_id=media_id)
