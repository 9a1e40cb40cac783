"""LinkedIn member connector.

Posts as the authenticated member. Images are registered, uploaded with a
PUT to the returned URL, then referenced from the post.

API Reference:
- https://learn.microsoft.com/en-us/linkedin/marketing/community-management/shares/images-api
- https://learn.microsoft.com/en-us/linkedin/marketing/community-management/shares/posts-api
"""

from __future__ import annotations

import base64
import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel

from ...auth.secret_store import LINKEDIN_PROFILE_KEY
from ...errors import NotConfiguredError, RemoteRejectedError, UploadFailedError
from ..base import PlatformConnector, PostResult
from ..types import PlatformType

_logger = logging.getLogger("platform_api")

API_BASE = "https://api.linkedin.com/v2"
LINKEDIN_VERSION = "2.0.0"


class LinkedInProfile(BaseModel):
    person_urn: str


def jwt_subject(id_token: str) -> Optional[str]:
    """Read the ``sub`` claim from an unverified JWT payload."""
    parts = id_token.split(".")
    if len(parts) < 2:
        return None
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except ValueError:
        return None
    sub = claims.get("sub") if isinstance(claims, dict) else None
    return str(sub) if sub else None


class LinkedInConnector(PlatformConnector):
    """Text and image posts to the member feed."""

    platform = PlatformType.LINKEDIN

    def _profile(self) -> Optional[LinkedInProfile]:
        profile = self.secrets.get_model(LINKEDIN_PROFILE_KEY, LinkedInProfile)
        if profile is not None:
            return profile

        # Tokens issued with openid scope carry the member id
        token = self.oauth.get_token(self.platform_name)
        if token is not None and token.id_token:
            sub = jwt_subject(token.id_token)
            if sub:
                profile = LinkedInProfile(person_urn=f"urn:li:person:{sub}")
                self.secrets.set_model(LINKEDIN_PROFILE_KEY, profile)
                _logger.info(f"LinkedIn person URN from id_token: {profile.person_urn}")
        return profile

    def _headers(self, token: str, versioned: bool = True) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {token}"}
        if versioned:
            headers["LinkedIn-Version"] = LINKEDIN_VERSION
        return headers

    async def is_configured(self) -> bool:
        return self._has_usable_token() and self._profile() is not None

    async def complete_setup(self) -> Optional[str]:
        """Resolve the member URN from the id_token or the userinfo endpoint."""
        profile = self._profile()
        if profile is None:
            token = await self._access_token()
            data = await self._request_json(
                "GET",
                f"{API_BASE}/userinfo",
                stage="discovery",
                headers=self._headers(token, versioned=False),
            )
            sub = data.get("sub")
            if not sub:
                raise RemoteRejectedError(None, "Could not read member id from LinkedIn userinfo")
            profile = LinkedInProfile(person_urn=f"urn:li:person:{sub}")
            self.secrets.set_model(LINKEDIN_PROFILE_KEY, profile)
            _logger.info(f"LinkedIn person URN from userinfo: {profile.person_urn}")
        return f"Member: {profile.person_urn}"

    async def _author(self) -> tuple[str, str]:
        profile = self._profile()
        if profile is None:
            raise NotConfiguredError(self.platform_name, "member URN unknown; reconnect LinkedIn")
        return profile.person_urn, await self._access_token()

    async def _register_image(self, person_urn: str, token: str) -> tuple[str, str]:
        data = await self._request_json(
            "POST",
            f"{API_BASE}/images?action=initializeUpload",
            stage="register",
            expected=(200,),
            headers=self._headers(token),
            json={"initializeUploadRequest": {"owner": person_urn}},
        )
        value = data.get("value") or {}
        if not value.get("uploadUrl") or not value.get("image"):
            raise UploadFailedError("register", "Image registration returned no upload URL")
        return value["uploadUrl"], value["image"]

    async def _create_post(self, person_urn: str, token: str, text: str, image_urn: Optional[str] = None) -> str:
        payload: dict[str, Any] = {
            "author": person_urn,
            "commentary": text,
            "visibility": "PUBLIC",
            "distribution": {
                "feedDistribution": "MAIN_FEED",
                "targetEntities": [],
                "thirdPartyDistributionChannels": [],
            },
            "lifecycleState": "PUBLISHED",
            "isReshareDisabledByAuthor": False,
        }
        if image_urn:
            payload["content"] = {"media": {"id": image_urn}}

        response = await self._request(
            "POST",
            f"{API_BASE}/posts",
            stage="post",
            expected=(201,),
            headers=self._headers(token),
            json=payload,
        )
        post_id = response.headers.get("x-restli-id")
        if not post_id:
            raise UploadFailedError("post", "Post created but no x-restli-id header returned")
        return post_id

    async def post_text(self, caption: str) -> PostResult:
        person_urn, token = await self._author()
        post_id = await self._create_post(person_urn, token, caption)
        _logger.info(f"LinkedIn text post created: {post_id}")
        return self._ok(post_id, f"https://www.linkedin.com/feed/update/{post_id}")

    async def post(self, image: Path, caption: str, link: Optional[str] = None) -> PostResult:
        person_urn, token = await self._author()

        await self._emit_progress("register", 10.0, "Registering image...")
        upload_url, image_urn = await self._register_image(person_urn, token)

        await self._emit_progress("upload", 30.0, "Uploading image...")
        content_type = "image/png" if image.suffix.lower() == ".png" else "image/jpeg"
        await self._request(
            "PUT",
            upload_url,
            stage="upload",
            expected=(200, 201),
            headers={"Authorization": f"Bearer {token}", "Content-Type": content_type},
            content=image.read_bytes(),
        )

        await self._emit_progress("post", 70.0, "Creating post...")
        text = f"{caption}\n\n{link}" if link and link not in caption else caption
        post_id = await self._create_post(person_urn, token, text, image_urn)

        _logger.info(f"LinkedIn post created: {post_id}")
        return self._ok(post_id, f"https://www.linkedin.com/feed/update/{post_id}", image_urn=image_urn)
