"""Tests for the Pinterest, Facebook and LinkedIn connectors."""

from __future__ import annotations

import base64
import json
from pathlib import Path

import httpx
import pytest

from social_marketer.auth.secret_store import FACEBOOK_PAGE_KEY, LINKEDIN_PROFILE_KEY, PINTEREST_BOARD_KEY
from social_marketer.config import PlatformSettings
from social_marketer.errors import RemoteRejectedError
from social_marketer.platforms.facebook import FacebookConnector
from social_marketer.platforms.graph import FacebookPage
from social_marketer.platforms.linkedin import LinkedInConnector, LinkedInProfile, jwt_subject
from social_marketer.platforms.pinterest import PinterestBoard, PinterestConnector
from social_marketer.platforms.types import MediaKind

from helpers import form_of, json_of, save_token


def id_token_for(sub: str) -> str:
    payload = base64.urlsafe_b64encode(json.dumps({"sub": sub}).encode()).decode().rstrip("=")
    return f"eyJhbGciOiJSUzI1NiJ9.{payload}.signature"


class TestPinterest:
    """Tests for board discovery and pin creation."""

    @pytest.mark.asyncio
    async def test_setup_prefers_wisdom_board(self, secrets, oauth, mock_client):
        save_token(oauth, "pinterest")

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v5/boards"
            return httpx.Response(200, json={"items": [
                {"id": "b1", "name": "Travel"},
                {"id": "b2", "name": "Daily Wisdom"},
            ]})

        connector = PinterestConnector(secrets, oauth, http_client=mock_client(handler))

        assert await connector.complete_setup() == "Board: Daily Wisdom"
        assert secrets.get_model(PINTEREST_BOARD_KEY, PinterestBoard).board_id == "b2"
        assert await connector.is_configured()

    @pytest.mark.asyncio
    async def test_setup_without_boards(self, secrets, oauth, mock_client):
        save_token(oauth, "pinterest")
        connector = PinterestConnector(
            secrets, oauth, http_client=mock_client(lambda r: httpx.Response(200, json={"items": []}))
        )

        with pytest.raises(RemoteRejectedError):
            await connector.complete_setup()

    @pytest.mark.asyncio
    async def test_create_pin(self, secrets, oauth, mock_client, sample_image: Path):
        save_token(oauth, "pinterest")
        secrets.set_model(PINTEREST_BOARD_KEY, PinterestBoard(board_id="b2", board_name="Daily Wisdom"))
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"id": "pin1"})

        settings = PlatformSettings(options={"api_base": "https://api-sandbox.pinterest.com/v5/"})
        connector = PinterestConnector(secrets, oauth, settings=settings, http_client=mock_client(handler))

        result = await connector.publish(MediaKind.IMAGE, "Trust.", sample_image, link="https://wisdombook.life/t")

        assert result.success
        assert result.remote_post_url == "https://pinterest.com/pin/pin1"
        (request,) = requests
        assert request.url.host == "api-sandbox.pinterest.com"
        assert request.headers["Authorization"] == "Bearer pinterest-token"
        body = json_of(request)
        assert body["board_id"] == "b2"
        assert body["link"] == "https://wisdombook.life/t"
        assert base64.b64decode(body["media_source"]["data"]) == sample_image.read_bytes()

    @pytest.mark.asyncio
    async def test_text_unsupported(self, secrets, oauth):
        result = await PinterestConnector(secrets, oauth).publish(MediaKind.TEXT, "hi")
        assert result.error_kind == "unsupported"


class TestFacebook:
    """Tests for page discovery and page posts."""

    @pytest.mark.asyncio
    async def test_setup_stores_page_token(self, secrets, oauth, mock_client):
        save_token(oauth, "facebook", access_token="user-token")

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/me/accounts")
            assert request.url.params["access_token"] == "user-token"
            return httpx.Response(200, json={"data": [
                {"id": "p1", "name": "Cooking", "access_token": "t1"},
                {"id": "p2", "name": "The Wisdom Book", "access_token": "t2"},
            ]})

        connector = FacebookConnector(secrets, oauth, http_client=mock_client(handler))

        assert await connector.complete_setup() == "Page: The Wisdom Book"
        page = secrets.get_model(FACEBOOK_PAGE_KEY, FacebookPage)
        assert (page.page_id, page.page_access_token) == ("p2", "t2")

    @pytest.mark.asyncio
    async def test_text_post_uses_page_token(self, secrets, oauth, mock_client):
        secrets.set_model(FACEBOOK_PAGE_KEY, FacebookPage(page_id="p2", page_name="Wisdom", page_access_token="t2"))
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"id": "p2_100"})

        connector = FacebookConnector(secrets, oauth, http_client=mock_client(handler))

        result = await connector.publish(MediaKind.TEXT, "Hello")

        assert result.success
        assert result.remote_post_id == "p2_100"
        (request,) = requests
        assert request.url.path == "/v24.0/p2/feed"
        assert request.url.params["access_token"] == "t2"
        assert form_of(request) == {"message": "Hello"}

    @pytest.mark.asyncio
    async def test_photo_post(self, secrets, oauth, mock_client, sample_image: Path):
        secrets.set_model(FACEBOOK_PAGE_KEY, FacebookPage(page_id="p2", page_name="Wisdom", page_access_token="t2"))

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v24.0/p2/photos"
            assert b"https://wisdombook.life/t" in request.content
            return httpx.Response(200, json={"id": "ph1", "post_id": "p2_200"})

        connector = FacebookConnector(secrets, oauth, http_client=mock_client(handler))

        result = await connector.publish(MediaKind.IMAGE, "Trust.", sample_image, link="https://wisdombook.life/t")

        assert result.remote_post_id == "p2_200"
        assert result.details["photo_id"] == "ph1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code, kind",
        [(190, "auth_expired"), (4, "rate_limited"), (368, "remote_rejected")],
    )
    async def test_graph_error_codes(self, secrets, oauth, mock_client, code: int, kind: str):
        secrets.set_model(FACEBOOK_PAGE_KEY, FacebookPage(page_id="p2", page_name="Wisdom", page_access_token="t2"))
        connector = FacebookConnector(
            secrets,
            oauth,
            http_client=mock_client(lambda r: httpx.Response(400, json={"error": {"code": code, "message": "nope"}})),
        )

        result = await connector.publish(MediaKind.TEXT, "Hello")

        assert result.error_kind == kind

    @pytest.mark.asyncio
    async def test_not_configured_without_page(self, secrets, oauth):
        save_token(oauth, "facebook")
        connector = FacebookConnector(secrets, oauth)

        result = await connector.publish(MediaKind.TEXT, "Hello")

        assert not await connector.is_configured()
        assert result.error_kind == "not_configured"


class TestLinkedIn:
    """Tests for member resolution and posts."""

    def test_jwt_subject(self):
        assert jwt_subject(id_token_for("abc123")) == "abc123"
        assert jwt_subject("not-a-jwt") is None
        assert jwt_subject("a.!!!.c") is None

    @pytest.mark.asyncio
    async def test_member_from_id_token(self, secrets, oauth):
        save_token(oauth, "linkedin", id_token=id_token_for("abc123"))

        assert await LinkedInConnector(secrets, oauth).is_configured()
        assert secrets.get_model(LINKEDIN_PROFILE_KEY, LinkedInProfile).person_urn == "urn:li:person:abc123"

    @pytest.mark.asyncio
    async def test_member_from_userinfo(self, secrets, oauth, mock_client):
        save_token(oauth, "linkedin")

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v2/userinfo"
            assert "LinkedIn-Version" not in request.headers
            return httpx.Response(200, json={"sub": "xyz"})

        connector = LinkedInConnector(secrets, oauth, http_client=mock_client(handler))

        assert await connector.complete_setup() == "Member: urn:li:person:xyz"

    @pytest.mark.asyncio
    async def test_text_post(self, secrets, oauth, mock_client):
        save_token(oauth, "linkedin")
        secrets.set_model(LINKEDIN_PROFILE_KEY, LinkedInProfile(person_urn="urn:li:person:abc"))
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, headers={"x-restli-id": "urn:li:share:1"})

        connector = LinkedInConnector(secrets, oauth, http_client=mock_client(handler))

        result = await connector.publish(MediaKind.TEXT, "Hello")

        assert result.success
        assert result.remote_post_url == "https://www.linkedin.com/feed/update/urn:li:share:1"
        body = json_of(requests[0])
        assert body["author"] == "urn:li:person:abc"
        assert body["commentary"] == "Hello"
        assert "content" not in body

    @pytest.mark.asyncio
    async def test_image_post(self, secrets, oauth, mock_client, sample_image: Path):
        save_token(oauth, "linkedin")
        secrets.set_model(LINKEDIN_PROFILE_KEY, LinkedInProfile(person_urn="urn:li:person:abc"))
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path == "/v2/images":
                return httpx.Response(200, json={"value": {
                    "uploadUrl": "https://upload.linkedin.example/img",
                    "image": "urn:li:image:9",
                }})
            if request.method == "PUT":
                return httpx.Response(201)
            return httpx.Response(201, headers={"x-restli-id": "urn:li:share:2"})

        connector = LinkedInConnector(secrets, oauth, http_client=mock_client(handler))

        result = await connector.publish(MediaKind.IMAGE, "Trust.", sample_image, link="https://wisdombook.life/t")

        assert result.success
        assert [r.method for r in requests] == ["POST", "PUT", "POST"]
        assert requests[1].content == sample_image.read_bytes()
        body = json_of(requests[2])
        assert body["content"] == {"media": {"id": "urn:li:image:9"}}
        assert body["commentary"] == "Trust.\n\nhttps://wisdombook.life/t"

    @pytest.mark.asyncio
    async def test_missing_restli_id(self, secrets, oauth, mock_client):
        save_token(oauth, "linkedin")
        secrets.set_model(LINKEDIN_PROFILE_KEY, LinkedInProfile(person_urn="urn:li:person:abc"))
        connector = LinkedInConnector(secrets, oauth, http_client=mock_client(lambda r: httpx.Response(201)))

        result = await connector.publish(MediaKind.TEXT, "Hello")

        assert not result.success
        assert result.error.startswith("[post]")
