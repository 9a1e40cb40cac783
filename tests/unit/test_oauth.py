"""Unit tests for OAuthOrchestrator: URLs, code exchange, persistence and refresh."""

from __future__ import annotations

import asyncio
import base64
from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from helpers import form_of, save_credential, save_token
from social_marketer.auth.models import OAuth1Credentials, Token, utcnow
from social_marketer.auth.oauth import (
    OAuthConfig,
    OAuthOrchestrator,
    build_authorization_url,
    get_oauth_config,
)
from social_marketer.auth.secret_store import (
    LINKEDIN_PROFILE_KEY,
    PINTEREST_BOARD_KEY,
    MemorySecretStore,
    credential_key,
    token_key,
)
from social_marketer.errors import (
    AuthExpiredError,
    FlowInProgressError,
    MissingCredentialError,
    NetworkError,
    RefreshFailedError,
    TokenExchangeError,
)


def query_of(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


class TestAuthorizationUrl:
    """Tests for build_authorization_url."""

    def test_pkce_parameters(self):
        config = OAuthConfig(
            platform="example",
            auth_url="https://auth.example/authorize",
            token_url="https://auth.example/token",
            scopes=("read", "write"),
            use_pkce=True,
        )
        url = build_authorization_url(
            config, "cid", "http://localhost:8989/oauth/callback", "st", code_challenge="chal"
        )
        query = query_of(url)

        assert url.startswith(config.auth_url)
        assert query["client_id"] == "cid"
        assert query["state"] == "st"
        assert query["code_challenge"] == "chal"
        assert query["code_challenge_method"] == "S256"
        assert query["scope"] == "read write"
        assert query["prompt"] == "consent"

    def test_tiktok_uses_client_key_and_commas(self):
        url = build_authorization_url(get_oauth_config("tiktok"), "key", "http://localhost:1/cb", "st", "c")
        query = query_of(url)

        assert query["client_key"] == "key"
        assert "client_id" not in query
        assert query["scope"] == "user.info.basic,video.upload,video.publish"

    def test_no_pkce_without_flag(self):
        url = build_authorization_url(get_oauth_config("linkedin"), "cid", "http://localhost:1/cb", "st", "c")
        assert "code_challenge" not in query_of(url)

    def test_youtube_requests_offline_access(self):
        url = build_authorization_url(get_oauth_config("youtube"), "cid", "http://localhost:1/cb", "st")
        assert query_of(url)["access_type"] == "offline"

    def test_unknown_platform(self):
        with pytest.raises(ValueError):
            get_oauth_config("myspace")

    def test_twitter_has_no_browser_flow(self):
        with pytest.raises(ValueError):
            get_oauth_config("twitter")


class TestCredentials:
    """Tests for credential and token persistence."""

    def test_missing_credential(self, oauth: OAuthOrchestrator):
        with pytest.raises(MissingCredentialError):
            oauth.get_credential("linkedin")

    def test_credential_round_trip(self, oauth: OAuthOrchestrator):
        save_credential(oauth, "linkedin")
        assert oauth.get_credential("linkedin").client_secret == "linkedin-secret"

    def test_refuses_expired_token(self, oauth: OAuthOrchestrator):
        """Test that an already-expired token is not persisted."""
        expired = Token(platform="linkedin", access_token="a", expires_at=utcnow() - timedelta(minutes=1))

        with pytest.raises(AuthExpiredError):
            oauth.save_token(expired)
        assert oauth.get_token("linkedin") is None

    def test_expired_token_after_refresh_attempt(self, oauth: OAuthOrchestrator):
        expired = Token(platform="linkedin", access_token="a", expires_at=utcnow() - timedelta(minutes=1))
        oauth.save_token(expired, refresh_attempted=True)
        assert oauth.get_token("linkedin") is not None

    def test_manual_token(self, oauth: OAuthOrchestrator):
        token = oauth.save_manual_token("facebook", "  pasted  ", expires_in=3600)

        assert token.access_token == "pasted"
        assert oauth.get_token("facebook").expires_at is not None

    def test_disconnect_keeps_keys(self, secrets: MemorySecretStore, oauth: OAuthOrchestrator):
        """Test that disconnect drops the token and sub-resource but keeps API keys."""
        save_credential(oauth, "pinterest")
        save_token(oauth, "pinterest")
        secrets.set(PINTEREST_BOARD_KEY, {"board_id": "b", "board_name": "Wisdom"})

        oauth.disconnect("pinterest")

        assert not secrets.exists(token_key("pinterest"))
        assert not secrets.exists(PINTEREST_BOARD_KEY)
        assert secrets.exists(credential_key("pinterest"))

    def test_remove_credential(self, secrets: MemorySecretStore, oauth: OAuthOrchestrator):
        save_credential(oauth, "linkedin")
        save_token(oauth, "linkedin")
        secrets.set(LINKEDIN_PROFILE_KEY, {"person_urn": "urn:li:person:1"})

        oauth.remove_credential("linkedin")

        assert secrets.get(credential_key("linkedin")) is None
        assert secrets.get(token_key("linkedin")) is None
        assert secrets.get(LINKEDIN_PROFILE_KEY) is None

    def test_oauth1_credentials(self, oauth: OAuthOrchestrator):
        credentials = OAuth1Credentials(
            consumer_key="ck", consumer_secret="cs", access_token="at", access_token_secret="as"
        )
        oauth.save_oauth1_credentials(credentials)
        assert oauth.get_oauth1_credentials() == credentials

    def test_token_status(self, oauth: OAuthOrchestrator):
        assert oauth.token_status("linkedin") == "not connected"
        save_token(oauth, "linkedin")
        assert oauth.token_status("linkedin") == "connected"
        save_token(oauth, "youtube", expires_at=utcnow() + timedelta(days=5))
        assert oauth.token_status("youtube") == "connected (4 days left)"


class TestExchangeCode:
    """Tests for exchanging authorization codes."""

    @pytest.mark.asyncio
    async def test_body_client_auth(self, secrets: MemorySecretStore, mock_client):
        """Test that body auth sends client id and secret as form fields."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600, "refresh_token": "r"})

        oauth = OAuthOrchestrator(secrets, http_client=mock_client(handler))
        credential = save_credential(oauth, "linkedin")

        token = await oauth.exchange_code(get_oauth_config("linkedin"), credential, "code1", "http://localhost/cb")

        form = form_of(seen[0])
        assert form["grant_type"] == "authorization_code"
        assert form["code"] == "code1"
        assert form["client_id"] == "linkedin-id"
        assert form["client_secret"] == "linkedin-secret"
        assert "authorization" not in seen[0].headers
        assert token.access_token == "tok"
        assert token.refresh_token == "r"
        assert token.expires_at is not None

    @pytest.mark.asyncio
    async def test_basic_client_auth(self, secrets: MemorySecretStore, mock_client):
        """Test that basic auth puts the client pair in the Authorization header."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "tok"})

        oauth = OAuthOrchestrator(secrets, http_client=mock_client(handler))
        credential = save_credential(oauth, "pinterest")

        await oauth.exchange_code(get_oauth_config("pinterest"), credential, "c", "http://localhost/cb")

        expected = base64.b64encode(b"pinterest-id:pinterest-secret").decode()
        assert seen[0].headers["authorization"] == f"Basic {expected}"
        assert "client_secret" not in form_of(seen[0])

    @pytest.mark.asyncio
    async def test_pkce_verifier_sent(self, secrets: MemorySecretStore, mock_client):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "tok"})

        oauth = OAuthOrchestrator(secrets, http_client=mock_client(handler))
        credential = save_credential(oauth, "tiktok")

        await oauth.exchange_code(get_oauth_config("tiktok"), credential, "c", "http://localhost/cb", "verifier")

        form = form_of(seen[0])
        assert form["code_verifier"] == "verifier"
        assert form["client_key"] == "tiktok-id"

    @pytest.mark.asyncio
    async def test_rejected_exchange(self, secrets: MemorySecretStore, mock_client):
        oauth = OAuthOrchestrator(
            secrets,
            http_client=mock_client(lambda r: httpx.Response(400, json={"error": "invalid_grant"})),
        )
        credential = save_credential(oauth, "linkedin")

        with pytest.raises(TokenExchangeError) as exc_info:
            await oauth.exchange_code(get_oauth_config("linkedin"), credential, "c", "http://localhost/cb")
        assert exc_info.value.status == 400

    @pytest.mark.asyncio
    async def test_transport_failure(self, secrets: MemorySecretStore, mock_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        oauth = OAuthOrchestrator(secrets, http_client=mock_client(handler))
        credential = save_credential(oauth, "linkedin")

        with pytest.raises(NetworkError):
            await oauth.exchange_code(get_oauth_config("linkedin"), credential, "c", "http://localhost/cb")


class TestAuthorizeGuards:
    """Tests for flow preconditions."""

    @pytest.mark.asyncio
    async def test_requires_credentials(self, oauth: OAuthOrchestrator):
        with pytest.raises(MissingCredentialError):
            await oauth.authorize("linkedin")
        assert not oauth.flow_in_progress

    @pytest.mark.asyncio
    async def test_second_flow_rejected(self, oauth: OAuthOrchestrator):
        """Test that only one flow may hold the listener at a time."""
        oauth._active_platform = "linkedin"

        with pytest.raises(FlowInProgressError):
            await oauth.authorize("youtube")


class TestRefresh:
    """Tests for get_valid_token and single-flight refresh."""

    @pytest.mark.asyncio
    async def test_valid_token_needs_no_call(self, secrets: MemorySecretStore, mock_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no HTTP call expected")

        oauth = OAuthOrchestrator(secrets, http_client=mock_client(handler))
        save_token(oauth, "linkedin", expires_at=utcnow() + timedelta(hours=2))

        token = await oauth.get_valid_token("linkedin")

        assert token.access_token == "linkedin-token"
        assert oauth.refresh_count == 0

    @pytest.mark.asyncio
    async def test_no_token(self, oauth: OAuthOrchestrator):
        with pytest.raises(AuthExpiredError):
            await oauth.get_valid_token("linkedin")

    @pytest.mark.asyncio
    async def test_expired_without_refresh_token(self, oauth: OAuthOrchestrator):
        save_token(oauth, "facebook", expires_at=utcnow() - timedelta(minutes=5))

        with pytest.raises(AuthExpiredError):
            await oauth.get_valid_token("facebook")

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self, secrets: MemorySecretStore, mock_client):
        """Test that N concurrent callers cause exactly one refresh call."""
        calls = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.05)
            return httpx.Response(200, json={"access_token": "fresh", "expires_in": 3600})

        oauth = OAuthOrchestrator(secrets, http_client=mock_client(handler))
        save_credential(oauth, "youtube")
        save_token(oauth, "youtube", refresh_token="r1", expires_at=utcnow() + timedelta(seconds=30))

        tokens = await asyncio.gather(*(oauth.get_valid_token("youtube") for _ in range(5)))

        assert calls == 1
        assert oauth.refresh_count == 1
        assert {t.access_token for t in tokens} == {"fresh"}
        stored = oauth.get_token("youtube")
        assert stored.access_token == "fresh"
        # Refresh token kept when the provider omits it
        assert stored.refresh_token == "r1"

    @pytest.mark.asyncio
    async def test_refresh_sends_grant(self, secrets: MemorySecretStore, mock_client):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "fresh", "refresh_token": "r2"})

        oauth = OAuthOrchestrator(secrets, http_client=mock_client(handler))
        save_credential(oauth, "linkedin")
        save_token(oauth, "linkedin", refresh_token="r1", expires_at=utcnow() - timedelta(minutes=1))

        token = await oauth.get_valid_token("linkedin")

        form = form_of(seen[0])
        assert form["grant_type"] == "refresh_token"
        assert form["refresh_token"] == "r1"
        assert token.refresh_token == "r2"

    @pytest.mark.asyncio
    async def test_refresh_failure(self, secrets: MemorySecretStore, mock_client):
        """Test that a rejected refresh surfaces as RefreshFailedError."""
        oauth = OAuthOrchestrator(
            secrets,
            http_client=mock_client(lambda r: httpx.Response(400, json={"error": "invalid_grant"})),
        )
        save_credential(oauth, "linkedin")
        original = save_token(oauth, "linkedin", refresh_token="r1", expires_at=utcnow() + timedelta(seconds=10))

        with pytest.raises(RefreshFailedError):
            await oauth.get_valid_token("linkedin")
        assert oauth.get_token("linkedin").access_token == original.access_token

    @pytest.mark.asyncio
    async def test_failed_refresh_not_cached(self, secrets: MemorySecretStore, mock_client):
        """Test that a later caller starts a new refresh after a failure."""
        responses = [
            httpx.Response(500, text="boom"),
            httpx.Response(200, json={"access_token": "fresh"}),
        ]
        oauth = OAuthOrchestrator(secrets, http_client=mock_client(lambda r: responses.pop(0)))
        save_credential(oauth, "linkedin")
        save_token(oauth, "linkedin", refresh_token="r1", expires_at=utcnow() + timedelta(seconds=10))

        with pytest.raises(RefreshFailedError):
            await oauth.refresh("linkedin")
        token = await oauth.refresh("linkedin")

        assert token.access_token == "fresh"
        assert oauth.refresh_count == 2
