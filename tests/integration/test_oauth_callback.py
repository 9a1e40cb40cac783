"""Integration tests for the localhost callback listener and the full flow.

These bind real sockets on 127.0.0.1; the token endpoint is still mocked.
"""

from __future__ import annotations

import asyncio
import socket
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from helpers import form_of, save_credential
from social_marketer.auth.callback import CallbackListener, parse_callback
from social_marketer.auth.oauth import AuthFlowState, OAuthOrchestrator
from social_marketer.auth.secret_store import MemorySecretStore
from social_marketer.errors import ListenerBindError, UserDeniedOrTimedOutError

pytestmark = pytest.mark.integration


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def http_get(port: int, target: str) -> int:
    """Send a bare GET and return the response status code."""
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    writer.write(f"GET {target} HTTP/1.1\r\nHost: localhost\r\n\r\n".encode("ascii"))
    await writer.drain()
    status_line = await reader.readline()
    writer.close()
    await writer.wait_closed()
    return int(status_line.split()[1])


class TestParseCallback:
    """Tests for query parsing."""

    def test_code_and_state(self):
        result = parse_callback("/oauth/callback?code=abc&state=xyz")
        assert (result.code, result.state, result.is_error) == ("abc", "xyz", False)

    def test_error(self):
        result = parse_callback("/oauth/callback?error=access_denied&error_description=No+thanks")
        assert result.is_error
        assert result.error_description == "No thanks"

    def test_missing_code_is_error(self):
        assert parse_callback("/oauth/callback?state=xyz").is_error


class TestCallbackListener:
    """Tests for CallbackListener over a real socket."""

    @pytest.mark.asyncio
    async def test_receives_code(self):
        port = free_port()
        async with CallbackListener(port=port) as listener:
            status = await http_get(port, "/oauth/callback?code=abc&state=xyz")
            result = await listener.wait(timeout=2)

        assert status == 200
        assert result.code == "abc"
        assert result.state == "xyz"
        assert not listener.is_running

    @pytest.mark.asyncio
    async def test_other_paths_are_404(self):
        """Test that stray requests neither match nor complete the wait."""
        port = free_port()
        async with CallbackListener(port=port) as listener:
            assert await http_get(port, "/favicon.ico") == 404
            assert await http_get(port, "/oauth/callback?code=abc&state=s") == 200
            result = await listener.wait(timeout=2)

        assert result.code == "abc"

    @pytest.mark.asyncio
    async def test_denial_is_400(self):
        port = free_port()
        async with CallbackListener(port=port) as listener:
            status = await http_get(port, "/oauth/callback?error=access_denied")
            result = await listener.wait(timeout=2)

        assert status == 400
        assert result.error == "access_denied"

    @pytest.mark.asyncio
    async def test_timeout(self):
        async with CallbackListener(port=free_port()) as listener:
            with pytest.raises(UserDeniedOrTimedOutError):
                await listener.wait(timeout=0.05)
        assert not listener.is_running

    @pytest.mark.asyncio
    async def test_port_in_use(self):
        """Test that a busy port raises ListenerBindError."""
        port = free_port()
        async with CallbackListener(port=port):
            with pytest.raises(ListenerBindError) as exc_info:
                await CallbackListener(port=port).start()
        assert exc_info.value.port == port

    @pytest.mark.asyncio
    async def test_port_released_after_close(self):
        port = free_port()
        async with CallbackListener(port=port):
            pass
        async with CallbackListener(port=port) as again:
            assert again.is_running

    @pytest.mark.asyncio
    async def test_redirect_uri(self):
        assert CallbackListener(port=8989).redirect_uri == "http://localhost:8989/oauth/callback"


class TestAuthorizeFlow:
    """End-to-end browser-redirect flow with a simulated browser."""

    def _oauth(self, secrets: MemorySecretStore, client: httpx.AsyncClient, port: int, visit) -> OAuthOrchestrator:
        return OAuthOrchestrator(
            secrets,
            http_client=client,
            open_browser=visit,
            callback_port=port,
            flow_timeout=5,
        )

    @pytest.mark.asyncio
    async def test_flow_persists_token(self, secrets: MemorySecretStore, mock_client):
        port = free_port()
        token_requests: list[httpx.Request] = []
        browser_tasks: list[asyncio.Task] = []

        def token_endpoint(request: httpx.Request) -> httpx.Response:
            token_requests.append(request)
            return httpx.Response(200, json={"access_token": "tok", "refresh_token": "r", "expires_in": 3600})

        def browser(url: str) -> None:
            state = parse_qs(urlsplit(url).query)["state"][0]
            browser_tasks.append(asyncio.get_running_loop().create_task(
                http_get(port, f"/oauth/callback?code=the-code&state={state}")
            ))

        oauth = self._oauth(secrets, mock_client(token_endpoint), port, browser)
        save_credential(oauth, "tiktok")

        token = await oauth.authorize("tiktok")

        assert token.access_token == "tok"
        assert oauth.get_token("tiktok").refresh_token == "r"
        assert oauth.state == AuthFlowState.COMPLETED
        assert not oauth.flow_in_progress
        form = form_of(token_requests[0])
        assert form["code"] == "the-code"
        assert form["redirect_uri"] == f"http://localhost:{port}/oauth/callback"
        assert form["code_verifier"]
        await asyncio.gather(*browser_tasks)

    @pytest.mark.asyncio
    async def test_state_mismatch(self, secrets: MemorySecretStore, mock_client):
        """Test that a callback with a foreign state is rejected."""
        port = free_port()
        browser_tasks: list[asyncio.Task] = []

        def browser(url: str) -> None:
            browser_tasks.append(asyncio.get_running_loop().create_task(
                http_get(port, "/oauth/callback?code=c&state=forged")
            ))

        def token_endpoint(request: httpx.Request) -> httpx.Response:
            raise AssertionError("code must not be exchanged")

        oauth = self._oauth(secrets, mock_client(token_endpoint), port, browser)
        save_credential(oauth, "linkedin")

        with pytest.raises(UserDeniedOrTimedOutError):
            await oauth.authorize("linkedin")
        assert oauth.state == AuthFlowState.FAILED
        assert oauth.get_token("linkedin") is None
        await asyncio.gather(*browser_tasks)

    @pytest.mark.asyncio
    async def test_concurrent_flow_rejected(self, secrets: MemorySecretStore, mock_client):
        """Test that a second flow fails while the first holds the listener."""
        from social_marketer.errors import FlowInProgressError

        port = free_port()
        oauth = self._oauth(secrets, mock_client(lambda r: httpx.Response(500)), port, lambda url: None)
        oauth.flow_timeout = 0.3
        save_credential(oauth, "linkedin")
        save_credential(oauth, "youtube")

        first = asyncio.ensure_future(oauth.authorize("linkedin"))
        await asyncio.sleep(0)
        with pytest.raises(FlowInProgressError):
            await oauth.authorize("youtube")

        with pytest.raises(UserDeniedOrTimedOutError):
            await first
        assert not oauth.flow_in_progress
