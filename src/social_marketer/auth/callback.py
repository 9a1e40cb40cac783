"""Short-lived localhost listener for OAuth redirect callbacks."""

from __future__ import annotations

import asyncio
import html
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from ..errors import ListenerBindError, UserDeniedOrTimedOutError

_logger = logging.getLogger("oauth")

CALLBACK_PATH = "/oauth/callback"

_SUCCESS_PAGE = """<!DOCTYPE html>
<html><head><title>Connected</title></head>
<body style="font-family: sans-serif; text-align: center; padding-top: 60px;">
<h1>Authorization complete</h1>
<p>You can close this window and return to Social Marketer.</p>
</body></html>"""

_ERROR_PAGE = """<!DOCTYPE html>
<html><head><title>Authorization failed</title></head>
<body style="font-family: sans-serif; text-align: center; padding-top: 60px;">
<h1>Authorization failed</h1>
<p>{message}</p>
</body></html>"""


@dataclass(frozen=True)
class CallbackResult:
    """Query parameters delivered to the redirect URI."""

    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None or not self.code


def parse_callback(target: str) -> CallbackResult:
    """Parse the request target of a callback (path + query)."""
    query = parse_qs(urlsplit(target).query)

    def first(name: str) -> Optional[str]:
        values = query.get(name)
        return values[0] if values else None

    return CallbackResult(
        code=first("code"),
        state=first("state"),
        error=first("error"),
        error_description=first("error_description"),
    )


def _http_response(status: str, body: str) -> bytes:
    payload = body.encode("utf-8")
    head = (
        f"HTTP/1.1 {status}\r\n"
        "Content-Type: text/html; charset=utf-8\r\n"
        f"Content-Length: {len(payload)}\r\n"
        "Connection: close\r\n\r\n"
    )
    return head.encode("ascii") + payload


class CallbackListener:
    """Accept exactly one redirect on ``http://<host>:<port>/oauth/callback``.

    The listener is an async context manager. The socket is closed on exit
    whatever the outcome, so a failed or abandoned flow never keeps the port.

    Usage:
        async with CallbackListener(port=8989) as listener:
            webbrowser.open(auth_url)
            result = await listener.wait(timeout=300)
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 8989, path: str = CALLBACK_PATH):
        self.host = host
        self.port = port
        self.path = path
        self._server: Optional[asyncio.AbstractServer] = None
        self._result: Optional[asyncio.Future[CallbackResult]] = None

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.port}{self.path}"

    @property
    def is_running(self) -> bool:
        return self._server is not None

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._result = loop.create_future()
        try:
            self._server = await asyncio.start_server(self._handle, self.host, self.port)
        except OSError as e:
            self._result = None
            raise ListenerBindError(self.port, str(e)) from e
        _logger.info(f"Callback listener started on {self.host}:{self.port}")

    async def close(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        if self._result is not None and not self._result.done():
            self._result.cancel()
        _logger.info(f"Callback listener on port {self.port} closed")

    async def __aenter__(self) -> "CallbackListener":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def wait(self, timeout: float) -> CallbackResult:
        """Wait for the redirect.

        Raises:
            UserDeniedOrTimedOutError: No callback arrived in time.
        """
        if self._result is None:
            raise RuntimeError("Listener not started")
        try:
            return await asyncio.wait_for(asyncio.shield(self._result), timeout)
        except asyncio.TimeoutError:
            raise UserDeniedOrTimedOutError(
                f"No authorization callback received within {timeout:.0f}s"
            ) from None

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            request_line = await asyncio.wait_for(reader.readline(), timeout=10)
            # Drain headers
            while True:
                line = await asyncio.wait_for(reader.readline(), timeout=10)
                if line in (b"\r\n", b"\n", b""):
                    break

            parts = request_line.decode("latin-1").split()
            if len(parts) < 2 or parts[0] != "GET" or urlsplit(parts[1]).path != self.path:
                writer.write(_http_response("404 Not Found", "Not found"))
                await writer.drain()
                return

            result = parse_callback(parts[1])
            if result.is_error:
                message = result.error_description or result.error or "Missing authorization code"
                writer.write(_http_response(
                    "400 Bad Request",
                    _ERROR_PAGE.format(message=html.escape(message)),
                ))
            else:
                writer.write(_http_response("200 OK", _SUCCESS_PAGE))
            await writer.drain()

            if self._result is not None and not self._result.done():
                self._result.set_result(result)
        except (asyncio.TimeoutError, ConnectionError) as e:
            _logger.warning(f"Callback connection dropped: {e}")
        finally:
            writer.close()
