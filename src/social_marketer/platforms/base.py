"""Common connector contract.

Every platform connector implements the same four operations. Connectors
never touch Post or PostLog records; they return a ``PostResult`` that the
scheduler persists.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from ..errors import (
    AuthExpiredError,
    MarketerError,
    NetworkError,
    NotConfiguredError,
    RateLimitedError,
    RemoteRejectedError,
    UnsupportedOperationError,
    UploadFailedError,
)
from ..http import DEFAULT_TIMEOUT, client_session
from .types import MediaKind, PlatformType

if TYPE_CHECKING:
    from ..auth.oauth import OAuthOrchestrator
    from ..auth.secret_store import SecretStore
    from ..config import PlatformSettings

_logger = logging.getLogger("platform_api")

# Stages whose rejection means "the remote refused the post" rather than
# "a transfer step failed"
_REJECT_STAGES = frozenset({"post", "discovery", "lookup"})


@dataclass
class PostResult:
    """Outcome of one publish call.

    ``success`` and ``error`` are mutually exclusive; a failed result never
    carries a remote identifier.
    """

    success: bool
    platform: str
    remote_post_id: Optional[str] = None
    remote_post_url: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.success and self.error:
            raise ValueError("A successful PostResult cannot carry an error")
        if not self.success and (self.remote_post_id or self.remote_post_url):
            raise ValueError("A failed PostResult cannot carry a remote post")

    @classmethod
    def ok(
        cls,
        platform: str,
        remote_post_id: Optional[str],
        remote_post_url: Optional[str] = None,
        **details: Any,
    ) -> "PostResult":
        return cls(
            success=True,
            platform=platform,
            remote_post_id=remote_post_id,
            remote_post_url=remote_post_url,
            details=details,
        )

    @classmethod
    def failed(cls, platform: str, error: MarketerError | str, **details: Any) -> "PostResult":
        if isinstance(error, MarketerError):
            return cls(
                success=False,
                platform=platform,
                error=str(error),
                error_kind=error.kind,
                details=details,
            )
        return cls(success=False, platform=platform, error=str(error), details=details)

    def __str__(self) -> str:
        if self.success:
            return f"[{self.platform}] Success: {self.remote_post_url or self.remote_post_id}"
        return f"[{self.platform}] Failed: {self.error}"


def is_transient(error: BaseException) -> bool:
    """True for failures worth re-sending within the same publish call."""
    return (
        isinstance(error, MarketerError)
        and error.is_retryable
        and not isinstance(error, RateLimitedError)
    )


# Type for progress callbacks
ProgressCallback = Optional[Callable[[str, float, str], Awaitable[None]]]


class PlatformConnector(ABC):
    """Abstract base class for platform connectors.

    Subclasses set ``platform`` and implement ``is_configured``, ``post_text``
    and ``post``. Video platforms also implement ``post_video``.
    """

    platform: PlatformType

    # Re-sends of a single upload chunk
    chunk_attempts = 3
    chunk_retry_wait = 1.0

    def __init__(
        self,
        secrets: "SecretStore",
        oauth: "OAuthOrchestrator",
        settings: Optional["PlatformSettings"] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
        progress_callback: ProgressCallback = None,
    ):
        """Initialize the connector.

        Args:
            secrets: Store holding tokens and discovered identifiers.
            oauth: Token provider (refreshes before use).
            settings: Platform settings from configuration.
            http_client: Optional shared client; a short-lived one is used otherwise.
            timeout: Per-request timeout in seconds.
            progress_callback: Optional callback for progress updates.
        """
        self.secrets = secrets
        self.oauth = oauth
        self.settings = settings
        self._http = http_client
        self.timeout = timeout
        self._progress_callback = progress_callback
        self._api_call_count = 0

    @property
    def platform_name(self) -> str:
        return self.platform.value

    def option(self, key: str, default: Any = None) -> Any:
        """Read a per-platform option from configuration."""
        if self.settings is None:
            return default
        return self.settings.option(key, default)

    # =========================================================================
    # Contract
    # =========================================================================

    @abstractmethod
    async def is_configured(self) -> bool:
        """True if a usable token and any required sub-resource id are present."""
        ...

    @abstractmethod
    async def post_text(self, caption: str) -> PostResult:
        ...

    @abstractmethod
    async def post(self, image: Path, caption: str, link: Optional[str] = None) -> PostResult:
        ...

    async def post_video(self, video: Path, caption: str) -> PostResult:
        raise UnsupportedOperationError(self.platform_name, "video posts")

    async def complete_setup(self) -> Optional[str]:
        """Run after authorization; discovers and stores sub-resources.

        Returns:
            Description of what was selected, if anything.
        """
        return None

    async def publish(
        self,
        kind: MediaKind,
        caption: str,
        media: Optional[Path] = None,
        link: Optional[str] = None,
    ) -> PostResult:
        """Dispatch to the matching contract operation and never raise.

        Errors from the taxonomy become failed results carrying their kind.
        """
        try:
            if kind == MediaKind.VIDEO:
                if media is None:
                    raise ValueError("Video publish requires a file")
                return await self.post_video(media, caption)
            if kind == MediaKind.IMAGE:
                if media is None:
                    raise ValueError("Image publish requires a file")
                return await self.post(media, caption, link)
            return await self.post_text(caption)
        except MarketerError as e:
            _logger.error(f"{self.platform_name} publish failed ({e.kind}): {e}")
            return PostResult.failed(self.platform_name, e)
        except Exception as e:
            _logger.exception(f"{self.platform_name} publish crashed")
            return PostResult.failed(self.platform_name, f"{self.platform_name} publish failed: {e}")

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _emit_progress(self, stage: str, progress: float, message: str) -> None:
        """Emit a progress update if callback is set."""
        if self._progress_callback:
            await self._progress_callback(stage, progress, message)

    def _ok(
        self,
        remote_post_id: Optional[str],
        remote_post_url: Optional[str] = None,
        **details: Any,
    ) -> PostResult:
        return PostResult.ok(self.platform_name, remote_post_id, remote_post_url, **details)

    def _has_usable_token(self) -> bool:
        token = self.oauth.get_token(self.platform_name)
        return token is not None and token.is_usable()

    async def _access_token(self) -> str:
        """Valid bearer token, refreshed if needed.

        Raises:
            NotConfiguredError: Platform was never connected.
            AuthExpiredError: Token expired and cannot be refreshed.
        """
        if self.oauth.get_token(self.platform_name) is None:
            raise NotConfiguredError(self.platform_name, "not connected")
        token = await self.oauth.get_valid_token(self.platform_name)
        return token.access_token

    def _error_details(self, response: httpx.Response) -> tuple[Optional[str], str]:
        """Extract (code, message) from an error response body.

        Handles the common shapes: ``{"error": {"code", "message"}}``,
        ``{"code", "message"}`` and ``{"detail"}``.
        """
        try:
            body = response.json()
        except ValueError:
            return str(response.status_code), response.text[:300] or response.reason_phrase

        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                code = error.get("code")
                message = error.get("message") or error.get("error_user_msg") or str(error)
                return (str(code) if code is not None else str(response.status_code)), message
            if isinstance(error, str):
                return str(response.status_code), body.get("error_description") or error
            message = body.get("message") or body.get("detail") or body.get("title")
            if message:
                code = body.get("code") or body.get("status") or response.status_code
                return str(code), str(message)
        return str(response.status_code), response.text[:300]

    async def _request(
        self,
        method: str,
        url: str,
        *,
        stage: str,
        expected: Iterable[int] = (200, 201),
        timeout: Optional[float] = None,
        log_params: Optional[dict[str, Any]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one HTTP request and map failures onto the error taxonomy.

        Args:
            method: HTTP method.
            url: Full URL.
            stage: Publish stage, reported in UploadFailedError.
            expected: Status codes treated as success.
            timeout: Override of the connector timeout.
            log_params: Safe subset of parameters to log.
            **kwargs: Passed to ``httpx.AsyncClient.request``.

        Returns:
            The response (status in ``expected``).
        """
        self._api_call_count += 1
        call = self._api_call_count
        _logger.info(f"{self.platform_name} API CALL #{call} | {method} {url.split('?')[0]} | {stage} | {log_params or {}}")

        try:
            async with client_session(self._http, self.timeout) as client:
                response = await client.request(
                    method,
                    url,
                    timeout=timeout or self.timeout,
                    **kwargs,
                )
        except httpx.TimeoutException as e:
            _logger.error(f"{self.platform_name} API CALL #{call} | TIMEOUT")
            raise UploadFailedError(stage, f"{self.platform_name} request timed out", retryable=True) from e
        except httpx.TransportError as e:
            _logger.error(f"{self.platform_name} API CALL #{call} | NETWORK: {e}")
            raise NetworkError(f"{self.platform_name} unreachable: {e}") from e

        if response.status_code in set(expected):
            _logger.info(f"{self.platform_name} API CALL #{call} | HTTP {response.status_code}")
            return response

        code, message = self._error_details(response)
        _logger.error(f"{self.platform_name} API CALL #{call} | HTTP {response.status_code} | {code}: {message}")
        raise self._error_for(response, stage, code, message)

    def _error_for(
        self,
        response: httpx.Response,
        stage: str,
        code: Optional[str],
        message: str,
    ) -> MarketerError:
        """Map a failed response onto the error taxonomy.

        Platforms with their own error codes override this and fall back to
        the HTTP status mapping here.
        """
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            return RateLimitedError(
                self.platform_name,
                float(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status_code in (401, 403):
            return AuthExpiredError(self.platform_name, message)
        if stage in _REJECT_STAGES:
            return RemoteRejectedError(code, message)
        return UploadFailedError(stage, message, code=code)

    def _chunk_retrying(self) -> AsyncRetrying:
        """Retry policy for one chunk transfer (transient failures only)."""
        return AsyncRetrying(
            stop=stop_after_attempt(self.chunk_attempts),
            wait=wait_exponential(multiplier=self.chunk_retry_wait, max=10),
            retry=retry_if_exception(is_transient),
            reraise=True,
        )

    async def _request_json(self, method: str, url: str, *, stage: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._request(method, url, stage=stage, **kwargs)
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"data": data}
