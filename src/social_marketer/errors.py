"""Error taxonomy shared by the OAuth layer, connectors and the scheduler.

Every error carries two hints used by the scheduler and the CLI:

- ``is_retryable``: whether the next scheduled cycle may succeed without
  user action. Attempts are never retried within the same cycle.
- ``user_message``: short text safe to show in the queue view.
"""

from __future__ import annotations

from typing import Optional


class MarketerError(Exception):
    """Base class for all social_marketer errors."""

    is_retryable: bool = False
    kind: str = "error"

    def __init__(self, message: str = "", user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or message


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(MarketerError):
    """Missing credentials or settings. User-correctable, never retried."""

    kind = "configuration"


class NotConfiguredError(ConfigurationError):
    """Connector has no usable token or auxiliary identifier."""

    kind = "not_configured"

    def __init__(self, platform: str, detail: str = ""):
        message = f"{platform} is not configured"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.platform = platform


class MissingCredentialError(ConfigurationError):
    """No API keys stored for the platform."""

    kind = "missing_credential"

    def __init__(self, platform: str):
        super().__init__(
            f"No API credentials stored for {platform}",
            user_message=f"Add API keys first: marketer auth set-keys {platform}",
        )
        self.platform = platform


# =============================================================================
# Authentication
# =============================================================================


class AuthError(MarketerError):
    """Expired, invalid or insufficient-scope token."""

    kind = "auth"


class AuthExpiredError(AuthError):
    """Token is expired and could not be refreshed. Reauthorization required."""

    kind = "auth_expired"

    def __init__(self, platform: str, detail: str = ""):
        message = f"{platform} session expired"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(
            message,
            user_message=f"Reconnect {platform}: marketer auth connect {platform}",
        )
        self.platform = platform


class RefreshFailedError(AuthExpiredError):
    """Refresh call was rejected. Surfaces as an expired session."""

    kind = "refresh_failed"


class OAuthFlowError(AuthError):
    """Browser-redirect authorization flow failed."""

    kind = "oauth_flow"


class FlowInProgressError(OAuthFlowError):
    kind = "flow_in_progress"

    def __init__(self, platform: str):
        super().__init__(f"An authorization flow is already in progress ({platform})")
        self.platform = platform


class ListenerBindError(OAuthFlowError):
    kind = "listener_bind"

    def __init__(self, port: int, detail: str = ""):
        super().__init__(
            f"Could not bind OAuth callback listener on port {port}: {detail}".rstrip(": "),
            user_message=f"Port {port} is busy. Close the other app using it and retry.",
        )
        self.port = port


class UserDeniedOrTimedOutError(OAuthFlowError):
    kind = "denied_or_timeout"


class TokenExchangeError(OAuthFlowError):
    kind = "token_exchange"

    def __init__(self, platform: str, status: int, body: str):
        super().__init__(f"{platform} token exchange failed (HTTP {status}): {body[:300]}")
        self.platform = platform
        self.status = status
        self.body = body


# =============================================================================
# Network / remote API
# =============================================================================


class NetworkError(MarketerError):
    """Transient transport failure. Safe to retry on the next cycle."""

    is_retryable = True
    kind = "network"


class PlatformAPIError(MarketerError):
    """Remote side rejected the request. Surfaced verbatim."""

    kind = "platform_api"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message, user_message=user_message)
        self.code = code


class RateLimitedError(PlatformAPIError):
    is_retryable = True
    kind = "rate_limited"

    def __init__(self, platform: str, retry_after: Optional[float] = None):
        message = f"{platform} rate limit reached"
        if retry_after is not None:
            message = f"{message} (retry after {retry_after:.0f}s)"
        super().__init__(message, code="429")
        self.platform = platform
        self.retry_after = retry_after


class UploadFailedError(PlatformAPIError):
    """A publish stage (upload, container, publish, ...) failed."""

    kind = "upload_failed"

    def __init__(
        self,
        stage: str,
        message: str,
        code: Optional[str] = None,
        retryable: bool = False,
    ):
        super().__init__(f"[{stage}] {message}", code=code)
        self.stage = stage
        self.is_retryable = retryable


class RemoteRejectedError(PlatformAPIError):
    kind = "remote_rejected"

    def __init__(self, code: Optional[str], message: str):
        super().__init__(f"Remote rejected request ({code}): {message}", code=code)
        self.remote_message = message


# =============================================================================
# Contract / generation
# =============================================================================


class UnsupportedOperationError(MarketerError):
    """Operation is not available on this platform (e.g. text on Pinterest)."""

    kind = "unsupported"

    def __init__(self, platform: str, operation: str):
        super().__init__(f"{platform} does not support {operation}")
        self.platform = platform
        self.operation = operation


class GenerationError(MarketerError):
    """Media creation failed. Queued content is kept for the next cycle."""

    is_retryable = True
    kind = "generation"


class TriggerError(ConfigurationError):
    """The OS scheduling mechanism refused to install or remove the trigger."""

    kind = "trigger"
