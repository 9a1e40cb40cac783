"""OAuth 2.0 authorization-code flows, token persistence and refresh.

One ``OAuthOrchestrator`` is constructed at startup and shared by the CLI,
the connectors and the scheduler. It owns:

- building platform authorization URLs (PKCE where required),
- the localhost callback listener (one flow per process),
- exchanging codes for tokens and persisting them in the secret store,
- refreshing tokens before use, single-flight per platform.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
import secrets
import uuid
import webbrowser
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlencode

import httpx

from ..errors import (
    AuthExpiredError,
    FlowInProgressError,
    MissingCredentialError,
    NetworkError,
    RefreshFailedError,
    TokenExchangeError,
    UserDeniedOrTimedOutError,
)
from ..http import DEFAULT_TIMEOUT, client_session
from .callback import CallbackListener
from .models import Credential, OAuth1Credentials, Token, utcnow
from .secret_store import (
    AUXILIARY_KEYS,
    TWITTER_OAUTH1_KEY,
    SecretStore,
    credential_key,
    token_key,
)

_logger = logging.getLogger("oauth")

DEFAULT_CALLBACK_PORT = 8989
DEFAULT_FLOW_TIMEOUT = 300.0
# Refresh tokens this close to expiry
REFRESH_MARGIN_SECONDS = 300


class AuthFlowState(str, Enum):
    """State of the current authorization attempt."""

    NOT_STARTED = "not_started"
    LISTENER_STARTED = "listener_started"
    CODE_RECEIVED = "code_received"
    EXCHANGING = "exchanging"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class OAuthConfig:
    """Static OAuth endpoints and options for one platform."""

    platform: str
    auth_url: str
    token_url: str
    scopes: tuple[str, ...]
    use_pkce: bool = False
    # "body" sends client_id/secret as form fields, "basic" uses HTTP Basic
    client_auth: str = "body"
    scope_separator: str = " "
    client_id_param: str = "client_id"
    extra_auth_params: dict[str, str] = field(default_factory=dict)


OAUTH_CONFIGS: dict[str, OAuthConfig] = {
    "linkedin": OAuthConfig(
        platform="linkedin",
        auth_url="https://www.linkedin.com/oauth/v2/authorization",
        token_url="https://www.linkedin.com/oauth/v2/accessToken",
        scopes=("openid", "profile", "w_member_social"),
    ),
    "facebook": OAuthConfig(
        platform="facebook",
        auth_url="https://www.facebook.com/v24.0/dialog/oauth",
        token_url="https://graph.facebook.com/v24.0/oauth/access_token",
        scopes=("pages_show_list", "pages_manage_posts", "pages_read_engagement", "business_management"),
    ),
    "instagram": OAuthConfig(
        platform="instagram",
        auth_url="https://www.facebook.com/v24.0/dialog/oauth",
        token_url="https://graph.facebook.com/v24.0/oauth/access_token",
        scopes=(
            "instagram_basic",
            "instagram_content_publish",
            "pages_show_list",
            "pages_read_engagement",
            "business_management",
        ),
    ),
    "pinterest": OAuthConfig(
        platform="pinterest",
        auth_url="https://www.pinterest.com/oauth/",
        token_url="https://api.pinterest.com/v5/oauth/token",
        scopes=("boards:read", "boards:write", "pins:read", "pins:write"),
        client_auth="basic",
    ),
    "youtube": OAuthConfig(
        platform="youtube",
        auth_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        scopes=("https://www.googleapis.com/auth/youtube.upload",),
        extra_auth_params={"access_type": "offline"},
    ),
    "tiktok": OAuthConfig(
        platform="tiktok",
        auth_url="https://www.tiktok.com/v2/auth/authorize/",
        token_url="https://open.tiktokapis.com/v2/oauth/token/",
        scopes=("user.info.basic", "video.upload", "video.publish"),
        use_pkce=True,
        scope_separator=",",
        client_id_param="client_key",
    ),
}


def get_oauth_config(platform: str) -> OAuthConfig:
    try:
        return OAUTH_CONFIGS[platform]
    except KeyError:
        raise ValueError(f"No OAuth configuration for {platform}") from None


@dataclass(frozen=True)
class PKCEPair:
    verifier: str
    challenge: str

    @classmethod
    def generate(cls) -> "PKCEPair":
        verifier = base64.urlsafe_b64encode(secrets.token_bytes(32)).rstrip(b"=").decode("ascii")
        digest = hashlib.sha256(verifier.encode("ascii")).digest()
        challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
        return cls(verifier=verifier, challenge=challenge)


def build_authorization_url(
    config: OAuthConfig,
    client_id: str,
    redirect_uri: str,
    state: str,
    code_challenge: Optional[str] = None,
) -> str:
    """Build the browser URL that starts an authorization flow."""
    params = {
        "response_type": "code",
        config.client_id_param: client_id,
        "redirect_uri": redirect_uri,
        "scope": config.scope_separator.join(config.scopes),
        "state": state,
    }
    if config.use_pkce and code_challenge:
        params["code_challenge"] = code_challenge
        params["code_challenge_method"] = "S256"
    if redirect_uri.startswith(("http://localhost", "http://127.0.0.1")):
        # Force re-consent so every requested scope is granted again
        params["prompt"] = "consent"
    params.update(config.extra_auth_params)
    return f"{config.auth_url}?{urlencode(params)}"


class OAuthOrchestrator:
    """Runs authorization flows and hands out valid tokens.

    Usage:
        oauth = OAuthOrchestrator(secret_store)
        oauth.save_credential(Credential(platform="linkedin", client_id=..., client_secret=...))
        token = await oauth.authorize("linkedin")

        # Later, before each publish call
        token = await oauth.get_valid_token("linkedin")
    """

    def __init__(
        self,
        secret_store: SecretStore,
        http_client: Optional[httpx.AsyncClient] = None,
        open_browser: Callable[[str], object] = webbrowser.open,
        callback_port: int = DEFAULT_CALLBACK_PORT,
        flow_timeout: float = DEFAULT_FLOW_TIMEOUT,
        http_timeout: float = DEFAULT_TIMEOUT,
    ):
        self.store = secret_store
        self._http = http_client
        self._open_browser = open_browser
        self.callback_port = callback_port
        self.flow_timeout = flow_timeout
        self.http_timeout = http_timeout

        self._state = AuthFlowState.NOT_STARTED
        self._active_platform: Optional[str] = None
        self._refreshing: dict[str, asyncio.Future[Token]] = {}
        self._refresh_count = 0

    @property
    def state(self) -> AuthFlowState:
        return self._state

    @property
    def flow_in_progress(self) -> bool:
        return self._active_platform is not None

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.callback_port}/oauth/callback"

    # =========================================================================
    # Credentials and tokens
    # =========================================================================

    def save_credential(self, credential: Credential) -> None:
        self.store.set_model(credential_key(credential.platform), credential)

    def get_credential(self, platform: str) -> Credential:
        credential = self.store.get_model(credential_key(platform), Credential)
        if credential is None or not credential.client_id:
            raise MissingCredentialError(platform)
        return credential

    def save_oauth1_credentials(self, credentials: OAuth1Credentials) -> None:
        self.store.set_model(TWITTER_OAUTH1_KEY, credentials)

    def get_oauth1_credentials(self) -> Optional[OAuth1Credentials]:
        return self.store.get_model(TWITTER_OAUTH1_KEY, OAuth1Credentials)

    def get_token(self, platform: str) -> Optional[Token]:
        return self.store.get_model(token_key(platform), Token)

    def save_token(self, token: Token, refresh_attempted: bool = False) -> None:
        """Persist a token.

        Raises:
            AuthExpiredError: Token is already expired and no refresh was
                attempted for it.
        """
        if token.is_expired() and not refresh_attempted:
            raise AuthExpiredError(token.platform, "refusing to store an expired token")
        self.store.set_model(token_key(token.platform), token)
        _logger.info(f"Token saved for {token.platform} (expires: {token.expires_at or 'never'})")

    def save_manual_token(
        self,
        platform: str,
        access_token: str,
        expires_in: Optional[int] = None,
    ) -> Token:
        """Store a bearer token pasted by the user instead of running a flow."""
        data: dict[str, object] = {"access_token": access_token.strip()}
        if expires_in:
            data["expires_in"] = expires_in
        token = Token.from_response(platform, data)
        self.save_token(token)
        return token

    def disconnect(self, platform: str) -> None:
        """Remove the platform's token and discovered identifiers.

        API keys are kept so the user can reconnect without re-entering them.
        """
        self.store.delete(token_key(platform))
        for key in AUXILIARY_KEYS.get(platform, ()):
            self.store.delete(key)
        _logger.info(f"Disconnected {platform}")

    def remove_credential(self, platform: str) -> None:
        self.disconnect(platform)
        self.store.delete(credential_key(platform))

    # =========================================================================
    # Authorization flow
    # =========================================================================

    async def authorize(self, platform: str) -> Token:
        """Run the browser-redirect flow for a platform and persist the token.

        Raises:
            MissingCredentialError: No API keys stored.
            FlowInProgressError: Another flow holds the callback listener.
            ListenerBindError: The callback port is not free.
            UserDeniedOrTimedOutError: User denied or never came back.
            TokenExchangeError: Token endpoint rejected the code.
        """
        if self._active_platform is not None:
            raise FlowInProgressError(self._active_platform)

        config = get_oauth_config(platform)
        credential = self.get_credential(platform)

        self._active_platform = platform
        self._state = AuthFlowState.NOT_STARTED
        try:
            token = await self._run_flow(config, credential)
        except Exception:
            self._state = AuthFlowState.FAILED
            raise
        finally:
            self._active_platform = None

        self._state = AuthFlowState.COMPLETED
        return token

    async def _run_flow(self, config: OAuthConfig, credential: Credential) -> Token:
        pkce = PKCEPair.generate() if config.use_pkce else None
        state = uuid.uuid4().hex

        async with CallbackListener(port=self.callback_port) as listener:
            self._state = AuthFlowState.LISTENER_STARTED
            url = build_authorization_url(
                config,
                credential.client_id,
                listener.redirect_uri,
                state,
                code_challenge=pkce.challenge if pkce else None,
            )
            _logger.info(f"Starting {config.platform} authorization (state={state[:8]}...)")
            self._open_browser(url)

            result = await listener.wait(self.flow_timeout)

        if result.error:
            detail = result.error_description or result.error
            raise UserDeniedOrTimedOutError(f"{config.platform} authorization denied: {detail}")
        if result.state != state:
            raise UserDeniedOrTimedOutError(f"{config.platform} callback state mismatch")
        if not result.code:
            raise UserDeniedOrTimedOutError(f"{config.platform} callback carried no code")

        self._state = AuthFlowState.CODE_RECEIVED
        _logger.info(f"{config.platform} authorization code received")

        self._state = AuthFlowState.EXCHANGING
        token = await self.exchange_code(
            config,
            credential,
            result.code,
            listener.redirect_uri,
            code_verifier=pkce.verifier if pkce else None,
        )
        self.save_token(token)
        return token

    def _client_auth(
        self,
        config: OAuthConfig,
        credential: Credential,
        form: dict[str, str],
    ) -> Optional[httpx.BasicAuth]:
        if config.client_auth == "basic":
            return httpx.BasicAuth(credential.client_id, credential.client_secret or "")
        form[config.client_id_param] = credential.client_id
        if credential.client_secret:
            form["client_secret"] = credential.client_secret
        return None

    async def _post_token_endpoint(
        self,
        config: OAuthConfig,
        form: dict[str, str],
        auth: Optional[httpx.BasicAuth],
    ) -> httpx.Response:
        try:
            async with client_session(self._http, self.http_timeout) as client:
                return await client.post(
                    config.token_url,
                    data=form,
                    auth=auth,
                    headers={"Accept": "application/json"},
                )
        except httpx.TimeoutException as e:
            raise NetworkError(f"{config.platform} token endpoint timed out") from e
        except httpx.TransportError as e:
            raise NetworkError(f"{config.platform} token endpoint unreachable: {e}") from e

    async def exchange_code(
        self,
        config: OAuthConfig,
        credential: Credential,
        code: str,
        redirect_uri: str,
        code_verifier: Optional[str] = None,
    ) -> Token:
        """Exchange an authorization code for a token."""
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        }
        auth = self._client_auth(config, credential, form)
        if config.use_pkce and code_verifier:
            form["code_verifier"] = code_verifier

        response = await self._post_token_endpoint(config, form, auth)
        if not response.is_success:
            _logger.error(f"{config.platform} token exchange failed: HTTP {response.status_code}")
            raise TokenExchangeError(config.platform, response.status_code, response.text)

        token = Token.from_response(config.platform, response.json())
        _logger.info(f"{config.platform} token exchange succeeded")
        return token

    # =========================================================================
    # Refresh
    # =========================================================================

    @property
    def refresh_count(self) -> int:
        """Number of outbound refresh calls made by this instance."""
        return self._refresh_count

    async def get_valid_token(self, platform: str) -> Token:
        """Return a usable token, refreshing it first if it is (nearly) expired.

        Raises:
            AuthExpiredError: No token, or expired with nothing to refresh
                it with.
            RefreshFailedError: Refresh was rejected.
        """
        token = self.get_token(platform)
        if token is None:
            raise AuthExpiredError(platform, "no token stored")

        if not token.expires_within(REFRESH_MARGIN_SECONDS):
            return token

        if not token.can_refresh:
            if token.is_expired():
                raise AuthExpiredError(platform)
            # Near expiry but not refreshable, still usable for now
            return token

        return await self.refresh(platform)

    async def refresh(self, platform: str) -> Token:
        """Refresh a platform token. Concurrent callers share one refresh call."""
        pending = self._refreshing.get(platform)
        if pending is None:
            pending = asyncio.ensure_future(self._refresh(platform))
            self._refreshing[platform] = pending
            pending.add_done_callback(lambda _: self._refreshing.pop(platform, None))
        return await asyncio.shield(pending)

    async def _refresh(self, platform: str) -> Token:
        current = self.get_token(platform)
        if current is None or not current.refresh_token:
            raise AuthExpiredError(platform, "no refresh token")

        config = get_oauth_config(platform)
        credential = self.get_credential(platform)

        form = {
            "grant_type": "refresh_token",
            "refresh_token": current.refresh_token,
        }
        auth = self._client_auth(config, credential, form)

        self._refresh_count += 1
        _logger.info(f"Refreshing {platform} token")
        response = await self._post_token_endpoint(config, form, auth)
        if not response.is_success:
            _logger.error(f"{platform} token refresh failed: HTTP {response.status_code}")
            raise RefreshFailedError(platform, f"HTTP {response.status_code}: {response.text[:200]}")

        data = response.json()
        refreshed = Token.from_response(platform, data)
        if not refreshed.refresh_token:
            # Providers may omit the refresh token when it is unchanged
            refreshed = refreshed.model_copy(update={"refresh_token": current.refresh_token})
        if refreshed.id_token is None and current.id_token:
            refreshed = refreshed.model_copy(update={"id_token": current.id_token})

        self.save_token(refreshed, refresh_attempted=True)
        return refreshed

    def token_status(self, platform: str) -> str:
        """Short human-readable token status for the CLI."""
        token = self.get_token(platform)
        if token is None:
            return "not connected"
        if token.expires_at is None:
            return "connected"
        remaining = token.expires_at - utcnow()
        if remaining.total_seconds() <= 0:
            return "expired (refreshable)" if token.can_refresh else "expired"
        hours = int(remaining.total_seconds() // 3600)
        if hours >= 48:
            return f"connected ({hours // 24} days left)"
        return f"connected ({hours} hours left)"
