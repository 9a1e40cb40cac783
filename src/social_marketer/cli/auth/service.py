"""Stateless service for credentials, connections and token status."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ...auth.models import Credential, OAuth1Credentials
from ...auth.secret_store import credential_key
from ...errors import MarketerError
from ...platforms.types import PlatformType
from ...services import Services
from ..core.types import Failure, Result, Success

# Platforms that accept a pasted bearer token instead of a browser flow
PASTE_TOKEN_PLATFORMS = (PlatformType.FACEBOOK,)


@dataclass(frozen=True)
class ConnectResult:
    platform: PlatformType
    token_status: str
    setup: Optional[str] = None


@dataclass(frozen=True)
class PlatformStatus:
    """One row of the auth status table."""

    platform: PlatformType
    enabled: bool
    has_keys: bool
    token_status: str
    configured: bool


def set_keys(
    services: Services,
    platform: PlatformType,
    client_id: str,
    client_secret: Optional[str],
) -> Result[PlatformType]:
    if platform.capabilities.uses_static_signing:
        return Failure(f"{platform.display_name} uses set-twitter-keys")
    if not client_id.strip():
        return Failure("Client ID cannot be empty")
    services.oauth.save_credential(
        Credential(
            platform=platform.value,
            client_id=client_id.strip(),
            client_secret=client_secret.strip() if client_secret else None,
        )
    )
    return Success(platform)


def set_twitter_keys(
    services: Services,
    consumer_key: str,
    consumer_secret: str,
    access_token: str,
    access_token_secret: str,
) -> Result[PlatformType]:
    keys = [consumer_key, consumer_secret, access_token, access_token_secret]
    if not all(k.strip() for k in keys):
        return Failure("All four keys are required")
    services.oauth.save_oauth1_credentials(
        OAuth1Credentials(
            consumer_key=consumer_key.strip(),
            consumer_secret=consumer_secret.strip(),
            access_token=access_token.strip(),
            access_token_secret=access_token_secret.strip(),
        )
    )
    return Success(PlatformType.TWITTER)


async def connect(services: Services, platform: PlatformType) -> Result[ConnectResult]:
    """Run the browser flow, then discover the platform's sub-resource."""
    if platform.capabilities.uses_static_signing:
        return Failure(f"{platform.display_name} is connected with set-twitter-keys")
    try:
        await services.oauth.authorize(platform.value)
        setup = await services.connectors[platform].complete_setup()
    except MarketerError as e:
        return Failure(e.user_message, {"kind": e.kind})
    return Success(ConnectResult(platform, services.oauth.token_status(platform.value), setup))


async def paste_token(
    services: Services,
    platform: PlatformType,
    access_token: str,
    expires_in: Optional[int] = None,
) -> Result[ConnectResult]:
    """Store a pasted token, then discover the platform's sub-resource."""
    if platform not in PASTE_TOKEN_PLATFORMS:
        names = ", ".join(p.value for p in PASTE_TOKEN_PLATFORMS)
        return Failure(f"Pasted tokens are only accepted for: {names}")
    if not access_token.strip():
        return Failure("Token cannot be empty")
    try:
        services.oauth.save_manual_token(platform.value, access_token, expires_in)
        setup = await services.connectors[platform].complete_setup()
    except MarketerError as e:
        return Failure(e.user_message, {"kind": e.kind})
    return Success(ConnectResult(platform, services.oauth.token_status(platform.value), setup))


def disconnect(services: Services, platform: PlatformType, forget_keys: bool = False) -> Result[PlatformType]:
    if forget_keys:
        services.oauth.remove_credential(platform.value)
    else:
        services.oauth.disconnect(platform.value)
    return Success(platform)


async def platform_statuses(services: Services) -> list[PlatformStatus]:
    enabled = set(services.config.enabled_platforms())
    statuses = []
    for platform in PlatformType:
        connector = services.connectors.get(platform)
        if platform.capabilities.uses_static_signing:
            has_keys = services.oauth.get_oauth1_credentials() is not None
            token_status = "signed requests" if has_keys else "not connected"
        else:
            has_keys = services.secrets.exists(credential_key(platform.value))
            token_status = services.oauth.token_status(platform.value)
        statuses.append(
            PlatformStatus(
                platform=platform,
                enabled=platform in enabled,
                has_keys=has_keys,
                token_status=token_status,
                configured=connector is not None and await connector.is_configured(),
            )
        )
    return statuses
