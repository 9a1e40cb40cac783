"""Authentication: request signing, OAuth flows and secret storage."""

from .callback import CallbackListener, CallbackResult
from .models import Credential, OAuth1Credentials, Token
from .oauth import (
    OAUTH_CONFIGS,
    AuthFlowState,
    OAuthConfig,
    OAuthOrchestrator,
    build_authorization_url,
    get_oauth_config,
)
from .secret_store import JsonFileSecretStore, MemorySecretStore, SecretStore
from .signing import OAuth1Signer, SignedRequest, percent_encode

__all__ = [
    "AuthFlowState",
    "CallbackListener",
    "CallbackResult",
    "Credential",
    "JsonFileSecretStore",
    "MemorySecretStore",
    "OAUTH_CONFIGS",
    "OAuth1Credentials",
    "OAuth1Signer",
    "OAuthConfig",
    "OAuthOrchestrator",
    "SecretStore",
    "SignedRequest",
    "Token",
    "build_authorization_url",
    "get_oauth_config",
    "percent_encode",
]
