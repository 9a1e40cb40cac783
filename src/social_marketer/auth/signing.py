"""OAuth 1.0a HMAC-SHA1 request signing.

Used by connectors that authenticate with static four-key credentials
(consumer key/secret + access token/secret). Signing has no network or
storage side effects; the only inputs beyond the request are the clock and
the nonce source.

Reference: RFC 5849 section 3.4.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional
from urllib.parse import parse_qsl, quote, urlsplit, urlunsplit

from .models import OAuth1Credentials

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# RFC 3986 unreserved characters, everything else is escaped
_UNRESERVED = "-._~"


def percent_encode(value: object) -> str:
    """Percent-encode a value as required for OAuth 1.0a signatures."""
    return quote(str(value).encode("utf-8"), safe=_UNRESERVED)


def _normalized_url(url: str) -> tuple[str, list[tuple[str, str]]]:
    """Split URL into base string URI and its query parameters."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    netloc = parts.netloc.lower()
    if (scheme == "https" and netloc.endswith(":443")) or (
        scheme == "http" and netloc.endswith(":80")
    ):
        netloc = netloc.rsplit(":", 1)[0]
    base = urlunsplit((scheme, netloc, parts.path or "/", "", ""))
    query = parse_qsl(parts.query, keep_blank_values=True)
    return base, query


@dataclass(frozen=True)
class SignedRequest:
    """Result of signing: the Authorization header plus the OAuth values used."""

    method: str
    url: str
    headers: dict[str, str]
    oauth_params: dict[str, str] = field(default_factory=dict)
    base_string: str = ""

    @property
    def authorization(self) -> str:
        return self.headers["Authorization"]


class OAuth1Signer:
    """Sign HTTP requests with HMAC-SHA1.

    Usage:
        signer = OAuth1Signer(credentials)
        signed = signer.sign("POST", "https://api.twitter.com/2/tweets")
        headers = {**signed.headers, "Content-Type": "application/json"}
    """

    SIGNATURE_METHOD = "HMAC-SHA1"
    VERSION = "1.0"

    def __init__(
        self,
        credentials: OAuth1Credentials,
        clock: Callable[[], float] = time.time,
        nonce_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        self.credentials = credentials
        self._clock = clock
        self._nonce_factory = nonce_factory

    def _oauth_params(self) -> dict[str, str]:
        return {
            "oauth_consumer_key": self.credentials.consumer_key,
            "oauth_nonce": self._nonce_factory(),
            "oauth_signature_method": self.SIGNATURE_METHOD,
            "oauth_timestamp": str(int(self._clock())),
            "oauth_token": self.credentials.access_token,
            "oauth_version": self.VERSION,
        }

    @staticmethod
    def parameter_string(params: list[tuple[str, str]]) -> str:
        """Encode, sort by key then value, and join parameters."""
        encoded = sorted((percent_encode(k), percent_encode(v)) for k, v in params)
        return "&".join(f"{k}={v}" for k, v in encoded)

    def base_string(
        self,
        method: str,
        url: str,
        params: list[tuple[str, str]],
    ) -> str:
        base_url, query = _normalized_url(url)
        param_string = self.parameter_string(query + params)
        return "&".join([
            method.upper(),
            percent_encode(base_url),
            percent_encode(param_string),
        ])

    def signing_key(self) -> str:
        return (
            f"{percent_encode(self.credentials.consumer_secret)}"
            f"&{percent_encode(self.credentials.access_token_secret)}"
        )

    def signature(self, base_string: str) -> str:
        digest = hmac.new(
            self.signing_key().encode("utf-8"),
            base_string.encode("utf-8"),
            hashlib.sha1,
        ).digest()
        return base64.b64encode(digest).decode("ascii")

    def sign(
        self,
        method: str,
        url: str,
        params: Optional[Mapping[str, str]] = None,
        body: Optional[Mapping[str, str]] = None,
        content_type: Optional[str] = None,
    ) -> SignedRequest:
        """Sign a request.

        Args:
            method: HTTP method.
            url: Full URL, query parameters included in the signature.
            params: Extra query parameters not already in ``url``.
            body: Form fields. Signed only for form-urlencoded bodies.
            content_type: Body content type.

        Returns:
            SignedRequest whose headers carry the ``OAuth`` Authorization value.
        """
        oauth_params = self._oauth_params()

        collected: list[tuple[str, str]] = list(oauth_params.items())
        if params:
            collected.extend((k, str(v)) for k, v in params.items())
        if body and content_type and content_type.split(";")[0].strip() == FORM_CONTENT_TYPE:
            collected.extend((k, str(v)) for k, v in body.items())

        base = self.base_string(method, url, collected)
        oauth_params["oauth_signature"] = self.signature(base)

        header = "OAuth " + ", ".join(
            f'{percent_encode(k)}="{percent_encode(v)}"'
            for k, v in sorted(oauth_params.items())
        )
        return SignedRequest(
            method=method.upper(),
            url=url,
            headers={"Authorization": header},
            oauth_params=oauth_params,
            base_string=base,
        )
