"""OAuth 1.0a request signing (RFC 5849).

Computes a signed ``Authorization: OAuth ...`` header for every request.
Supports HMAC-SHA1, HMAC-SHA256, RSA-SHA1 and PLAINTEXT signatures and the
OAuth body hash extension for non-form bodies.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import time
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import quote

import httpx
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from apiwright.auth.base import AuthAgent, AuthContext
from apiwright.auth.errors import OAuth1Error, SignatureMethodError
from apiwright.request.spec import FormData


class OAuth1SignatureMethod(str, Enum):
    HMAC_SHA1 = "HMAC-SHA1"
    HMAC_SHA256 = "HMAC-SHA256"
    RSA_SHA1 = "RSA-SHA1"
    PLAINTEXT = "PLAINTEXT"


@dataclass
class OAuth1Params:
    """Long-lived OAuth 1.0a credentials and signing options.

    ``timestamp`` and ``nonce`` are generated per request unless fixed
    here. ``private_key`` is a PEM encoded RSA key, used by RSA-SHA1 only.
    """

    consumer_key: str
    consumer_secret: str
    signature_method: OAuth1SignatureMethod | str
    token_key: str | None = None
    token_secret: str | None = None
    private_key: str | None = None
    version: str | None = "1.0"
    realm: str | None = None
    callback: str | None = None
    verifier: str | None = None
    timestamp: str | None = None
    nonce: str | None = None
    include_body_hash: bool = False


def percent_encode(value: str) -> str:
    """RFC 5849 Section 3.6 encoding: everything but unreserved characters."""
    return quote(value, safe="~")


class OAuth1Agent(AuthAgent):
    """Signs every request with OAuth 1.0a.

    Credentials are long-lived keys, so ``invalidate`` does nothing.
    """

    def __init__(self, params: OAuth1Params):
        self.params = params

    async def get_header(self, context: AuthContext | None = None) -> str | None:
        """Build the ``OAuth ...`` header for the request in ``context``.

        Raises:
            SignatureMethodError: If the configured signature method is unknown
            OAuth1Error: If RSA-SHA1 is used without a private key
        """
        if context is None:
            raise OAuth1Error("OAuth1 signing requires the request URL and method")

        method = self._signature_method()
        oauth_params = self._oauth_params(method)
        extra_params: list[tuple[str, str]] = []

        if self.params.include_body_hash:
            if isinstance(context.body, FormData):
                extra_params.extend(context.body)
            else:
                oauth_params["oauth_body_hash"] = self._body_hash(method, context.body)

        base_string = signature_base_string(
            context.method, context.url, [*oauth_params.items(), *extra_params]
        )
        oauth_params["oauth_signature"] = self._sign(method, base_string)

        return self._to_header(oauth_params)

    def invalidate(self) -> None:
        pass

    def _signature_method(self) -> OAuth1SignatureMethod:
        try:
            return OAuth1SignatureMethod(self.params.signature_method)
        except ValueError as e:
            raise SignatureMethodError(
                f"Invalid signature method {self.params.signature_method}"
            ) from e

    def _oauth_params(self, method: OAuth1SignatureMethod) -> dict[str, str]:
        params = self.params
        oauth_params = {
            "oauth_consumer_key": params.consumer_key,
            "oauth_nonce": params.nonce or secrets.token_hex(16),
            "oauth_signature_method": method.value,
            "oauth_timestamp": params.timestamp or str(int(time.time())),
        }
        optional = {
            "oauth_version": params.version,
            "oauth_token": params.token_key,
            "oauth_callback": params.callback,
            "oauth_verifier": params.verifier,
        }
        oauth_params.update({k: v for k, v in optional.items() if v is not None})
        return oauth_params

    def _signing_key(self) -> str:
        return (
            f"{percent_encode(self.params.consumer_secret)}"
            f"&{percent_encode(self.params.token_secret or '')}"
        )

    def _sign(self, method: OAuth1SignatureMethod, base_string: str) -> str:
        if method is OAuth1SignatureMethod.PLAINTEXT:
            return self._signing_key()

        if method is OAuth1SignatureMethod.RSA_SHA1:
            signature = self._load_private_key().sign(
                base_string.encode("utf-8"), padding.PKCS1v15(), hashes.SHA1()
            )
            return base64.b64encode(signature).decode("ascii")

        digest = hashlib.sha256 if method is OAuth1SignatureMethod.HMAC_SHA256 else hashlib.sha1
        signature = hmac.new(
            self._signing_key().encode("utf-8"), base_string.encode("utf-8"), digest
        ).digest()
        return base64.b64encode(signature).decode("ascii")

    def _load_private_key(self) -> rsa.RSAPrivateKey:
        if not self.params.private_key:
            raise OAuth1Error("RSA-SHA1 signature method requires a private key")
        try:
            key = serialization.load_pem_private_key(
                self.params.private_key.encode("utf-8"), password=None
            )
        except ValueError as e:
            raise OAuth1Error(f"Invalid RSA private key: {e}") from e
        if not isinstance(key, rsa.RSAPrivateKey):
            raise OAuth1Error("RSA-SHA1 signature method requires an RSA private key")
        return key

    @staticmethod
    def _body_hash(method: OAuth1SignatureMethod, body: Any) -> str:
        if body is None:
            raw = b""
        elif isinstance(body, bytes):
            raw = body
        elif isinstance(body, str):
            raw = body.encode("utf-8")
        else:
            raw = json.dumps(body).encode("utf-8")
        digest = hashlib.sha256 if method is OAuth1SignatureMethod.HMAC_SHA256 else hashlib.sha1
        return base64.b64encode(digest(raw).digest()).decode("ascii")

    def _to_header(self, oauth_params: dict[str, str]) -> str:
        parts = []
        if self.params.realm is not None:
            parts.append(f'realm="{percent_encode(self.params.realm)}"')
        parts.extend(
            f'{percent_encode(k)}="{percent_encode(v)}"'
            for k, v in sorted(oauth_params.items())
        )
        return "OAuth " + ", ".join(parts)


def signature_base_string(
    method: str, url: str, params: Iterable[tuple[str, str]]
) -> str:
    """Build the signature base string (RFC 5849 Section 3.4.1).

    ``params`` are the protocol and body parameters; query parameters are
    taken from ``url``.
    """
    parsed = httpx.URL(url)
    all_params = [*parsed.params.multi_items(), *params]
    normalized = "&".join(
        f"{k}={v}"
        for k, v in sorted(
            (percent_encode(str(k)), percent_encode(str(v))) for k, v in all_params
        )
    )
    return "&".join(
        [
            percent_encode(method.upper()),
            percent_encode(base_string_uri(parsed)),
            percent_encode(normalized),
        ]
    )


def base_string_uri(url: httpx.URL) -> str:
    """Scheme, host, non-default port and path, without query (Section 3.4.1.2)."""
    path = url.raw_path.decode("ascii").split("?", 1)[0] or "/"
    authority = url.host.lower()
    if url.port is not None:
        authority = f"{authority}:{url.port}"
    return f"{url.scheme.lower()}://{authority}{path}"
