"""Token state and token endpoint models for OAuth 2.0.

Contains the mutable token state owned by an OAuth2Agent, the immutable
grant requests sent to the token endpoint and token response decoding.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr, model_validator


def now_ms() -> float:
    """Current time in epoch milliseconds."""
    return time.time() * 1000


class OAuth2GrantType(str, Enum):
    CLIENT_CREDENTIALS = "client_credentials"
    REFRESH_TOKEN = "refresh_token"
    AUTHORIZATION_CODE = "authorization_code"
    PASSWORD = "password"


@dataclass
class OAuth2Params:
    """Mutable client configuration and token state.

    Owned by exactly one OAuth2Agent. ``access_token`` and ``expires_at``
    (epoch milliseconds) always change together.
    """

    client_id: str
    token_url: str
    client_secret: str | None = None
    refresh_token: str | None = None
    access_token: str | None = None
    expires_at: float | None = None
    min_validity_seconds: float = 5 * 60

    def has_valid_access_token(self, now: float | None = None) -> bool:
        """Check if the cached access token can still be used.

        A token without ``expires_at`` never expires. Otherwise it must stay
        valid for at least ``min_validity_seconds`` more.
        """
        if not self.access_token:
            return False
        if self.expires_at is None:
            return True
        now = now_ms() if now is None else now
        return self.expires_at - self.min_validity_seconds * 1000 > now

    def clear_access_token(self) -> None:
        self.access_token = None
        self.expires_at = None


@dataclass(frozen=True)
class OAuth2Tokens:
    """Tokens obtained from one successful token endpoint call."""

    access_token: str
    access_expires_in: float | None = None
    refresh_token: str | None = None


@dataclass(frozen=True)
class RefreshTokenRequest:
    """Refresh token grant parameters (RFC 6749 Section 6)."""

    token_url: str
    client_id: str
    refresh_token: str
    client_secret: str | None = None

    def to_form_data(self) -> dict[str, str]:
        data = {
            "grant_type": OAuth2GrantType.REFRESH_TOKEN.value,
            "client_id": self.client_id,
            "refresh_token": self.refresh_token,
        }
        if self.client_secret:
            data["client_secret"] = self.client_secret
        return data


@dataclass(frozen=True)
class ClientCredentialsRequest:
    """Client credentials grant parameters (RFC 6749 Section 4.4)."""

    token_url: str
    client_id: str
    client_secret: str

    def to_form_data(self) -> dict[str, str]:
        return {
            "grant_type": OAuth2GrantType.CLIENT_CREDENTIALS.value,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }


class TokenResponse(BaseModel):
    """Successful token endpoint response (RFC 6749 Section 5.1).

    Strict types: ``access_token`` must be a JSON string and ``expires_in``
    a JSON number. Unknown fields are kept.
    """

    model_config = ConfigDict(extra="allow")

    access_token: StrictStr
    expires_in: StrictInt | StrictFloat | None = None
    refresh_token: StrictStr | None = None

    @model_validator(mode="after")
    def _reject_null_expires_in(self) -> TokenResponse:
        if "expires_in" in self.model_fields_set and self.expires_in is None:
            raise ValueError("expires_in must be a number when present")
        return self

    def to_tokens(self) -> OAuth2Tokens:
        return OAuth2Tokens(
            access_token=self.access_token,
            access_expires_in=self.expires_in,
            refresh_token=self.refresh_token,
        )

