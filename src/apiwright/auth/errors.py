"""Exception hierarchy for authentication agents.

Provides specific exception types for different failure modes so the
OAuth2 stage loop can tell a bad token response from a transport failure.
"""

from __future__ import annotations

from apiwright.errors import ApiwrightError


class AuthError(ApiwrightError):
    """Base exception for all authentication related errors."""

    pass


class OAuth2Error(AuthError):
    """Base exception for all OAuth 2.0 related errors."""

    pass


class TokenError(OAuth2Error):
    """Raised when token operations fail."""

    pass


class MalformedTokenResponseError(TokenError):
    """Raised when the token endpoint answers without usable token fields.

    Covers a missing or non-string ``access_token``, an ``expires_in`` that
    is not a number, and bodies that are not a JSON object.
    """

    pass


class OAuth1Error(AuthError):
    """Base exception for OAuth 1.0a signing errors."""

    pass


class SignatureMethodError(OAuth1Error):
    """Raised when an unsupported OAuth 1.0a signature method is configured."""

    pass
