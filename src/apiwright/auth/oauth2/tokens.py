"""OAuth 2.0 token endpoint client.

Implements the RFC 6749 token endpoint interactions used by OAuth2Agent:
- Access token refresh (RFC 6749 Section 6)
- Client credentials grant (RFC 6749 Section 4.4)

Requests use application/x-www-form-urlencoded encoding and go through the
regular request engine, so transient failures are retried.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from apiwright.auth.errors import MalformedTokenResponseError
from apiwright.auth.oauth2.models import (
    ClientCredentialsRequest,
    OAuth2Tokens,
    RefreshTokenRequest,
    TokenResponse,
)
from apiwright.request.config import RequestConfig
from apiwright.request.engine import Request
from apiwright.request.spec import FormData
from apiwright.transport.base import Transport

logger = logging.getLogger(__name__)


class OAuth2TokenManager:
    """Exchanges grants for tokens at an OAuth 2.0 token endpoint.

    Stateless apart from the request engine it sends through; the token
    state itself lives in the agent's OAuth2Params.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        request: Request | None = None,
    ):
        """Initialize the token manager.

        Args:
            transport: Transport for token requests (ignored if request is given)
            request: Fully configured engine to send token requests through
        """
        if request is None:
            # The token endpoint is called without auth, so 401/403 mean bad
            # client credentials and must not be retried.
            overrides: dict[str, Any] = {"auth_invalidate_status_codes": frozenset()}
            if transport is not None:
                overrides["transport"] = transport
            request = Request(RequestConfig(**overrides))
        self._request = request

    async def refresh_access_token(self, refresh_request: RefreshTokenRequest) -> OAuth2Tokens:
        """Refresh an access token using a refresh token.

        Raises:
            RequestError: If the token endpoint cannot be reached or rejects the grant
            MalformedTokenResponseError: If the response lacks usable tokens
        """
        logger.debug(f"Refreshing access token at {refresh_request.token_url}")
        return await self._request_tokens(
            refresh_request.token_url, refresh_request.to_form_data()
        )

    async def request_client_credentials_token(
        self, credentials_request: ClientCredentialsRequest
    ) -> OAuth2Tokens:
        """Obtain an access token with the client credentials grant.

        Raises:
            RequestError: If the token endpoint cannot be reached or rejects the grant
            MalformedTokenResponseError: If the response lacks usable tokens
        """
        logger.debug(
            f"Requesting client credentials token at {credentials_request.token_url}"
        )
        return await self._request_tokens(
            credentials_request.token_url, credentials_request.to_form_data()
        )

    async def _request_tokens(self, token_url: str, form_data: dict[str, str]) -> OAuth2Tokens:
        # Log request details (without secrets)
        logger.debug(
            f"Token request: grant_type={form_data['grant_type']}, "
            f"client_id={form_data['client_id']}"
        )

        response = await self._request.send(
            "post",
            token_url,
            body=FormData.from_pairs(form_data),
            headers={"accept": "application/json"},
        )
        tokens = self._parse_token_response(response)

        logger.info("Token exchange successful")
        return tokens

    @staticmethod
    def _parse_token_response(response: httpx.Response) -> OAuth2Tokens:
        """Decode a 2xx token endpoint response.

        Raises:
            MalformedTokenResponseError: If the body is not a JSON object with
                a string ``access_token`` and a numeric ``expires_in`` (if any)
        """
        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedTokenResponseError(
                f"Token response is not valid JSON: {e}"
            ) from e

        try:
            token_response = TokenResponse.model_validate(payload)
        except ValidationError as e:
            raise MalformedTokenResponseError(f"Invalid token response format: {e}") from e

        return token_response.to_tokens()

    async def close(self) -> None:
        await self._request.close()
