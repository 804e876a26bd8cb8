"""OAuth 2.0 authentication agent.

Produces ``Bearer <token>`` headers while calling the token endpoint as
rarely as possible. Each ``get_header`` call walks three stages and stops
at the first one that yields a token:

1. Cached access token, if it stays valid for ``min_validity_seconds``
2. Refresh token grant, if a refresh token is known
3. Client credentials grant, if a client secret is known

A stage that fails invalidates the cached token and hands over to the next
stage. When every stage comes up empty no header is sent.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from apiwright.auth.base import AuthAgent, AuthContext
from apiwright.auth.oauth2.models import (
    ClientCredentialsRequest,
    OAuth2Params,
    OAuth2Tokens,
    RefreshTokenRequest,
    now_ms,
)
from apiwright.auth.oauth2.tokens import OAuth2TokenManager
from apiwright.transport.base import Transport

logger = logging.getLogger(__name__)


class OAuth2Agent(AuthAgent):
    """Authentication agent backed by an OAuth 2.0 token endpoint.

    The agent exclusively owns ``params``; outside code should only change
    tokens through ``set_tokens`` and ``invalidate``.

    Concurrent ``get_header`` calls may race and each call the token
    endpoint; every update still leaves ``params`` self-consistent. Pass
    ``serialize_refresh=True`` to make concurrent callers wait for a single
    in-flight refresh instead.
    """

    def __init__(
        self,
        params: OAuth2Params,
        *,
        transport: Transport | None = None,
        token_manager: OAuth2TokenManager | None = None,
        serialize_refresh: bool = False,
    ):
        """Initialize the agent.

        Args:
            params: Client configuration and initial token state
            transport: Transport used for token endpoint calls
            token_manager: Token endpoint client (built from transport if omitted)
            serialize_refresh: Share one in-flight refresh between concurrent callers
        """
        self.params = params
        self._owns_token_manager = token_manager is None
        self.token_manager = token_manager or OAuth2TokenManager(transport=transport)
        self._refresh_lock = asyncio.Lock() if serialize_refresh else None

    async def get_header(self, context: AuthContext | None = None) -> str | None:
        access_token = await self.get_access_token()
        return f"Bearer {access_token}" if access_token else None

    def invalidate(self) -> None:
        self.params.clear_access_token()

    async def close(self) -> None:
        """Close the token manager if this agent created it."""
        if self._owns_token_manager:
            await self.token_manager.close()

    def set_tokens(self, tokens: OAuth2Tokens) -> None:
        """Store freshly obtained tokens.

        The refresh token is only replaced when a new one was issued.
        """
        expires_at = (
            now_ms() + tokens.access_expires_in * 1000
            if tokens.access_expires_in is not None
            else None
        )
        self.params.access_token = tokens.access_token
        self.params.expires_at = expires_at
        if tokens.refresh_token:
            self.params.refresh_token = tokens.refresh_token

    async def get_access_token(self) -> str | None:
        """Return a usable access token, acquiring one if needed."""
        if self._refresh_lock is None:
            return await self._run_stages()

        cached = await self._try_cached_access_token()
        if cached:
            return cached
        async with self._refresh_lock:
            # Another caller may have refreshed while we waited
            return await self._run_stages()

    async def _run_stages(self) -> str | None:
        stages: tuple[Callable[[], Awaitable[str | None]], ...] = (
            self._try_cached_access_token,
            self._try_refresh_token,
            self._try_client_secret,
        )
        for stage in stages:
            try:
                access_token = await stage()
            except Exception as e:
                logger.warning(f"OAuth2 {stage.__name__} failed: {e}")
                self.invalidate()
                continue
            if access_token:
                return access_token

        logger.debug(f"No OAuth2 access token available for client {self.params.client_id}")
        return None

    async def _try_cached_access_token(self) -> str | None:
        if self.params.has_valid_access_token():
            return self.params.access_token
        return None

    async def _try_refresh_token(self) -> str | None:
        params = self.params
        if not params.refresh_token:
            return None

        try:
            tokens = await self.token_manager.refresh_access_token(
                RefreshTokenRequest(
                    token_url=params.token_url,
                    client_id=params.client_id,
                    client_secret=params.client_secret,
                    refresh_token=params.refresh_token,
                )
            )
        except Exception:
            # Refresh token no longer usable
            params.refresh_token = None
            raise

        self.set_tokens(tokens)
        return tokens.access_token

    async def _try_client_secret(self) -> str | None:
        params = self.params
        if not params.client_secret:
            return None

        tokens = await self.token_manager.request_client_credentials_token(
            ClientCredentialsRequest(
                token_url=params.token_url,
                client_id=params.client_id,
                client_secret=params.client_secret,
            )
        )
        self.set_tokens(tokens)
        return tokens.access_token
