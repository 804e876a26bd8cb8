"""Request execution engine.

Wraps one logical HTTP call in a retry loop:
- Builds a fresh RequestSpec per attempt (URL, merged headers, auth header)
- Retries configured status codes with a linearly increasing delay
- Invalidates credentials and retries immediately on auth failures
- Retries transient network errors (connection reset/refused, DNS, ...)
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from types import TracebackType
from typing import Any, Self

import httpx

from apiwright.auth.base import AuthContext
from apiwright.errors import (
    RequestError,
    RequestFailedError,
    RetryableStatusError,
    TerminalRequestError,
    network_error_code,
)
from apiwright.request.config import RequestConfig
from apiwright.request.spec import (
    RequestDebugInfo,
    RequestHeaders,
    RequestOptions,
    RequestSpec,
    infer_content_type,
    merge_headers,
    resolve_url,
)

logger = logging.getLogger(__name__)


class Request:
    """HTTP client with authentication and automatic retries.

    One instance is meant to live for the whole process and can serve
    concurrent calls; all of them share ``config.auth``.
    """

    def __init__(self, config: RequestConfig | None = None, **overrides: Any):
        """Initialize the engine.

        Args:
            config: Base configuration (defaults to RequestConfig())
            **overrides: RequestConfig fields to override
        """
        if config is None:
            config = RequestConfig(**overrides)
        elif overrides:
            config = config.with_overrides(**overrides)
        self.config = config

    # ================================
    # JSON convenience API
    # ================================

    async def get(self, url: str, **kwargs: Any) -> Any:
        return await self.send_json("get", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> Any:
        return await self.send_json("post", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> Any:
        return await self.send_json("put", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> Any:
        return await self.send_json("delete", url, **kwargs)

    async def send_json(
        self,
        method: str,
        url: str,
        *,
        body: Any = None,
        query: Mapping[str, Any] | None = None,
        headers: RequestHeaders | None = None,
    ) -> Any:
        """Send a JSON body and decode the JSON response.

        Returns:
            The decoded response, or None for 204 / empty responses

        Raises:
            RequestError: If the request fails after all attempts
        """
        response = await self.send(
            method,
            url,
            body=json.dumps(body) if body is not None else None,
            query=query,
            headers={"content-type": "application/json", **(headers or {})},
        )
        if response.status_code == 204 or response.headers.get("content-length") == "0":
            return None
        return response.json()

    # ================================
    # Core primitives
    # ================================

    async def send(
        self,
        method: str,
        url: str,
        *,
        body: Any = None,
        query: Mapping[str, Any] | None = None,
        headers: RequestHeaders | None = None,
    ) -> httpx.Response:
        """Send a request, retrying according to the config.

        Args:
            method: HTTP method
            url: Absolute URL, or a path relative to ``config.base_url``
            body: None, str, bytes, dict/list (JSON) or FormData
            query: Query parameters merged into the URL
            headers: Caller headers, highest precedence

        Returns:
            httpx.Response: The first 2xx response

        Raises:
            RequestFailedError: Non-2xx response that was not (or no longer) retried
            TransportError: Network failure that was not (or no longer) retried
            InvalidUrlError: If the URL cannot be resolved
        """
        options = RequestOptions(body=body, query=query, headers=headers or {})
        config = self.config
        total_attempts = config.total_attempts

        for attempt in range(total_attempts):
            should_retry = False
            delay = config.retry_delay_for(attempt)

            try:
                spec = await self._prepare_request_spec(method, url, options)
                logger.debug(
                    f"{method.upper()} {spec.url} "
                    f"(attempt {attempt + 1}/{total_attempts})"
                )
                response = await config.transport.fetch(spec)
            except Exception as e:
                error: BaseException = e
                should_retry = network_error_code(e) is not None
            else:
                if response.is_success:
                    return response

                status = response.status_code
                if status in config.auth_invalidate_status_codes:
                    should_retry = True
                    delay = 0
                    self._invalidate_auth()
                elif status in config.retry_status_codes:
                    should_retry = True

                error = self.create_error_from_response(
                    spec, response, retryable=should_retry
                )

            if isinstance(error, RequestError):
                error.attempts = attempt + 1
            info = self._debug_info(method, url, options, error)

            if not should_retry:
                self.on_error(error, info)
                raise error

            if attempt + 1 >= total_attempts:
                logger.debug(
                    f"Giving up on {method.upper()} {url} after {attempt + 1} attempts"
                )
                self.on_error(error, info)
                raise error

            self.on_retry(error, info)
            logger.debug(f"Retrying {method.upper()} {url} in {delay}ms: {error}")
            await asyncio.sleep(delay / 1000)

        # total_attempts is always >= 1, so the loop returns or raises
        raise AssertionError("unreachable")

    async def send_raw(
        self,
        method: str,
        url: str,
        *,
        body: Any = None,
        query: Mapping[str, Any] | None = None,
        headers: RequestHeaders | None = None,
    ) -> httpx.Response:
        """Perform exactly one attempt and return the response as is.

        No status checking and no retries; useful for streaming bodies or
        inspecting error responses directly.
        """
        options = RequestOptions(body=body, query=query, headers=headers or {})
        spec = await self._prepare_request_spec(method, url, options)
        return await self.config.transport.fetch(spec)

    # ================================
    # Overridable hooks
    # ================================

    def on_retry(self, error: BaseException, info: RequestDebugInfo) -> None:
        self.config.observer.on_retry(error, info)

    def on_error(self, error: BaseException, info: RequestDebugInfo) -> None:
        self.config.observer.on_error(error, info)

    def create_error_from_response(
        self,
        spec: RequestSpec,
        response: httpx.Response,
        *,
        retryable: bool,
    ) -> RequestFailedError:
        error_cls = RetryableStatusError if retryable else TerminalRequestError
        return error_cls(spec, response)

    # ================================
    # Internals
    # ================================

    async def _prepare_request_spec(
        self, method: str, url: str, options: RequestOptions
    ) -> RequestSpec:
        config = self.config
        full_url = resolve_url(config.base_url, url, options.query)
        authorization = await config.auth.get_header(
            AuthContext(url=full_url, method=method, body=options.body)
        )
        headers = merge_headers(
            {"content-type": infer_content_type(options.body)},
            config.headers,
            {"authorization": authorization or ""},
            options.headers,
        )
        return RequestSpec(method=method, url=full_url, headers=headers, body=options.body)

    def _invalidate_auth(self) -> None:
        try:
            self.config.auth.invalidate()
        except Exception:
            logger.warning("Auth invalidation failed", exc_info=True)

    @staticmethod
    def _debug_info(
        method: str, url: str, options: RequestOptions, error: BaseException
    ) -> RequestDebugInfo:
        status = status_text = None
        if isinstance(error, RequestFailedError):
            status = error.status
            status_text = error.status_text
        return RequestDebugInfo(
            method=method,
            url=url,
            headers=dict(options.headers),
            status=status,
            status_text=status_text,
        )

    async def close(self) -> None:
        await self.config.transport.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
