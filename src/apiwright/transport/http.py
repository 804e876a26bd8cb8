"""httpx based transport implementation."""

import json
import logging
from typing import Any

import httpx

from apiwright.errors import TransientNetworkError, TransportError, network_error_code
from apiwright.request.spec import FormData, RequestSpec
from apiwright.transport.base import Transport

logger = logging.getLogger(__name__)


class HttpxTransport(Transport):
    """Sends requests through a shared ``httpx.AsyncClient``.

    Bodies are encoded according to their Python type:
    - FormData: application/x-www-form-urlencoded
    - dict / list: JSON
    - str: UTF-8 text
    - bytes: sent as is

    Content-Type is never set here; the request engine infers it.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def fetch(self, spec: RequestSpec) -> httpx.Response:
        content = self._encode_body(spec.body)

        logger.debug(f"{spec.method.upper()} {spec.url}")

        try:
            return await self._http_client.request(
                spec.method.upper(),
                spec.url,
                headers=spec.headers,
                content=content,
            )
        except httpx.TransportError as e:
            code = network_error_code(e)
            if code is not None:
                raise TransientNetworkError(
                    f"Network error ({code}) for {spec.method.upper()} {spec.url}: {e}",
                    code=code,
                    method=spec.method,
                    url=spec.url,
                ) from e
            raise TransportError(
                f"Transport error for {spec.method.upper()} {spec.url}: {e}",
                method=spec.method,
                url=spec.url,
            ) from e

    async def close(self) -> None:
        if not self._http_client.is_closed:
            await self._http_client.aclose()
            logger.debug("HTTP client closed")

    @staticmethod
    def _encode_body(body: Any) -> bytes | str | None:
        if body is None:
            return None
        if isinstance(body, FormData):
            return body.encode()
        if isinstance(body, (dict, list)):
            return json.dumps(body)
        if isinstance(body, (str, bytes)):
            return body
        raise TypeError(f"Unsupported request body type: {type(body).__name__}")
