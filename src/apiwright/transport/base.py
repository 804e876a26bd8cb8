from abc import ABC, abstractmethod
from types import TracebackType
from typing import Self

import httpx

from apiwright.request.spec import RequestSpec


class Transport(ABC):
    """Performs exactly one raw HTTP exchange.

    The transport knows nothing about retries, authentication or status
    codes: it sends what the spec describes and hands back whatever the
    server answered. Connection-level failures are raised as
    TransportError (or TransientNetworkError when they are worth retrying).
    """

    @abstractmethod
    async def fetch(self, spec: RequestSpec) -> httpx.Response:
        """Send one request.

        Args:
            spec: Fully resolved method, URL, headers and body

        Returns:
            httpx.Response: The response, whatever its status

        Raises:
            TransportError: If no response could be obtained
        """

    async def close(self) -> None:
        """Release network resources. Safe to call multiple times."""

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
