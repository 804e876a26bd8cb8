from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class AuthContext:
    """The prospective request an authorization header is computed for.

    Signing agents (OAuth1) need all three fields; token based agents
    ignore them.
    """

    url: str
    method: str
    body: Any = None


class AuthAgent(ABC):
    """Produces the ``Authorization`` header value for outgoing requests.

    Agents are shared by every call made through one request engine, so
    ``get_header`` may run concurrently for several in-flight requests.
    """

    @abstractmethod
    async def get_header(self, context: AuthContext | None = None) -> str | None:
        """Return the header value, or None when no header should be sent.

        Args:
            context: The request about to be sent

        Raises:
            AuthError: If the header cannot be constructed
        """

    @abstractmethod
    def invalidate(self) -> None:
        """Forget any cached credential so the next call re-derives it.

        Must not raise.
        """
