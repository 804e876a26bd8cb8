"""Exception hierarchy for request execution.

Every error surfaced by the request engine carries the method, URL, status
and number of attempts made so failures can be diagnosed from the exception
alone.
"""

from __future__ import annotations

import errno
import socket
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx

    from apiwright.request.spec import RequestSpec


class ApiwrightError(Exception):
    """Base exception for all apiwright errors."""

    pass


class InvalidUrlError(ApiwrightError, ValueError):
    """Raised when a request URL cannot be resolved to an absolute URL."""

    pass


class RequestError(ApiwrightError):
    """Base exception for failures while executing a request."""

    def __init__(
        self,
        message: str,
        *,
        method: str | None = None,
        url: str | None = None,
        status: int | None = None,
        status_text: str | None = None,
        attempts: int = 1,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.url = url
        self.status = status
        self.status_text = status_text
        self.attempts = attempts

    @property
    def details(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "url": self.url,
            "status": self.status,
            "status_text": self.status_text,
            "attempts": self.attempts,
        }


class RequestFailedError(RequestError):
    """Raised when the server answers with a non-2xx status."""

    def __init__(
        self,
        request_spec: RequestSpec,
        response: httpx.Response,
        *,
        attempts: int = 1,
    ) -> None:
        super().__init__(
            f"Request failed: {response.status_code} {response.reason_phrase}",
            method=request_spec.method,
            url=request_spec.url,
            status=response.status_code,
            status_text=response.reason_phrase,
            attempts=attempts,
        )
        self.request_spec = request_spec
        self.response = response

    @property
    def details(self) -> dict[str, Any]:
        details = super().details
        details["request_headers"] = dict(self.request_spec.headers)
        return details


class RetryableStatusError(RequestFailedError):
    """Non-2xx status that is eligible for another attempt."""

    pass


class TerminalRequestError(RequestFailedError):
    """Non-2xx status that ends the request immediately."""

    pass


class TransportError(RequestError):
    """Raised when the transport fails before a response is received."""

    pass


class TransientNetworkError(TransportError):
    """Connection-level failure with a recognised transient error code.

    Always eligible for retry.
    """

    def __init__(self, message: str, *, code: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.code = code


NETWORK_ERROR_CODES = frozenset(
    {
        "EAI_AGAIN",
        "EHOSTDOWN",
        "EHOSTUNREACH",
        "ECONNABORTED",
        "ECONNREFUSED",
        "ECONNRESET",
        "EPIPE",
    }
)


def network_error_code(error: BaseException) -> str | None:
    """Find a transient network error code anywhere in ``error``'s chain.

    Looks at TransientNetworkError codes and at OSError errno values
    (including ``socket.gaierror`` EAI_AGAIN) through ``__cause__`` and
    ``__context__``.

    Returns:
        The symbolic code (e.g. ``"ECONNRESET"``) or None
    """
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        code = _code_of(current)
        if code in NETWORK_ERROR_CODES:
            return code
        current = current.__cause__ or current.__context__
    return None


def _code_of(error: BaseException) -> str | None:
    if isinstance(error, TransientNetworkError):
        return error.code
    if isinstance(error, socket.gaierror):
        return "EAI_AGAIN" if error.errno == socket.EAI_AGAIN else None
    if isinstance(error, OSError) and error.errno is not None:
        return errno.errorcode.get(error.errno)
    return None
