"""Request engine configuration."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field, fields, replace
from typing import Any

from apiwright.auth.base import AuthAgent
from apiwright.auth.none import NoAuthAgent
from apiwright.request.observers import RequestObserver
from apiwright.transport.base import Transport
from apiwright.transport.http import HttpxTransport

DEFAULT_RETRY_STATUS_CODES = frozenset({429, 502, 503, 504})
DEFAULT_AUTH_INVALIDATE_STATUS_CODES = frozenset({401, 403})


@dataclass
class RequestConfig:
    """Settings shared by every call made through one Request.

    Delays are in milliseconds. ``retry_attempts`` counts retries after the
    first attempt, so a request is tried at most ``retry_attempts + 1``
    times.
    """

    base_url: str = ""
    auth: AuthAgent = field(default_factory=NoAuthAgent)
    retry_attempts: int = 4
    retry_delay: int = 500
    retry_delay_increment: int = 500
    retry_status_codes: frozenset[int] = DEFAULT_RETRY_STATUS_CODES
    auth_invalidate_status_codes: frozenset[int] = DEFAULT_AUTH_INVALIDATE_STATUS_CODES
    headers: dict[str, str] = field(default_factory=dict)
    transport: Transport = field(default_factory=HttpxTransport)
    observer: RequestObserver = field(default_factory=RequestObserver)

    def __post_init__(self) -> None:
        if self.retry_attempts < 0:
            raise ValueError(
                f"retry_attempts must be non-negative, got {self.retry_attempts}"
            )
        if self.retry_delay < 0:
            raise ValueError(f"retry_delay must be non-negative, got {self.retry_delay}")
        if self.retry_delay_increment < 0:
            raise ValueError(
                "retry_delay_increment must be non-negative, "
                f"got {self.retry_delay_increment}"
            )
        self.retry_status_codes = frozenset(self.retry_status_codes)
        self.auth_invalidate_status_codes = frozenset(self.auth_invalidate_status_codes)

    @property
    def total_attempts(self) -> int:
        return max(self.retry_attempts + 1, 1)

    def retry_delay_for(self, attempt: int) -> int:
        """Delay in milliseconds before retrying after attempt index ``attempt``."""
        return self.retry_delay + self.retry_delay_increment * attempt

    def with_overrides(self, **overrides: Any) -> RequestConfig:
        return replace(self, **overrides)

    @classmethod
    def from_env(cls, prefix: str = "APIWRIGHT_", **overrides: Any) -> RequestConfig:
        """Build a config from environment variables.

        Reads ``{prefix}BASE_URL``, ``RETRY_ATTEMPTS``, ``RETRY_DELAY``,
        ``RETRY_DELAY_INCREMENT``, ``RETRY_STATUS_CODES`` and
        ``AUTH_INVALIDATE_STATUS_CODES`` (comma separated). Unset variables
        keep their defaults; keyword overrides win over the environment.

        Raises:
            ValueError: If a variable cannot be parsed
        """
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown config fields: {', '.join(sorted(unknown))}")

        values: dict[str, Any] = {}
        env = os.environ

        if f"{prefix}BASE_URL" in env:
            values["base_url"] = env[f"{prefix}BASE_URL"]
        for name in ("retry_attempts", "retry_delay", "retry_delay_increment"):
            key = f"{prefix}{name.upper()}"
            if key in env:
                values[name] = _parse_int(key, env[key])
        for name in ("retry_status_codes", "auth_invalidate_status_codes"):
            key = f"{prefix}{name.upper()}"
            if key in env:
                values[name] = _parse_codes(key, env[key])

        values.update(overrides)
        return cls(**values)


def _parse_int(key: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from e


def _parse_codes(key: str, raw: str) -> frozenset[int]:
    parts: Iterable[str] = (p.strip() for p in raw.split(","))
    return frozenset(_parse_int(key, p) for p in parts if p)
