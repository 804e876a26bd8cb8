"""Request specification models and the pure helpers that build them.

A RequestSpec is rebuilt for every attempt so that a refreshed
authorization header is picked up on retry.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

import httpx

from apiwright.errors import InvalidUrlError

RequestHeaders = Mapping[str, str | None]


@dataclass(frozen=True)
class FormData:
    """An ordered ``application/x-www-form-urlencoded`` body.

    Fields with a None value are dropped on construction.
    """

    fields: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_pairs(
        cls, pairs: Mapping[str, Any] | Iterable[tuple[str, Any]]
    ) -> FormData:
        items = pairs.items() if isinstance(pairs, Mapping) else pairs
        return cls(tuple((str(k), str(v)) for k, v in items if v is not None))

    def encode(self) -> str:
        return urlencode(self.fields)

    def to_dict(self) -> dict[str, str]:
        return dict(self.fields)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)


@dataclass
class RequestOptions:
    """Per-call options accepted by every engine method."""

    body: Any = None
    query: Mapping[str, Any] | None = None
    headers: RequestHeaders = field(default_factory=dict)


@dataclass(frozen=True)
class RequestSpec:
    """A single fully resolved attempt, handed to the transport."""

    method: str
    url: str
    headers: dict[str, str]
    body: Any = None


@dataclass(frozen=True)
class RequestDebugInfo:
    """Context passed to request observers on retry and on failure."""

    method: str
    url: str
    headers: dict[str, str | None]
    status: int | None = None
    status_text: str | None = None


def resolve_url(base_url: str, url: str, query: Mapping[str, Any] | None = None) -> str:
    """Join ``url`` onto ``base_url`` and merge in query parameters.

    An absolute ``url`` ignores ``base_url``. Otherwise the base is treated
    as a directory (a trailing slash is ensured) and a leading slash on
    ``url`` is dropped, so ``http://h/a/b`` + ``/c`` gives ``http://h/a/b/c``.

    Raises:
        InvalidUrlError: If no absolute URL can be formed
    """
    base = f"{base_url}/" if base_url and not base_url.endswith("/") else base_url
    relative = url[1:] if url.startswith("/") else url

    try:
        target = httpx.URL(relative)
        if not target.is_absolute_url:
            base_target = httpx.URL(base) if base else None
            if base_target is None or not base_target.is_absolute_url:
                raise InvalidUrlError(f"Invalid URL: {url!r} (base URL: {base_url!r})")
            target = base_target.join(relative)
    except httpx.InvalidURL as e:
        raise InvalidUrlError(f"Invalid URL: {url!r}: {e}") from e

    if query:
        params = {k: v for k, v in query.items() if v is not None}
        if params:
            target = target.copy_merge_params(params)

    return str(target)


def infer_content_type(body: Any) -> str | None:
    """Guess the content type the transport will encode ``body`` with."""
    if body is None:
        return None
    if isinstance(body, FormData):
        return "application/x-www-form-urlencoded"
    if isinstance(body, (dict, list)):
        return "application/json"
    if isinstance(body, str):
        return "text/plain"
    return None


def merge_headers(*layers: RequestHeaders | None) -> dict[str, str]:
    """Merge header mappings, later layers winning.

    Names are lower-cased and falsy values are dropped, so an empty string
    in a higher layer does not erase a value set by a lower one.
    """
    result: dict[str, str] = {}
    for layer in layers:
        if not layer:
            continue
        for name, value in layer.items():
            if not value:
                continue
            result[name.lower()] = value
    return result
