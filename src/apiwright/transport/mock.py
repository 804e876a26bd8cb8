"""Scripted transport for tests."""

from __future__ import annotations

from typing import Any

import httpx

from apiwright.request.spec import RequestSpec
from apiwright.transport.base import Transport

ScriptItem = httpx.Response | BaseException | int


class MockTransport(Transport):
    """Records every request and answers from a script.

    Script items are consumed in order: an ``httpx.Response`` is returned,
    an exception is raised and an int is turned into a response with that
    status and an empty JSON object body. The last item repeats once the
    script runs out; an empty script always answers 200 ``{}``.
    """

    def __init__(self, *script: ScriptItem):
        self.script: list[ScriptItem] = list(script) or [200]
        self.calls: list[RequestSpec] = []
        self.closed = False

    @property
    def called(self) -> bool:
        return bool(self.calls)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def last_call(self) -> RequestSpec:
        return self.calls[-1]

    async def fetch(self, spec: RequestSpec) -> httpx.Response:
        if self.closed:
            raise ConnectionError("Transport closed")

        index = min(len(self.calls), len(self.script) - 1)
        self.calls.append(spec)
        item = self.script[index]

        if isinstance(item, BaseException):
            raise item
        if isinstance(item, int):
            item = json_response(item, {})
        item.request = httpx.Request(spec.method.upper(), spec.url)
        return item

    async def close(self) -> None:
        self.closed = True


def json_response(status: int, body: Any = None, **kwargs: Any) -> httpx.Response:
    """Build a response with a JSON body (or no body when ``body`` is None)."""
    if body is None:
        return httpx.Response(status, **kwargs)
    return httpx.Response(status, json=body, **kwargs)
