"""Test doubles shared by unit and integration tests.

``MockService`` is an ``httpx.MockTransport`` stand-in for the remote protection
service: it records every request it receives and replays a scripted sequence of
responses or transport errors.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Union

import httpx

from dataprotect import AsyncProtectionClient, ClientConfig, ProtectionClient

TEST_BASE_URL = "http://protect.test"
TEST_PAN = "4111111111111111"

Scripted = Union[httpx.Response, Exception, Callable[[httpx.Request], Any]]


class MockService:
    """Mock protection service that records requests and replays scripted outcomes.

    Each scripted item is an ``httpx.Response``, an exception to raise, or a
    callable taking the request (its return value is used as the response; it may
    be a coroutine for async clients). The last item repeats once the script is
    exhausted.
    """

    def __init__(self, *script: Scripted) -> None:
        self.received_requests: list[httpx.Request] = []
        self._script: list[Scripted] = list(script) or [
            httpx.Response(200, json={"protected_data": "tkn_default"})
        ]

    def _next(self) -> Scripted:
        if len(self._script) > 1:
            return self._script.pop(0)
        return self._script[0]

    def handler(self, request: httpx.Request) -> Any:
        self.received_requests.append(request)
        item = self._next()
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            # Fresh copy per request; a scripted response may be replayed.
            return httpx.Response(item.status_code, content=item.content, headers=item.headers)
        return item(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def request_count(self) -> int:
        return len(self.received_requests)

    def json_bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.received_requests]

    def sync_client(self, **config: Any) -> ProtectionClient:
        cfg = ClientConfig(base_url=TEST_BASE_URL, **config)
        return ProtectionClient(cfg, http_client=httpx.Client(transport=self.transport))

    def async_client(self, **config: Any) -> AsyncProtectionClient:
        cfg = ClientConfig(base_url=TEST_BASE_URL, **config)
        return AsyncProtectionClient(
            cfg, http_client=httpx.AsyncClient(transport=self.transport)
        )


def echo_handler(request: httpx.Request) -> httpx.Response:
    """Pass-through identity service: protect and reveal both return the input."""
    body = json.loads(request.content)
    if request.url.path.endswith("/protect"):
        return httpx.Response(200, json={"protected_data": body["data"]})
    return httpx.Response(200, json={"data": body["data"]})


def connect_refused() -> httpx.ConnectError:
    return httpx.ConnectError("[Errno 111] Connection refused")
