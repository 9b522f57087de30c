from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from restbuilder import ClientConfig, RestClient

BASE_URL = "https://api.example.com/items"


class FakeServer:
    """Replays queued responses and records every request it sees."""

    def __init__(self, *responses: httpx.Response | Exception | Callable[[httpx.Request], httpx.Response]) -> None:
        self._responses = list(responses)
        self.requests: list[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self._responses)) - 1
        response = self._responses[index]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(request)
        # fresh copy, the same response may be replayed for several attempts
        return httpx.Response(
            response.status_code,
            headers=response.headers,
            content=response.content,
        )

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def make_client() -> Callable[..., RestClient]:
    def factory(server: FakeServer, url: str = BASE_URL) -> RestClient:
        return RestClient.uri(url, config=ClientConfig(transport=server.transport()))

    return factory


@pytest.fixture
def delays(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []

    async def fake_wait(delay: float, cancel) -> None:
        recorded.append(delay)

    monkeypatch.setattr("restbuilder._retry._wait", fake_wait)
    return recorded
