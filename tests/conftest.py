from __future__ import annotations

import json
from typing import Any, Callable, List

import httpx
import pytest

from news_reader.fetcher import Fetcher

BASE_URL = "https://api.test"


class Recorder:
    """MockTransport handler wrapper that remembers every request."""

    def __init__(self, handler: Callable[[httpx.Request], Any]) -> None:
        self.handler = handler
        self.requests: List[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.handler(request)
        if not isinstance(response, httpx.Response):
            response = await response
        return response

    @property
    def calls(self) -> int:
        return len(self.requests)

    @property
    def urls(self) -> List[str]:
        return [str(r.url) for r in self.requests]

    def fetcher(self) -> Fetcher:
        return Fetcher(transport=httpx.MockTransport(self))


def json_response(payload: Any, status: int = 200) -> httpx.Response:
    return httpx.Response(status, content=json.dumps(payload), headers={"content-type": "application/json"})


@pytest.fixture
def docs() -> List[dict]:
    return [
        {"title": "Hello World", "author": {"name": "Minh Anh"}},
        {"title": "Goodbye", "author": {"name": "Quoc Bao"}},
    ]
