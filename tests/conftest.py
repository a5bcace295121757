"""Shared fixtures for the reviewkit test suite."""

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

pytest_plugins = ["reviewkit.testing.conftest"]

Handler = Callable[[httpx.Request], httpx.Response]


class Router:
    """
    Routes requests from an ``httpx.MockTransport`` by method and path.

    Unrouted requests get a 404 so a missing stub fails loudly.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        json: Any = None,
        status: int = 200,
        headers: dict[str, str] | None = None,
        text: str | None = None,
        handler: Handler | None = None,
    ) -> None:
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                if text is not None:
                    return httpx.Response(status, text=text, headers=headers)
                if json is None:
                    return httpx.Response(status, headers=headers)
                return httpx.Response(status, json=json, headers=headers)

        self.routes[(method, path)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(
                404, json={"message": f"no route for {request.method} {request.url.path}"}
            )
        return handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def find(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def last(self, method: str, path: str) -> httpx.Request:
        found = self.find(method, path)
        assert found, f"no {method} {path} request was made"
        return found[-1]

    def body(self, method: str, path: str) -> Any:
        return json.loads(self.last(method, path).content)


@pytest.fixture
def router() -> Router:
    return Router()
