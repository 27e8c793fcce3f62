"""
Shared fixtures for gateway tests.

FakeGateway serves canned JSON per URL through httpx.MockTransport and
records every request so tests can assert which endpoints were hit.
"""

from datetime import date
from typing import Any, Callable, Dict, List

import httpx
import pytest

Route = Callable[[httpx.Request], httpx.Response]

TODAY = date(2024, 5, 17)


class FakeGateway:
    """In-memory gateway keyed by URL without query string."""

    def __init__(self):
        self.routes: Dict[str, Route] = {}
        self.requests: List[httpx.Request] = []

    def add(self, url: str, route: Route) -> None:
        self.routes[url] = route

    def add_json(self, url: str, body: Any, status_code: int = 200) -> None:
        self.routes[url] = lambda request: httpx.Response(status_code, json=body)

    def add_usage_windows(self, url: str, cents_by_start_date: Dict[str, Any]) -> None:
        """Serve NewAPI usage responses keyed by the start_date parameter."""
        def handler(request: httpx.Request) -> httpx.Response:
            start_date = request.url.params.get("start_date")
            body = cents_by_start_date.get(start_date)
            if body is None:
                return httpx.Response(404, json={"error": "not found"})
            if isinstance(body, httpx.Response):
                return body
            return httpx.Response(200, json=body)
        self.routes[url] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404, text="404 page not found")
        return route(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]

    def hosts(self) -> List[str]:
        return [request.url.host for request in self.requests]


@pytest.fixture
def gateway():
    """Empty fake gateway; every unknown URL answers 404."""
    return FakeGateway()


@pytest.fixture
def today():
    return TODAY
