"""
Shared fixtures: an in-process fake of the ERP backend on ``httpx.MockTransport``.
"""

import inspect
import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from auth.context import AuthContext
from auth.session_store import MemorySessionStore
from client.api import ApiClient
from core.cooldown import ResendCooldown

BASE_URL = "http://erp.test/api"

Responder = Union[Tuple[int, Any], Callable[[httpx.Request], Any]]


class FakeBackend:
    """Route table keyed by (METHOD, path-without-/api); records every request."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Responder] = {}
        self.calls: List[httpx.Request] = []

    def on(self, method: str, path: str, status: int = 200, json: Any = None) -> None:
        self.routes[(method.upper(), path)] = (status, json)

    def on_call(self, method: str, path: str, responder: Callable[[httpx.Request], Any]) -> None:
        self.routes[(method.upper(), path)] = responder

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path
        if path.startswith("/api"):
            path = path[len("/api"):]
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"msg": "Not found"})
        if callable(route):
            result = route(request)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, httpx.Response):
                return result
            status, payload = result
        else:
            status, payload = route
        if payload is None:
            return httpx.Response(status)
        return httpx.Response(status, json=payload)

    def requests_to(self, method: str, path: str) -> List[httpx.Request]:
        return [
            r for r in self.calls
            if r.method == method.upper() and r.url.path == "/api" + path
        ]

    def last_body(self, method: str, path: str) -> Optional[Dict[str, Any]]:
        matches = self.requests_to(method, path)
        if not matches or not matches[-1].content:
            return None
        return json.loads(matches[-1].content)


USER = {
    "id": "u-1",
    "name": "Asha Verma",
    "email": "admin@x.com",
    "role": "admin",
    "twoFactorEnabled": False,
    "isActive": True,
    "lastLogin": "2024-05-01T09:30:00.000Z",
    "createdAt": "2023-01-10T08:00:00.000Z",
}


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
def api(store, backend) -> ApiClient:
    return ApiClient(store, base_url=BASE_URL, transport=httpx.MockTransport(backend.handle))


@pytest.fixture
def auth(api, store) -> AuthContext:
    return AuthContext(api, store, fetch_profile_after_register=False)


@pytest.fixture
def cooldown() -> ResendCooldown:
    return ResendCooldown(60, auto_tick=False)
